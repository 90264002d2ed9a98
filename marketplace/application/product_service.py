from sqlalchemy.orm import Session

from marketplace.core.logging_config import get_logger
from marketplace.domain.models import OrderItem, Product, User
from .errors import NotFound, ValidationFailed
from .restaurant_service import owned_restaurant
from .schemas import ProductCreate

logger = get_logger(__name__)


class ProductService:
    def __init__(self, db: Session):
        self.db = db

    def list(self, user: User):
        restaurant = owned_restaurant(self.db, user)
        return (
            self.db.query(Product)
            .filter(Product.restaurant_id == restaurant.id)
            .order_by(Product.category, Product.name)
            .all()
        )

    def get(self, user: User, product_id: int) -> Product:
        restaurant = owned_restaurant(self.db, user)
        product = self.db.get(Product, product_id)
        if not product or product.restaurant_id != restaurant.id:
            raise NotFound("Product not found")
        return product

    def create(self, user: User, data: ProductCreate) -> Product:
        restaurant = owned_restaurant(self.db, user)
        plan = restaurant.subscription_plan
        if plan and plan.max_products:
            count = self.db.query(Product).filter(Product.restaurant_id == restaurant.id).count()
            if count >= plan.max_products:
                raise ValidationFailed(
                    f"Your current plan allows only {plan.max_products} products. Upgrade to add more."
                )
        product = Product(restaurant_id=restaurant.id, **data.model_dump())
        self.db.add(product)
        self.db.commit()
        self.db.refresh(product)
        logger.info(f"Product {product.id} created for restaurant {restaurant.id}")
        return product

    def update(self, user: User, product_id: int, data: ProductCreate) -> Product:
        product = self.get(user, product_id)
        for key, value in data.model_dump().items():
            setattr(product, key, value)
        self.db.commit()
        self.db.refresh(product)
        return product

    def delete(self, user: User, product_id: int) -> None:
        product = self.get(user, product_id)
        if self.db.query(OrderItem.id).filter(OrderItem.product_id == product.id).first():
            raise ValidationFailed("A product that has been ordered cannot be deleted. Disable it instead.")
        self.db.delete(product)
        self.db.commit()
        logger.info(f"Product {product_id} deleted")

    def toggle_availability(self, user: User, product_id: int) -> Product:
        product = self.get(user, product_id)
        product.is_available = not product.is_available
        self.db.commit()
        self.db.refresh(product)
        return product
