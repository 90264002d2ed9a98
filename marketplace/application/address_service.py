from sqlalchemy.orm import Session
from marketplace.domain.models import Address, User
from .errors import NotFound
from .schemas import AddressCreate

class AddressService:
    def __init__(self, db: Session):
        self.db = db

    def list(self, user: User):
        return (
            self.db.query(Address)
            .filter(Address.user_id == user.id)
            .order_by(Address.is_default.desc(), Address.created_at.desc(), Address.id.desc())
            .all()
        )

    def get(self, user: User, address_id: int) -> Address:
        address = self.db.query(Address).filter(Address.id == address_id, Address.user_id == user.id).first()
        if not address:
            raise NotFound("Address not found")
        return address

    def create(self, user: User, data: AddressCreate) -> Address:
        has_any = self.db.query(Address).filter(Address.user_id == user.id).count() > 0
        payload = data.model_dump()
        # First address is always the default
        make_default = payload.pop("is_default") or not has_any
        if make_default:
            self._clear_default(user)
        obj = Address(user_id=user.id, is_default=make_default, **payload)
        self.db.add(obj)
        self.db.commit()
        self.db.refresh(obj)
        return obj

    def update(self, user: User, address_id: int, data: AddressCreate) -> Address:
        address = self.get(user, address_id)
        payload = data.model_dump()
        make_default = payload.pop("is_default")
        for key, value in payload.items():
            setattr(address, key, value)
        if make_default and not address.is_default:
            self._clear_default(user)
            address.is_default = True
        self.db.commit()
        self.db.refresh(address)
        return address

    def set_default(self, user: User, address_id: int) -> Address:
        address = self.get(user, address_id)
        self._clear_default(user)
        address.is_default = True
        self.db.commit()
        self.db.refresh(address)
        return address

    def delete(self, user: User, address_id: int) -> None:
        address = self.get(user, address_id)
        was_default = address.is_default
        self.db.delete(address)
        self.db.flush()
        if was_default:
            replacement = (
                self.db.query(Address)
                .filter(Address.user_id == user.id)
                .order_by(Address.created_at.desc(), Address.id.desc())
                .first()
            )
            if replacement:
                replacement.is_default = True
        self.db.commit()

    def _clear_default(self, user: User) -> None:
        self.db.query(Address).filter(Address.user_id == user.id, Address.is_default.is_(True)).update(
            {Address.is_default: False}, synchronize_session=False
        )
