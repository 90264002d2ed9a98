from alembic import op
import sqlalchemy as sa

revision = '0001_init'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('password_hash', sa.String(100), nullable=False),
        sa.Column('role', sa.String(20), nullable=False),
        sa.Column('phone', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'addresses',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('label', sa.String(50), nullable=True),
        sa.Column('street', sa.String(300), nullable=False),
        sa.Column('number', sa.String(20), nullable=False),
        sa.Column('complement', sa.String(200), nullable=True),
        sa.Column('neighborhood', sa.String(100), nullable=False),
        sa.Column('city', sa.String(100), nullable=False),
        sa.Column('state', sa.String(50), nullable=False),
        sa.Column('zip_code', sa.String(20), nullable=False),
        sa.Column('latitude', sa.Numeric(10, 7), nullable=True),
        sa.Column('longitude', sa.Numeric(10, 7), nullable=True),
        sa.Column('is_default', sa.Boolean, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_addresses_user_id', 'addresses', ['user_id'])

    op.create_table(
        'categories',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(50), nullable=False),
        sa.Column('slug', sa.String(80), nullable=False),
        sa.Column('description', sa.String(200), nullable=True),
        sa.Column('image', sa.String(500), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_categories_slug', 'categories', ['slug'], unique=True)

    op.create_table(
        'payment_methods',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(50), nullable=False, unique=True),
        sa.Column('is_active', sa.Boolean, nullable=False),
    )

    op.create_table(
        'subscription_plans',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('name', sa.String(100), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('interval', sa.String(20), nullable=False),
        sa.Column('features', sa.JSON, nullable=False),
        sa.Column('max_products', sa.Integer, nullable=True),
        sa.Column('max_orders', sa.Integer, nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'restaurants',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('owner_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False, unique=True),
        sa.Column('category_id', sa.Integer, sa.ForeignKey('categories.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('name', sa.String(120), nullable=False),
        sa.Column('slug', sa.String(160), nullable=False),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('email', sa.String(255), nullable=False),
        sa.Column('phone', sa.String(50), nullable=False),
        sa.Column('logo', sa.Text, nullable=True),
        sa.Column('banner', sa.Text, nullable=True),
        sa.Column('min_order_value', sa.Numeric(10, 2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('estimated_delivery_time', sa.Integer, nullable=False),
        sa.Column('opens_at', sa.String(5), nullable=False),
        sa.Column('closes_at', sa.String(5), nullable=False),
        sa.Column('accepts_delivery', sa.Boolean, nullable=False),
        sa.Column('accepts_pickup', sa.Boolean, nullable=False),
        sa.Column('rating', sa.Float, nullable=False),
        sa.Column('total_reviews', sa.Integer, nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.Column('is_approved', sa.Boolean, nullable=False),
        sa.Column('approved_at', sa.DateTime, nullable=True),
        sa.Column('rejected_at', sa.DateTime, nullable=True),
        sa.Column('rejection_reason', sa.Text, nullable=True),
        sa.Column('subscription_plan_id', sa.Integer, sa.ForeignKey('subscription_plans.id'), nullable=True),
        sa.Column('subscription_status', sa.String(20), nullable=False),
        sa.Column('subscription_expires_at', sa.DateTime, nullable=True),
        sa.Column('stripe_subscription_id', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_restaurants_slug', 'restaurants', ['slug'], unique=True)
    op.create_index('ix_restaurants_stripe_subscription_id', 'restaurants', ['stripe_subscription_id'])

    op.create_table(
        'restaurant_payment_methods',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('restaurant_id', sa.Integer, sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('payment_method_id', sa.Integer, sa.ForeignKey('payment_methods.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('is_active', sa.Boolean, nullable=False),
        sa.UniqueConstraint('restaurant_id', 'payment_method_id', name='uq_restaurant_payment_method'),
    )

    op.create_table(
        'products',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('restaurant_id', sa.Integer, sa.ForeignKey('restaurants.id', ondelete='CASCADE'), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category', sa.String(100), nullable=False),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount_price', sa.Numeric(10, 2), nullable=True),
        sa.Column('image', sa.Text, nullable=True),
        sa.Column('preparation_time', sa.Integer, nullable=True),
        sa.Column('is_available', sa.Boolean, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_products_restaurant_id', 'products', ['restaurant_id'])

    op.create_table(
        'orders',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_number', sa.String(50), nullable=False),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('restaurant_id', sa.Integer, sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('status', sa.String(30), nullable=False),
        sa.Column('payment_status', sa.String(30), nullable=False),
        sa.Column('total_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('delivery_fee', sa.Numeric(10, 2), nullable=False),
        sa.Column('discount', sa.Numeric(10, 2), nullable=False),
        sa.Column('final_amount', sa.Numeric(10, 2), nullable=False),
        sa.Column('delivery_type', sa.String(20), nullable=False),
        sa.Column('address_id', sa.Integer, sa.ForeignKey('addresses.id', ondelete='SET NULL'), nullable=True),
        sa.Column('delivery_address', sa.Text, nullable=True),
        sa.Column('payment_method_id', sa.Integer, sa.ForeignKey('payment_methods.id'), nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('cancel_reason', sa.Text, nullable=True),
        sa.Column('cancelled_at', sa.DateTime, nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_orders_order_number', 'orders', ['order_number'], unique=True)
    op.create_index('ix_orders_user_id', 'orders', ['user_id'])
    op.create_index('ix_orders_restaurant_id', 'orders', ['restaurant_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])
    op.create_index('ix_orders_created_at', 'orders', ['created_at'])

    op.create_table(
        'order_items',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('product_id', sa.Integer, sa.ForeignKey('products.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('total_price', sa.Numeric(10, 2), nullable=False),
        sa.Column('product_name_snapshot', sa.String(200), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
    )

    op.create_table(
        'reviews',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('order_id', sa.Integer, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, unique=True),
        sa.Column('user_id', sa.Integer, sa.ForeignKey('users.id'), nullable=False),
        sa.Column('restaurant_id', sa.Integer, sa.ForeignKey('restaurants.id'), nullable=False),
        sa.Column('rating', sa.Integer, nullable=False),
        sa.Column('comment', sa.String(500), nullable=True),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_reviews_restaurant_id', 'reviews', ['restaurant_id'])

    op.create_table(
        'banners',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('image', sa.Text, nullable=False),
        sa.Column('title', sa.String(200), nullable=True),
        sa.Column('description', sa.String(500), nullable=True),
        sa.Column('link', sa.String(500), nullable=True),
        sa.Column('location', sa.String(30), nullable=False),
        sa.Column('active', sa.Boolean, nullable=False),
        sa.Column('created_at', sa.DateTime, nullable=False),
    )

    op.create_table(
        'site_settings',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('site_name', sa.String(100), nullable=False),
        sa.Column('logo', sa.Text, nullable=True),
        sa.Column('favicon', sa.Text, nullable=True),
        sa.Column('primary_color', sa.String(7), nullable=False),
        sa.Column('secondary_color', sa.String(7), nullable=False),
        sa.Column('footer_email', sa.String(255), nullable=True),
        sa.Column('footer_phone', sa.String(50), nullable=True),
        sa.Column('footer_address', sa.String(300), nullable=True),
        sa.Column('footer_facebook', sa.String(300), nullable=True),
        sa.Column('footer_instagram', sa.String(300), nullable=True),
        sa.Column('footer_twitter', sa.String(300), nullable=True),
        sa.Column('footer_linkedin', sa.String(300), nullable=True),
        sa.Column('stripe_prod_secret_key', sa.String(255), nullable=True),
        sa.Column('stripe_prod_publishable_key', sa.String(255), nullable=True),
        sa.Column('stripe_test_secret_key', sa.String(255), nullable=True),
        sa.Column('stripe_test_publishable_key', sa.String(255), nullable=True),
        sa.Column('is_stripe_sandbox', sa.Boolean, nullable=False),
        sa.Column('updated_at', sa.DateTime, nullable=False),
    )


def downgrade():
    for table in (
        'site_settings', 'banners', 'reviews', 'order_items', 'orders', 'products',
        'restaurant_payment_methods', 'restaurants', 'subscription_plans',
        'payment_methods', 'categories', 'addresses', 'users',
    ):
        op.drop_table(table)
