"""Ledger of processed Stripe webhook events"""
from alembic import op
import sqlalchemy as sa

revision = '0002_webhook_events'
down_revision = '0001_init'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'webhook_events',
        sa.Column('id', sa.Integer, primary_key=True),
        sa.Column('event_id', sa.String(100), nullable=False),
        sa.Column('event_type', sa.String(100), nullable=False),
        sa.Column('restaurant_id', sa.Integer, nullable=True),
        sa.Column('received_at', sa.DateTime, nullable=False),
    )
    op.create_index('ix_webhook_events_event_id', 'webhook_events', ['event_id'], unique=True)


def downgrade():
    op.drop_index('ix_webhook_events_event_id', table_name='webhook_events')
    op.drop_table('webhook_events')
