"""Create products, licenses and fulfillment_records tables

Revision ID: a7c1e2f3b4d5
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a7c1e2f3b4d5'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('track_inventory', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('stock_quantity', sa.Integer(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_products_id'), 'products', ['id'], unique=False)
    op.create_index(op.f('ix_products_slug'), 'products', ['slug'], unique=True)

    op.create_table(
        'licenses',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('owner_id', sa.Integer(), nullable=True),
        sa.Column('source', sa.String(length=50), nullable=False, server_default='online_purchase'),
        sa.Column('stripe_session_id', sa.String(length=255), nullable=True),
        sa.Column('customer_email', sa.String(length=255), nullable=True),
        sa.Column('claim_token', sa.String(length=64), nullable=True),
        sa.Column('status', sa.Enum('PENDING', 'CLAIMED', name='licensestatus'), nullable=False),
        sa.Column('purchase_item_ref', sa.String(length=512), nullable=True),
        sa.Column('claimed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code', name='uq_licenses_code'),
        sa.UniqueConstraint('claim_token', name='uq_licenses_claim_token'),
        sa.UniqueConstraint('purchase_item_ref', name='uq_licenses_purchase_item_ref'),
    )
    op.create_index(op.f('ix_licenses_id'), 'licenses', ['id'], unique=False)
    op.create_index(op.f('ix_licenses_product_id'), 'licenses', ['product_id'], unique=False)
    op.create_index(op.f('ix_licenses_owner_id'), 'licenses', ['owner_id'], unique=False)
    op.create_index(op.f('ix_licenses_stripe_session_id'), 'licenses', ['stripe_session_id'], unique=False)

    op.create_table(
        'fulfillment_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('session_id', sa.String(length=255), nullable=False),
        sa.Column('event_id', sa.String(length=255), nullable=True),
        sa.Column(
            'status',
            sa.Enum('PROCESSING', 'COMPLETED', 'FAILED', name='fulfillmentstatus'),
            nullable=False,
        ),
        sa.Column('attempt_count', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('stock_decremented_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('email_sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('processed_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('now()'), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_fulfillment_records_id'), 'fulfillment_records', ['id'], unique=False)
    op.create_index(op.f('ix_fulfillment_records_session_id'), 'fulfillment_records', ['session_id'], unique=True)


def downgrade() -> None:
    op.drop_index(op.f('ix_fulfillment_records_session_id'), table_name='fulfillment_records')
    op.drop_index(op.f('ix_fulfillment_records_id'), table_name='fulfillment_records')
    op.drop_table('fulfillment_records')
    op.drop_index(op.f('ix_licenses_stripe_session_id'), table_name='licenses')
    op.drop_index(op.f('ix_licenses_owner_id'), table_name='licenses')
    op.drop_index(op.f('ix_licenses_product_id'), table_name='licenses')
    op.drop_index(op.f('ix_licenses_id'), table_name='licenses')
    op.drop_table('licenses')
    op.drop_index(op.f('ix_products_slug'), table_name='products')
    op.drop_index(op.f('ix_products_id'), table_name='products')
    op.drop_table('products')
    sa.Enum(name='fulfillmentstatus').drop(op.get_bind(), checkfirst=True)
    sa.Enum(name='licensestatus').drop(op.get_bind(), checkfirst=True)
