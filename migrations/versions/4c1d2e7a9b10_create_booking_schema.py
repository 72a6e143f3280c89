"""create_booking_schema

Revision ID: 4c1d2e7a9b10
Revises:
Create Date: 2026-10-19 10:12:41.308514

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4c1d2e7a9b10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


booking_status = sa.Enum(
    'pending', 'in_progress', 'completed', 'cancelled',
    name='booking_status',
    create_constraint=True,
)


def upgrade() -> None:
    """Upgrade schema: customers, services, bookings, loyalty_accounts."""
    op.create_table(
        'customers',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('phone', sa.String(length=20), nullable=True),
        sa.Column('contact_key', sa.String(length=255), nullable=False,
                  comment='Normalized email, or tel:<phone> when no email was given'),
        sa.Column('vehicle_plate', sa.String(length=16), nullable=True),
        sa.Column('address', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('phone IS NOT NULL OR email IS NOT NULL', name='customer_contact_required'),
        sa.UniqueConstraint('contact_key'),
    )
    op.create_index('ix_customers_email', 'customers', ['email'])
    op.create_index('ix_customers_phone', 'customers', ['phone'])

    op.create_table(
        'services',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('category', sa.String(length=50), nullable=False),
        sa.Column('description', sa.String(length=1000), nullable=True),
        sa.Column('price', sa.Numeric(10, 2), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_services_category', 'services', ['category'])

    op.create_table(
        'bookings',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('customer_id', sa.Integer(),
                  sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('service_id', sa.Integer(),
                  sa.ForeignKey('services.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('vehicle_plate', sa.String(length=16), nullable=False),
        sa.Column('address', sa.String(length=255), nullable=False),
        sa.Column('postcode', sa.String(length=10), nullable=True),
        sa.Column('latitude', sa.Float(), nullable=True),
        sa.Column('longitude', sa.Float(), nullable=True),
        sa.Column('status', booking_status, nullable=False, server_default='pending'),
        sa.Column('token', sa.String(length=512), nullable=True,
                  comment='Signed booking token rendered as a QR code'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.CheckConstraint('(latitude IS NULL) = (longitude IS NULL)', name='booking_coordinates_paired'),
        sa.UniqueConstraint('token'),
    )
    op.create_index('ix_bookings_customer_id', 'bookings', ['customer_id'])
    op.create_index('ix_bookings_service_id', 'bookings', ['service_id'])
    op.create_index('ix_bookings_status', 'bookings', ['status'])

    op.create_table(
        'loyalty_accounts',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('customer_id', sa.Integer(),
                  sa.ForeignKey('customers.id', ondelete='CASCADE'), nullable=False),
        sa.Column('points', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('visits', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.UniqueConstraint('customer_id'),
    )


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_table('loyalty_accounts')
    op.drop_index('ix_bookings_status', table_name='bookings')
    op.drop_index('ix_bookings_service_id', table_name='bookings')
    op.drop_index('ix_bookings_customer_id', table_name='bookings')
    op.drop_table('bookings')
    booking_status.drop(op.get_bind(), checkfirst=True)
    op.drop_index('ix_services_category', table_name='services')
    op.drop_table('services')
    op.drop_index('ix_customers_phone', table_name='customers')
    op.drop_index('ix_customers_email', table_name='customers')
    op.drop_table('customers')
