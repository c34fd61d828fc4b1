"""Add customer and doctor fields to sales

Revision ID: 20250815_sale_customer
Revises: 20250601_initial
Create Date: 2025-08-15

Nullable columns only; existing sales keep NULL.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20250815_sale_customer"
down_revision = "20250601_initial"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.add_column(sa.Column("customer_name", sa.String(length=120), nullable=True))
        batch_op.add_column(sa.Column("customer_mobile", sa.String(length=32), nullable=True))
        batch_op.add_column(sa.Column("customer_address", sa.String(length=255), nullable=True))
        batch_op.add_column(sa.Column("doctor_name", sa.String(length=120), nullable=True))
        batch_op.add_column(sa.Column("doctor_mobile", sa.String(length=32), nullable=True))


def downgrade():
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.drop_column("doctor_mobile")
        batch_op.drop_column("doctor_name")
        batch_op.drop_column("customer_address")
        batch_op.drop_column("customer_mobile")
        batch_op.drop_column("customer_name")
