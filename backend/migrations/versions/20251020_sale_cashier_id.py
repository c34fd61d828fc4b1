"""Canonical cashier_id on sales, backfilled from legacy cashierId

Revision ID: 20251020_sale_cashier_id
Revises: 20250815_sale_customer
Create Date: 2025-10-20

The legacy "cashierId" column is dropped after the backfill; databases
that never ran this revision keep working through the legacy
attribution path.
"""

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "20251020_sale_cashier_id"
down_revision = "20250815_sale_customer"
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.add_column(sa.Column("cashier_id", sa.Integer(), nullable=True))

    op.execute('UPDATE sales SET cashier_id = "cashierId" WHERE cashier_id IS NULL')

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.drop_column("cashierId")
        batch_op.create_foreign_key("fk_sales_cashier_id_users", "users", ["cashier_id"], ["id"])
        batch_op.create_index("ix_sales_cashier_id", ["cashier_id"], unique=False)


def downgrade():
    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.add_column(sa.Column("cashierId", sa.Integer(), nullable=True))

    op.execute('UPDATE sales SET "cashierId" = cashier_id')

    with op.batch_alter_table("sales", schema=None) as batch_op:
        batch_op.drop_index("ix_sales_cashier_id")
        batch_op.drop_constraint("fk_sales_cashier_id_users", type_="foreignkey")
        batch_op.drop_column("cashier_id")
