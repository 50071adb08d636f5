"""Create the e_tickets table."""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "20240115_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "e_tickets",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("ticket_id", sa.String(length=255), nullable=False),
        sa.Column("passenger_name", sa.String(length=255), nullable=False),
        sa.Column("travel_date", sa.String(length=10), nullable=False),
        sa.Column("travel_time", sa.String(length=5), nullable=False),
        sa.Column("origin", sa.String(length=255), nullable=False),
        sa.Column("destination", sa.String(length=255), nullable=False),
        sa.Column("seat_number", sa.String(length=50), nullable=False),
        sa.Column("booking_reference", sa.String(length=255), nullable=False),
        sa.Column("qr_code_data", sa.Text(), nullable=False),
        sa.Column("created_at", sa.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("updated_at", sa.TIMESTAMP(timezone=True), nullable=False),
    )
    op.create_index("ix_e_tickets_ticket_id", "e_tickets", ["ticket_id"], unique=True)


def downgrade() -> None:
    op.drop_index("ix_e_tickets_ticket_id", table_name="e_tickets")
    op.drop_table("e_tickets")
