"""Create studio, facility and reservation tables.

Revision ID: 20261019_0001
Revises:
Create Date: 2026-10-19 00:00:01
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "20261019_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "studios",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column(
            "timezone",
            sa.String(length=64),
            server_default="Asia/Jakarta",
            nullable=False,
        ),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column("operating_hours", postgresql.JSONB(astext_type=sa.Text()), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )

    op.create_table(
        "facilities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("studio_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=True),
        sa.Column("is_available", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["studio_id"], ["studios.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_facilities_studio_id", "facilities", ["studio_id"], unique=False)

    op.create_table(
        "customers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("full_name", sa.String(length=255), nullable=False),
        sa.Column("phone", sa.String(length=32), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("booking_code", sa.String(length=32), nullable=False),
        sa.Column("studio_id", sa.Integer(), nullable=False),
        sa.Column("facility_id", sa.Integer(), nullable=False),
        sa.Column("customer_id", sa.Integer(), nullable=True),
        sa.Column("package_name", sa.String(length=255), nullable=True),
        sa.Column("reservation_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", sa.String(length=32), server_default="pending", nullable=False),
        sa.Column("payment_status", sa.String(length=32), server_default="pending", nullable=False),
        sa.Column("total_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("dp_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("remaining_amount", sa.Numeric(12, 2), server_default="0", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["studio_id"], ["studios.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(["customer_id"], ["customers.id"], ondelete="SET NULL"),
        sa.CheckConstraint("start_time < end_time", name="ck_reservations_time_order"),
    )
    op.create_index("ix_reservations_booking_code", "reservations", ["booking_code"], unique=True)
    op.create_index("ix_reservations_studio_id", "reservations", ["studio_id"], unique=False)
    op.create_index("ix_reservations_facility_id", "reservations", ["facility_id"], unique=False)
    op.create_index("ix_reservations_customer_id", "reservations", ["customer_id"], unique=False)
    op.create_index("ix_reservations_reservation_date", "reservations", ["reservation_date"], unique=False)
    op.create_index("ix_reservations_status", "reservations", ["status"], unique=False)
    op.create_index("ix_reservations_payment_status", "reservations", ["payment_status"], unique=False)

    # Two live reservations may never hold overlapping time on one facility.
    op.execute(
        """
        ALTER TABLE reservations
        ADD CONSTRAINT ex_reservations_facility_no_overlap
        EXCLUDE USING gist (
            facility_id WITH =,
            tsrange(reservation_date + start_time, reservation_date + end_time, '[)') WITH &&
        )
        WHERE (status <> 'cancelled')
        """
    )

    op.create_table(
        "reservation_facilities",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reservation_id", sa.Integer(), nullable=False),
        sa.Column("facility_id", sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"], ondelete="CASCADE"),
        sa.UniqueConstraint("reservation_id", "facility_id", name="uq_reservation_facilities_pair"),
    )
    op.create_index(
        "ix_reservation_facilities_reservation_id",
        "reservation_facilities",
        ["reservation_id"],
        unique=False,
    )
    op.create_index(
        "ix_reservation_facilities_facility_id", "reservation_facilities", ["facility_id"], unique=False
    )

    op.create_table(
        "reservation_addons",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("reservation_id", sa.Integer(), nullable=False),
        sa.Column("facility_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("quantity", sa.Integer(), server_default="1", nullable=False),
        sa.Column("start_time", sa.Time(), nullable=True),
        sa.Column("end_time", sa.Time(), nullable=True),
        sa.ForeignKeyConstraint(["reservation_id"], ["reservations.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"], ondelete="SET NULL"),
    )
    op.create_index(
        "ix_reservation_addons_reservation_id", "reservation_addons", ["reservation_id"], unique=False
    )
    op.create_index(
        "ix_reservation_addons_facility_id", "reservation_addons", ["facility_id"], unique=False
    )

    op.create_table(
        "time_slots",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("studio_id", sa.Integer(), nullable=False),
        sa.Column("facility_id", sa.Integer(), nullable=True),
        sa.Column("slot_date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("is_blocked", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(["studio_id"], ["studios.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["facility_id"], ["facilities.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_time_slots_studio_id", "time_slots", ["studio_id"], unique=False)
    op.create_index("ix_time_slots_facility_id", "time_slots", ["facility_id"], unique=False)
    op.create_index("ix_time_slots_slot_date", "time_slots", ["slot_date"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_time_slots_slot_date", table_name="time_slots")
    op.drop_index("ix_time_slots_facility_id", table_name="time_slots")
    op.drop_index("ix_time_slots_studio_id", table_name="time_slots")
    op.drop_table("time_slots")

    op.drop_index("ix_reservation_facilities_facility_id", table_name="reservation_facilities")
    op.drop_index("ix_reservation_facilities_reservation_id", table_name="reservation_facilities")
    op.drop_table("reservation_facilities")

    op.drop_index("ix_reservation_addons_facility_id", table_name="reservation_addons")
    op.drop_index("ix_reservation_addons_reservation_id", table_name="reservation_addons")
    op.drop_table("reservation_addons")

    op.drop_index("ix_reservations_payment_status", table_name="reservations")
    op.drop_index("ix_reservations_status", table_name="reservations")
    op.drop_index("ix_reservations_reservation_date", table_name="reservations")
    op.drop_index("ix_reservations_customer_id", table_name="reservations")
    op.drop_index("ix_reservations_facility_id", table_name="reservations")
    op.drop_index("ix_reservations_studio_id", table_name="reservations")
    op.drop_index("ix_reservations_booking_code", table_name="reservations")
    op.drop_table("reservations")

    op.drop_table("customers")

    op.drop_index("ix_facilities_studio_id", table_name="facilities")
    op.drop_table("facilities")

    op.drop_table("studios")
