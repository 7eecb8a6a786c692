"""Users, hospitals and blood requests

Revision ID: 0001_initial_schema
Revises:
Create Date: 2026-10-17 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

from app.db.base import UUID


# revision identifiers, used by Alembic.
revision = "0001_initial_schema"
down_revision = None
branch_labels = None
depends_on = None

BLOOD_GROUPS = ("A+", "A-", "B+", "B-", "AB+", "AB-", "O+", "O-")
REQUEST_STATUSES = ("pending", "accepted", "on_the_way", "confirmed", "completed", "cancelled")


def _enum(values, length, name):
    return sa.Enum(*values, native_enum=False, length=length, name=name, create_constraint=False)


def upgrade():
    op.create_table(
        "users",
        sa.Column("id", UUID(), primary_key=True, nullable=False),
        sa.Column("name", sa.String(50), nullable=False),
        sa.Column("email", sa.String(100), nullable=False),
        sa.Column("password", sa.String(255), nullable=False),
        sa.Column("phone", sa.String(20), nullable=True),
        sa.Column("role", _enum(("user", "hospital", "admin"), 20, "userrole"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=True),
        sa.Column("blood_group", _enum(BLOOD_GROUPS, 3, "bloodtype"), nullable=False),
        sa.Column("availability", sa.Boolean(), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("last_donation_date", sa.DateTime(), nullable=True),
        sa.Column("total_donations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("badges", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_blood_group", "users", ["blood_group"])
    op.create_index("ix_users_availability", "users", ["availability"])
    op.create_index("ix_users_created_at", "users", ["created_at"])

    op.create_table(
        "hospitals",
        sa.Column("id", UUID(), primary_key=True, nullable=False),
        sa.Column("hospital_name", sa.String(100), nullable=False),
        sa.Column("address", sa.String(200), nullable=False),
        sa.Column("license_number", sa.String(50), nullable=False, unique=True),
        sa.Column("contact_number", sa.String(20), nullable=False),
        sa.Column("city", sa.String(100), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("is_verified", sa.Boolean(), nullable=True),
        sa.Column(
            "manager_id",
            UUID(),
            sa.ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_hospitals_id", "hospitals", ["id"])
    op.create_index("ix_hospitals_manager_id", "hospitals", ["manager_id"])
    op.create_index("ix_hospitals_created_at", "hospitals", ["created_at"])

    op.create_table(
        "blood_requests",
        sa.Column("id", UUID(), primary_key=True, nullable=False),
        sa.Column("patient_name", sa.String(100), nullable=True),
        sa.Column("blood_group", _enum(BLOOD_GROUPS, 3, "bloodtype"), nullable=False),
        sa.Column("units_needed", sa.Integer(), nullable=False),
        sa.Column("urgency", _enum(("normal", "critical"), 10, "urgency"), nullable=False),
        sa.Column("hospital_name", sa.String(100), nullable=True),
        sa.Column("hospital_address", sa.String(200), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("required_date", sa.DateTime(), nullable=True),
        sa.Column("status", _enum(REQUEST_STATUSES, 12, "requeststatus"), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.String(200), nullable=True),
        sa.Column("accepted_at", sa.DateTime(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(), nullable=True),
        sa.Column("requester_id", UUID(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=True),
        sa.Column("hospital_id", UUID(), sa.ForeignKey("hospitals.id", ondelete="CASCADE"), nullable=True),
        sa.Column("donor_id", UUID(), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            "(requester_id IS NULL) <> (hospital_id IS NULL)",
            name="ck_blood_request_single_origin",
        ),
        sa.CheckConstraint(
            "units_needed >= 1 AND units_needed <= 10",
            name="ck_blood_request_units_range",
        ),
    )
    op.create_index("ix_blood_requests_id", "blood_requests", ["id"])
    op.create_index("ix_blood_requests_blood_group", "blood_requests", ["blood_group"])
    op.create_index("ix_blood_requests_urgency", "blood_requests", ["urgency"])
    op.create_index("ix_blood_requests_status", "blood_requests", ["status"])
    op.create_index("ix_blood_requests_requester_id", "blood_requests", ["requester_id"])
    op.create_index("ix_blood_requests_hospital_id", "blood_requests", ["hospital_id"])
    op.create_index("ix_blood_requests_donor_id", "blood_requests", ["donor_id"])
    op.create_index("ix_blood_requests_created_at", "blood_requests", ["created_at"])
    op.create_index("idx_request_blood_status", "blood_requests", ["blood_group", "status"])
    op.create_index(
        "idx_request_status_urgency_created",
        "blood_requests",
        ["status", "urgency", "created_at"],
    )


def downgrade():
    op.drop_table("blood_requests")
    op.drop_table("hospitals")
    op.drop_table("users")
