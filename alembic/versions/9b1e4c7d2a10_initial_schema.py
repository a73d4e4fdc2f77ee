"""initial_schema

Revision ID: 9b1e4c7d2a10
Revises:
Create Date: 2026-10-19 10:12:31.004512

Users (mirrors Supabase auth.users), the referral milestone ledger,
generated records and feedback.
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "9b1e4c7d2a10"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # 1. users
    op.create_table(
        "users",
        sa.Column("id", sa.Uuid(), nullable=False),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column(
            "referred_by",
            sa.UUID(),
            nullable=True,
            comment="Referrer user id, set at most once",
        ),
        sa.Column(
            "unlimited_until",
            sa.DateTime(timezone=True),
            nullable=True,
            comment="End of referral-earned unlimited access window",
        ),
        sa.Column("is_paid", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "discounted",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
            comment="Set when one of this user's referrals pays",
        ),
        sa.Column(
            "has_referred_paid_user",
            sa.Boolean(),
            server_default=sa.text("false"),
            nullable=False,
        ),
        sa.Column("stripe_customer_id", sa.String(length=255), nullable=True),
        sa.Column("stripe_subscription_id", sa.String(length=255), nullable=True),
        sa.Column("daily_usage_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("last_used_at", sa.Date(), nullable=True),
        sa.Column("invite_message", sa.String(), nullable=True),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["referred_by"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_users_id"), "users", ["id"], unique=False)
    op.create_index(op.f("ix_users_referred_by"), "users", ["referred_by"], unique=False)
    op.create_index(
        op.f("ix_users_stripe_customer_id"), "users", ["stripe_customer_id"], unique=False
    )

    # 2. referral_milestones ledger
    op.create_table(
        "referral_milestones",
        sa.Column(
            "id",
            sa.Uuid(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column(
            "user_id",
            sa.UUID(),
            nullable=False,
            comment="The referrer who earned the reward",
        ),
        sa.Column("milestone_size", sa.Integer(), nullable=False),
        sa.Column("milestone_index", sa.Integer(), nullable=False),
        sa.Column("granted_months", sa.Integer(), nullable=False),
        sa.Column(
            "granted_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id",
            "milestone_size",
            "milestone_index",
            name="uq_referral_milestones_user_size_index",
        ),
    )
    op.create_index(
        op.f("ix_referral_milestones_id"), "referral_milestones", ["id"], unique=False
    )
    op.create_index(
        "ix_referral_milestones_user_granted_at",
        "referral_milestones",
        ["user_id", "granted_at"],
        unique=False,
    )

    # 3. records
    op.create_table(
        "records",
        sa.Column(
            "id",
            sa.Uuid(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("medical_notes", sa.Text(), nullable=False),
        sa.Column("summary", sa.Text(), nullable=False),
        sa.Column("discharge_plan", sa.Text(), server_default="", nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_records_id"), "records", ["id"], unique=False)
    op.create_index(op.f("ix_records_user_id"), "records", ["user_id"], unique=False)

    # 4. feedback
    op.create_table(
        "feedback",
        sa.Column(
            "id",
            sa.Uuid(),
            server_default=sa.text("gen_random_uuid()"),
            nullable=False,
        ),
        sa.Column("user_id", sa.UUID(), nullable=True),
        sa.Column("name", sa.String(length=200), nullable=True),
        sa.Column("email", sa.String(length=200), nullable=True),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_feedback_id"), "feedback", ["id"], unique=False)
    op.create_index(op.f("ix_feedback_user_id"), "feedback", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_feedback_user_id"), table_name="feedback")
    op.drop_index(op.f("ix_feedback_id"), table_name="feedback")
    op.drop_table("feedback")

    op.drop_index(op.f("ix_records_user_id"), table_name="records")
    op.drop_index(op.f("ix_records_id"), table_name="records")
    op.drop_table("records")

    op.drop_index("ix_referral_milestones_user_granted_at", table_name="referral_milestones")
    op.drop_index(op.f("ix_referral_milestones_id"), table_name="referral_milestones")
    op.drop_table("referral_milestones")

    op.drop_index(op.f("ix_users_stripe_customer_id"), table_name="users")
    op.drop_index(op.f("ix_users_referred_by"), table_name="users")
    op.drop_index(op.f("ix_users_id"), table_name="users")
    op.drop_table("users")
