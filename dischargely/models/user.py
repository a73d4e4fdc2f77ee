import uuid as uuid_pkg
from datetime import UTC, date, datetime

from sqlalchemy import Column, Date, DateTime, ForeignKey, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel


class User(SQLModel, table=True):
    """
    User model - mirrors Supabase auth.users.

    The id comes from Supabase Auth. The row is created by the
    create-or-update-with-referral endpoint right after phone verification.
    """

    __tablename__ = "users"

    id: uuid_pkg.UUID = Field(
        primary_key=True,
        index=True,
        nullable=False,
        description="UUID from Supabase auth.users",
    )
    phone: str | None = Field(default=None, max_length=20)

    # Referral system - referred_by is write-once
    referred_by: uuid_pkg.UUID | None = Field(
        default=None,
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
            comment="Referrer user id, set at most once",
        ),
    )
    unlimited_until: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"comment": "End of referral-earned unlimited access window"},
    )

    # Billing flags - owned by the Stripe webhook
    is_paid: bool = Field(
        default=False,
        nullable=False,
        sa_column_kwargs={"server_default": text("false")},
    )
    discounted: bool = Field(
        default=False,
        nullable=False,
        sa_column_kwargs={
            "server_default": text("false"),
            "comment": "Set when one of this user's referrals pays",
        },
    )
    has_referred_paid_user: bool = Field(
        default=False,
        nullable=False,
        sa_column_kwargs={"server_default": text("false")},
    )
    stripe_customer_id: str | None = Field(default=None, max_length=255, index=True)
    stripe_subscription_id: str | None = Field(default=None, max_length=255)

    # Free-tier usage
    daily_usage_count: int = Field(
        default=0,
        nullable=False,
        sa_column_kwargs={"server_default": text("0")},
    )
    last_used_at: date | None = Field(default=None, sa_type=Date)  # type: ignore[call-overload]

    invite_message: str | None = Field(default=None)

    created_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
    updated_at: datetime | None = Field(  # type: ignore[call-overload]
        default=None,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"onupdate": text("now()")},
    )
