"""Referral milestone ledger - one row per milestone reward granted."""

import uuid as uuid_pkg
from datetime import UTC, datetime

from sqlalchemy import Column, DateTime, ForeignKey, Index, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel

from dischargely.models.base import UUIDMixin


class ReferralMilestone(UUIDMixin, SQLModel, table=True):
    """
    Append-only ledger of referral rewards.

    Rows are only ever inserted by the reward engine. The unique constraint
    means a milestone can be granted once per referrer and campaign; the
    granted_at/granted_months pairs drive the rolling cap.
    """

    __tablename__ = "referral_milestones"
    __table_args__ = (
        UniqueConstraint(
            "user_id",
            "milestone_size",
            "milestone_index",
            name="uq_referral_milestones_user_size_index",
        ),
        Index("ix_referral_milestones_user_granted_at", "user_id", "granted_at"),
    )

    user_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            comment="The referrer who earned the reward",
        ),
    )
    milestone_size: int = Field(nullable=False)
    milestone_index: int = Field(nullable=False)
    granted_months: int = Field(nullable=False)
    granted_at: datetime = Field(  # type: ignore[call-overload]
        default_factory=lambda: datetime.now(UTC),
        nullable=False,
        sa_type=DateTime(timezone=True),
        sa_column_kwargs={"server_default": text("now()")},
    )
