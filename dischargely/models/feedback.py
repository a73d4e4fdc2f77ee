"""Feedback model for messages sent from the feedback form."""

import uuid as uuid_pkg

from sqlalchemy import Column, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel

from dischargely.models.base import CreatedAtMixin, UUIDMixin


class Feedback(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    """Feedback submission. Anonymous visitors may submit, so user_id is optional."""

    __tablename__ = "feedback"

    user_id: uuid_pkg.UUID | None = Field(
        default=None,
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
            index=True,
        ),
    )
    name: str | None = Field(default=None, max_length=200)
    email: str | None = Field(default=None, max_length=200)
    message: str = Field(sa_column=Column(Text, nullable=False))


class FeedbackCreate(SQLModel):
    """Schema for creating feedback."""

    name: str | None = None
    email: str | None = None
    message: str
