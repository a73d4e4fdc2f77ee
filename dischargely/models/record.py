"""Generated discharge documents, one row per summary request."""

import uuid as uuid_pkg

from sqlalchemy import Column, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID as PG_UUID
from sqlmodel import Field, SQLModel

from dischargely.models.base import CreatedAtMixin, UUIDMixin


class Record(UUIDMixin, CreatedAtMixin, SQLModel, table=True):
    """Clerking notes submitted by a user and the documents generated from them."""

    __tablename__ = "records"

    user_id: uuid_pkg.UUID = Field(
        sa_column=Column(
            PG_UUID(as_uuid=True),
            ForeignKey("users.id", ondelete="CASCADE"),
            nullable=False,
            index=True,
        ),
    )
    medical_notes: str = Field(sa_column=Column(Text, nullable=False))
    summary: str = Field(sa_column=Column(Text, nullable=False))
    discharge_plan: str = Field(sa_column=Column(Text, nullable=False, server_default=""))
