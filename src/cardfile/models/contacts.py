"""Contact model — one stored address book entry.

Provides ``ContactBase`` (non-table) and ``Contact`` (concrete table).
Subclass ``ContactBase`` with ``table=True`` and a custom ``__tablename__``
to use a different table name per backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import JSON, DateTime
from sqlmodel import Field, SQLModel


class ContactBase(SQLModel):
    """Base fields for a contact record. Subclass with ``table=True`` for a concrete table."""

    object_id: str = Field(default_factory=lambda: uuid.uuid4().hex, primary_key=True)
    uid: str = Field(default="", index=True)
    owner_id: str = Field(default="", index=True)
    data: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    """Driver-keyed contact fields other than key, uid and owner."""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class Contact(ContactBase, table=True):
    """Default contact table — ``cardfile_contacts``."""

    __tablename__ = "cardfile_contacts"
