"""Share models — address book shares and the grants made on them.

Provides ``AddressBookShareBase`` / ``ShareGrantBase`` (non-table) and
``AddressBookShareRecord`` / ``ShareGrant`` (concrete tables).
Subclass the bases with ``table=True`` and a custom ``__tablename__``
to use different table names per backend.
"""

from __future__ import annotations

import uuid
from datetime import UTC, datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel


class AddressBookShareBase(SQLModel):
    """Base fields for a share record. Subclass with ``table=True`` for a concrete table."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    name: str = Field(index=True, unique=True)
    owner_id: str = Field(index=True)
    title: str = Field(default="")
    params: str = Field(default="{}")
    """JSON-serialized share parameters; ``name`` holds the contact owner."""
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class AddressBookShareRecord(AddressBookShareBase, table=True):
    """Default share table — ``cardfile_shares``."""

    __tablename__ = "cardfile_shares"


class ShareGrantBase(SQLModel):
    """Base fields for a permission grant on a share."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), primary_key=True)
    share_id: str = Field(index=True)
    grantee_id: str = Field(index=True)
    permission: int = Field(default=0)
    created_at: datetime = Field(
        default_factory=lambda: datetime.now(UTC),
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )
    expires_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[invalid-argument-type]
    )


class ShareGrant(ShareGrantBase, table=True):
    """Default grant table — ``cardfile_share_grants``."""

    __tablename__ = "cardfile_share_grants"
