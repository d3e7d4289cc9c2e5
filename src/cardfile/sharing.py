"""ShareService — address book share CRUD and permission resolution.

Receives the share and grant models at construction so callers can use
custom SQLModel subclasses with different table names.  Every call opens
its own short-lived session from the injected factory.
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Any

from sqlmodel import select

from .exceptions import ShareNotFoundError
from .permissions import Permission, covers

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from sqlmodel import Session

    from cardfile.models.shares import AddressBookShareBase, ShareGrantBase

logger = logging.getLogger(__name__)

ANYONE = "*"
"""Grantee id that applies a grant to every authenticated user."""


class Share:
    """A named, permissioned address book.

    Wraps a detached snapshot of the share record.  Implements the
    ``AddressBookShare`` protocol; permission checks go back to the
    service so grants added later are honoured.
    """

    def __init__(self, record: AddressBookShareBase, service: ShareService) -> None:
        self._record = record
        self._service = service

    @property
    def id(self) -> str:
        return self._record.id

    @property
    def name(self) -> str:
        return self._record.name

    @property
    def owner(self) -> str:
        return self._record.owner_id

    def get(self, attribute: str) -> Any:
        """Return a stored share attribute (``params``, ``title``, ...)."""
        if attribute == "owner":
            return self._record.owner_id
        return getattr(self._record, attribute, None)

    def has_permission(self, user_id: str | None, permission: int) -> bool:
        return self._service.check_permission(self, user_id, permission)

    def __repr__(self) -> str:
        return f"Share(name={self.name!r}, owner={self.owner!r})"


class ShareService:
    """Manages address book shares and the grants made on them."""

    def __init__(
        self,
        share_model: type[AddressBookShareBase] | None = None,
        grant_model: type[ShareGrantBase] | None = None,
        *,
        session_factory: Callable[[], Session],
    ) -> None:
        from cardfile.models.shares import AddressBookShareRecord, ShareGrant

        self._share_model: type[AddressBookShareBase] = share_model or AddressBookShareRecord
        self._grant_model: type[ShareGrantBase] = grant_model or ShareGrant
        self._session_factory = session_factory

    # ------------------------------------------------------------------
    # Shares
    # ------------------------------------------------------------------

    def create_share(
        self,
        name: str,
        owner_id: str,
        *,
        title: str = "",
        params: Mapping[str, Any] | None = None,
    ) -> Share:
        """Create a share owned by *owner_id*.

        ``params`` is serialized to JSON; its ``name`` entry (the contact
        owner) defaults to the share owner.
        """
        stored = {"name": owner_id}
        if params:
            stored.update(params)
        record = self._share_model(
            name=name,
            owner_id=owner_id,
            title=title,
            params=json.dumps(stored),
        )
        with self._session_factory() as session:
            session.add(record)
            session.commit()
            session.refresh(record)
            session.expunge(record)
        logger.debug("Created share %s for %s", name, owner_id)
        return Share(record, self)

    def get_share(self, name: str) -> Share:
        """Return the share called *name*."""
        model = self._share_model
        with self._session_factory() as session:
            record = session.exec(select(model).where(model.name == name)).first()
            if record is None:
                raise ShareNotFoundError(f"Share not found: {name}")
            session.expunge(record)
        return Share(record, self)

    def list_shares(self, user_id: str, permission: int = Permission.SHOW) -> list[Share]:
        """List shares on which *user_id* holds *permission*, sorted by name."""
        model = self._share_model
        with self._session_factory() as session:
            records = list(session.exec(select(model).order_by(model.name)).all())
            for record in records:
                session.expunge(record)
        shares = [Share(record, self) for record in records]
        return [s for s in shares if self.check_permission(s, user_id, permission)]

    def remove_share(self, share: Share) -> bool:
        """Delete *share* and every grant made on it. Returns True if found."""
        share_model = self._share_model
        grant_model = self._grant_model
        with self._session_factory() as session:
            record = session.exec(select(share_model).where(share_model.id == share.id)).first()
            if record is None:
                return False
            grants = session.exec(select(grant_model).where(grant_model.share_id == share.id)).all()
            for grant in grants:
                session.delete(grant)
            session.delete(record)
            session.commit()
        logger.debug("Removed share %s", share.name)
        return True

    # ------------------------------------------------------------------
    # Grants
    # ------------------------------------------------------------------

    def add_user_permission(
        self,
        share: Share,
        grantee_id: str,
        permission: int,
        *,
        expires_at: datetime | None = None,
    ) -> None:
        """Grant *permission* on *share*, merging into an existing grant."""
        model = self._grant_model
        with self._session_factory() as session:
            grant = session.exec(
                select(model).where(
                    model.share_id == share.id,
                    model.grantee_id == grantee_id,
                )
            ).first()
            if grant is None:
                grant = model(
                    share_id=share.id,
                    grantee_id=grantee_id,
                    permission=int(permission),
                    expires_at=expires_at,
                )
            else:
                grant.permission = grant.permission | int(permission)
                grant.expires_at = expires_at
            session.add(grant)
            session.commit()

    def remove_user_permission(self, share: Share, grantee_id: str, permission: int) -> bool:
        """Revoke *permission* bits from a grant. Returns True if a grant existed.

        A grant left with no bits is deleted.
        """
        model = self._grant_model
        with self._session_factory() as session:
            grant = session.exec(
                select(model).where(
                    model.share_id == share.id,
                    model.grantee_id == grantee_id,
                )
            ).first()
            if grant is None:
                return False
            remaining = grant.permission & ~int(permission)
            if remaining:
                grant.permission = remaining
                session.add(grant)
            else:
                session.delete(grant)
            session.commit()
        return True

    def check_permission(self, share: Share, user_id: str | None, permission: int) -> bool:
        """Check if *user_id* holds every bit of *permission* on *share*.

        The share owner holds everything.  Grants to *user_id* and to
        ``ANYONE`` are combined.  Expired grants are ignored.
        """
        if not user_id:
            return False
        if user_id == share.owner:
            return True

        model = self._grant_model
        now = datetime.now(UTC)
        with self._session_factory() as session:
            grants = session.exec(
                select(model).where(
                    model.share_id == share.id,
                    model.grantee_id.in_([user_id, ANYONE]),  # type: ignore[union-attr]
                )
            ).all()

        held = 0
        for grant in grants:
            # Handle naive datetimes from SQLite
            if grant.expires_at is not None:
                exp = grant.expires_at
                if exp.tzinfo is None:
                    exp = exp.replace(tzinfo=UTC)
                if exp <= now:
                    continue
            held |= grant.permission

        return covers(held, permission)
