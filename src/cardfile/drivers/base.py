"""Driver — common contact API built on protected storage primitives.

Public methods translate between attribute names and driver field
names, enforce permissions, and call the ``_search`` / ``_read`` /
``_add`` / ``_delete`` / ``_delete_all`` / ``_save`` primitives that a
storage driver implements.  Decorators such as ``ShareDriver`` override
only the primitives and inherit the public behaviour.
"""

from __future__ import annotations

import logging
import uuid
from collections import defaultdict
from datetime import date, datetime
from typing import TYPE_CHECKING, Any

from cardfile.exceptions import (
    CapabilityNotSupportedError,
    ContactNotFoundError,
    PermissionDeniedError,
)
from cardfile.permissions import Permission, covers

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from cardfile.protocol import Identity

logger = logging.getLogger(__name__)

KEY = "__key"
OWNER = "__owner"
UID = "__uid"
OCCURS = "__occurs"
"""Next occurrence date added to entries returned by ``get_time_objects``."""

DUPLICATE_FIELDS: tuple[tuple[str, ...], ...] = (
    ("name",),
    ("email",),
    ("lastname", "firstname"),
)


class Driver:
    """Base address book driver.

    Implements the ``ContactDriver`` protocol.  Subclasses provide the
    storage primitives and the default ``attribute_map``.
    """

    capabilities: frozenset[str] = frozenset()
    default_map: dict[str, str] = {KEY: KEY, OWNER: OWNER, UID: UID}

    def __init__(
        self,
        name: str = "",
        params: Mapping[str, Any] | None = None,
        *,
        attribute_map: Mapping[str, str] | None = None,
        identity: Identity | None = None,
        title: str = "",
        readonly: bool = False,
    ) -> None:
        self.name = name
        self.title = title
        self.readonly = readonly
        self._params: dict[str, Any] = dict(params or {})
        self._identity = identity
        self.map: dict[str, str] = dict(attribute_map or self.default_map)
        # A configured map may rename the meta attributes but never drop them
        for meta in (KEY, OWNER, UID):
            self.map.setdefault(meta, self.default_map.get(meta, meta))
        self._fields = {v: k for k, v in self.map.items()}
        self._contact_owner: str | None = None
        self._source_name: str | None = None

    @property
    def params(self) -> dict[str, Any]:
        return self._params

    # ------------------------------------------------------------------
    # Ownership
    # ------------------------------------------------------------------

    def set_contact_owner(self, owner: str) -> None:
        self._contact_owner = owner

    def get_contact_owner(self) -> str:
        """Return the owner new contacts are stored under, resolving it once."""
        if not self._contact_owner:
            self._contact_owner = self._resolve_contact_owner()
        return self._contact_owner

    def _resolve_contact_owner(self) -> str:
        if self._identity is not None:
            user = self._identity.current_user()
            if user:
                return user
        return self.name

    def set_source_name(self, name: str) -> None:
        self._source_name = name

    @property
    def source_name(self) -> str:
        return self._source_name or self.name

    # ------------------------------------------------------------------
    # Key translation
    # ------------------------------------------------------------------

    def to_driver_keys(self, mapping: Mapping[str, Any]) -> dict[str, Any]:
        """Translate attribute-keyed *mapping* to driver fields; unmapped keys are dropped."""
        return {self.map[k]: v for k, v in mapping.items() if k in self.map}

    def to_attribute_keys(self, entry: Mapping[str, Any]) -> dict[str, Any]:
        """Translate a driver-keyed *entry* back to attribute names."""
        return {self._fields[k]: v for k, v in entry.items() if k in self._fields}

    def _driver_field(self, attribute: str) -> str:
        return self.map.get(attribute, attribute)

    # ------------------------------------------------------------------
    # Capabilities and permissions
    # ------------------------------------------------------------------

    def has_capability(self, capability: str) -> bool:
        return capability in self.capabilities

    def has_permission(self, permission: int) -> bool:
        """Non-shared sources grant everything unless configured read-only."""
        if self.readonly:
            return covers(Permission.SHOW | Permission.READ, permission)
        return True

    def _require_permission(self, permission: Permission, action: str) -> None:
        if not self.has_permission(permission):
            raise PermissionDeniedError(f"Permission denied: cannot {action} in {self.get_name()!r}")

    def get_name(self) -> str:
        return self.title or self.name

    # ------------------------------------------------------------------
    # Read
    # ------------------------------------------------------------------

    def search(
        self,
        criteria: Mapping[str, Any] | None = None,
        *,
        fields: Iterable[str] | None = None,
        blob_fields: Iterable[str] = (),
        count_only: bool = False,
    ) -> list[dict[str, Any]] | int:
        """Search the address book.

        Criteria values match case-insensitively as substrings and every
        criterion must match.  Empty criteria return all contacts of the
        contact owner.
        """
        driver_criteria = self.to_driver_keys(criteria or {})
        driver_criteria[self._driver_field(OWNER)] = self.get_contact_owner()
        driver_fields = [self._driver_field(f) for f in fields] if fields is not None else list(self.map.values())
        driver_blobs = [self._driver_field(f) for f in blob_fields]

        results = self._search(driver_criteria, driver_fields, driver_blobs, count_only)
        if count_only:
            return results
        return [self.to_attribute_keys(row) for row in results]

    def get_objects(self, ids: Iterable[str]) -> list[dict[str, Any]]:
        ids = list(ids)
        if not ids:
            return []
        rows = self._read(
            self._driver_field(KEY),
            ids,
            self.get_contact_owner(),
            list(self.map.values()),
            self._blob_fields(),
            self._date_fields(),
        )
        return [self.to_attribute_keys(row) for row in rows]

    def get_object(self, object_id: str) -> dict[str, Any]:
        found = self.get_objects([object_id])
        if not found:
            raise ContactNotFoundError(f"Contact not found: {object_id}")
        return found[0]

    def search_duplicates(self) -> dict[str, dict[str, list[dict[str, Any]]]]:
        """Group contacts that share a name, email, or last and first name.

        Returns ``{"name": {"John Doe": [...]}, ...}`` holding only groups
        with two or more contacts.
        """
        contacts = self.search()
        duplicates: dict[str, dict[str, list[dict[str, Any]]]] = {}
        for group in DUPLICATE_FIELDS:
            buckets: dict[str, list[dict[str, Any]]] = defaultdict(list)
            for contact in contacts:
                values = [str(contact.get(f) or "").strip() for f in group]
                if not all(values):
                    continue
                buckets[" ".join(values).lower()].append(contact)
            found = {
                " ".join(str(members[0][f]) for f in group): members
                for members in buckets.values()
                if len(members) > 1
            }
            if found:
                duplicates["/".join(group)] = found
        return duplicates

    def get_time_objects(self, start: date, end: date, field: str) -> list[dict[str, Any]]:
        """Return contacts whose yearly *field* date falls within ``[start, end]``.

        Each entry carries its next occurrence under ``"__occurs"``.
        """
        found: list[dict[str, Any]] = []
        for contact in self.search():
            value = _as_date(contact.get(field))
            if value is None:
                continue
            occurs = _next_occurrence(value, start)
            if occurs is not None and occurs <= end:
                found.append({**contact, OCCURS: occurs})
        found.sort(key=lambda c: c[OCCURS])
        return found

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def add(self, attributes: Mapping[str, Any]) -> str:
        """Add a contact and return its key."""
        if not self._can_add():
            raise CapabilityNotSupportedError(f"Address book {self.get_name()!r} does not accept new contacts")
        self._require_permission(Permission.EDIT, "add contacts")

        driver_attributes = self.to_driver_keys(attributes)
        key = self._make_key(driver_attributes)
        driver_attributes[self._driver_field(KEY)] = key
        if not attributes.get(UID):
            driver_attributes[self._driver_field(UID)] = self._make_uid()
        driver_attributes[self._driver_field(OWNER)] = self.get_contact_owner()

        self._add(driver_attributes, self._blob_fields(), self._date_fields())
        logger.debug("Added contact %s to %s", key, self.source_name)
        return key

    def delete(self, object_id: str) -> None:
        self._require_permission(Permission.DELETE, "delete contacts")
        self._delete(self._driver_field(KEY), object_id)

    def delete_all(self, source_name: str | None = None) -> list[str]:
        """Delete every contact of *source_name* and return their UIDs."""
        self._require_permission(Permission.DELETE, "delete contacts")
        return self._delete_all(source_name)

    def save(self, contact: Mapping[str, Any]) -> str:
        """Store an updated contact; it must carry its ``__key``."""
        self._require_permission(Permission.EDIT, "edit contacts")
        if not contact.get(KEY):
            raise ContactNotFoundError("Cannot save a contact without a key")
        return self._save(self.to_driver_keys(contact))

    def remove_user_data(self, user: str) -> None:
        """Remove every contact stored for *user*. Admin only."""
        if self._identity is None or not self._identity.is_admin():
            raise PermissionDeniedError("Permission denied")
        self._delete_all(user)

    # ------------------------------------------------------------------
    # Backend hooks
    # ------------------------------------------------------------------

    def synchronize(self, token: Any = None) -> Any:
        """Synchronize with the backend, if needed. No-op by default."""
        return None

    def set_default_share(self, share: str) -> None:
        """Runs after the user picks a new default address book. No-op by default."""

    # ------------------------------------------------------------------
    # Storage primitives
    # ------------------------------------------------------------------

    def _blob_fields(self) -> list[str]:
        return [self._driver_field(f) for f in self._params.get("blob_fields", ())]

    def _date_fields(self) -> list[str]:
        return [self._driver_field(f) for f in self._params.get("date_fields", ())]

    def _search(
        self,
        criteria: Mapping[str, Any],
        fields: list[str],
        blob_fields: list[str] | tuple[str, ...] = (),
        count_only: bool = False,
    ) -> list[dict[str, Any]] | int:
        raise CapabilityNotSupportedError(f"{type(self).__name__} does not support searching")

    def _read(
        self,
        key: str,
        ids: list[str],
        owner: str | None,
        fields: list[str],
        blob_fields: list[str] | tuple[str, ...] = (),
        date_fields: list[str] | tuple[str, ...] = (),
    ) -> list[dict[str, Any]]:
        raise CapabilityNotSupportedError(f"{type(self).__name__} does not support reading")

    def _add(
        self,
        attributes: dict[str, Any],
        blob_fields: list[str] | tuple[str, ...] = (),
        date_fields: list[str] | tuple[str, ...] = (),
    ) -> None:
        raise CapabilityNotSupportedError(f"{type(self).__name__} does not support adding")

    def _can_add(self) -> bool:
        return False

    def _delete(self, object_key: str, object_id: str) -> None:
        raise CapabilityNotSupportedError(f"{type(self).__name__} does not support deleting")

    def _delete_all(self, source_name: str | None = None) -> list[str]:
        raise CapabilityNotSupportedError(f"{type(self).__name__} does not support deleting")

    def _save(self, contact: dict[str, Any]) -> str:
        raise CapabilityNotSupportedError(f"{type(self).__name__} does not support saving")

    def _make_key(self, attributes: Mapping[str, Any]) -> str:
        return uuid.uuid4().hex

    def _make_uid(self) -> str:
        return str(uuid.uuid4())

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r})"


# ---------------------------------------------------------------------------
# Date helpers
# ---------------------------------------------------------------------------


def _as_date(value: Any) -> date | None:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str) and value:
        try:
            return date.fromisoformat(value[:10])
        except ValueError:
            return None
    return None


def _next_occurrence(value: date, start: date) -> date | None:
    """First yearly recurrence of *value* on or after *start*."""
    for year in (start.year, start.year + 1):
        try:
            candidate = value.replace(year=year)
        except ValueError:
            # Feb 29 in a non-leap year
            candidate = date(year, 3, 1)
        if candidate >= start:
            return candidate
    return None
