"""ShareDriver — an address book bound to a permissioned share.

Wraps a storage driver created in trusted mode and forwards every
storage primitive to it unchanged.  The share supplies the contact
owner, answers permission checks for the current user, and is removed
together with its contacts by ``remove_user_data``.
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any

from cardfile.exceptions import ConfigurationError, PermissionDeniedError

from .base import Driver

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import date

    from cardfile.config import SourceConfig
    from cardfile.factory import DriverFactory
    from cardfile.protocol import AddressBookShare, Identity, ShareRemover

logger = logging.getLogger(__name__)


class ShareDriver(Driver):
    """Address book whose ownership and permissions come from a share.

    ``params["config"]`` is the ``SourceConfig`` of the address book;
    its ``params["share"]`` is the share.  Attributes not defined here
    are looked up on the inner driver, so the wrapper presents the full
    interface of whatever driver the factory builds.
    """

    def __init__(
        self,
        name: str = "",
        params: Mapping[str, Any] | None = None,
        *,
        factory: DriverFactory,
        identity: Identity,
        shares: ShareRemover,
    ) -> None:
        super().__init__(name, params, identity=identity)
        config: SourceConfig = self._params["config"]
        share = config.params.get("share")
        if share is None:
            raise ConfigurationError(f"Source {name!r} is not bound to a share")
        self.title = config.title
        self._share: AddressBookShare | None = share
        self._shares = shares
        self._driver: Driver = factory.create_trusted(config, name)
        self.map = self._driver.map
        self._fields = self._driver._fields
        self._driver.set_contact_owner(self._resolve_contact_owner())
        self._driver.set_source_name(name)
        logger.debug("Bound %s to share %s", self._driver, share.name)

    def __getattr__(self, name: str) -> Any:
        # Only reached for attributes missing on the wrapper
        if name == "_driver":
            raise AttributeError(name)
        return getattr(self._driver, name)

    @property
    def share(self) -> AddressBookShare:
        if self._share is None:
            raise ConfigurationError(f"The share of address book {self.name!r} has been removed")
        return self._share

    @property
    def driver(self) -> Driver:
        """The storage driver this address book forwards to."""
        return self._driver

    # ------------------------------------------------------------------
    # Ownership and identity
    # ------------------------------------------------------------------

    def _resolve_contact_owner(self) -> str:
        """Return the owner stored in the share parameters."""
        try:
            params = json.loads(self.share.get("params") or "")
        except (TypeError, ValueError):
            params = None
        if isinstance(params, dict) and params.get("name"):
            return params["name"]
        raise ConfigurationError("Unable to find contact owner.")

    def get_contact_owner(self) -> str:
        return self._driver.get_contact_owner()

    def set_contact_owner(self, owner: str) -> None:
        self._driver.set_contact_owner(owner)

    def set_source_name(self, name: str) -> None:
        self._driver.set_source_name(name)

    @property
    def source_name(self) -> str:
        return self._driver.source_name

    def has_permission(self, permission: int) -> bool:
        """Check the share ACL for the current user."""
        return self.share.has_permission(self._identity.current_user(), permission)

    def get_name(self) -> str:
        """Return the last segment of the share's ``a:b:c`` name."""
        return self.share.name.split(":")[-1]

    # ------------------------------------------------------------------
    # Forwarded driver API
    # ------------------------------------------------------------------

    def has_capability(self, capability: str) -> bool:
        return self._driver.has_capability(capability)

    def to_driver_keys(self, mapping: Mapping[str, Any]) -> dict[str, Any]:
        return self._driver.to_driver_keys(mapping)

    def to_attribute_keys(self, entry: Mapping[str, Any]) -> dict[str, Any]:
        return self._driver.to_attribute_keys(entry)

    def _driver_field(self, attribute: str) -> str:
        return self._driver._driver_field(attribute)

    def search_duplicates(self) -> dict[str, dict[str, list[dict[str, Any]]]]:
        return self._driver.search_duplicates()

    def get_time_objects(self, start: date, end: date, field: str) -> list[dict[str, Any]]:
        return self._driver.get_time_objects(start, end, field)

    def synchronize(self, token: Any = None) -> Any:
        return self._driver.synchronize(token)

    def set_default_share(self, share: str) -> None:
        self._driver.set_default_share(share)

    # ------------------------------------------------------------------
    # Forwarded storage primitives
    # ------------------------------------------------------------------

    def _blob_fields(self) -> list[str]:
        return self._driver._blob_fields()

    def _date_fields(self) -> list[str]:
        return self._driver._date_fields()

    def _make_key(self, attributes: Mapping[str, Any]) -> str:
        return self._driver._make_key(attributes)

    def _make_uid(self) -> str:
        return self._driver._make_uid()

    def _search(
        self,
        criteria: Mapping[str, Any],
        fields: list[str],
        blob_fields: list[str] | tuple[str, ...] = (),
        count_only: bool = False,
    ) -> list[dict[str, Any]] | int:
        return self._driver._search(criteria, fields, blob_fields, count_only)

    def _read(
        self,
        key: str,
        ids: list[str],
        owner: str | None,
        fields: list[str],
        blob_fields: list[str] | tuple[str, ...] = (),
        date_fields: list[str] | tuple[str, ...] = (),
    ) -> list[dict[str, Any]]:
        return self._driver._read(key, ids, owner, fields, blob_fields, date_fields)

    def _add(
        self,
        attributes: dict[str, Any],
        blob_fields: list[str] | tuple[str, ...] = (),
        date_fields: list[str] | tuple[str, ...] = (),
    ) -> None:
        return self._driver._add(attributes, blob_fields, date_fields)

    def _can_add(self) -> bool:
        return self._driver._can_add()

    def _delete(self, object_key: str, object_id: str) -> None:
        return self._driver._delete(object_key, object_id)

    def _delete_all(self, source_name: str | None = None) -> list[str]:
        """Delete all contacts of *source_name*, defaulting to the contact owner."""
        if source_name is None:
            source_name = self.get_contact_owner()
        return self._driver._delete_all(source_name)

    def _save(self, contact: dict[str, Any]) -> str:
        return self._driver._save(contact)

    # ------------------------------------------------------------------
    # Administration
    # ------------------------------------------------------------------

    def remove_user_data(self, user: str) -> None:
        """Delete this address book's contacts and its share. Admin only.

        The steps are not transactional: if removing the share fails the
        contacts are already gone and the share is left behind.
        """
        if not self._identity.is_admin():
            raise PermissionDeniedError("Permission denied")
        share = self.share
        uids = self._delete_all()
        logger.info("Removed %d contact(s) from %s for %s", len(uids), share.name, user)
        if not self._shares.remove_share(share):
            logger.warning("Share %s was already removed", share.name)
        self._share = None
