"""Driver and collaborator protocols — runtime-checkable interfaces.

``ContactDriver`` is the public contract every address book driver
presents to the application.  The remaining protocols describe the
collaborators a share-backed driver is constructed with: the share
itself, the identity of the current request, and the service that
removes shares.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping
    from datetime import date


@runtime_checkable
class ContactDriver(Protocol):
    """Core interface every address book driver implements."""

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
    ) -> list[dict[str, Any]] | int: ...

    def get_object(self, object_id: str) -> dict[str, Any]: ...

    def get_objects(self, ids: Iterable[str]) -> list[dict[str, Any]]: ...

    def search_duplicates(self) -> dict[str, dict[str, list[dict[str, Any]]]]: ...

    def get_time_objects(self, start: date, end: date, field: str) -> list[dict[str, Any]]: ...

    # ------------------------------------------------------------------
    # Write
    # ------------------------------------------------------------------

    def add(self, attributes: Mapping[str, Any]) -> str: ...

    def delete(self, object_id: str) -> None: ...

    def delete_all(self, source_name: str | None = None) -> list[str]: ...

    def save(self, contact: Mapping[str, Any]) -> str: ...

    def remove_user_data(self, user: str) -> None: ...

    # ------------------------------------------------------------------
    # Keys, capabilities, permissions
    # ------------------------------------------------------------------

    def to_driver_keys(self, mapping: Mapping[str, Any]) -> dict[str, Any]: ...

    def to_attribute_keys(self, entry: Mapping[str, Any]) -> dict[str, Any]: ...

    def has_capability(self, capability: str) -> bool: ...

    def has_permission(self, permission: int) -> bool: ...

    def get_name(self) -> str: ...

    # ------------------------------------------------------------------
    # Ownership and backend hooks
    # ------------------------------------------------------------------

    def get_contact_owner(self) -> str: ...

    def set_contact_owner(self, owner: str) -> None: ...

    def set_source_name(self, name: str) -> None: ...

    def synchronize(self, token: Any = None) -> Any: ...

    def set_default_share(self, share: str) -> None: ...


@runtime_checkable
class AddressBookShare(Protocol):
    """A named, permissioned collection an address book is bound to."""

    @property
    def name(self) -> str: ...

    def get(self, attribute: str) -> Any: ...

    def has_permission(self, user_id: str | None, permission: int) -> bool: ...


@runtime_checkable
class Identity(Protocol):
    """Who is making the current request."""

    def current_user(self) -> str | None: ...

    def is_admin(self) -> bool: ...


@runtime_checkable
class ShareRemover(Protocol):
    """Backend that owns share records and can delete them."""

    def remove_share(self, share: Any) -> bool: ...
