"""Tests for ShareDriver — owner resolution, permissions, forwarding, removal."""

from __future__ import annotations

import json
from datetime import date
from typing import Any

import pytest

from cardfile.auth import StaticIdentity
from cardfile.config import SourceConfig
from cardfile.drivers.base import Driver
from cardfile.drivers.share import ShareDriver
from cardfile.exceptions import (
    ConfigurationError,
    ContactNotFoundError,
    PermissionDeniedError,
    StorageError,
)
from cardfile.factory import DriverFactory
from cardfile.permissions import Permission
from cardfile.protocol import ContactDriver

# =========================================================================
# Fakes
# =========================================================================


class RecordingDriver(Driver):
    """Storage driver that records every primitive call and returns canned values."""

    capabilities = frozenset({"read", "vcard"})

    def __init__(self, *args: Any, **kwargs: Any) -> None:
        super().__init__(*args, **kwargs)
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.returns: dict[str, Any] = {}
        self.fail: Exception | None = None
        self.custom_attr = "inner-only"

    def _record(self, method: str, *args: Any) -> Any:
        self.calls.append((method, args))
        if self.fail is not None:
            raise self.fail
        return self.returns.get(method, f"{method}-result")

    def _search(self, criteria, fields, blob_fields=(), count_only=False):
        return self._record("_search", criteria, fields, blob_fields, count_only)

    def _read(self, key, ids, owner, fields, blob_fields=(), date_fields=()):
        return self._record("_read", key, ids, owner, fields, blob_fields, date_fields)

    def _add(self, attributes, blob_fields=(), date_fields=()):
        return self._record("_add", attributes, blob_fields, date_fields)

    def _can_add(self):
        return self._record("_can_add")

    def _delete(self, object_key, object_id):
        return self._record("_delete", object_key, object_id)

    def _delete_all(self, source_name=None):
        return self._record("_delete_all", source_name)

    def _save(self, contact):
        return self._record("_save", contact)

    def _make_key(self, attributes):
        return self._record("_make_key", attributes)

    def _make_uid(self):
        return self._record("_make_uid")

    def has_capability(self, capability):
        return self._record("has_capability", capability)

    def to_driver_keys(self, mapping):
        return self._record("to_driver_keys", mapping)

    def to_attribute_keys(self, entry):
        return self._record("to_attribute_keys", entry)

    def search_duplicates(self):
        return self._record("search_duplicates")

    def get_time_objects(self, start, end, field):
        return self._record("get_time_objects", start, end, field)

    def synchronize(self, token=None):
        return self._record("synchronize", token)

    def set_default_share(self, share):
        return self._record("set_default_share", share)

    def export_vcards(self, version, *, limit=None):
        return self._record("export_vcards", version, limit)


class StubShare:
    """Share with a fixed parameter blob and a scripted ACL."""

    def __init__(self, name: str, params: Any, *, allowed: bool = True) -> None:
        self._name = name
        self._params = params
        self.allowed = allowed
        self.checks: list[tuple[str | None, int]] = []

    @property
    def name(self) -> str:
        return self._name

    def get(self, attribute: str) -> Any:
        return self._params if attribute == "params" else None

    def has_permission(self, user_id: str | None, permission: int) -> bool:
        self.checks.append((user_id, permission))
        return self.allowed


class RecordingRemover:
    def __init__(self, log: list[str] | None = None) -> None:
        self.removed: list[Any] = []
        self.result = True
        self.fail: Exception | None = None
        self._log = log

    def remove_share(self, share: Any) -> bool:
        if self._log is not None:
            self._log.append("remove_share")
        if self.fail is not None:
            raise self.fail
        self.removed.append(share)
        return self.result


def owner_params(owner: str) -> str:
    return json.dumps({"name": owner})


def make_driver(
    share: StubShare,
    *,
    identity: StaticIdentity | None = None,
    remover: RecordingRemover | None = None,
    name: str = "abook",
) -> ShareDriver:
    identity = identity or StaticIdentity("alice")
    remover = remover or RecordingRemover()
    factory = DriverFactory({}, identity=identity, shares=remover, drivers={"recording": RecordingDriver})
    config = SourceConfig(name=name, type="recording", params={"share": share})
    return ShareDriver(name, {"config": config}, factory=factory, identity=identity, shares=remover)


@pytest.fixture
def share() -> StubShare:
    return StubShare("default:alice:contacts", owner_params("alice"))


@pytest.fixture
def driver(share: StubShare) -> ShareDriver:
    return make_driver(share)


@pytest.fixture
def inner(driver: ShareDriver) -> RecordingDriver:
    return driver.driver  # type: ignore[return-value]


# =========================================================================
# Construction and owner resolution
# =========================================================================


class TestOwnerResolution:
    def test_owner_from_share_params(self, driver: ShareDriver, inner: RecordingDriver):
        assert driver.get_contact_owner() == "alice"
        assert inner.get_contact_owner() == "alice"

    def test_owner_differs_from_current_user(self):
        share = StubShare("default:carol:team", owner_params("carol"))
        driver = make_driver(share, identity=StaticIdentity("bob"))
        assert driver.get_contact_owner() == "carol"

    def test_source_name_pushed_to_inner(self, driver: ShareDriver, inner: RecordingDriver):
        assert inner.source_name == "abook"
        assert driver.source_name == "abook"

    def test_inner_is_trusted_storage_driver(self, driver: ShareDriver):
        assert type(driver.driver) is RecordingDriver
        assert not isinstance(driver.driver, ShareDriver)

    def test_missing_name_field(self):
        share = StubShare("default:alice:contacts", json.dumps({"color": "blue"}))
        with pytest.raises(ConfigurationError, match="Unable to find contact owner"):
            make_driver(share)

    def test_empty_name_field(self):
        share = StubShare("default:alice:contacts", json.dumps({"name": ""}))
        with pytest.raises(ConfigurationError, match="Unable to find contact owner"):
            make_driver(share)

    def test_params_not_deserializable(self):
        share = StubShare("default:alice:contacts", "a:1:{s:4:")
        with pytest.raises(ConfigurationError, match="Unable to find contact owner"):
            make_driver(share)

    def test_params_missing(self):
        share = StubShare("default:alice:contacts", None)
        with pytest.raises(ConfigurationError):
            make_driver(share)

    def test_params_not_a_mapping(self):
        share = StubShare("default:alice:contacts", json.dumps(["alice"]))
        with pytest.raises(ConfigurationError):
            make_driver(share)

    def test_source_without_share(self):
        identity = StaticIdentity("alice")
        factory = DriverFactory({}, identity=identity, drivers={"recording": RecordingDriver})
        config = SourceConfig(name="abook", type="recording")
        with pytest.raises(ConfigurationError, match="not bound to a share"):
            ShareDriver(
                "abook",
                {"config": config},
                factory=factory,
                identity=identity,
                shares=RecordingRemover(),
            )

    def test_satisfies_contact_driver_protocol(self, driver: ShareDriver):
        assert isinstance(driver, ContactDriver)


# =========================================================================
# Name and permissions
# =========================================================================


class TestGetName:
    def test_last_segment(self, driver: ShareDriver):
        assert driver.get_name() == "contacts"

    def test_name_without_colons(self):
        driver = make_driver(StubShare("contacts", owner_params("alice")))
        assert driver.get_name() == "contacts"

    def test_trailing_colon_gives_empty_segment(self):
        driver = make_driver(StubShare("default:alice:", owner_params("alice")))
        assert driver.get_name() == ""


class TestHasPermission:
    def test_returns_share_answer_true(self, share: StubShare, driver: ShareDriver):
        share.allowed = True
        assert driver.has_permission(Permission.EDIT) is True
        assert share.checks == [("alice", Permission.EDIT)]

    def test_returns_share_answer_false(self, share: StubShare, driver: ShareDriver):
        share.allowed = False
        assert driver.has_permission(Permission.READ) is False
        assert share.checks == [("alice", Permission.READ)]

    def test_asks_for_current_user(self, share: StubShare):
        driver = make_driver(share, identity=StaticIdentity("bob"))
        driver.has_permission(Permission.DELETE)
        assert share.checks == [("bob", Permission.DELETE)]

    def test_anonymous_user_passed_through(self, share: StubShare):
        driver = make_driver(share, identity=StaticIdentity(None))
        driver.has_permission(Permission.SHOW)
        assert share.checks == [(None, Permission.SHOW)]


# =========================================================================
# Delegation
# =========================================================================


class TestForwardedPrimitives:
    def test_search(self, driver: ShareDriver, inner: RecordingDriver):
        result = driver._search({"name": "x"}, ["name"], ["photo"], True)
        assert result == "_search-result"
        assert inner.calls == [("_search", ({"name": "x"}, ["name"], ["photo"], True))]

    def test_read(self, driver: ShareDriver, inner: RecordingDriver):
        result = driver._read("object_id", ["1", "2"], "alice", ["name"], ["photo"], ["birthday"])
        assert result == "_read-result"
        assert inner.calls == [
            ("_read", ("object_id", ["1", "2"], "alice", ["name"], ["photo"], ["birthday"]))
        ]

    def test_add(self, driver: ShareDriver, inner: RecordingDriver):
        attrs = {"name": "Bob"}
        driver._add(attrs, ["photo"], ["birthday"])
        assert inner.calls == [("_add", (attrs, ["photo"], ["birthday"]))]

    def test_can_add(self, driver: ShareDriver, inner: RecordingDriver):
        inner.returns["_can_add"] = False
        assert driver._can_add() is False

    def test_delete(self, driver: ShareDriver, inner: RecordingDriver):
        driver._delete("object_id", "42")
        assert inner.calls == [("_delete", ("object_id", "42"))]

    def test_save(self, driver: ShareDriver, inner: RecordingDriver):
        contact = {"object_id": "42", "name": "Bob"}
        assert driver._save(contact) == "_save-result"
        assert inner.calls[0][1][0] is contact

    def test_make_key_and_uid(self, driver: ShareDriver, inner: RecordingDriver):
        assert driver._make_key({"name": "Bob"}) == "_make_key-result"
        assert driver._make_uid() == "_make_uid-result"
        assert [c[0] for c in inner.calls] == ["_make_key", "_make_uid"]


class TestForwardedApi:
    def test_has_capability(self, driver: ShareDriver, inner: RecordingDriver):
        inner.returns["has_capability"] = True
        assert driver.has_capability("vcard") is True
        assert inner.calls == [("has_capability", ("vcard",))]

    def test_key_translation_both_ways(self, driver: ShareDriver, inner: RecordingDriver):
        assert driver.to_driver_keys({"name": "a"}) == "to_driver_keys-result"
        assert driver.to_attribute_keys({"name": "a"}) == "to_attribute_keys-result"
        assert [c[0] for c in inner.calls] == ["to_driver_keys", "to_attribute_keys"]

    def test_search_duplicates(self, driver: ShareDriver, inner: RecordingDriver):
        inner.returns["search_duplicates"] = {"name": {}}
        assert driver.search_duplicates() == {"name": {}}

    def test_get_time_objects(self, driver: ShareDriver, inner: RecordingDriver):
        start, end = date(2026, 1, 1), date(2026, 1, 31)
        driver.get_time_objects(start, end, "birthday")
        assert inner.calls == [("get_time_objects", (start, end, "birthday"))]

    def test_synchronize(self, driver: ShareDriver, inner: RecordingDriver):
        assert driver.synchronize("tok-1") == "synchronize-result"
        assert inner.calls == [("synchronize", ("tok-1",))]

    def test_set_default_share(self, driver: ShareDriver, inner: RecordingDriver):
        driver.set_default_share("default:alice:work")
        assert inner.calls == [("set_default_share", ("default:alice:work",))]

    def test_failures_propagate_unchanged(self, driver: ShareDriver, inner: RecordingDriver):
        error = ContactNotFoundError("gone")
        inner.fail = error
        with pytest.raises(ContactNotFoundError) as excinfo:
            driver._delete("object_id", "missing")
        assert excinfo.value is error


class TestCatchAllForwarding:
    def test_undeclared_method(self, driver: ShareDriver, inner: RecordingDriver):
        result = driver.export_vcards("4.0", limit=10)
        assert result == "export_vcards-result"
        assert inner.calls == [("export_vcards", ("4.0", 10))]

    def test_undeclared_attribute(self, driver: ShareDriver):
        assert driver.custom_attr == "inner-only"

    def test_return_value_is_passed_through(self, driver: ShareDriver, inner: RecordingDriver):
        sentinel = object()
        inner.returns["export_vcards"] = sentinel
        assert driver.export_vcards("3.0") is sentinel

    def test_missing_everywhere(self, driver: ShareDriver):
        with pytest.raises(AttributeError):
            driver.no_such_method()  # type: ignore[attr-defined]


# =========================================================================
# Delete-all and user-data removal
# =========================================================================


class TestDeleteAll:
    def test_defaults_to_contact_owner(self, driver: ShareDriver, inner: RecordingDriver):
        driver._delete_all()
        assert inner.calls == [("_delete_all", ("alice",))]

    def test_explicit_owner_forwarded(self, driver: ShareDriver, inner: RecordingDriver):
        driver._delete_all("bob")
        assert inner.calls == [("_delete_all", ("bob",))]

    def test_public_delete_all_checks_share_acl(self, share: StubShare, driver: ShareDriver, inner: RecordingDriver):
        share.allowed = False
        with pytest.raises(PermissionDeniedError):
            driver.delete_all()
        assert inner.calls == []


class TestRemoveUserData:
    def test_non_admin_denied(self, share: StubShare):
        remover = RecordingRemover()
        driver = make_driver(share, identity=StaticIdentity("alice"), remover=remover)
        inner: RecordingDriver = driver.driver  # type: ignore[assignment]

        with pytest.raises(PermissionDeniedError, match="Permission denied"):
            driver.remove_user_data("alice")
        assert inner.calls == []
        assert remover.removed == []
        assert driver.share is share

    def test_admin_deletes_contacts_then_share(self, share: StubShare, admin: StaticIdentity):
        log: list[str] = []
        remover = RecordingRemover(log)
        driver = make_driver(share, identity=admin, remover=remover)
        inner: RecordingDriver = driver.driver  # type: ignore[assignment]
        inner.returns["_delete_all"] = ["uid-1", "uid-2"]
        original = inner._record

        def logged(method: str, *args: Any) -> Any:
            log.append(method)
            return original(method, *args)

        inner._record = logged  # type: ignore[method-assign]

        driver.remove_user_data("alice")

        assert inner.calls == [("_delete_all", ("alice",))]
        assert remover.removed == [share]
        assert log == ["_delete_all", "remove_share"]

    def test_share_reference_released(self, share: StubShare, admin: StaticIdentity):
        driver = make_driver(share, identity=admin)
        driver.remove_user_data("alice")

        with pytest.raises(ConfigurationError, match="has been removed"):
            driver.has_permission(Permission.READ)
        with pytest.raises(ConfigurationError):
            driver.get_name()

    def test_share_already_gone_still_released(self, share: StubShare, admin: StaticIdentity):
        remover = RecordingRemover()
        remover.result = False
        driver = make_driver(share, identity=admin, remover=remover)
        driver.remove_user_data("alice")
        with pytest.raises(ConfigurationError):
            driver.share  # noqa: B018

    def test_share_removal_failure_is_not_rolled_back(self, share: StubShare, admin: StaticIdentity):
        remover = RecordingRemover()
        remover.fail = StorageError("backend down")
        driver = make_driver(share, identity=admin, remover=remover)
        inner: RecordingDriver = driver.driver  # type: ignore[assignment]

        with pytest.raises(StorageError, match="backend down"):
            driver.remove_user_data("alice")
        assert inner.calls == [("_delete_all", ("alice",))]
        assert driver.share is share
