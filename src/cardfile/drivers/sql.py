"""SQLDriver — contact storage on SQLModel sessions."""

from __future__ import annotations

import base64
import logging
from datetime import UTC, date, datetime
from typing import TYPE_CHECKING, Any

from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import select

from cardfile.exceptions import ConfigurationError, ContactNotFoundError, StorageError

from .base import KEY, OWNER, UID, Driver

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator, Mapping

    from sqlmodel import Session

    from cardfile.models.contacts import ContactBase

logger = logging.getLogger(__name__)

# Columns stored outside the JSON ``data`` blob
KEY_COLUMN = "object_id"
UID_COLUMN = "uid"
OWNER_COLUMN = "owner_id"

DEFAULT_ATTRIBUTES = (
    "name",
    "firstname",
    "lastname",
    "email",
    "phone",
    "company",
    "notes",
    "birthday",
    "anniversary",
    "photo",
)


class SQLDriver(Driver):
    """Database-backed address book with sessions opened per operation.

    Requires ``params["session_factory"]``, a callable returning a
    SQLModel ``Session``.  ``params["contact_model"]`` may name a custom
    ``ContactBase`` table subclass.  The key, UID and owner attributes are
    always stored in their own columns, whatever driver field names the
    attribute map gives them.
    """

    capabilities = frozenset({"read", "add", "delete", "save", "duplicates", "time_objects"})
    default_map = {
        KEY: KEY_COLUMN,
        UID: UID_COLUMN,
        OWNER: OWNER_COLUMN,
        **{a: a for a in DEFAULT_ATTRIBUTES},
    }

    def __init__(self, name: str = "", params: Mapping[str, Any] | None = None, **kwargs: Any) -> None:
        from cardfile.models.contacts import Contact

        super().__init__(name, params, **kwargs)
        factory = self._params.get("session_factory")
        if factory is None:
            raise ConfigurationError(f"SQL source {name!r} requires a session_factory")
        self._session_factory: Callable[[], Session] = factory
        self._contact_model: type[ContactBase] = self._params.get("contact_model") or Contact
        self._key_field = self._driver_field(KEY)
        self._uid_field = self._driver_field(UID)
        self._owner_field = self._driver_field(OWNER)
        # driver field -> model column
        self._columns = {
            self._key_field: KEY_COLUMN,
            self._uid_field: UID_COLUMN,
            self._owner_field: OWNER_COLUMN,
        }

    # ------------------------------------------------------------------
    # Row conversion
    # ------------------------------------------------------------------

    def _row_to_entry(
        self,
        row: ContactBase,
        fields: list[str] | None = None,
        blob_fields: list[str] | tuple[str, ...] = (),
        date_fields: list[str] | tuple[str, ...] = (),
    ) -> dict[str, Any]:
        entry: dict[str, Any] = {
            self._key_field: row.object_id,
            self._uid_field: row.uid,
            self._owner_field: row.owner_id,
            **row.data,
        }
        for f in blob_fields:
            if isinstance(entry.get(f), str):
                entry[f] = base64.b64decode(entry[f])
        for f in date_fields:
            if isinstance(entry.get(f), str) and entry[f]:
                entry[f] = date.fromisoformat(entry[f])
        if fields is not None:
            wanted = set(fields) | set(self._columns)
            entry = {k: v for k, v in entry.items() if k in wanted}
        return entry

    def _encode_data(self, attributes: Mapping[str, Any]) -> dict[str, Any]:
        """Make driver attributes JSON-safe: bytes → base64, dates → ISO 8601."""
        data: dict[str, Any] = {}
        for k, v in attributes.items():
            if k in self._columns:
                continue
            if isinstance(v, bytes):
                v = base64.b64encode(v).decode("ascii")
            elif isinstance(v, (date, datetime)):
                v = v.isoformat()
            data[k] = v
        return data

    @staticmethod
    def _matches(entry: Mapping[str, Any], criteria: Mapping[str, Any]) -> bool:
        for k, test in criteria.items():
            value = entry.get(k)
            if value is None:
                return False
            if str(test).lower() not in str(value).lower():
                return False
        return True

    def _rows(self, session: Session, owner: str | None = None) -> Iterator[ContactBase]:
        model = self._contact_model
        query = select(model)
        if owner is not None:
            query = query.where(model.owner_id == owner)
        yield from session.exec(query)

    def _owned_row(self, session: Session, object_key: str, object_id: str) -> ContactBase:
        """Return the contact owned by the contact owner, or raise ``ContactNotFoundError``."""
        model = self._contact_model
        column = getattr(model, self._column(object_key))
        query = select(model).where(column == object_id, model.owner_id == self.get_contact_owner())
        row = session.exec(query).first()
        if row is None:
            raise ContactNotFoundError(f"Contact not found: {object_id}")
        return row

    def _column(self, key: str) -> str:
        column = self._columns.get(key)
        if column not in (KEY_COLUMN, UID_COLUMN):
            raise ConfigurationError(f"Cannot look up contacts by {key!r}")
        return column

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _search(
        self,
        criteria: Mapping[str, Any],
        fields: list[str],
        blob_fields: list[str] | tuple[str, ...] = (),
        count_only: bool = False,
    ) -> list[dict[str, Any]] | int:
        criteria = dict(criteria)
        owner = criteria.pop(self._owner_field, None)
        with self._session_factory() as session:
            matches = [
                self._row_to_entry(row, fields, blob_fields, self._date_fields())
                for row in self._rows(session, owner)
                if self._matches(self._row_to_entry(row), criteria)
            ]
        if count_only:
            return len(matches)
        return matches

    def _read(
        self,
        key: str,
        ids: list[str],
        owner: str | None,
        fields: list[str],
        blob_fields: list[str] | tuple[str, ...] = (),
        date_fields: list[str] | tuple[str, ...] = (),
    ) -> list[dict[str, Any]]:
        model = self._contact_model
        column = getattr(model, self._column(key))
        query = select(model).where(column.in_(ids))
        if owner is not None:
            query = query.where(model.owner_id == owner)
        with self._session_factory() as session:
            rows = session.exec(query).all()
            return [self._row_to_entry(row, fields, blob_fields, date_fields) for row in rows]

    def _add(
        self,
        attributes: dict[str, Any],
        blob_fields: list[str] | tuple[str, ...] = (),
        date_fields: list[str] | tuple[str, ...] = (),
    ) -> None:
        record = self._contact_model(
            object_id=attributes[self._key_field],
            uid=attributes.get(self._uid_field) or "",
            owner_id=attributes.get(self._owner_field) or "",
            data=self._encode_data(attributes),
        )
        with self._session_factory() as session:
            session.add(record)
            self._commit(session, f"add contact {record.object_id}")

    def _can_add(self) -> bool:
        return True

    def _delete(self, object_key: str, object_id: str) -> None:
        with self._session_factory() as session:
            session.delete(self._owned_row(session, object_key, object_id))
            self._commit(session, f"delete contact {object_id}")

    def _delete_all(self, source_name: str | None = None) -> list[str]:
        """Delete every contact owned by *source_name* and return their UIDs."""
        if source_name is None:
            return []
        with self._session_factory() as session:
            rows = list(self._rows(session, source_name))
            uids = [row.uid for row in rows]
            for row in rows:
                session.delete(row)
            self._commit(session, f"delete contacts of {source_name}")
        logger.debug("Deleted %d contact(s) owned by %s", len(uids), source_name)
        return uids

    def _save(self, contact: dict[str, Any]) -> str:
        object_id = contact.get(self._key_field)
        with self._session_factory() as session:
            row = self._owned_row(session, self._key_field, object_id)
            # Reassign so the JSON column is flagged dirty
            row.data = {**row.data, **self._encode_data(contact)}
            if contact.get(self._uid_field):
                row.uid = contact[self._uid_field]
            row.updated_at = datetime.now(UTC)
            session.add(row)
            self._commit(session, f"save contact {object_id}")
        return object_id

    @staticmethod
    def _commit(session: Session, action: str) -> None:
        try:
            session.commit()
        except SQLAlchemyError as e:
            session.rollback()
            raise StorageError(f"Failed to {action}: {e}") from e
