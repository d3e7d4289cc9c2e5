"""Walk through a shared address book on a SQLite database.

Creates Alice's address book as a share, adds contacts, grants Bob read
access, then removes the address book as an administrator.

Usage:
    python scripts/demo_shared_addressbook.py
"""

from __future__ import annotations

import logging
from pathlib import Path

from sqlalchemy.orm import sessionmaker
from sqlmodel import Session, SQLModel, create_engine

import cardfile.models  # noqa: F401
from cardfile import (
    DriverFactory,
    Permission,
    PermissionDeniedError,
    ShareService,
    SourceConfig,
    StaticIdentity,
    config_from_share,
)

REPO_ROOT = Path(__file__).resolve().parent.parent
SQLITE_PATH = REPO_ROOT / "cardfile_demo.db"


def main() -> None:
    logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
    print(f"SQLite path:  {SQLITE_PATH}\n")

    engine = create_engine(f"sqlite:///{SQLITE_PATH}", echo=False)
    SQLModel.metadata.create_all(engine)
    session_factory = sessionmaker(engine, class_=Session, expire_on_commit=False)

    shares = ShareService(session_factory=session_factory)
    base = SourceConfig(
        name="localsql",
        title="Shared Address Books",
        params={"session_factory": session_factory, "date_fields": ["birthday"]},
        use_shares=True,
    )

    try:
        # --------------------------------------------------------------
        # Phase 1: Alice fills her address book
        # --------------------------------------------------------------
        print("=" * 60)
        print("PHASE 1: Alice adds contacts")
        print("=" * 60)

        book = shares.create_share("default:alice:contacts", "alice", title="Alice's Contacts")
        config = config_from_share(base, book)
        as_alice = DriverFactory({}, identity=StaticIdentity("alice"), shares=shares).create(config)
        as_alice.add({"name": "Bob Smith", "email": "bob@example.org"})
        as_alice.add({"name": "Carol Jones", "email": "carol@example.org"})
        print(f"  {as_alice.get_name()}: {as_alice.search(count_only=True)} contact(s)\n")

        # --------------------------------------------------------------
        # Phase 2: Bob reads but cannot write
        # --------------------------------------------------------------
        print("=" * 60)
        print("PHASE 2: Bob reads the shared address book")
        print("=" * 60)

        shares.add_user_permission(book, "bob", Permission.SHOW | Permission.READ)
        as_bob = DriverFactory({}, identity=StaticIdentity("bob"), shares=shares).create(config)
        for contact in as_bob.search({"email": "example.org"}):
            print(f"  {contact['name']} <{contact['email']}>")
        try:
            as_bob.add({"name": "Mallory"})
        except PermissionDeniedError as e:
            print(f"  Bob cannot add: {e}")
        print()

        # --------------------------------------------------------------
        # Phase 3: Admin removes the address book
        # --------------------------------------------------------------
        print("=" * 60)
        print("PHASE 3: Admin removes Alice's address book")
        print("=" * 60)

        shares.add_user_permission(book, "root", Permission.SHOW)
        admin = StaticIdentity("root", admins=frozenset({"root"}))
        DriverFactory({}, identity=admin, shares=shares).create(config).remove_user_data("alice")
        print(f"  Remaining shares for alice: {shares.list_shares('alice')}")
    finally:
        engine.dispose()
        SQLITE_PATH.unlink(missing_ok=True)


if __name__ == "__main__":
    main()
