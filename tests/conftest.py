"""Shared fixtures for cardfile tests."""

from __future__ import annotations

from typing import TYPE_CHECKING

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from sqlmodel import Session, SQLModel, create_engine

import cardfile.models  # noqa: F401  (registers tables on SQLModel.metadata)
from cardfile.auth import StaticIdentity
from cardfile.sharing import ShareService

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from sqlalchemy import Engine


@pytest.fixture
def engine() -> Iterator[Engine]:
    """In-memory SQLite engine with all tables created."""
    eng = create_engine(
        "sqlite://",
        echo=False,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def session_factory(engine: Engine) -> Callable[[], Session]:
    """Return a session factory, one short-lived session per driver call."""
    return sessionmaker(engine, class_=Session, expire_on_commit=False)


@pytest.fixture
def shares(session_factory: Callable[[], Session]) -> ShareService:
    return ShareService(session_factory=session_factory)


@pytest.fixture
def alice() -> StaticIdentity:
    return StaticIdentity("alice")


@pytest.fixture
def admin() -> StaticIdentity:
    return StaticIdentity("root", admins=frozenset({"root"}))
