"""Permission flags for address books."""

from __future__ import annotations

from enum import IntFlag


class Permission(IntFlag):
    """Permission bits held on an address book.

    A check passes only when every requested bit is held, so
    ``Permission.READ | Permission.EDIT`` requires both.
    """

    SHOW = 2
    READ = 4
    EDIT = 8
    DELETE = 16
    ALL = SHOW | READ | EDIT | DELETE


def covers(held: int, required: int) -> bool:
    """True when *held* contains every bit of *required*."""
    return (int(held) & int(required)) == int(required)
