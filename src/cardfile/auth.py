"""StaticIdentity — fixed current-user provider for a single request."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class StaticIdentity:
    """Identity of the user a request runs as.

    Implements the ``Identity`` protocol.  ``admins`` lists the user ids
    that hold administrative rights.
    """

    user_id: str | None = None
    admins: frozenset[str] = field(default_factory=frozenset)

    def current_user(self) -> str | None:
        return self.user_id

    def is_admin(self) -> bool:
        return self.user_id is not None and self.user_id in self.admins
