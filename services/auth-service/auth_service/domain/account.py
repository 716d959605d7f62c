from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any


class Role(str, Enum):
    """Privilege roles an account can hold."""

    owner = "owner"
    user = "user"


def parse_roles(values: list[str] | tuple[str, ...]) -> frozenset[Role]:
    """Convert stored role strings into a ``Role`` set, rejecting empty input."""
    roles = frozenset(Role(value) for value in values)
    if not roles:
        raise ValueError("an account must hold at least one role")
    return roles


@dataclass(slots=True)
class Account:
    """Aggregate root for a registered user."""

    username: str
    password_hash: str
    roles: frozenset[Role]
    claimed_invite: str
    prefs: dict[str, Any] = field(default_factory=dict)
    created_at: datetime | None = None

    def role_names(self) -> list[str]:
        """Return the role values sorted for stable serialisation."""
        return sorted(role.value for role in self.roles)


@dataclass(slots=True)
class Invite:
    """Single-use registration credential."""

    token: str
    created_at: datetime
    claimed_by: str | None = None

    @property
    def claimed(self) -> bool:
        return self.claimed_by is not None
