"""Domain-level request contracts shared by multiple layers."""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(slots=True)
class RegistrationRequest:
    """Validated inputs required to register a new account."""

    username: str
    password: str
    invite_token: str | None = None
