"""Login workflow backed by the account repository."""

from __future__ import annotations

import logging

from .errors import InvalidCredentials
from ..observability import LOGIN_ATTEMPTS
from ..repository import AccountRepository
from ..security.passwords import verify_password
from ..security.tokens import issue_access_token

logger = logging.getLogger(__name__)


class AuthenticationService:
    """Authenticates existing accounts and issues session tokens."""

    def __init__(self, repository: AccountRepository) -> None:
        """Store the repository used for read-only account lookups."""
        self._repository = repository

    def login(self, username: str, password: str) -> str:
        """Return a signed session token for valid credentials.

        Unknown usernames and wrong passwords raise the same
        :class:`InvalidCredentials` so callers cannot tell them apart.
        """
        with self._repository.read() as tx:
            account = tx.get_account(username)

        if account is None or not verify_password(username, account.password_hash, password):
            LOGIN_ATTEMPTS.labels(outcome="rejected").inc()
            logger.warning("login rejected", extra={"outcome": "rejected"})
            raise InvalidCredentials()

        token, _ = issue_access_token(subject=account.username, roles=account.roles)
        LOGIN_ATTEMPTS.labels(outcome="success").inc()
        logger.info(
            "login succeeded for %s",
            account.username,
            extra={"outcome": "success", "username": account.username},
        )
        return token
