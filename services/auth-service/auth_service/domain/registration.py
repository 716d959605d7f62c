"""Registration workflow: first-account bootstrap and invite-gated sign-up.

Every registration runs under one process-wide lock, so the emptiness check
and the invite claim observe the result of every earlier registration. The
database transaction alone would not give that guarantee to two concurrent
writers. The lock is held from before the transaction opens until after it
commits or rolls back.
"""

from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator, Union

from .account import Account, Role
from .contracts import RegistrationRequest
from .errors import AuthServiceError, NoToken, RegistrationBusy
from .invites import InviteLedger
from ..observability import REGISTRATIONS
from ..repository import AccountRepository, AccountTransaction
from ..security.passwords import hash_password

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class BootstrapPath:
    """No accounts exist yet: the invite requirement is waived."""

    roles: frozenset[Role] = frozenset({Role.owner})

    def resolve_invite(self, tx: AccountTransaction, ledger: InviteLedger) -> str:
        return ledger.mint(tx)


@dataclass(frozen=True, slots=True)
class InvitedPath:
    """At least one account exists: an unclaimed invite must be presented."""

    invite_token: str | None
    roles: frozenset[Role] = frozenset({Role.user})

    def resolve_invite(self, tx: AccountTransaction, ledger: InviteLedger) -> str:
        if self.invite_token is None or not ledger.validate(tx, self.invite_token):
            raise NoToken()
        return self.invite_token


RegistrationPath = Union[BootstrapPath, InvitedPath]


class RegistrationCoordinator:
    """Serialises account creation and keeps the account/invite link total."""

    def __init__(
        self,
        repository: AccountRepository,
        ledger: InviteLedger | None = None,
        *,
        lock_timeout_seconds: float = 0,
    ) -> None:
        self._repository = repository
        self._ledger = ledger or InviteLedger()
        self._lock = threading.Lock()
        self._lock_timeout = lock_timeout_seconds

    @property
    def lock_timeout_seconds(self) -> float:
        return self._lock_timeout

    def register(self, request: RegistrationRequest) -> str:
        """Create an account and return its username.

        Raises
        ------
        NoToken
            Accounts already exist and the request carries no valid unclaimed invite.
        RegistrationBusy
            The lock wait exceeded the configured timeout.
        DatabaseError
            The datastore failed; nothing was persisted.
        """
        try:
            with self._serialized():
                username = self._register_locked(request)
        except AuthServiceError as exc:
            REGISTRATIONS.labels(outcome=exc.kind).inc()
            logger.warning(
                "registration of %s failed: %s",
                request.username,
                exc.kind,
                extra={"outcome": exc.kind, "username": request.username},
            )
            raise
        REGISTRATIONS.labels(outcome="success").inc()
        return username

    def _register_locked(self, request: RegistrationRequest) -> str:
        password_hash = hash_password(request.password)
        with self._repository.write() as tx:
            path = self._choose_path(tx, request)
            invite_token = path.resolve_invite(tx, self._ledger)
            self._ledger.claim(tx, invite_token, request.username)
            username = tx.insert_account(
                Account(
                    username=request.username,
                    password_hash=password_hash,
                    roles=path.roles,
                    claimed_invite=invite_token,
                )
            )
            tx.commit()

        if isinstance(path, BootstrapPath):
            logger.info(
                "bootstrap account %s created with owner role",
                username,
                extra={"outcome": "bootstrap", "username": username},
            )
        else:
            logger.info(
                "account %s registered with invite %s",
                username,
                invite_token,
                extra={"outcome": "invited", "username": username},
            )
        return username

    def _choose_path(self, tx: AccountTransaction, request: RegistrationRequest) -> RegistrationPath:
        if not tx.has_accounts():
            return BootstrapPath()
        return InvitedPath(invite_token=request.invite_token)

    @contextmanager
    def _serialized(self) -> Iterator[None]:
        timeout = self._lock_timeout if self._lock_timeout > 0 else -1
        if not self._lock.acquire(timeout=timeout):
            raise RegistrationBusy()
        try:
            yield
        finally:
            self._lock.release()
