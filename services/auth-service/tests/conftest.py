from __future__ import annotations

import dataclasses
import threading
from contextlib import contextmanager
from datetime import datetime, timezone

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from auth_service.api import routes
from auth_service.api.error_handlers import register_error_handlers
from auth_service.domain.account import Account, Invite, Role
from auth_service.domain.errors import DatabaseError
from auth_service.domain.invites import InviteLedger
from auth_service.domain.registration import RegistrationCoordinator
from auth_service.domain.service import AuthenticationService
from auth_service.security.passwords import hash_password


class FakeTransaction:
    """Snapshot of the fake tables taken at begin, applied to them on commit."""

    def __init__(self, repository: "FakeRepository") -> None:
        self._repository = repository
        with repository._state_lock:
            self._accounts = dict(repository.accounts)
            self._invites = {
                token: dataclasses.replace(invite) for token, invite in repository.invites.items()
            }
        self._new_accounts: list[str] = []
        self._touched_invites: set[str] = set()
        self.committed = False

    def _maybe_fail(self, operation: str) -> None:
        if operation in self._repository.fail_on:
            raise DatabaseError()

    def has_accounts(self) -> bool:
        self._maybe_fail("has_accounts")
        return bool(self._accounts)

    def get_account(self, username: str):
        self._maybe_fail("get_account")
        return self._accounts.get(username)

    def insert_account(self, account: Account) -> str:
        self._maybe_fail("insert_account")
        if account.username in self._accounts:
            raise DatabaseError()
        self._accounts[account.username] = account
        self._new_accounts.append(account.username)
        return account.username

    def get_invite(self, token: str):
        self._maybe_fail("get_invite")
        return self._invites.get(token)

    def insert_invite(self, token: str, created_at: datetime) -> Invite:
        self._maybe_fail("insert_invite")
        invite = Invite(token=token, created_at=created_at)
        self._invites[token] = invite
        self._touched_invites.add(token)
        return invite

    def claim_invite(self, token: str, username: str) -> bool:
        self._maybe_fail("claim_invite")
        invite = self._invites.get(token)
        if invite is None or invite.claimed_by is not None:
            return False
        invite.claimed_by = username
        self._touched_invites.add(token)
        return True

    def commit(self) -> None:
        self._maybe_fail("commit")
        repo = self._repository
        with repo._state_lock:
            # Mirror the primary-key and unique constraints of the real tables.
            for username in self._new_accounts:
                if username in repo.accounts:
                    raise DatabaseError()
            for token in self._touched_invites:
                current = repo.invites.get(token)
                if current is not None and current.claimed_by is not None:
                    raise DatabaseError()
            for username in self._new_accounts:
                repo.accounts[username] = self._accounts[username]
            for token in self._touched_invites:
                repo.invites[token] = self._invites[token]
        self.committed = True


class FakeRepository:
    """In-memory repository with snapshot isolation, mimicking Postgres."""

    def __init__(self) -> None:
        self.accounts: dict[str, Account] = {}
        self.invites: dict[str, Invite] = {}
        self.fail_on: set[str] = set()
        self._state_lock = threading.Lock()

    @contextmanager
    def read(self):
        yield FakeTransaction(self)

    @contextmanager
    def write(self):
        yield FakeTransaction(self)

    def seed_account(self, username: str, password: str, roles=frozenset({Role.user})) -> Account:
        token = self.seed_invite(claimed_by=username)
        account = Account(
            username=username,
            password_hash=hash_password(password),
            roles=frozenset(roles),
            claimed_invite=token,
        )
        self.accounts[username] = account
        return account

    def seed_invite(self, claimed_by: str | None = None) -> str:
        token = f"invite-{len(self.invites) + 1}"
        self.invites[token] = Invite(
            token=token,
            created_at=datetime.now(timezone.utc),
            claimed_by=claimed_by,
        )
        return token


@pytest.fixture
def repository() -> FakeRepository:
    return FakeRepository()


@pytest.fixture
def auth_service(repository: FakeRepository) -> AuthenticationService:
    return AuthenticationService(repository)


@pytest.fixture
def coordinator(repository: FakeRepository) -> RegistrationCoordinator:
    return RegistrationCoordinator(repository, InviteLedger())


@pytest.fixture
def api_client(repository, auth_service, coordinator):
    """Provide a FastAPI test client with isolated state."""
    app = FastAPI()
    register_error_handlers(app)
    app.include_router(routes.router)
    app.state.auth_service = auth_service
    app.state.registration_coordinator = coordinator

    with TestClient(app) as client:
        yield client, repository
