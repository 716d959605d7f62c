from __future__ import annotations

import psycopg
import pytest

from auth_service.domain.errors import NoToken
from auth_service.domain.invites import InviteLedger


@pytest.fixture
def ledger() -> InviteLedger:
    return InviteLedger()


def test_minted_invite_is_valid_until_claimed(ledger, repository):
    with repository.write() as tx:
        token = ledger.mint(tx)
        assert ledger.validate(tx, token)
        ledger.claim(tx, token, "bob")
        assert not ledger.validate(tx, token)
        tx.commit()

    assert repository.invites[token].claimed_by == "bob"


def test_unknown_token_is_invalid(ledger, repository):
    with repository.read() as tx:
        assert not ledger.validate(tx, "missing")


def test_lookup_errors_count_as_invalid(ledger, repository):
    token = repository.seed_invite()

    class BrokenTransaction:
        def get_invite(self, token: str):
            raise psycopg.OperationalError("connection lost")

    assert not ledger.validate(BrokenTransaction(), token)  # type: ignore[arg-type]


def test_claiming_a_claimed_invite_fails(ledger, repository):
    token = repository.seed_invite(claimed_by="alice")

    with repository.write() as tx:
        with pytest.raises(NoToken):
            ledger.claim(tx, token, "bob")

    assert repository.invites[token].claimed_by == "alice"


def test_uncommitted_mint_is_discarded(ledger, repository):
    with repository.write() as tx:
        ledger.mint(tx)

    assert repository.invites == {}
