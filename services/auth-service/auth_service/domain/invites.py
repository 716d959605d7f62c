"""Single-use invite tokens gating registration."""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from .errors import NoToken
from ..repository import AccountTransaction

logger = logging.getLogger(__name__)


class InviteLedger:
    """Creates, validates and claims invites inside a caller-owned transaction."""

    def mint(self, tx: AccountTransaction) -> str:
        """Insert a fresh unclaimed invite and return its token."""
        invite = tx.insert_invite(str(uuid.uuid4()), datetime.now(timezone.utc))
        logger.debug("minted invite %s", invite.token)
        return invite.token

    def validate(self, tx: AccountTransaction, token: str) -> bool:
        """Return ``True`` when ``token`` exists and has not been claimed.

        Lookup failures of any kind count as an invalid token rather than
        propagating.
        """
        try:
            invite = tx.get_invite(token)
        except Exception:
            logger.warning("invite lookup failed, treating token as invalid", exc_info=True)
            return False
        return invite is not None and not invite.claimed

    def claim(self, tx: AccountTransaction, token: str, username: str) -> None:
        """Mark ``token`` claimed by ``username``.

        Must follow a successful :meth:`validate` within the same transaction.
        """
        if not tx.claim_invite(token, username):
            raise NoToken()
