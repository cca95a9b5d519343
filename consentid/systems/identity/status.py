"""
consentid -- Status Query

Read-only view of an identity's lifecycle on the ledger. Holds an identity
string and a ledger client and nothing else: with no signing key there is
no way to publish or revoke through it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from consentid.systems.identity.keys import normalize_identity

if TYPE_CHECKING:
    from consentid.clients.ledger import LedgerClient

logger = structlog.get_logger("consentid.systems.identity.status")


class StatusQuery:
    """Publish/revoke timestamps for a bare identity."""

    __slots__ = ("_identity", "_ledger")

    def __init__(self, identity: str, ledger: LedgerClient) -> None:
        self._identity = normalize_identity(identity)
        self._ledger = ledger

    @property
    def identity(self) -> str:
        return self._identity

    def get_identity(self) -> str:
        return self._identity

    async def is_published_at(self) -> int:
        """Unix timestamp of publication, 0 if never published."""
        return await self._ledger.published_at(self._identity)

    async def is_revoked_at(self) -> int:
        """Unix timestamp of revocation, 0 if never revoked."""
        return await self._ledger.revoked_at(self._identity)

    async def is_granted(self) -> bool:
        """Published and not (yet) revoked."""
        if await self.is_revoked_at() > 0:
            return False
        return await self.is_published_at() > 0

    def __repr__(self) -> str:
        return f"StatusQuery(identity={self._identity})"
