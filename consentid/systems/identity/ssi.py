"""
consentid -- Self-Sovereign Identity

The data subject's side of a consent. After ConsentRecord.reveal() hands
over a DisclosureSnapshot, the private key lives only with the subject; this
class rebuilds the identity from that key so the subject can publish or
revoke it without the party that minted it.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from consentid.systems.identity.errors import KeyMismatchError
from consentid.systems.identity.keys import DEFAULT_SCHEME
from consentid.systems.identity.status import StatusQuery

if TYPE_CHECKING:
    from consentid.clients.ledger import LedgerClient
    from consentid.primitives.bundles import DisclosureSnapshot, LedgerReceipt
    from consentid.systems.identity.keys import KeyMaterial, SignatureScheme

logger = structlog.get_logger("consentid.systems.identity.ssi")


class SelfSovereignIdentity:
    """An identity held by its own private key."""

    def __init__(
        self,
        private_key: str | bytes,
        *,
        ledger: LedgerClient | None = None,
        scheme: SignatureScheme | None = None,
    ) -> None:
        self._scheme: SignatureScheme = scheme or DEFAULT_SCHEME
        self._key: KeyMaterial = self._scheme.from_private_key(private_key)
        self._ledger = ledger
        self._logger = logger.bind(component="ssi", identity=self._key.identity)

    @classmethod
    def from_disclosure(
        cls,
        snapshot: DisclosureSnapshot,
        *,
        ledger: LedgerClient | None = None,
        scheme: SignatureScheme | None = None,
    ) -> SelfSovereignIdentity:
        """Rebuild from a reveal() snapshot; the key must derive the snapshot's identity."""
        ssi = cls(snapshot.private_key, ledger=ledger, scheme=scheme)
        if ssi.identity != snapshot.identity:
            raise KeyMismatchError(
                f"Disclosed key derives {ssi.identity}, snapshot claims {snapshot.identity}"
            )
        return ssi

    @property
    def identity(self) -> str:
        return self._key.identity

    def get_identity(self) -> str:
        return self._key.identity

    def sign_message(self, message: str) -> str:
        return self._key.sign_message(message)

    def status(self) -> StatusQuery:
        return StatusQuery(self._key.identity, self._require_ledger())

    async def publish(self) -> LedgerReceipt:
        receipt = await self._require_ledger().publish(self._key)
        self._logger.info("ssi_published", tx_hash=receipt.tx_hash)
        return receipt

    async def revoke(self) -> LedgerReceipt:
        receipt = await self._require_ledger().revoke(self._key)
        self._logger.info("ssi_revoked", tx_hash=receipt.tx_hash)
        return receipt

    async def is_published_at(self) -> int:
        return await self.status().is_published_at()

    async def is_revoked_at(self) -> int:
        return await self.status().is_revoked_at()

    def _require_ledger(self) -> LedgerClient:
        if self._ledger is None:
            raise RuntimeError("No ledger attached. Pass ledger= when constructing the identity.")
        return self._ledger

    def __repr__(self) -> str:
        return f"SelfSovereignIdentity(identity={self._key.identity})"
