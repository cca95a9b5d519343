"""
Unit tests for SelfSovereignIdentity: revoking a revealed consent.
"""

from __future__ import annotations

import pytest

from consentid.clients.ledger import InMemoryLedgerClient
from consentid.primitives.bundles import DisclosureSnapshot
from consentid.systems.identity.consent import ConsentRecord
from consentid.systems.identity.errors import KeyMismatchError
from consentid.systems.identity.keys import KeyMaterial
from consentid.systems.identity.ssi import SelfSovereignIdentity


class TestSelfSovereignIdentity:
    @pytest.mark.asyncio
    async def test_subject_revokes_revealed_consent(self):
        ledger = InMemoryLedgerClient()
        record = ConsentRecord({"newsletter": True}, ledger=ledger)
        await record.publish()
        snapshot = await record.reveal()

        ssi = SelfSovereignIdentity.from_disclosure(snapshot, ledger=ledger)
        assert ssi.identity == snapshot.identity

        await ssi.revoke()
        assert await ssi.is_revoked_at() > 0
        assert await ssi.is_published_at() > 0
        # The record already rotated away from the disclosed identity
        assert await record.is_revoked_at() == 0

    def test_snapshot_key_must_match_identity(self):
        snapshot = DisclosureSnapshot(
            private_key=KeyMaterial.generate().private_key,
            identity=KeyMaterial.generate().identity,
            signature="",
            payload="",
        )
        with pytest.raises(KeyMismatchError):
            SelfSovereignIdentity.from_disclosure(snapshot)

    @pytest.mark.asyncio
    async def test_requires_ledger(self):
        ssi = SelfSovereignIdentity(KeyMaterial.generate().private_key)
        with pytest.raises(RuntimeError):
            await ssi.publish()
