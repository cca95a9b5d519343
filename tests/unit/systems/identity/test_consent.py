"""
Unit tests for ConsentRecord: payload normalisation, cached consensus and
the reveal/rotate protocol.
"""

from __future__ import annotations

import pytest
from pydantic import BaseModel

from consentid.clients.ledger import InMemoryLedgerClient
from consentid.primitives.common import PayloadKind
from consentid.systems.identity.consent import ConsentRecord, normalize_payload
from consentid.systems.identity.errors import ValidationError
from consentid.systems.identity.keys import recover_signer


class _Form(BaseModel):
    name: str
    agreed: bool


# ─── Payload Normalisation ──────────────────────────────────────


class TestNormalizePayload:
    def test_mapping_becomes_canonical_json(self):
        assert normalize_payload({"test": 0.42}) == (PayloadKind.STRUCTURED, '{"test":0.42}')

    def test_sequence(self):
        assert normalize_payload([1, "a"]) == (PayloadKind.STRUCTURED, '[1,"a"]')

    def test_none(self):
        assert normalize_payload(None) == (PayloadKind.STRUCTURED, "null")

    def test_pydantic_model(self):
        kind, text = normalize_payload(_Form(name="Ada", agreed=True))
        assert kind is PayloadKind.STRUCTURED
        assert text == '{"name":"Ada","agreed":true}'

    def test_number(self):
        assert normalize_payload(5.0) == (PayloadKind.NUMERIC, "5")

    def test_numeric_string_kept_verbatim(self):
        assert normalize_payload("007") == (PayloadKind.NUMERIC, "007")

    def test_opaque_string(self):
        assert normalize_payload("order-17") == (PayloadKind.OPAQUE, "order-17")

    def test_unsupported_type(self):
        with pytest.raises(ValidationError):
            normalize_payload(b"raw")

    def test_non_finite(self):
        with pytest.raises(ValidationError):
            normalize_payload(float("nan"))

    def test_exponent_floats_print_like_javascript(self):
        assert ConsentRecord({"test": 1e-7}).payload == '{"test":1e-7}'
        assert normalize_payload(1e16) == (PayloadKind.NUMERIC, "10000000000000000")


# ─── Consensus ──────────────────────────────────────────────────


class TestConsensus:
    @pytest.mark.asyncio
    async def test_signature_recovers_identity(self):
        record = ConsentRecord({"test": 0.42})
        bundle = await record.consensus()

        assert bundle.payload == '{"test":0.42}'
        assert bundle.identity == record.get_identity()
        assert len(bundle.signature) == 132
        assert len(bundle.identity) == 42
        assert recover_signer(bundle.payload, bundle.signature) == bundle.identity

    @pytest.mark.asyncio
    async def test_consensus_is_cached(self):
        record = ConsentRecord("order-17")
        assert record.signature == ""
        first = await record.consensus()
        second = await record.consensus()
        assert first == second
        assert record.signature == first.signature


# ─── Reveal ─────────────────────────────────────────────────────


class TestReveal:
    @pytest.mark.asyncio
    async def test_reveal_rotates_identity(self):
        record = ConsentRecord({"test": 0.42})
        before = await record.consensus()

        snapshot = await record.reveal()
        after = await record.consensus()

        assert snapshot.identity == before.identity
        assert snapshot.signature == before.signature
        assert after.identity != snapshot.identity
        assert after.signature != snapshot.signature
        assert after.payload == snapshot.payload
        assert recover_signer(after.payload, after.signature) == after.identity

    @pytest.mark.asyncio
    async def test_successive_reveals_differ(self):
        record = ConsentRecord({"test": 0.42})
        first = await record.reveal()
        second = await record.reveal()
        assert first.identity != second.identity
        assert first.signature != second.signature
        assert first.private_key != second.private_key
        assert first.payload == second.payload

    @pytest.mark.asyncio
    async def test_reveal_without_prior_consensus(self):
        record = ConsentRecord("x")
        snapshot = await record.reveal()
        assert recover_signer(snapshot.payload, snapshot.signature) == snapshot.identity


# ─── Ledger ─────────────────────────────────────────────────────


class TestLedger:
    @pytest.mark.asyncio
    async def test_publish_then_revoke(self):
        ledger = InMemoryLedgerClient()
        record = ConsentRecord({"test": 0.42}, ledger=ledger)

        assert await record.is_published_at() == 0
        await record.publish()
        assert await record.is_published_at() > 0
        assert await record.status().is_granted()

        await record.revoke()
        assert await record.is_revoked_at() > 0
        assert not await record.status().is_granted()

    @pytest.mark.asyncio
    async def test_no_ledger(self):
        record = ConsentRecord("x")
        with pytest.raises(RuntimeError, match="No ledger attached"):
            await record.publish()
