"""
consentid -- Consent Record

A ConsentRecord binds a payload (typically the form fields a data subject
agreed to, or an external id that scopes the consent) to a freshly minted
identity by signing it.

Typical flow:
  record = ConsentRecord(form_fields, ledger=ledger)
  snapshot = await record.reveal()      # handed to the data subject, once
  bundle = await record.consensus()     # stored with the data
  await record.publish()                # optional: timestamp on the ledger

The data subject keeps the snapshot (private key included) and can revoke
the identity later. The record itself has already rotated to a new key at
that point, so the disclosed key never protects anything the record signs
afterwards.

Lifecycle:
  __init__()   normalise payload once, mint KeyMaterial
  consensus()  sign on first call, then return the cached triple
  reveal()     disclose the current key, rotate, re-sign
"""

from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from decimal import Decimal
from typing import TYPE_CHECKING, Any

import structlog
from pydantic import BaseModel

from consentid.primitives.bundles import ConsentBundle, DisclosureSnapshot
from consentid.primitives.canonical import canonicalize, is_numeric_text, normalize_number
from consentid.primitives.common import PayloadKind
from consentid.systems.identity.errors import ValidationError
from consentid.systems.identity.keys import DEFAULT_SCHEME
from consentid.systems.identity.status import StatusQuery
from consentid.telemetry.logging import truncate

if TYPE_CHECKING:
    from consentid.clients.ledger import LedgerClient
    from consentid.primitives.bundles import LedgerReceipt
    from consentid.systems.identity.keys import KeyMaterial, SignatureScheme

logger = structlog.get_logger("consentid.systems.identity.consent")


def normalize_payload(payload: Any) -> tuple[PayloadKind, str]:
    """
    Classify a payload once and return its canonical string.

    Structured values (mappings, sequences, None, pydantic models) become
    canonical JSON. Numbers keep a string form that other runtimes print the
    same way. Strings are never altered.
    """
    if isinstance(payload, str):
        kind = PayloadKind.NUMERIC if is_numeric_text(payload) else PayloadKind.OPAQUE
        return kind, payload

    if isinstance(payload, (bool, int, float, Decimal)):
        try:
            return PayloadKind.NUMERIC, normalize_number(payload)
        except ValueError as exc:
            raise ValidationError(f"Payload is not a finite number: {exc}") from exc

    if isinstance(payload, BaseModel):
        payload = payload.model_dump(mode="json")
    elif isinstance(payload, Mapping):
        payload = dict(payload)
    elif isinstance(payload, Sequence) and not isinstance(payload, (bytes, bytearray)):
        payload = list(payload)
    elif payload is not None:
        raise ValidationError(f"Unsupported payload type: {type(payload).__name__}")

    try:
        return PayloadKind.STRUCTURED, canonicalize(payload)
    except (TypeError, ValueError) as exc:
        raise ValidationError(f"Payload is not JSON-representable: {exc}") from exc


class ConsentRecord:
    """
    Payload + lazily computed signature + one-shot reveal/rotation.

    The (payload, signature, identity) triple is stable between rotations:
    consensus() signs once and then only returns the cached signature.
    Mutating operations are serialised per instance with an asyncio.Lock.
    """

    def __init__(
        self,
        payload: Any,
        *,
        ledger: LedgerClient | None = None,
        scheme: SignatureScheme | None = None,
    ) -> None:
        self._payload_kind, self._payload = normalize_payload(payload)
        self._scheme: SignatureScheme = scheme or DEFAULT_SCHEME
        self._key: KeyMaterial = self._scheme.generate()
        self._signature: str = ""
        self._ledger = ledger
        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="consent_record")

        self._logger.debug(
            "consent_record_created",
            identity=self._key.identity,
            payload_kind=self._payload_kind.value,
        )

    # ─── Properties ───────────────────────────────────────────────

    @property
    def payload(self) -> str:
        return self._payload

    @property
    def payload_kind(self) -> PayloadKind:
        return self._payload_kind

    @property
    def identity(self) -> str:
        """Current identity. Changes on every reveal()."""
        return self._key.identity

    def get_identity(self) -> str:
        return self._key.identity

    @property
    def signature(self) -> str:
        """Cached signature, '' until consensus() has run."""
        return self._signature

    # ─── Signing ──────────────────────────────────────────────────

    async def consensus(self) -> ConsentBundle:
        """Sign the payload if not yet signed and return the triple."""
        async with self._lock:
            return self._consensus()

    def _consensus(self) -> ConsentBundle:
        if not self._signature:
            self._signature = self._key.sign_message(self._payload)
            self._logger.info(
                "consent_signed",
                identity=self._key.identity,
                signature=truncate(self._signature),
            )
        return ConsentBundle(
            payload=self._payload,
            signature=self._signature,
            identity=self._key.identity,
        )

    async def reveal(self) -> DisclosureSnapshot:
        """
        Disclose the current identity (private key included) and rotate.

        The returned snapshot is the only copy of the disclosed key. Before
        returning, the record has minted a new key and re-signed the same
        payload with it, so two reveals never disclose the same identity.
        """
        async with self._lock:
            self._consensus()
            snapshot = DisclosureSnapshot(
                private_key=self._key.private_key,
                identity=self._key.identity,
                signature=self._signature,
                payload=self._payload,
            )

            replacement = self._scheme.generate()
            self._key = replacement
            self._signature = ""
            self._consensus()

        self._logger.info(
            "consent_revealed",
            disclosed_identity=snapshot.identity,
            next_identity=replacement.identity,
        )
        return snapshot

    # ─── Ledger ───────────────────────────────────────────────────

    def status(self) -> StatusQuery:
        """Read-only status view of the current identity."""
        return StatusQuery(self._key.identity, self._require_ledger())

    async def publish(self) -> LedgerReceipt:
        """Announce the current identity on the ledger; returns once confirmed."""
        key = self._key
        receipt = await self._require_ledger().publish(key)
        self._logger.info("consent_published", identity=key.identity, tx_hash=receipt.tx_hash)
        return receipt

    async def revoke(self) -> LedgerReceipt:
        """Revoke the current identity on the ledger; returns once confirmed."""
        key = self._key
        receipt = await self._require_ledger().revoke(key)
        self._logger.info("consent_revoked", identity=key.identity, tx_hash=receipt.tx_hash)
        return receipt

    async def is_published_at(self) -> int:
        return await self.status().is_published_at()

    async def is_revoked_at(self) -> int:
        return await self.status().is_revoked_at()

    def _require_ledger(self) -> LedgerClient:
        if self._ledger is None:
            raise RuntimeError("No ledger attached. Pass ledger= when constructing the record.")
        return self._ledger

    def __repr__(self) -> str:
        return f"ConsentRecord(identity={self._key.identity}, payload_kind={self._payload_kind.value})"
