"""
consentid -- Validation Record

A ValidationRecord is a co-signed statement between two parties:

  the validation authority  owns a key minted with the record; its address
                            is the validationID. It signs the validation
                            object (up to two key/value pairs plus the
                            injected account, validationID and iat).
  the account holder        attached with attach_signer(). Signs the
                            account data, which references the authority's
                            signature, so both signatures are linked.

The signed record travels as a ValidationBundle (four strings). A
counterparty rebuilds it with open_fields()/open_json(), which recovers both
signers from the signatures and refuses the bundle unless the recovered
addresses equal the claimed validationID and account.

Regimes:
  MUTABLE        owned by this process; set_validation_object() allowed
  SIGNED         owned, and the account holder has signed the current object
  RECONSTRUCTED  opened from a bundle; holds only a disposable key until the
                 authority's secure element is re-attached

Every operation checks everything first and only then updates the record,
so a raised error always leaves the record as it was.
"""

from __future__ import annotations

import asyncio
import base64
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

import structlog

from consentid.primitives.bundles import ValidationBundle, VoterList, VoteTally
from consentid.primitives.canonical import (
    DEFAULT_MAX_DECODE_DEPTH,
    decode_until_structured,
    deep_copy_json,
    encode_structured,
)
from consentid.primitives.common import RecordRegime, unix_now
from consentid.systems.identity.errors import (
    DecodeError,
    ImmutableStateError,
    KeyMismatchError,
    MissingSignerError,
    SignatureMismatchError,
    ValidationError,
)
from consentid.systems.identity.keys import DEFAULT_SCHEME
from consentid.systems.identity.status import StatusQuery
from consentid.telemetry.logging import truncate

if TYPE_CHECKING:
    from consentid.clients.attachments import AttachmentAnnouncer
    from consentid.clients.ledger import LedgerClient
    from consentid.primitives.bundles import LedgerReceipt
    from consentid.systems.identity.keys import KeyMaterial, SignatureScheme

logger = structlog.get_logger("consentid.systems.identity.validation")

# Caller-settable fields. Everything else passed to set_validation_object() is dropped.
WHITELIST: tuple[str, ...] = ("key_1", "value_1", "key_2", "value_2")

# Injected by set_validation_object(); required on every reconstructed object.
INJECTED_FIELDS: tuple[str, ...] = ("validationID", "iat", "account")

ALLOWED_FIELDS = frozenset(WHITELIST) | frozenset(INJECTED_FIELDS)

_BUNDLE_FIELDS = ("validationData", "validationSignature", "accountData", "accountSignature")

# Account placeholder until a signer is attached.
UNBOUND_ACCOUNT = "0x0"


class ValidationRecord:
    """
    Two-party co-signed record with a mutability state machine.

    Mutating operations are serialised per instance with an asyncio.Lock;
    concurrent calls on the same record queue up.
    """

    def __init__(
        self,
        *,
        ledger: LedgerClient | None = None,
        scheme: SignatureScheme | None = None,
        max_decode_depth: int = DEFAULT_MAX_DECODE_DEPTH,
    ) -> None:
        self._scheme: SignatureScheme = scheme or DEFAULT_SCHEME
        self._ledger = ledger
        self._max_decode_depth = max_decode_depth

        # -- Authority --
        self._key: KeyMaterial = self._scheme.generate()
        self._authoritative: bool = True   # False while holding a disposable key
        self._validation_id: str = self._key.identity

        # -- Account holder --
        self._signer: KeyMaterial | None = None
        self._account: str = UNBOUND_ACCOUNT

        # -- Signed content --
        self._validation_object: dict[str, Any] = {}
        self._validation_signature: str = ""
        self._account_data: dict[str, Any] = {}
        self._account_signature: str = ""
        self._issued_at: int = 0

        # -- State --
        self._is_mutable: bool = True
        self._is_signed: bool = False

        self._lock = asyncio.Lock()
        self._logger = logger.bind(component="validation_record")

    # ─── Properties ───────────────────────────────────────────────

    @property
    def validation_id(self) -> str:
        return self._validation_id

    @property
    def account(self) -> str:
        return self._account

    @property
    def validation_object(self) -> dict[str, Any]:
        """Copy of the signed object. Change it with set_validation_object()."""
        return deep_copy_json(self._validation_object)

    @property
    def validation_signature(self) -> str:
        return self._validation_signature

    @property
    def account_data(self) -> dict[str, Any]:
        return dict(self._account_data)

    @property
    def account_signature(self) -> str:
        return self._account_signature

    @property
    def issued_at(self) -> int:
        return self._issued_at

    @property
    def validation_data(self) -> str:
        return self.get_validation_object_to_data()

    @property
    def is_mutable(self) -> bool:
        return self._is_mutable

    @property
    def is_signed(self) -> bool:
        return self._is_signed

    @property
    def regime(self) -> RecordRegime:
        if not self._authoritative:
            return RecordRegime.RECONSTRUCTED
        if self._is_signed:
            return RecordRegime.SIGNED
        return RecordRegime.MUTABLE

    # ─── Authoring ────────────────────────────────────────────────

    def attach_signer(self, signer: KeyMaterial) -> None:
        """
        Bind the account holder.

        The record becomes mutable again only if it holds the authority key;
        a reconstructed record stays immutable until attach_secure_element().
        """
        self._signer = signer
        self._account = signer.identity
        self._is_mutable = self._authoritative
        self._logger.debug(
            "validation_signer_attached",
            validation_id=self._validation_id,
            account=self._account,
        )

    async def set_validation_object(self, fields: Mapping[str, Any]) -> None:
        """
        Replace the validation object and re-sign it.

        Only key_1/value_1/key_2/value_2 survive; account, validationID and
        iat are injected. Clears any previous account signature.
        """
        async with self._lock:
            if not self._is_mutable:
                raise ImmutableStateError("Validation is immutable")
            if not isinstance(fields, Mapping):
                raise ValidationError(
                    f"Validation fields must be a mapping, got {type(fields).__name__}"
                )

            dropped = [k for k in fields if k not in WHITELIST]
            try:
                obj: dict[str, Any] = deep_copy_json(
                    {k: v for k, v in fields.items() if k in WHITELIST}
                )
            except (TypeError, ValueError) as exc:
                raise ValidationError(f"Validation fields are not JSON-representable: {exc}") from exc

            issued_at = unix_now()
            obj["account"] = self._account
            obj["validationID"] = self._validation_id
            obj["iat"] = issued_at

            validation_signature = self._key.sign_message(encode_structured(obj))

            self._validation_object = obj
            self._validation_signature = validation_signature
            self._account_data = {
                "validationSignature": validation_signature,
                "validationID": self._validation_id,
                "account": self._account,
            }
            self._account_signature = ""
            self._issued_at = issued_at
            self._is_signed = False

        if dropped:
            self._logger.warning(
                "validation_fields_dropped",
                validation_id=self._validation_id,
                dropped=sorted(dropped),
            )
        self._logger.info(
            "validation_object_set",
            validation_id=self._validation_id,
            account=self._account,
            iat=issued_at,
            signature=truncate(validation_signature),
        )

    async def sign_account_data(self) -> None:
        """Account holder signs the account data; marks the record signed."""
        async with self._lock:
            if not self._is_mutable:
                raise ImmutableStateError("Validation is immutable")
            if self._signer is None:
                raise MissingSignerError("No signer attached. Call attach_signer() first.")
            if not self._validation_object:
                raise ValidationError(
                    "No validation object set. Call set_validation_object() first."
                )
            if self._account_data.get("account") != self._signer.identity:
                raise ValidationError(
                    f"Validation object was issued for account {self._account_data.get('account')}, "
                    f"not {self._signer.identity}. Call set_validation_object() again."
                )

            self._account_signature = self._signer.sign_message(
                encode_structured(self._account_data)
            )
            self._is_signed = True

        self._logger.info(
            "validation_account_signed",
            validation_id=self._validation_id,
            account=self._account,
            signature=truncate(self._account_signature),
        )

    async def add_attachment(
        self,
        content: bytes | str,
        filename: str,
        announcer: AttachmentAnnouncer,
    ) -> str:
        """
        Vouch for a document by hash.

        ``content`` is raw bytes or already base64-encoded text. The document
        is announced to IPFS and the validation object becomes
        {Attachment: filename, Hash: <ipfs hash>}. Returns the hash.
        """
        if not self._is_mutable:
            raise ImmutableStateError("Validation is immutable")

        if isinstance(content, bytes):
            content = base64.b64encode(content).decode("ascii")

        content_hash = await announcer.announce(content)
        await self.set_validation_object({
            "key_1": "Attachment",
            "value_1": filename,
            "key_2": "Hash",
            "value_2": content_hash,
        })
        return content_hash

    # ─── Serialisation ────────────────────────────────────────────

    def get_validation_object_to_data(self) -> str:
        """Percent-encoded canonical validation object (the string the authority signed)."""
        return encode_structured(self._validation_object)

    def get_fields(self) -> ValidationBundle:
        return ValidationBundle(
            validation_data=self.get_validation_object_to_data(),
            validation_signature=self._validation_signature,
            account_data=encode_structured(self._account_data),
            account_signature=self._account_signature,
        )

    def to_json(self) -> str:
        return self.get_fields().to_json()

    # ─── Verification / reconstruction ───────────────────────────

    async def open_fields(
        self,
        validation_data: str,
        validation_signature: str,
        account_data: str,
        account_signature: str,
    ) -> None:
        """
        Rebuild this record from a transmitted bundle and verify it.

        Both signers are recovered from the signatures and must equal the
        validationID and account the bundle claims, and the account data
        must reference this exact validation. On success the record is
        immutable and holds only a disposable key.
        """
        async with self._lock:
            for name, value in (
                ("validationData", validation_data),
                ("validationSignature", validation_signature),
                ("accountData", account_data),
                ("accountSignature", account_signature),
            ):
                if not isinstance(value, str):
                    raise ValidationError(f"{name} must be a string, got {type(value).__name__}")

            disposable = self._scheme.generate()

            # Recover the account holder before trusting anything the bundle claims
            if not account_signature:
                raise SignatureMismatchError("accountSignature missing")
            account_consensus = self._scheme.recover_signer(account_data, account_signature)

            try:
                validation_object = decode_until_structured(validation_data, self._max_decode_depth)
            except ValueError as exc:
                raise DecodeError("Unable to parse JSON to create validationObject") from exc

            validation_consensus = self._scheme.recover_signer(
                encode_structured(validation_object), validation_signature
            )

            for required in INJECTED_FIELDS:
                if required not in validation_object:
                    raise ValidationError(f"{required} not specified")
            unexpected = sorted(set(validation_object) - ALLOWED_FIELDS)
            if unexpected:
                raise ValidationError(f"validationData carries fields outside the whitelist: {unexpected}")

            validation_id = validation_object["validationID"]
            account = validation_object["account"]
            issued_at = validation_object["iat"]
            if not isinstance(issued_at, int) or isinstance(issued_at, bool):
                raise ValidationError(f"iat must be an integer Unix time, got {issued_at!r}")

            try:
                decoded_account_data = decode_until_structured(account_data, self._max_decode_depth)
            except ValueError as exc:
                raise DecodeError("Unable to parse JSON to create accountData") from exc

            if validation_id != validation_consensus:
                self._logger.warning(
                    "validation_signature_mismatch",
                    claimed=validation_id,
                    recovered=validation_consensus,
                )
                raise SignatureMismatchError(
                    f"validationSignature broken: signed by {validation_consensus}, claims {validation_id}"
                )
            if account != account_consensus:
                self._logger.warning(
                    "account_signature_mismatch",
                    claimed=account,
                    recovered=account_consensus,
                )
                raise SignatureMismatchError(
                    f"accountSignature broken: signed by {account_consensus}, claims {account}"
                )
            if (
                decoded_account_data.get("validationSignature") != validation_signature
                or decoded_account_data.get("validationID") != validation_id
                or decoded_account_data.get("account") != account
            ):
                self._logger.warning(
                    "account_data_unlinked",
                    validation_id=validation_id,
                    account=account,
                )
                raise SignatureMismatchError("accountData does not reference this validation")

            self._key = disposable
            self._authoritative = False
            self._signer = None
            self._validation_object = validation_object
            self._validation_signature = validation_signature
            self._account_data = decoded_account_data
            self._account_signature = account_signature
            self._validation_id = validation_id
            self._account = account
            self._issued_at = issued_at
            self._is_mutable = False
            self._is_signed = False

        self._logger.info(
            "validation_opened",
            validation_id=validation_id,
            account=account,
            iat=issued_at,
        )

    async def open_json(self, json_value: str | Mapping[str, Any] | ValidationBundle) -> None:
        """open_fields() from one serialised bundle, which may be stringified more than once."""
        if isinstance(json_value, ValidationBundle):
            bundle: Mapping[str, Any] = json_value.to_wire()
        else:
            try:
                bundle = decode_until_structured(json_value, self._max_decode_depth)
            except ValueError as exc:
                raise DecodeError("Unable to parse validation bundle") from exc

        missing = [name for name in _BUNDLE_FIELDS if name not in bundle]
        if missing:
            raise ValidationError(f"Validation bundle is missing {', '.join(missing)}")

        await self.open_fields(
            bundle["validationData"],
            bundle["validationSignature"],
            bundle["accountData"],
            bundle["accountSignature"],
        )

    # ─── Secure element ───────────────────────────────────────────

    async def retrieve_secure_element(
        self,
        password: str,
        *,
        kdf: str | None = None,
        iterations: int | None = None,
    ) -> str:
        """Export the authority key as an encrypted keystore JSON string."""
        if not self._authoritative:
            raise ImmutableStateError("Record holds no validation authority key to export")

        key = self._key
        encrypted = await asyncio.to_thread(key.encrypt, password, kdf=kdf, iterations=iterations)
        self._logger.info("secure_element_exported", validation_id=key.identity)
        return encrypted

    async def attach_secure_element(self, encrypted: str | Mapping[str, Any], password: str) -> None:
        """
        Resume authority over a record opened from a bundle.

        Succeeds only if the decrypted key derives this record's
        validationID; otherwise raises KeyMismatchError and changes nothing.
        """
        async with self._lock:
            if isinstance(encrypted, Mapping):
                encrypted = dict(encrypted)
            candidate = await asyncio.to_thread(self._scheme.decrypt, encrypted, password)

            if candidate.identity != self._validation_id:
                self._logger.warning(
                    "secure_element_mismatch",
                    validation_id=self._validation_id,
                    element_identity=candidate.identity,
                )
                raise KeyMismatchError("Secure Element does not match Validation")

            self._key = candidate
            self._authoritative = True
            self._is_mutable = True

        self._logger.info("secure_element_attached", validation_id=self._validation_id)

    # ─── Ledger ───────────────────────────────────────────────────

    def status(self) -> StatusQuery:
        return StatusQuery(self._validation_id, self._require_ledger())

    async def publish(self) -> LedgerReceipt:
        """Announce the validation on the ledger (authority key required)."""
        key = self._require_authority()
        receipt = await self._require_ledger().publish(key)
        self._logger.info("validation_published", validation_id=key.identity, tx_hash=receipt.tx_hash)
        return receipt

    async def revoke(self) -> LedgerReceipt:
        """Revoke the validation on the ledger (authority key required)."""
        key = self._require_authority()
        receipt = await self._require_ledger().revoke(key)
        self._logger.info("validation_revoked", validation_id=key.identity, tx_hash=receipt.tx_hash)
        return receipt

    async def is_published_at(self) -> int:
        return await self.status().is_published_at()

    async def is_revoked_at(self) -> int:
        return await self.status().is_revoked_at()

    # ─── Voting ───────────────────────────────────────────────────

    async def upvote(self, identity: str | None = None) -> LedgerReceipt:
        """Vote for ``identity`` (default: this validation) with this record's key."""
        return await self._require_ledger().upvote(self._key, identity or self._validation_id)

    async def downvote(self, identity: str | None = None) -> LedgerReceipt:
        """Vote against ``identity`` (default: this validation) with this record's key."""
        return await self._require_ledger().downvote(self._key, identity or self._validation_id)

    async def votes(self) -> VoteTally:
        return await self._require_ledger().vote_counts(self._validation_id)

    async def list_votes(self) -> VoterList:
        """Voter addresses, fetched one index at a time up to the reported counts."""
        ledger = self._require_ledger()
        tally = await ledger.vote_counts(self._validation_id)
        upvoters = [await ledger.upvoter(self._validation_id, i) for i in range(tally.upvotes)]
        downvoters = [await ledger.downvoter(self._validation_id, i) for i in range(tally.downvotes)]
        return VoterList(upvoters=upvoters, downvoters=downvoters)

    # ─── Internal helpers ─────────────────────────────────────────

    def _require_ledger(self) -> LedgerClient:
        if self._ledger is None:
            raise RuntimeError("No ledger attached. Pass ledger= when constructing the record.")
        return self._ledger

    def _require_authority(self) -> KeyMaterial:
        if not self._authoritative:
            raise ImmutableStateError(
                "Record holds no validation authority key. Call attach_secure_element() first."
            )
        return self._key

    def __repr__(self) -> str:
        return (
            f"ValidationRecord(validation_id={self._validation_id}, account={self._account}, "
            f"regime={self.regime.value})"
        )
