"""
consentid -- Key Material

A KeyMaterial is a secp256k1 keypair plus the address derived from it.
The address is the identity: it is what the ledger is keyed by and what
signature recovery returns.

Signing uses EIP-191 personal messages, so a signature produced here can be
checked by any Ethereum tooling (and vice versa). Nonces are RFC 6979, so
signing the same message with the same key always yields the same
132-character signature.

The signature primitive is injected into the records as a SignatureScheme.
EthereumSignatureScheme is the default and the only one shipped.
"""

from __future__ import annotations

import json
from typing import TYPE_CHECKING, Any, Protocol

import structlog
from eth_account import Account
from eth_account.messages import encode_defunct
from eth_utils import is_address, to_checksum_address

from consentid.systems.identity.errors import (
    KeyMismatchError,
    SignatureMismatchError,
    ValidationError,
)

if TYPE_CHECKING:
    from eth_account.datastructures import SignedTransaction
    from eth_account.signers.local import LocalAccount

logger = structlog.get_logger("consentid.systems.identity.keys")


def _hex(raw: bytes) -> str:
    return "0x" + bytes(raw).hex()


class KeyMaterial:
    """
    A keypair and its derived identity.

    Owned by exactly one record at a time. The private key is reachable
    through ``private_key`` for disclosure and export only; nothing in the
    package logs it.
    """

    __slots__ = ("_account",)

    def __init__(self, account: LocalAccount) -> None:
        self._account = account

    @classmethod
    def generate(cls) -> KeyMaterial:
        """Fresh random keypair from the OS entropy source."""
        return cls(Account.create())

    @classmethod
    def from_private_key(cls, private_key: str | bytes) -> KeyMaterial:
        try:
            return cls(Account.from_key(private_key))
        except Exception as exc:  # eth-keys raises its own ValidationError for bad lengths
            raise ValidationError(f"Invalid private key: {exc}") from exc

    # ─── Identity ───────────────────────────────────────────────────

    @property
    def identity(self) -> str:
        """0x-prefixed, EIP-55 checksummed, 42 characters."""
        return str(self._account.address)

    def derive_identity(self) -> str:
        return self.identity

    @property
    def private_key(self) -> str:
        """0x-prefixed hex. Disclosure and export only."""
        return _hex(self._account.key)

    # ─── Signing ────────────────────────────────────────────────────

    def sign_message(self, message: str) -> str:
        """EIP-191 signature over the exact string, 0x-prefixed (132 chars)."""
        signed = self._account.sign_message(encode_defunct(text=message))
        return _hex(signed.signature)

    def sign_transaction(self, transaction: dict[str, Any]) -> SignedTransaction:
        return self._account.sign_transaction(transaction)

    # ─── Export ─────────────────────────────────────────────────────

    def encrypt(
        self,
        password: str,
        *,
        kdf: str | None = None,
        iterations: int | None = None,
    ) -> str:
        """
        Web3 Secret Storage (keystore v3) JSON, encrypted under ``password``.

        CPU-heavy with the default scrypt parameters; callers on the event loop
        should run this in a thread.
        """
        keystore = Account.encrypt(self._account.key, password, kdf=kdf, iterations=iterations)
        return json.dumps(keystore)

    @classmethod
    def decrypt(cls, encrypted: str | dict[str, Any], password: str) -> KeyMaterial:
        try:
            key = Account.decrypt(encrypted, password)
        except (ValueError, TypeError, KeyError) as exc:
            raise KeyMismatchError(f"Secure element could not be decrypted: {exc}") from exc
        return cls(Account.from_key(key))

    def __repr__(self) -> str:
        return f"KeyMaterial(identity={self.identity})"


# ─── Signature Scheme ────────────────────────────────────────────


class SignatureScheme(Protocol):
    """The signature primitive the records depend on."""

    name: str

    def generate(self) -> KeyMaterial: ...

    def from_private_key(self, private_key: str | bytes) -> KeyMaterial: ...

    def decrypt(self, encrypted: str | dict[str, Any], password: str) -> KeyMaterial: ...

    def recover_signer(self, message: str, signature: str) -> str: ...


class EthereumSignatureScheme:
    """secp256k1 + EIP-191 personal_sign, via eth-account."""

    name: str = "eip191-secp256k1"

    def generate(self) -> KeyMaterial:
        return KeyMaterial.generate()

    def from_private_key(self, private_key: str | bytes) -> KeyMaterial:
        return KeyMaterial.from_private_key(private_key)

    def decrypt(self, encrypted: str | dict[str, Any], password: str) -> KeyMaterial:
        return KeyMaterial.decrypt(encrypted, password)

    def recover_signer(self, message: str, signature: str) -> str:
        """Address that produced ``signature`` over ``message``."""
        if not signature:
            raise SignatureMismatchError("Signature is empty")
        try:
            address = Account.recover_message(encode_defunct(text=message), signature=signature)
        except Exception as exc:
            logger.warning(
                "signature_recovery_failed",
                error=type(exc).__name__,
                signature_prefix=signature[:18],
            )
            raise SignatureMismatchError(f"Signature could not be recovered: {exc}") from exc
        return str(address)


DEFAULT_SCHEME = EthereumSignatureScheme()


def recover_signer(message: str, signature: str) -> str:
    """Module-level shortcut for the default scheme."""
    return DEFAULT_SCHEME.recover_signer(message, signature)


def normalize_identity(identity: str) -> str:
    """Checksummed form of an address-style identity. Raises ValidationError otherwise."""
    if not isinstance(identity, str) or not is_address(identity):
        raise ValidationError(f"Not an address-style identity: {identity!r}")
    return str(to_checksum_address(identity))
