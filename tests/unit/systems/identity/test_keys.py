"""
Unit tests for KeyMaterial and signer recovery.
"""

from __future__ import annotations

import json

import pytest

from consentid.systems.identity.errors import (
    KeyMismatchError,
    SignatureMismatchError,
    ValidationError,
)
from consentid.systems.identity.keys import (
    DEFAULT_SCHEME,
    KeyMaterial,
    normalize_identity,
    recover_signer,
)


class TestKeyMaterial:
    def test_identity_shape(self):
        key = KeyMaterial.generate()
        assert key.identity.startswith("0x")
        assert len(key.identity) == 42
        assert key.derive_identity() == key.identity

    def test_fresh_keys_differ(self):
        assert KeyMaterial.generate().identity != KeyMaterial.generate().identity

    def test_round_trip_through_private_key(self):
        key = KeyMaterial.generate()
        assert KeyMaterial.from_private_key(key.private_key).identity == key.identity

    def test_invalid_private_key(self):
        with pytest.raises(ValidationError):
            KeyMaterial.from_private_key("0x1234")

    def test_repr_hides_private_key(self):
        key = KeyMaterial.generate()
        assert key.private_key not in repr(key)


class TestSigning:
    def test_signature_shape_and_determinism(self):
        key = KeyMaterial.generate()
        first = key.sign_message("hello")
        assert len(first) == 132
        assert first.startswith("0x")
        assert key.sign_message("hello") == first

    def test_recovers_signer(self):
        key = KeyMaterial.generate()
        assert recover_signer("hello", key.sign_message("hello")) == key.identity

    def test_other_message_recovers_other_address(self):
        key = KeyMaterial.generate()
        assert recover_signer("hello!", key.sign_message("hello")) != key.identity

    def test_empty_signature(self):
        with pytest.raises(SignatureMismatchError):
            recover_signer("hello", "")

    def test_malformed_signature(self):
        with pytest.raises(SignatureMismatchError):
            recover_signer("hello", "0xdeadbeef")


class TestKeystore:
    def test_encrypt_decrypt(self):
        key = KeyMaterial.generate()
        encrypted = key.encrypt("pw", kdf="pbkdf2", iterations=2)
        assert json.loads(encrypted)["version"] == 3
        assert DEFAULT_SCHEME.decrypt(encrypted, "pw").identity == key.identity

    def test_wrong_password(self):
        encrypted = KeyMaterial.generate().encrypt("pw", kdf="pbkdf2", iterations=2)
        with pytest.raises(KeyMismatchError):
            KeyMaterial.decrypt(encrypted, "nope")


class TestNormalizeIdentity:
    def test_checksums(self):
        key = KeyMaterial.generate()
        assert normalize_identity(key.identity.lower()) == key.identity

    def test_rejects_non_address(self):
        with pytest.raises(ValidationError):
            normalize_identity("0x0")
