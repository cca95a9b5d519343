"""
Unit tests for wire bundles: camelCase on the wire, snake_case in Python.
"""

from __future__ import annotations

import json

import pytest
from pydantic import ValidationError as PydanticValidationError

from consentid.primitives.bundles import DisclosureSnapshot, ValidationBundle, VoteTally


class TestValidationBundle:
    def test_wire_keys_are_camel_case(self):
        bundle = ValidationBundle(
            validation_data="%7B%7D",
            validation_signature="0xabc",
            account_data="%7B%7D",
        )
        assert bundle.to_wire() == {
            "validationData": "%7B%7D",
            "validationSignature": "0xabc",
            "accountData": "%7B%7D",
            "accountSignature": "",
        }

    def test_to_json_parses_back(self):
        bundle = ValidationBundle(
            validationData="a", validationSignature="b", accountData="c", accountSignature="d"
        )
        assert json.loads(bundle.to_json())["accountSignature"] == "d"

    def test_frozen(self):
        bundle = ValidationBundle(validation_data="a", validation_signature="b", account_data="c")
        with pytest.raises(PydanticValidationError):
            bundle.account_signature = "x"


class TestDisclosureSnapshot:
    def test_private_key_hidden_from_repr(self):
        snapshot = DisclosureSnapshot(
            private_key="0xsecret", identity="0x1", signature="0x2", payload="p"
        )
        assert "0xsecret" not in repr(snapshot)
        assert snapshot.to_wire()["privateKeyMaterial"] == "0xsecret"


class TestVoteTally:
    def test_defaults(self):
        assert VoteTally() == VoteTally(upvotes=0, downvotes=0)
