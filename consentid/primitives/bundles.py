"""
consentid -- Wire Bundles

The shapes that leave the process: what a counterparty receives, what the
data subject keeps after a reveal, and what the ledger reports back.

Attribute names are snake_case; serialise with ``by_alias=True`` (or use
``to_wire()``) to get the camelCase keys other implementations expect.
"""

from __future__ import annotations

from typing import Any

from pydantic import Field

from consentid.primitives.common import ConsentIDBaseModel


class ConsentBundle(ConsentIDBaseModel):
    """The (payload, signature, identity) triple returned by ConsentRecord.consensus()."""

    payload: str
    signature: str
    identity: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class DisclosureSnapshot(ConsentIDBaseModel):
    """
    One-time disclosure of a consent identity, produced by ConsentRecord.reveal().

    Whoever holds this can revoke the consent later. The record that produced
    it has already rotated to a new key.
    """

    private_key: str = Field(alias="privateKeyMaterial", repr=False)
    identity: str
    signature: str
    payload: str

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)


class ValidationBundle(ConsentIDBaseModel):
    """Transmittable form of a ValidationRecord. Both data fields are percent-encoded JSON."""

    validation_data: str = Field(alias="validationData")
    validation_signature: str = Field(alias="validationSignature")
    account_data: str = Field(alias="accountData")
    account_signature: str = Field(default="", alias="accountSignature")

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True)

    def to_json(self) -> str:
        return self.model_dump_json(by_alias=True)


class VoteTally(ConsentIDBaseModel):
    upvotes: int = 0
    downvotes: int = 0


class VoterList(ConsentIDBaseModel):
    upvoters: list[str] = Field(default_factory=list)
    downvoters: list[str] = Field(default_factory=list)


class LedgerReceipt(ConsentIDBaseModel):
    """Confirmation of a ledger-mutating call, normalised across ledger backends."""

    tx_hash: str
    sender: str
    method: str
    block_number: int = 0
    status: int = 1
