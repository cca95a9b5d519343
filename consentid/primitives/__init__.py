"""
consentid -- Primitives

Wire models, canonical encoding and shared helpers. No dependencies on the
systems or clients layers.
"""

from consentid.primitives.bundles import (
    ConsentBundle,
    DisclosureSnapshot,
    LedgerReceipt,
    ValidationBundle,
    VoteTally,
    VoterList,
)
from consentid.primitives.common import (
    ConsentIDBaseModel,
    PayloadKind,
    RecordRegime,
    format_unix,
    unix_now,
    utc_now,
)

__all__ = [
    "ConsentBundle",
    "ConsentIDBaseModel",
    "DisclosureSnapshot",
    "LedgerReceipt",
    "PayloadKind",
    "RecordRegime",
    "ValidationBundle",
    "VoteTally",
    "VoterList",
    "format_unix",
    "unix_now",
    "utc_now",
]
