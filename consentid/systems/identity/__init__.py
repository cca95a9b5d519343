"""
consentid -- Identity & Consent Records

Consent records (payload bound to a minted, revealable identity), validation
records (two-party co-signed statements), the read-only status view, the
data subject's self-sovereign identity and disclosure documents.
"""

from consentid.systems.identity.consent import ConsentRecord, normalize_payload
from consentid.systems.identity.disclosure import extract_disclosure, render_disclosure_document
from consentid.systems.identity.errors import (
    DecodeError,
    IdentityError,
    ImmutableStateError,
    KeyMismatchError,
    MissingSignerError,
    SignatureMismatchError,
    ValidationError,
)
from consentid.systems.identity.keys import (
    DEFAULT_SCHEME,
    EthereumSignatureScheme,
    KeyMaterial,
    SignatureScheme,
    normalize_identity,
    recover_signer,
)
from consentid.systems.identity.ssi import SelfSovereignIdentity
from consentid.systems.identity.status import StatusQuery
from consentid.systems.identity.validation import ValidationRecord

__all__ = [
    "DEFAULT_SCHEME",
    "ConsentRecord",
    "DecodeError",
    "EthereumSignatureScheme",
    "IdentityError",
    "ImmutableStateError",
    "KeyMaterial",
    "KeyMismatchError",
    "MissingSignerError",
    "SelfSovereignIdentity",
    "SignatureMismatchError",
    "SignatureScheme",
    "StatusQuery",
    "ValidationError",
    "ValidationRecord",
    "extract_disclosure",
    "normalize_identity",
    "normalize_payload",
    "recover_signer",
    "render_disclosure_document",
]
