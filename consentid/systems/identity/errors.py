"""
consentid -- Identity Error Hierarchy

All exceptions raised by the consent and validation records.

Namespace: consentid.systems.identity.errors

Every error is raised before the record changes; an operation either
completes its state transition or leaves the record exactly as it was.
Ledger failures are not wrapped here: web3 / httpx exceptions propagate
to the caller unchanged.

Severity guide:
  ValidationError         the input is malformed; fix the caller
  SignatureMismatchError  CRITICAL -- claimed identity is not the signer; do not trust the bundle
  ImmutableStateError     the record is not owned by this process
  KeyMismatchError        CRITICAL -- the secure element belongs to another validation
  MissingSignerError      account signature requested before attach_signer()
"""

from __future__ import annotations


class IdentityError(RuntimeError):
    """Base for all consent/validation record errors."""


class ValidationError(IdentityError):
    """
    A required field is missing, a field is outside the whitelist, or a value
    cannot be represented as JSON. Distinct from pydantic.ValidationError.
    """


class DecodeError(ValidationError):
    """Transport data could not be decoded into a JSON object within the decode cap."""


class SignatureMismatchError(IdentityError):
    """
    The address recovered from a signature differs from the identity the
    bundle claims, or the signature could not be recovered at all.
    """


class ImmutableStateError(IdentityError):
    """Mutation attempted on a record this process does not own."""


class KeyMismatchError(IdentityError):
    """A re-attached secure element does not derive the expected validationID."""


class MissingSignerError(IdentityError):
    """The account holder's key has not been attached."""
