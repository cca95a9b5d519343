"""
consentid -- Common Primitives

Shared enums, base classes, and utilities used across all systems.
"""

from __future__ import annotations

import enum
import time
from datetime import UTC, datetime

from pydantic import BaseModel


def utc_now() -> datetime:
    """Current UTC time, timezone-aware."""
    return datetime.now(UTC)


def unix_now() -> int:
    """Current Unix time in whole seconds (the ledger's clock resolution)."""
    return int(time.time())


def format_unix(ts: int) -> str:
    """ISO-8601 rendering of a ledger timestamp. 0 means 'never'."""
    if ts <= 0:
        return "never"
    return datetime.fromtimestamp(ts, tz=UTC).isoformat().replace("+00:00", "Z")


# ─── Enums ────────────────────────────────────────────────────────


class PayloadKind(enum.StrEnum):
    """How a consent payload was normalized at construction time."""

    STRUCTURED = "structured"  # mapping / sequence / null -> canonical JSON
    NUMERIC = "numeric"        # number or numeric-looking string -> string form
    OPAQUE = "opaque"          # any other string, kept verbatim


class RecordRegime(enum.StrEnum):
    """Which side of the validation protocol a record is on."""

    MUTABLE = "mutable"            # owned by this process, no account signature yet
    SIGNED = "signed"              # owned by this process, account signature present
    RECONSTRUCTED = "reconstructed"  # opened from someone else's bundle


# ─── Base Models ──────────────────────────────────────────────────


class ConsentIDBaseModel(BaseModel):
    """Base model for all wire primitives. Attribute names are snake_case, wire keys camelCase."""

    model_config = {"populate_by_name": True, "from_attributes": True, "frozen": True}
