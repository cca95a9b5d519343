"""consentid -- Telemetry (structured logging)."""

from consentid.telemetry.logging import setup_logging, truncate

__all__ = ["setup_logging", "truncate"]
