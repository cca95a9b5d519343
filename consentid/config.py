"""
consentid -- Configuration System

All configuration is Pydantic-validated and loaded from:
1. a YAML file (defaults, optional)
2. Environment variables (overrides)

Every tunable parameter lives here. Records never read configuration
themselves; callers hand them a ledger client and, where relevant, the
decode cap from ValidationConfig.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from consentid.primitives.canonical import DEFAULT_MAX_DECODE_DEPTH

# ─── Sub-configs ──────────────────────────────────────────────────


class LedgerConfig(BaseModel):
    strategy: Literal["web3", "memory"] = "web3"
    rpc_url: str = "http://localhost:8545"
    chain_id: int | None = None  # None: ask the node once on first transaction

    # Contract addresses (0x...). Required for the web3 strategy.
    publish_contract: str = ""
    revoke_contract: str = ""
    vote_contract: str = ""

    gas_limit: int = 200_000
    gas_price_wei: int | None = None  # None: use the node's eth_gasPrice
    receipt_timeout_s: float = 120.0
    receipt_poll_interval_s: float = 0.5

    @model_validator(mode="after")
    def _strip_rpc_url(self) -> LedgerConfig:
        # Secret managers like to inject trailing \r\n into env vars
        if self.rpc_url:
            object.__setattr__(self, "rpc_url", self.rpc_url.strip())
        return self


class ValidationConfig(BaseModel):
    # Transport data is re-parsed at most this many times before giving up.
    max_decode_depth: int = DEFAULT_MAX_DECODE_DEPTH

    @field_validator("max_decode_depth")
    @classmethod
    def _positive_depth(cls, v: int) -> int:
        if v < 1:
            raise ValueError("max_decode_depth must be >= 1")
        return v


class AttachmentConfig(BaseModel):
    announce_url: str = "https://api.corrently.io/v2.0/ipfs/announce"
    timeout_s: float = 30.0


class LoggingConfig(BaseModel):
    level: str = "INFO"
    format: str = "console"  # "console" | "json"


# ─── Root Configuration ──────────────────────────────────────────


class ConsentIDConfig(BaseSettings):
    """
    Root configuration. Loads from YAML, overridable by env vars.
    """

    model_config = SettingsConfigDict(
        env_prefix="CONSENTID_",
        env_nested_delimiter="__",
        extra="ignore",
    )

    ledger: LedgerConfig = Field(default_factory=LedgerConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    attachments: AttachmentConfig = Field(default_factory=AttachmentConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Recursively merge override into base."""
    result = base.copy()
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def load_config(
    config_path: str | Path | None = None,
    overrides: dict[str, Any] | None = None,
) -> ConsentIDConfig:
    """
    Load configuration from YAML file, then apply environment variable overrides.

    Explicit ``overrides`` (e.g. from CLI flags) win over both.
    """
    raw: dict[str, Any] = {}

    if config_path:
        path = Path(config_path)
        if path.exists():
            with open(path) as f:
                raw = yaml.safe_load(f) or {}

    # Inject connection settings from environment. Init kwargs beat env vars in
    # pydantic-settings, so anything present in the YAML must be patched here.
    import os

    if rpc_url := os.environ.get("CONSENTID_LEDGER__RPC_URL"):
        raw.setdefault("ledger", {})["rpc_url"] = rpc_url
    if strategy := os.environ.get("CONSENTID_LEDGER__STRATEGY"):
        raw.setdefault("ledger", {})["strategy"] = strategy
    if chain_id := os.environ.get("CONSENTID_LEDGER__CHAIN_ID"):
        raw.setdefault("ledger", {})["chain_id"] = int(chain_id)
    if publish_contract := os.environ.get("CONSENTID_LEDGER__PUBLISH_CONTRACT"):
        raw.setdefault("ledger", {})["publish_contract"] = publish_contract
    if revoke_contract := os.environ.get("CONSENTID_LEDGER__REVOKE_CONTRACT"):
        raw.setdefault("ledger", {})["revoke_contract"] = revoke_contract
    if vote_contract := os.environ.get("CONSENTID_LEDGER__VOTE_CONTRACT"):
        raw.setdefault("ledger", {})["vote_contract"] = vote_contract
    if log_level := os.environ.get("CONSENTID_LOGGING__LEVEL"):
        raw.setdefault("logging", {})["level"] = log_level

    if overrides:
        raw = _deep_merge(raw, overrides)

    return ConsentIDConfig(**raw)
