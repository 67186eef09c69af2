"""
Central configuration for airdropmarket.

Typed settings read from environment variables (12-factor style) using
pydantic-settings. Every variable is prefixed with ``AIRDROPMARKET_``.

Usage:

    from airdropmarket.core.settings import get_settings

    settings = get_settings()
    chain = Chain(settings)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class GasSettings(BaseSettings):
    """
    Gas schedule charged by the ledger.

    Costs are per operation; the transaction limit caps a whole
    transaction unless the caller passes an explicit limit.
    """

    model_config = SettingsConfigDict(env_prefix="AIRDROPMARKET_GAS_")

    transaction_limit: int = Field(
        default=30_000_000,
        description="Default gas limit for one transaction.",
    )
    transaction_base: int = Field(default=21_000, description="Flat cost per transaction.")
    storage_read: int = Field(default=2_100, description="Cost per storage slot read.")
    storage_write: int = Field(default=20_000, description="Cost per storage slot write.")
    external_call: int = Field(default=2_600, description="Cost per call into another contract.")
    log: int = Field(default=375, description="Cost per emitted event.")
    pair_hash: int = Field(default=36, description="Cost per pair hash during proof checks.")
    signature_check: int = Field(default=3_000, description="Cost per signature verification.")
    dispatch: int = Field(default=700, description="Cost per batched command dispatch.")


class ChainSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AIRDROPMARKET_CHAIN_")

    chain_id: int = Field(
        default=31337,
        description="Chain id bound into permit digests.",
    )
    genesis_timestamp: Optional[int] = Field(
        default=None,
        description="Initial ledger timestamp; wall clock when unset.",
    )


class HTTPSettings(BaseSettings):
    """
    HTTP devnet API settings (host/port for the FastAPI app).
    """

    model_config = SettingsConfigDict(env_prefix="AIRDROPMARKET_HTTP_")

    host: str = Field(default="127.0.0.1", description="HTTP bind host.")
    port: int = Field(default=8545, description="HTTP bind port.")


class RuntimeSettings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="AIRDROPMARKET_")

    log_level: str = Field(
        default="INFO",
        description="Root log level (DEBUG/INFO/WARNING/ERROR).",
    )

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, v: str) -> str:
        v = (v or "INFO").upper()
        if v not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            return "INFO"
        return v


class MarketSettings(BaseSettings):
    """
    Root configuration object.

    Aggregates:
      - Gas
      - Chain
      - HTTP
      - Runtime
    """

    model_config = SettingsConfigDict(env_prefix="AIRDROPMARKET_")

    gas: GasSettings = Field(default_factory=GasSettings)
    chain: ChainSettings = Field(default_factory=ChainSettings)
    http: HTTPSettings = Field(default_factory=HTTPSettings)
    runtime: RuntimeSettings = Field(default_factory=RuntimeSettings)


@lru_cache(maxsize=1)
def get_settings() -> MarketSettings:
    """Cached accessor for MarketSettings."""
    return MarketSettings()
