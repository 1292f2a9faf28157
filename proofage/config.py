"""ProofAge configuration management.

Configuration sources (in priority order):
1. Config file (config.yaml)
2. Environment variables (PROOFAGE_ prefix)
3. Defaults
"""

from __future__ import annotations

import os
from functools import lru_cache
from pathlib import Path
from typing import Literal

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings, SettingsConfigDict

# Marker used by development defaults; checked at startup.
WEAK_SECRET_MARKER = "change_me"

# Minimum signing key length (bytes) before a startup warning is emitted.
MIN_SIGNING_KEY_BYTES = 32


class ServerConfig(BaseModel):
    """HTTP server configuration."""

    host: str = "0.0.0.0"
    port: int = 8787


class DatabaseConfig(BaseModel):
    """Database configuration."""

    # SQLite by default; postgresql+asyncpg:// works the same way
    url: str = "sqlite+aiosqlite:///./proofage.db"
    echo: bool = False

    # Upper bound for a single storage round-trip issued by the core
    operation_timeout_seconds: float = 5.0


class SecurityConfig(BaseModel):
    """Shared secrets. Read once at startup and injected where needed."""

    jwt_signing_key: str = "dev_jwt_signing_key_change_me_and_make_it_long"
    verifier_callback_secret: str = "dev_verifier_secret_change_me"


class AssertionConfig(BaseModel):
    """Assertion token configuration."""

    issuer: str = "proofage-rail"
    ttl_seconds: int = Field(default=600, gt=0)
    min_nonce_length: int = 8
    max_nonce_length: int = 200


class ProofConfig(BaseModel):
    """Proof request lifecycle configuration."""

    min_age_floor: int = 13
    min_age_ceiling: int = 25
    default_min_age: int = 18

    # What to do with a verifier callback for an already-terminal request:
    # - reject: accept identical replays, refuse contradictory results (409)
    # - overwrite: last callback wins
    callback_policy: Literal["reject", "overwrite"] = "reject"

    verify_url_base: str = "https://verify.placeholder/proof"


class BootstrapConfig(BaseModel):
    """First-boot merchant and credential provisioning."""

    enabled: bool = True
    merchant_external_ref: str = "merchant_demo"
    merchant_name: str = "Demo Merchant"

    # None = generate a key on first boot if the merchant has none
    api_key: str | None = None

    # Where credentials.json is written when a key is generated
    data_dir: str = "."


class LedgerConfig(BaseModel):
    """Replay ledger retention."""

    prune_enabled: bool = True
    prune_interval_seconds: int = 3600

    # Extra time an entry is kept after its token expired
    retention_grace_seconds: int = 3600


class Settings(BaseSettings):
    """ProofAge application settings."""

    model_config = SettingsConfigDict(
        env_prefix="PROOFAGE_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    server: ServerConfig = Field(default_factory=ServerConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    security: SecurityConfig = Field(default_factory=SecurityConfig)
    assertion: AssertionConfig = Field(default_factory=AssertionConfig)
    proof: ProofConfig = Field(default_factory=ProofConfig)
    bootstrap: BootstrapConfig = Field(default_factory=BootstrapConfig)
    ledger: LedgerConfig = Field(default_factory=LedgerConfig)

    def weak_secret_warnings(self) -> list[str]:
        """Return the names of secrets that look unfit for production."""
        warnings: list[str] = []
        if len(self.security.jwt_signing_key.encode()) < MIN_SIGNING_KEY_BYTES:
            warnings.append("security.jwt_signing_key")
        elif WEAK_SECRET_MARKER in self.security.jwt_signing_key:
            warnings.append("security.jwt_signing_key")
        if WEAK_SECRET_MARKER in self.security.verifier_callback_secret:
            warnings.append("security.verifier_callback_secret")
        return warnings


def _load_config_file() -> dict:
    """Load configuration from YAML file if exists.

    Looks for config file in order:
    1. PROOFAGE_CONFIG_FILE environment variable
    2. ./config.yaml
    3. /etc/proofage/config.yaml
    """
    config_paths = [
        os.environ.get("PROOFAGE_CONFIG_FILE"),
        Path("config.yaml"),
        Path("/etc/proofage/config.yaml"),
    ]

    for path in config_paths:
        if path is None:
            continue
        path = Path(path)
        if path.exists():
            with open(path) as f:
                return yaml.safe_load(f) or {}

    return {}


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    YAML values are passed as init arguments and take precedence; anything
    the file leaves out falls back to environment variables, then defaults.
    """
    file_config = _load_config_file()
    return Settings(**file_config)
