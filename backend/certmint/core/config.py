"""
Pydantic Settings — centralized configuration loaded from environment variables.

Settings are built once at startup by ``load_settings()`` and handed to
every component by parameter.  Nothing below the entry points reads the
environment directly.
"""

from __future__ import annotations

from pydantic import Field, ValidationError
from pydantic_settings import BaseSettings

from certmint.core.constants import Commitment
from certmint.core.errors import ConfigurationError

REQUIRED_ENV = (
    "AIRTABLE_API_KEY",
    "BASE_ID",
    "TABLE_NAME",
    "QUICKNODE_RPC",
    "SOLANA_SECRET_KEY",
    "PINATA_API_KEY",
    "PINATA_SECRET_API_KEY",
    "COLLECTION_MINT",
    "SENDGRID_API_KEY",
)


class Settings(BaseSettings):
    # ── Record store (Airtable) ───────────────
    AIRTABLE_API_KEY: str = Field(min_length=1)
    BASE_ID: str = Field(min_length=1)
    TABLE_NAME: str = Field(min_length=1)
    AIRTABLE_API_URL: str = "https://api.airtable.com/v0"
    AIRTABLE_PAGE_SIZE: int = Field(default=100, ge=1, le=100)

    # ── Blockchain (Solana) ───────────────────
    QUICKNODE_RPC: str = Field(min_length=1)
    SOLANA_SECRET_KEY: str = Field(min_length=1)   # JSON array of 64 ints
    SOLANA_COMMITMENT: Commitment = Commitment.FINALIZED
    SOLANA_CLUSTER: str = "mainnet-beta"
    EXPLORER_BASE_URL: str = "https://explorer.solana.com"
    COLLECTION_MINT: str = Field(min_length=1)

    # ── Collection container ──────────────────
    LOAD_NUMBER: int = Field(default=8, ge=1)
    COLLECTION_SYMBOL: str = Field(default="Encode", max_length=10)
    SELLER_FEE_BASIS_POINTS: int = Field(default=1000, ge=0, le=10000)
    COLLECTION_IS_MUTABLE: bool = True
    NFT_NAME_PREFIX: str = "Encode Certificate"
    NFT_DESCRIPTION: str = "Encode Club NFT Certificate"

    # ── Content storage (Pinata) ──────────────
    PINATA_API_KEY: str = Field(min_length=1)
    PINATA_SECRET_API_KEY: str = Field(min_length=1)
    PINATA_API_URL: str = "https://api.pinata.cloud"
    IPFS_GATEWAY_URL: str = "https://ipfs.io"

    # ── Certificate rendering ─────────────────
    FONT_REGULAR_PATH: str = ""
    FONT_SEMIBOLD_PATH: str = ""
    FONT_SIZE: int = 32
    RENDER_MARGIN: int = 80

    # ── Email (SendGrid) ──────────────────────
    SENDGRID_API_KEY: str = Field(min_length=1)
    SENDGRID_API_URL: str = "https://api.sendgrid.com/v3"
    EMAIL_FROM: str = "nfts@encode.club"
    EMAIL_SUBJECT: str = "Your Encode Club NFT is on its way!"
    TWITTER_HANDLE: str = "encodeclub"

    # ── Orchestrator ──────────────────────────
    ORCHESTRATOR_STEP_DELAY_SECONDS: float = Field(default=30.0, ge=0)
    ORCHESTRATOR_CYCLE_DELAY_SECONDS: float = Field(default=300.0, ge=0)

    # ── Celery ────────────────────────────────
    CELERY_BROKER_URL: str = "redis://localhost:6379/0"
    CELERY_RESULT_BACKEND: str = "redis://localhost:6379/1"

    # ── Application ───────────────────────────
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"
    LOG_FORMAT: str = "console"
    HTTP_TIMEOUT_SECONDS: float = 30.0

    model_config = {"env_file": ["../.env", ".env"], "extra": "ignore"}

    @property
    def table_url(self) -> str:
        return f"{self.AIRTABLE_API_URL.rstrip('/')}/{self.BASE_ID}/{self.TABLE_NAME}"


def load_settings(**overrides) -> Settings:
    """
    Build Settings from the environment, failing fast on missing values.

    Raises ConfigurationError listing every required variable that is
    absent or blank.
    """
    try:
        return Settings(**overrides)
    except ValidationError as exc:
        missing = sorted({
            str(err["loc"][0])
            for err in exc.errors()
            if err["loc"] and err["type"] in ("missing", "string_too_short")
        })
        invalid = sorted({
            str(err["loc"][0])
            for err in exc.errors()
            if err["loc"] and str(err["loc"][0]) not in missing
        })
        if missing:
            message = f"Missing one of {', '.join(REQUIRED_ENV)} in .env ({', '.join(missing)} not set)"
        else:
            message = f"Invalid configuration values: {', '.join(invalid)}"
        raise ConfigurationError(
            message,
            details={"missing": missing, "invalid": invalid},
        ) from exc
