"""Application settings using pydantic-settings."""

from functools import lru_cache
from pathlib import Path
from typing import Literal

from pydantic import Field, SecretStr, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """FunRun ledger configuration from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",  # Ignore extra env vars
    )

    # Application
    app_name: str = Field(default="funrun-backend", description="Application name")
    app_version: str = Field(default="1.0.0", description="Application version")
    debug: bool = Field(default=False, description="Enable debug mode")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO", description="Minimum log level"
    )

    # Server
    host: str = Field(default="0.0.0.0", description="Server host")
    port: int = Field(default=5000, ge=1, le=65535, description="Server port")

    # Persistence
    db_mode: Literal["file", "supabase"] = Field(
        default="file", description="Snapshot backing: local file or Supabase row"
    )
    file_db_path: Path = Field(default=Path("db.json"), description="Snapshot file path")
    file_flush_debounce_seconds: float = Field(
        default=0.6, gt=0, description="Write coalescing window for the file snapshot"
    )
    supabase_url: str = Field(default="", description="Supabase project URL")
    supabase_key: SecretStr = Field(default=SecretStr(""), description="Supabase service key")
    supabase_schema: str = Field(default="public", description="PostgreSQL schema")
    supabase_table: str = Field(
        default="pumpmini_store", description="Table holding the snapshot row"
    )

    # Solana RPC
    solana_rpc_url: str = Field(
        default="http://127.0.0.1:8899",
        description="Solana RPC endpoint URL",
    )

    # Economics
    starting_mc: float = Field(default=6500.0, gt=0, description="Market cap of a new LIVE coin")
    total_supply_default: int = Field(default=1_000_000_000, gt=0)
    creator_pct: float = Field(default=2.0, ge=0, le=100, description="Creator grant, % of supply")
    owner_max_pct: float = Field(
        default=10.0, ge=0, le=100, description="Max % of supply a creator may hold via buys"
    )
    live_threshold_sol: float = Field(default=0.01, ge=0)
    price_floor: float = Field(default=1000.0, gt=0)
    buy_impact: float = Field(default=120.0, ge=0, description="mc bump per SOL bought")
    sell_impact: float = Field(default=110.0, ge=0, description="mc drop per SOL sold")
    chart_max: int = Field(default=60, ge=5)
    log_cap: int = Field(default=300, ge=1)
    profile_tx_cap: int = Field(default=500, ge=1)

    # Fees
    fee_pct: float = Field(default=1.0, ge=0, le=100)
    trade_dev_pct: float = Field(default=40.0, ge=0, le=100)
    trade_creator_pct: float = Field(default=40.0, ge=0, le=100)
    trade_ref_pct: float = Field(default=10.0, ge=0, le=100)
    trade_reserve_pct: float = Field(default=10.0, ge=0, le=100)
    create_dev_pct: float = Field(default=70.0, ge=0, le=100)
    create_ref_pct: float = Field(default=20.0, ge=0, le=100)
    create_reserve_pct: float = Field(default=10.0, ge=0, le=100)

    dev_wallet: str = Field(default="DEV_TREASURY")
    reserve_wallet: str = Field(default="RESERVE_TREASURY")

    @field_validator("db_mode", mode="before")
    @classmethod
    def normalize_db_mode(cls, v: object) -> object:
        """Accept the legacy "local" alias for file mode."""
        if isinstance(v, str):
            v = v.strip().lower()
            if v == "local":
                return "file"
        return v

    @field_validator("supabase_url")
    @classmethod
    def validate_supabase_url(cls, v: str) -> str:
        """Validate Supabase URL format."""
        if v and not v.startswith(("http://", "https://")):
            raise ValueError("Supabase URL must start with http:// or https://")
        return v

    @model_validator(mode="after")
    def validate_fee_splits(self) -> "Settings":
        """Fee splits must each distribute the whole fee."""
        trade_total = (
            self.trade_dev_pct
            + self.trade_creator_pct
            + self.trade_ref_pct
            + self.trade_reserve_pct
        )
        create_total = self.create_dev_pct + self.create_ref_pct + self.create_reserve_pct
        if abs(trade_total - 100) > 1e-9:
            raise ValueError(f"Trade fee split must sum to 100, got {trade_total}")
        if abs(create_total - 100) > 1e-9:
            raise ValueError(f"Create fee split must sum to 100, got {create_total}")
        return self


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
