"""Application configuration and settings management."""

from pathlib import Path
from typing import Any, Literal, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="DISPATCH_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Dispatch & Scheduling Engine API"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO", description="Root log level applied by create_app.")
    data_root: Path = Field(default=Path("data"), description="Root directory for seed data and caches.")
    seed_file: Optional[Path] = Field(
        default=None,
        description="Optional JSON file with drivers/orders used to prime the in-memory store.",
    )
    geocache_file: Optional[Path] = Field(
        default=Path("data/geocache.json"),
        description="Persistent address -> coordinates cache. None keeps the cache in memory only.",
    )
    store_backend: Literal["memory", "supabase"] = Field(
        default="memory",
        description="Record store used by the engine.",
    )
    lock_strategy: Literal["striped", "global"] = Field(
        default="striped",
        description="Per-order/per-driver lock striping or a single global dispatch lock.",
    )
    geocoder_base_url: Optional[str] = Field(
        default=None,
        description="Base URL of a Nominatim-compatible geocoder (e.g., https://nominatim.openstreetmap.org).",
    )
    geocoder_timeout_seconds: float = Field(default=10.0, gt=0.0)
    geocoder_max_retries: int = Field(default=2, ge=0)
    geocoder_backoff_seconds: float = Field(default=0.5, ge=0.0)
    default_window_minutes: int = Field(
        default=60,
        ge=1,
        description="Pickup window length when an order only carries a start time.",
    )
    reorder_window_minutes: int = Field(
        default=120,
        ge=1,
        description="Window length used by the reorder flow when no end time is supplied.",
    )
    zone_center: tuple[float, float] = Field(
        default=(48.8566, 2.3522),
        description="(lat, lon) center of the concentric dispatch zones.",
    )
    zone_radii_km: tuple[float, ...] = Field(
        default=(6.0, 15.0, 45.0),
        description="Outer radius of INTRA_PARIS, PETITE_COURONNE and GRANDE_COURONNE.",
    )
    frontend_allowed_origins: tuple[str, ...] = Field(
        default=(
            "http://localhost:5173",
            "http://127.0.0.1:5173",
        ),
        description="Permitted web origins for browser clients (CORS).",
    )

    # Supabase configuration
    supabase_url: Optional[str] = Field(
        default=None,
        description="Supabase project URL (e.g., https://xxx.supabase.co).",
    )
    supabase_key: Optional[str] = Field(
        default=None,
        description="Supabase service role key for backend operations.",
    )

    @field_validator("data_root", "seed_file", "geocache_file", mode="before")
    @classmethod
    def _expand_path(cls, value: Any) -> Optional[Path]:
        if value is None or value == "":
            return None
        path_value = value if isinstance(value, Path) else Path(str(value))
        return path_value.expanduser().resolve()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(str(item) for item in parsed)
            except (json.JSONDecodeError, TypeError):
                pass
            if "," in value:
                return tuple(item.strip() for item in value.split(",") if item.strip())
            if value.strip():
                return (value.strip(),)
        return tuple()

    @field_validator("zone_center", "zone_radii_km", mode="before")
    @classmethod
    def _parse_float_tuple_from_env(cls, value: Any) -> tuple[float, ...]:
        """Parse float tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(float(item) for item in value)
        if isinstance(value, str):
            try:
                parsed = json.loads(value)
                if isinstance(parsed, list):
                    return tuple(float(item) for item in parsed)
            except (json.JSONDecodeError, TypeError, ValueError):
                pass
            return tuple(float(item.strip()) for item in value.split(",") if item.strip())
        return tuple()


settings = Settings()
