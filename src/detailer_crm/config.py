"""Application configuration and settings management."""

from typing import Annotated, Any, Optional

import json
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Runtime configuration loaded from environment variables or defaults."""

    model_config = SettingsConfigDict(
        env_prefix="CRM_",
        case_sensitive=False,
        env_file=".env",
        env_file_encoding="utf-8",
    )

    app_name: str = "Detailer CRM API"
    api_prefix: str = "/api"
    default_phone_region: str = Field(
        default="US",
        description="ISO region used to infer the country code of national-format phone numbers.",
    )
    progress_every: int = Field(
        default=1,
        ge=1,
        description="Emit an import progress frame at least every N rows.",
    )
    max_progress_frames: int = Field(
        default=500,
        ge=1,
        description="Upper bound on progress frames per import; large files widen the interval.",
    )
    max_upload_bytes: int = Field(default=10 * 1024 * 1024, ge=1)
    customers_table: str = Field(
        default="customer_snapshots",
        description="Supabase table holding customer records.",
    )
    frontend_allowed_origins: Annotated[tuple[str, ...], NoDecode] = Field(
        default=(
            "http://localhost:3000",
            "http://127.0.0.1:3000",
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

    @field_validator("default_phone_region", mode="before")
    @classmethod
    def _upper_region(cls, value: Any) -> str:
        return str(value or "US").strip().upper()

    @field_validator("frontend_allowed_origins", mode="before")
    @classmethod
    def _parse_str_tuple_from_env(cls, value: Any) -> tuple[str, ...]:
        """Parse string tuple from environment variable (comma-separated or JSON array)."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(str(item) for item in value)
        if isinstance(value, str):
            # Try JSON first
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


settings = Settings()
