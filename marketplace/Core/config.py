from __future__ import annotations

import os
from functools import lru_cache
from dotenv import load_dotenv, find_dotenv

_env_path = find_dotenv(".env") or ".env"
load_dotenv(_env_path, override=False)


def _split_env_csv(name: str, default: str = "") -> list[str]:
    raw = os.getenv(name, default)
    return [o.strip().rstrip("/") for o in raw.split(",") if o.strip()]


class Settings:
    """Central configuration (env driven)."""

    def __init__(self) -> None:
        # Supabase
        raw_url = os.getenv("SUPABASE_URL", "")
        self.supabase_url: str = raw_url.rstrip("/")
        self.supabase_anon_key: str = os.getenv("SUPABASE_ANON_KEY") or os.getenv("SUPABASE_KEY", "")
        self.supabase_service_role_key: str = (
            os.getenv("SUPABASE_SERVICE_ROLE_KEY")
            or os.getenv("SUPABASE_SERVICE_KEY")
            or ""
        )
        self.storage_bucket: str = os.getenv("STORAGE_BUCKET", "ads")
        # Upstream timeouts (seconds)
        self.query_timeout: float = float(os.getenv("SUPABASE_QUERY_TIMEOUT", "5"))
        self.whoami_timeout: float = float(os.getenv("AUTH_WHOAMI_TIMEOUT", "5"))
        # App meta
        self.app_name: str = "Airsoft Marketplace API"
        self.version: str = "1.0.0"
        self.debug: bool = os.getenv("DEBUG", "False").lower() == "true"
        self.log_level: str = os.getenv("LOG_LEVEL", "INFO" if self.debug else "WARNING").upper()
        # HTTP surface
        self.allow_origins: list[str] = _split_env_csv("ALLOW_ORIGINS", "http://localhost:3000")
        self.port: int = int(os.getenv("PORT", "3001"))
        self.env: str = os.getenv("ENV", "dev")

    @property
    def storage_public_base(self) -> str | None:
        if not self.supabase_url:
            return None
        return f"{self.supabase_url}/storage/v1/object/public"


@lru_cache()
def get_settings() -> Settings:
    return Settings()
