from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

BASE_DIR = Path(__file__).resolve().parent.parent

DEFAULT_TENANT_ID = "00000000-0000-0000-0000-000000000001"
SOURCE_TYPES = ("web_chat", "whatsapp", "form", "backoffice")


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if not raw:
        return default
    path = Path(raw)
    return path if path.is_absolute() else BASE_DIR / path


@dataclass(frozen=True)
class Settings:
    openai_api_key: Optional[str]
    openai_base_url: Optional[str]
    openai_model: str
    model_timeout_seconds: float
    supabase_url: Optional[str]
    supabase_anon_key: Optional[str]
    supabase_service_role_key: Optional[str]
    require_auth: bool
    default_tenant_id: str
    default_source_type: str
    catalog_csv_path: Path
    usd_to_ars_rate: float
    history_limit: int
    static_dir: Path
    log_level: str
    port: int

    @property
    def lead_store_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_anon_key)


def load_settings() -> Settings:
    source_type = os.getenv("DEFAULT_SOURCE_TYPE", "web_chat")
    if source_type not in SOURCE_TYPES:
        source_type = "web_chat"
    return Settings(
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        openai_base_url=os.getenv("OPENAI_BASE_URL") or None,
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4.1-mini"),
        model_timeout_seconds=_env_float("MODEL_TIMEOUT_SECONDS", 30.0),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_anon_key=os.getenv("SUPABASE_ANON_KEY"),
        supabase_service_role_key=os.getenv("SUPABASE_SERVICE_ROLE_KEY"),
        # Only an explicit 'false' turns auth off
        require_auth=os.getenv("REQUIRE_AUTH") != "false",
        default_tenant_id=os.getenv("DEFAULT_TENANT_ID") or DEFAULT_TENANT_ID,
        default_source_type=source_type,
        catalog_csv_path=_env_path("CATALOG_CSV_PATH", BASE_DIR / "fixtures" / "zonaprop-argentina-dataset.csv"),
        usd_to_ars_rate=_env_float("USD_TO_ARS_RATE", 1000.0),
        history_limit=_env_int("HISTORY_LIMIT", 10),
        static_dir=_env_path("STATIC_DIR", BASE_DIR / "public"),
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        port=_env_int("PORT", 3000),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()
