"""Runtime settings for the ON-AIR backend.

Non-secret tuning lives in config/onair.yaml. Secrets and deployment values
come from the environment (a .env file is loaded first):

    ONAIR_STORE             "memory" (default) or "supabase"
    SUPABASE_URL            Supabase project URL
    SUPABASE_PROJECT_REF    project ref, used to derive the URL when SUPABASE_URL is unset
    SUPABASE_ANON_KEY       Supabase anon/public key
    SHEET_PROXY_URL         optional external sheet proxy; in-process forwarding when unset
    DEBUG                   "true" for debug logging
"""

import logging
import os
from pathlib import Path
from typing import Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = Path(__file__).parent.parent / "config" / "onair.yaml"


class Settings(BaseModel):
    """Validated settings used to wire the services."""
    store_backend: str = "memory"
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    sheet_proxy_url: Optional[str] = None
    sheet_allowed_prefix: str = "https://script.google.com/"
    sheet_timeout_seconds: float = 10.0

    max_question_length: int = 500
    max_poll_options: int = 6

    reconcile_interval_seconds: float = 2.0
    csv_cache_ttl_seconds: float = 15.0
    csv_placeholder: str = "No active question"

    debug: bool = False


_settings: Optional[Settings] = None


def _supabase_url_from_env() -> Optional[str]:
    url = os.getenv("SUPABASE_URL")
    if url:
        return url.rstrip("/")
    project_ref = os.getenv("SUPABASE_PROJECT_REF")
    if project_ref:
        return f"https://{project_ref}.supabase.co"
    return None


def load_settings(config_path: Optional[Path] = None) -> Settings:
    """Read config/onair.yaml and apply environment overrides."""
    path = config_path or DEFAULT_CONFIG_PATH
    data: dict = {}
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except FileNotFoundError:
        logger.warning(f"Config not found at {path}, using defaults.")

    values = dict(data.get("onair", {}))
    values["store_backend"] = os.getenv("ONAIR_STORE", values.get("store_backend", "memory"))
    values["supabase_url"] = _supabase_url_from_env()
    values["supabase_key"] = os.getenv("SUPABASE_ANON_KEY")
    values["sheet_proxy_url"] = os.getenv("SHEET_PROXY_URL") or values.get("sheet_proxy_url")
    values["debug"] = os.getenv("DEBUG", "false").lower() == "true"
    return Settings(**values)


def get_settings() -> Settings:
    """Return the cached process-wide settings."""
    global _settings
    if _settings is None:
        _settings = load_settings()
    return _settings
