"""Environment-driven settings for the public dashboard service."""

import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

BACKEND_DIR = Path(__file__).resolve().parent.parent
load_dotenv(BACKEND_DIR / '.env')

DEFAULT_LOCALE = "pt_BR"
DEFAULT_CURRENCY = "BRL"
DEFAULT_FORMULA_MAX_DEPTH = 64


@dataclass(frozen=True)
class Settings:
    supabase_url: Optional[str]
    supabase_key: Optional[str]
    locale: str = DEFAULT_LOCALE
    currency: str = DEFAULT_CURRENCY
    formula_max_depth: int = DEFAULT_FORMULA_MAX_DEPTH
    cors_origins: tuple[str, ...] = ("*",)
    log_level: str = "INFO"

    @property
    def supabase_configured(self) -> bool:
        return bool(self.supabase_url and self.supabase_key)


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Read settings from the environment once per process."""
    key = os.environ.get('SUPABASE_SERVICE_KEY') or os.environ.get('SUPABASE_SERVICE_ROLE_KEY')
    origins = [o.strip() for o in os.environ.get('CORS_ORIGINS', '*').split(',') if o.strip()]
    return Settings(
        supabase_url=(os.environ.get('SUPABASE_URL') or '').strip() or None,
        supabase_key=(key or '').strip() or None,
        locale=os.environ.get('DASHBOARD_LOCALE', DEFAULT_LOCALE),
        currency=os.environ.get('DASHBOARD_CURRENCY', DEFAULT_CURRENCY).upper(),
        formula_max_depth=_int_env('FORMULA_MAX_DEPTH', DEFAULT_FORMULA_MAX_DEPTH),
        cors_origins=tuple(origins) or ("*",),
        log_level=os.environ.get('LOG_LEVEL', 'INFO').upper(),
    )
