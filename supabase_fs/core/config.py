"""Configuration management for the storage adapters."""

import os
from pathlib import Path
from typing import Optional, Tuple

from dotenv import find_dotenv, load_dotenv

from ..adapters.storage.base import ConfigurationError

# Load environment variables from the .env nearest the working directory
load_dotenv(find_dotenv(usecwd=True))

# Relative defaults resolve against the working directory of the host process
WORKING_DIR = Path.cwd()


def _resolve_path(env_name: str, default: Path) -> Path:
    value = os.getenv(env_name)
    if value:
        return Path(value).expanduser().resolve()
    return default.resolve()


def _env_choice(name: str, default: str, allowed: Tuple[str, ...]) -> str:
    value = os.getenv(name, default)
    if value is None:
        return default
    normalized = value.strip().lower()
    if normalized not in allowed:
        return default
    return normalized


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be an integer, got {raw!r}") from exc


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if not raw or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}") from exc


def _env_optional(name: str) -> Optional[str]:
    value = os.getenv(name)
    if value is None or not value.strip():
        return None
    return value.strip()


STORAGE_PROVIDER = _env_choice("STORAGE_PROVIDER", "supabase", ("local", "supabase"))

# Supabase storage configuration
SUPABASE_URL = _env_optional("SUPABASE_URL")
SUPABASE_BUCKET = _env_optional("SUPABASE_BUCKET")
SUPABASE_KEY = _env_optional("SUPABASE_SERVICE_ROLE_KEY") or _env_optional("SUPABASE_KEY")
SUPABASE_PUBLIC = os.getenv("SUPABASE_PUBLIC", "true")
SUPABASE_PUBLIC_URL = _env_optional("SUPABASE_PUBLIC_URL")
# Left unset so the adapter can derive it from SUPABASE_PUBLIC
SUPABASE_DEFAULT_URL_GENERATION = _env_optional("SUPABASE_DEFAULT_URL_GENERATION")
SUPABASE_SIGNED_URL_EXPIRES = _env_int("SUPABASE_SIGNED_URL_EXPIRES", 3600)
SUPABASE_HTTP_TIMEOUT = _env_float("SUPABASE_HTTP_TIMEOUT", 30.0)
SUPABASE_STRICT_LISTING = _env_flag("SUPABASE_STRICT_LISTING")

# Local storage root used when STORAGE_PROVIDER=local
LOCAL_STORAGE_ROOT = _resolve_path("LOCAL_STORAGE_ROOT", WORKING_DIR / "data" / "storage")


def supabase_settings() -> dict:
    """Return the Supabase settings in the adapter's configuration shape."""

    settings = {
        "endpoint": SUPABASE_URL,
        "bucket": SUPABASE_BUCKET,
        "key": SUPABASE_KEY,
        "public": SUPABASE_PUBLIC,
        "signedUrlExpires": SUPABASE_SIGNED_URL_EXPIRES,
        "timeout": SUPABASE_HTTP_TIMEOUT,
        "strictListing": SUPABASE_STRICT_LISTING,
    }
    if SUPABASE_PUBLIC_URL:
        settings["url"] = SUPABASE_PUBLIC_URL
    if SUPABASE_DEFAULT_URL_GENERATION:
        settings["defaultUrlGeneration"] = SUPABASE_DEFAULT_URL_GENERATION
    return settings


def local_settings() -> dict:
    return {"root": str(LOCAL_STORAGE_ROOT)}
