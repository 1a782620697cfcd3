"""Storage driver registry and the process-wide default adapter."""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import Any, Callable, Dict, Mapping

from .adapters.storage import ConfigurationError, FilesystemAdapter, LocalFilesystemAdapter, SupabaseAdapter

DriverFactory = Callable[[Mapping[str, Any]], FilesystemAdapter]


def _supabase_driver(settings: Mapping[str, Any]) -> FilesystemAdapter:
    return SupabaseAdapter(settings)


def _local_driver(settings: Mapping[str, Any]) -> FilesystemAdapter:
    root = settings.get("root")
    if not root:
        raise ConfigurationError("Local storage root is not specified")
    return LocalFilesystemAdapter(Path(root))


_DRIVERS: Dict[str, DriverFactory] = {
    "supabase": _supabase_driver,
    "local": _local_driver,
}


def register_driver(name: str, factory: DriverFactory) -> None:
    """Make ``factory`` available under ``name`` for :func:`build_adapter`."""

    _DRIVERS[name.strip().lower()] = factory


def build_adapter(driver: str, settings: Mapping[str, Any]) -> FilesystemAdapter:
    factory = _DRIVERS.get(driver.strip().lower())
    if factory is None:
        known = ", ".join(sorted(_DRIVERS))
        raise ConfigurationError(f"Unknown storage driver '{driver}' (available: {known})")
    return factory(settings)


@lru_cache(maxsize=1)
def _storage_adapter() -> FilesystemAdapter:
    # Environment settings are read on first use, not when the package is imported
    from .core import config

    if config.STORAGE_PROVIDER == "supabase":
        missing = []
        if not config.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not config.SUPABASE_BUCKET:
            missing.append("SUPABASE_BUCKET")
        if not config.SUPABASE_KEY:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")
        if missing:
            joined = ", ".join(missing)
            raise ConfigurationError(f"Supabase storage enabled but missing required env vars: {joined}")
        return build_adapter("supabase", config.supabase_settings())
    return build_adapter("local", config.local_settings())


def get_storage() -> FilesystemAdapter:
    return _storage_adapter()


def reset_storage() -> None:
    """Drop the cached adapter so the next :func:`get_storage` call rebuilds it."""

    _storage_adapter.cache_clear()
