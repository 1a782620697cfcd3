"""Supabase Storage filesystem adapter."""

__version__ = "0.1.0"

from .adapters.storage import (
    FilesystemAdapter,
    LocalFilesystemAdapter,
    StorageError,
    SupabaseAdapter,
    SupabaseConfig,
)

__all__ = [
    "FilesystemAdapter",
    "LocalFilesystemAdapter",
    "StorageError",
    "SupabaseAdapter",
    "SupabaseConfig",
]
