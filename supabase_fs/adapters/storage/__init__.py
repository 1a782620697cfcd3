"""Storage adapter abstractions."""

from .base import (
    ConfigurationError,
    DirectoryAttributes,
    DirectoryCreateError,
    DirectoryDeleteError,
    FileAttributes,
    FileCopyError,
    FileDeleteError,
    FileMoveError,
    FileReadError,
    FilesystemAdapter,
    FilesystemOperationError,
    FileWriteError,
    ListContentsError,
    PathTraversalError,
    StorageAttributes,
    StorageError,
    TemporaryUrlError,
    VisibilityUnsupportedError,
)
from .local import LocalFilesystemAdapter
from .paths import EMPTY_FOLDER_PLACEHOLDER_NAME, join_paths
from .supabase import SupabaseAdapter, SupabaseConfig, UrlGeneration

__all__ = [
    "ConfigurationError",
    "DirectoryAttributes",
    "DirectoryCreateError",
    "DirectoryDeleteError",
    "EMPTY_FOLDER_PLACEHOLDER_NAME",
    "FileAttributes",
    "FileCopyError",
    "FileDeleteError",
    "FileMoveError",
    "FileReadError",
    "FilesystemAdapter",
    "FilesystemOperationError",
    "FileWriteError",
    "ListContentsError",
    "LocalFilesystemAdapter",
    "PathTraversalError",
    "StorageAttributes",
    "StorageError",
    "SupabaseAdapter",
    "SupabaseConfig",
    "TemporaryUrlError",
    "UrlGeneration",
    "VisibilityUnsupportedError",
    "join_paths",
]
