"""Base filesystem adapter definitions."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Optional, Union

TYPE_FILE = "file"
TYPE_DIRECTORY = "dir"


@dataclass(frozen=True)
class FileAttributes:
    """Represents a stored file's metadata."""

    path: str
    file_size: Optional[int] = None
    visibility: Optional[str] = None
    last_modified: Optional[int] = None
    mime_type: Optional[str] = None
    extra_metadata: Dict[str, Any] = field(default_factory=dict)

    type = TYPE_FILE

    def is_file(self) -> bool:
        return True

    def is_dir(self) -> bool:
        return False


@dataclass(frozen=True)
class DirectoryAttributes:
    """Represents a (possibly synthetic) directory."""

    path: str
    visibility: Optional[str] = None
    last_modified: Optional[int] = None
    extra_metadata: Dict[str, Any] = field(default_factory=dict)

    type = TYPE_DIRECTORY

    def is_file(self) -> bool:
        return False

    def is_dir(self) -> bool:
        return True


StorageAttributes = Union[FileAttributes, DirectoryAttributes]


class StorageError(RuntimeError):
    """Raised when storage operations fail."""


class ConfigurationError(StorageError, ValueError):
    """Raised when an adapter is missing a setting or given an invalid one."""


class PathTraversalError(StorageError):
    """Raised when a path resolves outside of the adapter root."""


class FilesystemOperationError(StorageError):
    """Base class for failures tied to a location in the store."""

    operation = "access"

    def __init__(self, location: str, reason: str = "") -> None:
        self.location = location
        self.reason = reason
        message = f"Unable to {self.operation} at location: {location}."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class FileWriteError(FilesystemOperationError):
    operation = "write file"


class FileReadError(FilesystemOperationError):
    operation = "read file"


class FileDeleteError(FilesystemOperationError):
    operation = "delete file"


class DirectoryDeleteError(FilesystemOperationError):
    operation = "delete directory"


class DirectoryCreateError(FilesystemOperationError):
    operation = "create directory"


class ListContentsError(FilesystemOperationError):
    operation = "list contents"


class VisibilityUnsupportedError(FilesystemOperationError):
    operation = "set visibility"


class TemporaryUrlError(FilesystemOperationError):
    operation = "generate temporary url"


class _TransferError(StorageError):
    operation = "transfer"

    def __init__(self, source: str, destination: str, reason: str = "") -> None:
        self.source = source
        self.destination = destination
        self.reason = reason
        message = f"Unable to {self.operation} from {source} to {destination}."
        if reason:
            message = f"{message} {reason}"
        super().__init__(message)


class FileMoveError(_TransferError):
    operation = "move file"


class FileCopyError(_TransferError):
    operation = "copy file"


class FilesystemAdapter:
    """Abstract interface for path-based storage adapters."""

    def file_exists(self, path: str) -> bool:
        raise NotImplementedError

    def directory_exists(self, path: str) -> bool:
        raise NotImplementedError

    def write(self, path: str, contents: bytes, options: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError

    def write_stream(self, path: str, stream: BinaryIO, options: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError

    def read(self, path: str) -> bytes:
        raise NotImplementedError

    def read_stream(self, path: str) -> BinaryIO:
        raise NotImplementedError

    def delete(self, path: str) -> None:
        raise NotImplementedError

    def delete_directory(self, path: str) -> None:
        raise NotImplementedError

    def create_directory(self, path: str, options: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError

    def set_visibility(self, path: str, visibility: str) -> None:
        raise VisibilityUnsupportedError(path, "Driver doesn't support visibility")

    def visibility(self, path: str) -> FileAttributes:
        raise VisibilityUnsupportedError(path, "Driver doesn't support visibility")

    def mime_type(self, path: str) -> FileAttributes:
        raise NotImplementedError

    def last_modified(self, path: str) -> FileAttributes:
        raise NotImplementedError

    def file_size(self, path: str) -> FileAttributes:
        raise NotImplementedError

    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        raise NotImplementedError

    def move(self, source: str, destination: str, options: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError

    def copy(self, source: str, destination: str, options: Optional[Mapping[str, Any]] = None) -> None:
        raise NotImplementedError

    def get_url(self, path: str) -> str:
        raise NotImplementedError

    def get_temporary_url(
        self, path: str, expiration: datetime, options: Optional[Mapping[str, Any]] = None
    ) -> str:
        raise NotImplementedError

    def close(self) -> None:  # pragma: no cover - nothing to release by default
        return None

    def __enter__(self) -> "FilesystemAdapter":
        return self

    def __exit__(self, *exc_info: Any) -> None:
        self.close()
