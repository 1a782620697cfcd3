"""Filesystem-backed storage adapter."""

from __future__ import annotations

import io
import mimetypes
import shutil
from pathlib import Path
from typing import Any, BinaryIO, Iterator, Mapping, Optional

from .base import (
    DirectoryAttributes,
    DirectoryCreateError,
    DirectoryDeleteError,
    FileAttributes,
    FileCopyError,
    FileDeleteError,
    FileMoveError,
    FileReadError,
    FilesystemAdapter,
    FileWriteError,
    PathTraversalError,
    StorageAttributes,
)


class LocalFilesystemAdapter(FilesystemAdapter):
    """Store files on the local filesystem under a base directory."""

    def __init__(self, base_dir: Path) -> None:
        self._base_dir = Path(base_dir).resolve()
        self._base_dir.mkdir(parents=True, exist_ok=True)

    @property
    def base_dir(self) -> Path:
        return self._base_dir

    def _resolve(self, key: str) -> Path:
        target = (self._base_dir / key.strip("/")).resolve()
        if target != self._base_dir and self._base_dir not in target.parents:
            raise PathTraversalError(f"Path '{key}' resolves outside of {self._base_dir}")
        return target

    def _relative(self, target: Path) -> str:
        return target.relative_to(self._base_dir).as_posix()

    def file_exists(self, path: str) -> bool:
        return self._resolve(path).is_file()

    def directory_exists(self, path: str) -> bool:
        return self._resolve(path).is_dir()

    def write(self, path: str, contents: bytes, options: Optional[Mapping[str, Any]] = None) -> None:
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(contents)
        except OSError as exc:
            raise FileWriteError(path, str(exc)) from exc

    def write_stream(self, path: str, stream: BinaryIO, options: Optional[Mapping[str, Any]] = None) -> None:
        if not callable(getattr(stream, "read", None)):
            raise FileWriteError(path, "Invalid stream provided")
        target = self._resolve(path)
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            with target.open("wb") as handle:
                shutil.copyfileobj(stream, handle)
        except OSError as exc:
            raise FileWriteError(path, str(exc)) from exc

    def read(self, path: str) -> bytes:
        source = self._resolve(path)
        if not source.is_file():
            raise FileReadError(path, "File not found")
        return source.read_bytes()

    def read_stream(self, path: str) -> BinaryIO:
        return io.BytesIO(self.read(path))

    def delete(self, path: str) -> None:
        target = self._resolve(path)
        if not target.is_file():
            return
        try:
            target.unlink()
        except OSError as exc:
            raise FileDeleteError(path, str(exc)) from exc

    def delete_directory(self, path: str) -> None:
        target = self._resolve(path)
        if not target.is_dir():
            return
        if target == self._base_dir:
            raise DirectoryDeleteError(path, "Refusing to delete the storage root")
        try:
            shutil.rmtree(target)
        except OSError as exc:
            raise DirectoryDeleteError(path, str(exc)) from exc

    def create_directory(self, path: str, options: Optional[Mapping[str, Any]] = None) -> None:
        try:
            self._resolve(path).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise DirectoryCreateError(path, str(exc)) from exc

    def _stat_file(self, path: str):
        source = self._resolve(path)
        if not source.is_file():
            raise FileReadError(path, "File not found")
        return source, source.stat()

    def mime_type(self, path: str) -> FileAttributes:
        source, _ = self._stat_file(path)
        mime_type, _ = mimetypes.guess_type(source.name)
        return FileAttributes(path=path, mime_type=mime_type or "application/octet-stream")

    def last_modified(self, path: str) -> FileAttributes:
        _, stat = self._stat_file(path)
        return FileAttributes(path=path, last_modified=int(stat.st_mtime))

    def file_size(self, path: str) -> FileAttributes:
        _, stat = self._stat_file(path)
        return FileAttributes(path=path, file_size=stat.st_size)

    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        base = self._resolve(path)
        if not base.is_dir():
            return
        for entry in sorted(base.iterdir(), key=lambda item: item.name):
            stat = entry.stat()
            if entry.is_dir():
                yield DirectoryAttributes(path=self._relative(entry), last_modified=int(stat.st_mtime))
                if deep:
                    yield from self.list_contents(self._relative(entry), deep=True)
                continue
            yield FileAttributes(
                path=self._relative(entry),
                file_size=stat.st_size,
                last_modified=int(stat.st_mtime),
                mime_type=mimetypes.guess_type(entry.name)[0],
            )

    def move(self, source: str, destination: str, options: Optional[Mapping[str, Any]] = None) -> None:
        origin = self._resolve(source)
        target = self._resolve(destination)
        if not origin.exists():
            raise FileMoveError(source, destination, "Source not found")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.move(str(origin), str(target))
        except OSError as exc:
            raise FileMoveError(source, destination, str(exc)) from exc

    def copy(self, source: str, destination: str, options: Optional[Mapping[str, Any]] = None) -> None:
        origin = self._resolve(source)
        target = self._resolve(destination)
        if not origin.is_file():
            raise FileCopyError(source, destination, "Source not found")
        try:
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(origin, target)
        except OSError as exc:
            raise FileCopyError(source, destination, str(exc)) from exc
