"""Supabase storage adapter implementation."""

from __future__ import annotations

import codecs
import io
import json
import logging
import mimetypes
import re
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, BinaryIO, Dict, Iterator, Mapping, Optional, Union
from urllib.parse import quote, unquote, urlencode

import filetype
import httpx

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
    FileWriteError,
    ListContentsError,
    StorageAttributes,
    TemporaryUrlError,
)
from .paths import EMPTY_FOLDER_PLACEHOLDER_NAME, basename_of, join_paths, parent_of, placeholder_for

logger = logging.getLogger(__name__)

ITEMS_PER_PAGE = 100
MIME_SAMPLE_SIZE = 8192
UPLOAD_CHUNK_SIZE = 64 * 1024
DEFAULT_CACHE_CONTROL = "3600"
DEFAULT_SIGNED_URL_EXPIRES = 3600
DEFAULT_TIMEOUT = 30.0

# Metadata keys surfaced as first-class attributes rather than extra metadata
_RESERVED_METADATA_KEYS = frozenset({"mimetype", "size", "contentLength", "lastModified"})
_PUBLIC_VALUES = {"1", "true", "yes", "on", "public"}
_FRACTION = re.compile(r"\.(\d+)")


class UrlGeneration(str, Enum):
    """Strategy used by :meth:`SupabaseAdapter.get_url`."""

    PUBLIC = "public"
    SIGNED = "signed"


def _coerce_public(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in _PUBLIC_VALUES
    return bool(value)


@dataclass(frozen=True)
class SupabaseConfig:
    """Immutable adapter settings, validated on construction."""

    endpoint: str
    bucket: str
    key: str
    public: bool = True
    url: Optional[str] = None
    default_url_generation: Optional[Union[UrlGeneration, str]] = None
    default_url_generation_options: Mapping[str, Any] = field(default_factory=dict)
    signed_url_expires: int = DEFAULT_SIGNED_URL_EXPIRES
    timeout: float = DEFAULT_TIMEOUT
    strict_listing: bool = False

    def __post_init__(self) -> None:
        if not self.endpoint:
            raise ConfigurationError("Supabase endpoint is not specified")
        if not self.bucket:
            raise ConfigurationError("Supabase bucket is not specified")
        if not self.key:
            raise ConfigurationError("Supabase key is not specified")

        object.__setattr__(self, "endpoint", self.endpoint.rstrip("/"))

        strategy = self.default_url_generation
        if strategy is None:
            strategy = UrlGeneration.PUBLIC if self.public else UrlGeneration.SIGNED
        elif not isinstance(strategy, UrlGeneration):
            try:
                strategy = UrlGeneration(str(strategy).strip().lower())
            except ValueError:
                raise ConfigurationError(
                    f'Invalid value for "defaultUrlGeneration": {self.default_url_generation}'
                ) from None
        object.__setattr__(self, "default_url_generation", strategy)

    @property
    def api_base(self) -> str:
        return f"{self.endpoint}/storage/v1"

    @property
    def url_base(self) -> str:
        """Base used for generated public and signed URLs."""

        return self.url or self.api_base

    @classmethod
    def from_mapping(cls, settings: Mapping[str, Any]) -> "SupabaseConfig":
        """Build a config from a disk-style mapping (``endpoint``, ``bucket``, ``key``, ...)."""

        expires = settings.get("signedUrlExpires")
        timeout = settings.get("timeout")
        return cls(
            endpoint=settings.get("endpoint") or "",
            bucket=settings.get("bucket") or "",
            key=settings.get("key") or "",
            public=_coerce_public(settings.get("public", True)),
            url=settings.get("url") or None,
            default_url_generation=settings.get("defaultUrlGeneration") or None,
            default_url_generation_options=dict(settings.get("defaultUrlGenerationOptions") or {}),
            signed_url_expires=int(expires) if expires is not None else DEFAULT_SIGNED_URL_EXPIRES,
            timeout=float(timeout) if timeout is not None else DEFAULT_TIMEOUT,
            strict_listing=bool(settings.get("strictListing", False)),
        )


def sniff_mime_type(sample: bytes, path: str = "") -> str:
    """Guess a content type from leading bytes, falling back to the file name."""

    if sample:
        kind = filetype.guess(sample)
        if kind is not None:
            return kind.mime
    guessed, _ = mimetypes.guess_type(path)
    if guessed:
        return guessed
    if not sample or b"\x00" in sample:
        return "application/octet-stream"
    try:
        # Incremental decoding tolerates a multi-byte character cut off by the sample boundary
        codecs.getincrementaldecoder("utf-8")().decode(sample, final=False)
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain"


def _parse_timestamp(value: Any) -> Optional[int]:
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    # fromisoformat before 3.11 only takes 3 or 6 fractional digits
    text = _FRACTION.sub(lambda match: "." + match.group(1)[:6].ljust(6, "0"), text, count=1)
    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return int(parsed.timestamp())


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return None


def _encode_json(value: Any) -> str:
    return json.dumps(value, separators=(",", ":"))


def _iter_chunks(stream: BinaryIO) -> Iterator[bytes]:
    while True:
        chunk = stream.read(UPLOAD_CHUNK_SIZE)
        if not chunk:
            break
        yield chunk


class SupabaseAdapter(FilesystemAdapter):
    """Map path-based file operations onto the Supabase Storage REST API.

    Supabase stores objects under flat keys. Directories are synthesised from
    shared prefixes, and an empty directory is kept alive by a zero-byte
    ``.emptyFolderPlaceholder`` object that is removed again as soon as a real
    file is written next to it.
    """

    def __init__(
        self,
        config: Union[SupabaseConfig, Mapping[str, Any]],
        *,
        client: Optional[httpx.Client] = None,
    ) -> None:
        if not isinstance(config, SupabaseConfig):
            config = SupabaseConfig.from_mapping(config)
        self._config = config

        headers = {
            "Authorization": f"Bearer {config.key}",
            "apiKey": config.key,
        }
        if client is None:
            self._client = httpx.Client(base_url=config.api_base, headers=headers, timeout=config.timeout)
            self._owns_client = True
        else:
            if not str(client.base_url):
                client.base_url = config.api_base
            client.headers.update(headers)
            self._client = client
            self._owns_client = False

    @property
    def config(self) -> SupabaseConfig:
        return self._config

    @property
    def bucket(self) -> str:
        return self._config.bucket

    def close(self) -> None:
        if self._owns_client:
            self._client.close()

    # ------------------------------------------------------------------
    # Existence checks
    # ------------------------------------------------------------------
    def file_exists(self, path: str) -> bool:
        return self._request("HEAD", self._object_url(path)).is_success

    def directory_exists(self, path: str) -> bool:
        response = self._request("POST", self._list_url(), json={"prefix": path, "limit": 1})
        if not response.is_success:
            return False
        items = _json(response)
        return isinstance(items, list) and len(items) >= 1

    # ------------------------------------------------------------------
    # Write path
    # ------------------------------------------------------------------
    def write(self, path: str, contents: bytes, options: Optional[Mapping[str, Any]] = None) -> None:
        options = options or {}
        if isinstance(contents, str):
            contents = contents.encode("utf-8")
        mime_type = options.get("content_type") or sniff_mime_type(contents[:MIME_SAMPLE_SIZE], path)
        response = self._upload(path, contents, mime_type, options)
        self._finish_write(path, response)

    def write_stream(self, path: str, stream: BinaryIO, options: Optional[Mapping[str, Any]] = None) -> None:
        if not callable(getattr(stream, "read", None)) or not callable(getattr(stream, "seek", None)):
            raise FileWriteError(path, "Invalid stream provided")
        options = options or {}

        with tempfile.TemporaryFile() as scratch:
            head = stream.read(MIME_SAMPLE_SIZE)
            if isinstance(head, str):
                raise FileWriteError(path, "Stream must be opened in binary mode")
            scratch.write(head or b"")
            scratch.seek(0)
            mime_type = options.get("content_type") or sniff_mime_type(scratch.read(MIME_SAMPLE_SIZE), path)

            try:
                stream.seek(0)
            except (OSError, io.UnsupportedOperation) as exc:
                raise FileWriteError(path, "Stream is not seekable") from exc

            response = self._upload(path, _iter_chunks(stream), mime_type, options)

        self._finish_write(path, response)

    # ------------------------------------------------------------------
    # Read path
    # ------------------------------------------------------------------
    def read(self, path: str) -> bytes:
        response = self._request("GET", self._object_url(path))
        if not response.is_success:
            raise FileReadError(path, response.text)
        return response.content

    def read_stream(self, path: str) -> BinaryIO:
        return io.BytesIO(self.read(path))

    # ------------------------------------------------------------------
    # Delete path
    # ------------------------------------------------------------------
    def delete(self, path: str) -> None:
        if not self.file_exists(path):
            return

        response = self._request("DELETE", f"/object/{self.bucket}", json={"prefixes": [path]})
        if not response.is_success:
            raise FileDeleteError(path, response.text)

    def delete_directory(self, path: str) -> None:
        if not self.directory_exists(path):
            return

        prefixes = [item.path for item in self.list_contents(path, deep=True)]
        if not prefixes:
            return

        logger.debug("Deleting %s object(s) under '%s'", len(prefixes), path)
        response = self._request("DELETE", f"/object/{self.bucket}", json={"prefixes": prefixes})
        if not response.is_success:
            raise DirectoryDeleteError(path, response.text)

    def create_directory(self, path: str, options: Optional[Mapping[str, Any]] = None) -> None:
        if self.directory_exists(path):
            return

        try:
            self.write(placeholder_for(path), b"", options)
        except FileWriteError as exc:
            raise DirectoryCreateError(path, str(exc)) from exc

    # ------------------------------------------------------------------
    # Metadata
    # ------------------------------------------------------------------
    def mime_type(self, path: str) -> FileAttributes:
        metadata = self._fetch_file_metadata(path).get("metadata") or {}
        mime_type = metadata.get("mimetype")
        # Strip charset for consistency
        if isinstance(mime_type, str) and ";" in mime_type:
            mime_type = mime_type.split(";", 1)[0].strip()
        return FileAttributes(path=path, mime_type=mime_type)

    def last_modified(self, path: str) -> FileAttributes:
        metadata = self._fetch_file_metadata(path).get("metadata") or {}
        return FileAttributes(path=path, last_modified=_parse_timestamp(metadata.get("lastModified")))

    def file_size(self, path: str) -> FileAttributes:
        metadata = self._fetch_file_metadata(path).get("metadata") or {}
        return FileAttributes(path=path, file_size=metadata.get("size"))

    def list_contents(self, path: str, deep: bool = False) -> Iterator[StorageAttributes]:
        offset = 0
        while True:
            response = self._request(
                "POST",
                self._list_url(),
                json={
                    "prefix": path,
                    "limit": ITEMS_PER_PAGE,
                    "offset": offset,
                    "sortBy": {"column": "name", "order": "asc"},
                },
            )
            if not response.is_success:
                if self._config.strict_listing:
                    raise ListContentsError(path, response.text)
                logger.warning(
                    "Listing '%s' stopped at offset %s: %s %s",
                    path,
                    offset,
                    response.status_code,
                    response.text,
                )
                return

            items = _json(response)
            if not isinstance(items, list) or not items:
                return

            for item in items:
                item_path = join_paths(path, item.get("name") or "")
                metadata = item.get("metadata") or {}

                if item.get("id") is None:
                    yield DirectoryAttributes(path=item_path, extra_metadata=dict(metadata))
                    if deep:
                        yield from self.list_contents(item_path, deep=True)
                    continue

                yield FileAttributes(
                    path=item_path,
                    file_size=metadata.get("size"),
                    last_modified=_parse_timestamp(metadata.get("lastModified")),
                    mime_type=metadata.get("mimetype"),
                    extra_metadata={
                        key: value for key, value in metadata.items() if key not in _RESERVED_METADATA_KEYS
                    },
                )

            if len(items) < ITEMS_PER_PAGE:
                return
            offset += ITEMS_PER_PAGE

    # ------------------------------------------------------------------
    # Move & copy
    # ------------------------------------------------------------------
    def move(self, source: str, destination: str, options: Optional[Mapping[str, Any]] = None) -> None:
        response = self._request("POST", "/object/move", json=self._transfer_payload(source, destination))
        if not response.is_success:
            raise FileMoveError(source, destination, response.text)

    def copy(self, source: str, destination: str, options: Optional[Mapping[str, Any]] = None) -> None:
        response = self._request("POST", "/object/copy", json=self._transfer_payload(source, destination))
        body = _json(response)
        if not response.is_success or not isinstance(body, dict) or body.get("Key") is None:
            raise FileCopyError(source, destination, response.text)

    # ------------------------------------------------------------------
    # URL generation
    # ------------------------------------------------------------------
    def get_url(self, path: str) -> str:
        options = self._config.default_url_generation_options
        if self._config.default_url_generation is UrlGeneration.PUBLIC:
            return self.get_public_url(path, options)
        return self.get_signed_url(path, options)

    def get_public_url(self, path: str, options: Optional[Mapping[str, Any]] = None) -> str:
        if not self._config.public:
            raise ConfigurationError(
                f"Your filesystem for the {self.bucket} bucket is not configured to allow public URLs"
            )
        options = options or {}

        render_path = "object"
        query = []
        transform = options.get("transform")
        if transform is not None:
            render_path = "render/image"
            query.append(urlencode({"transform": _encode_json(transform)}, quote_via=quote))
        if options.get("download"):
            query.append("download")

        url = join_paths(self._config.url_base, render_path, "public", self.bucket, path)
        if query:
            url = f"{url}?{'&'.join(query)}"
        return unquote(url)

    def get_signed_url(self, path: str, options: Optional[Mapping[str, Any]] = None) -> str:
        options = dict(options or {})

        expires_in = options.pop("expiresIn", None)
        payload: Dict[str, Any] = {
            "expiresIn": int(expires_in if expires_in is not None else self._config.signed_url_expires)
        }

        transform: Dict[str, Any] = {"format": "origin"}
        custom_transform = options.pop("transform", None)
        if custom_transform:
            transform.update(custom_transform)
            payload["transform"] = dict(custom_transform)

        download = bool(options.pop("download", False))
        payload.update(options)

        response = self._request("POST", f"/object/sign/{self.bucket}/{path}", json=payload)
        body = _json(response)
        signed_path = body.get("signedURL") if isinstance(body, dict) else None
        if not response.is_success or signed_path is None:
            raise TemporaryUrlError(path, response.text)

        signed_url = join_paths(self._config.url_base, signed_path)
        separator = "&" if "?" in signed_url else "?"
        signed_url = f"{signed_url}{separator}transform={_encode_json(transform)}"
        if download:
            signed_url = f"{signed_url}&download"
        return unquote(signed_url)

    def get_temporary_url(
        self, path: str, expiration: datetime, options: Optional[Mapping[str, Any]] = None
    ) -> str:
        now = datetime.now(expiration.tzinfo) if expiration.tzinfo else datetime.now()
        expires_in = max(0, int((expiration - now).total_seconds()))
        return self.get_signed_url(path, {**(options or {}), "expiresIn": expires_in})

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------
    def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        logger.debug("%s %s", method, url)
        return self._client.request(method, url, **kwargs)

    def _object_url(self, path: str) -> str:
        return f"/object/{self.bucket}/{path}"

    def _list_url(self) -> str:
        return f"/object/list/{self.bucket}"

    def _transfer_payload(self, source: str, destination: str) -> Dict[str, str]:
        return {"bucketId": self.bucket, "sourceKey": source, "destinationKey": destination}

    def _upload(self, path: str, content: Any, mime_type: str, options: Mapping[str, Any]) -> httpx.Response:
        headers = {
            "x-upsert": "true",
            "Cache-Control": str(options.get("cache_control") or DEFAULT_CACHE_CONTROL),
            "Content-Type": mime_type,
        }
        return self._request("POST", self._object_url(path), content=content, headers=headers)

    def _finish_write(self, path: str, response: httpx.Response) -> None:
        body = _json(response)
        if not response.is_success or not isinstance(body, dict) or body.get("Id") is None:
            raise FileWriteError(path, response.text)

        if basename_of(path) == EMPTY_FOLDER_PLACEHOLDER_NAME:
            return
        placeholder = placeholder_for(parent_of(path))
        logger.debug("Removing placeholder '%s' after writing '%s'", placeholder, path)
        self.delete(placeholder)

    def _fetch_file_metadata(self, path: str) -> Dict[str, Any]:
        filename = basename_of(path)
        response = self._request(
            "POST",
            self._list_url(),
            json={"prefix": parent_of(path), "limit": ITEMS_PER_PAGE, "search": filename},
        )
        if not response.is_success:
            raise FileReadError(path, response.text)

        items = _json(response)
        if not isinstance(items, list) or not items:
            raise FileReadError(path, response.text)

        for item in items:
            if isinstance(item, dict) and item.get("name") == filename:
                return item
        raise FileReadError(path, "File not found")
