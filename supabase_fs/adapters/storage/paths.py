"""Slash-delimited key helpers shared by the storage adapters."""

from __future__ import annotations

import posixpath

EMPTY_FOLDER_PLACEHOLDER_NAME = ".emptyFolderPlaceholder"


def join_paths(*paths: str) -> str:
    """Join key segments, trimming slashes from each and dropping empty ones."""

    segments = (segment.strip("/") for segment in paths)
    return "/".join(segment for segment in segments if segment)


def parent_of(path: str) -> str:
    """Return the parent prefix of ``path`` or ``""`` for top-level keys."""

    parent = posixpath.dirname(path.rstrip("/"))
    return "" if parent in (".", "/") else parent


def basename_of(path: str) -> str:
    return posixpath.basename(path.rstrip("/"))


def placeholder_for(directory: str) -> str:
    return join_paths(directory, EMPTY_FOLDER_PLACEHOLDER_NAME)
