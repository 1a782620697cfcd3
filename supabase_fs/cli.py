"""Command-line access to the configured storage backend."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path
from typing import List, Optional

import httpx

from .adapters.storage import FilesystemAdapter, StorageError
from .dependencies import get_storage

logger = logging.getLogger("supabase_fs.cli")


def _configure_logging(debug: bool) -> None:
    # Basic logging config (stderr) if not already configured by the host.
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=logging.DEBUG if debug else logging.INFO,
            format="%(asctime)s %(levelname)s %(name)s %(message)s",
        )
    elif debug:
        logging.getLogger().setLevel(logging.DEBUG)


def _cmd_ls(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    for item in storage.list_contents(args.path, deep=args.deep):
        if item.is_dir():
            print(f"{item.path}/")
        else:
            size = "-" if item.file_size is None else item.file_size
            print(f"{item.path}\t{size}\t{item.mime_type or '-'}")
    return 0


def _cmd_cat(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    sys.stdout.buffer.write(storage.read(args.path))
    sys.stdout.buffer.flush()
    return 0


def _cmd_put(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    source = args.source.resolve()
    if not source.exists():
        print(f"[ERROR] Local file not found: {source}", file=sys.stderr)
        return 1
    with source.open("rb") as handle:
        storage.write_stream(args.destination, handle)
    print(f"[OK] Uploaded {source} -> {args.destination}")
    return 0


def _cmd_rm(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    storage.delete(args.path)
    print(f"[OK] Deleted {args.path}")
    return 0


def _cmd_rmdir(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    storage.delete_directory(args.path)
    print(f"[OK] Deleted directory {args.path}")
    return 0


def _cmd_mkdir(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    storage.create_directory(args.path)
    print(f"[OK] Created directory {args.path}")
    return 0


def _cmd_mv(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    storage.move(args.source, args.destination)
    print(f"[OK] Moved {args.source} -> {args.destination}")
    return 0


def _cmd_cp(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    storage.copy(args.source, args.destination)
    print(f"[OK] Copied {args.source} -> {args.destination}")
    return 0


def _cmd_url(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    options = {"download": True} if args.download else {}
    if args.signed:
        expires = args.expires
        if expires is None:
            from .core import config

            expires = config.SUPABASE_SIGNED_URL_EXPIRES
        expiration = datetime.now() + timedelta(seconds=expires)
        print(storage.get_temporary_url(args.path, expiration, options))
    elif options:
        public_url = getattr(storage, "get_public_url", None)
        if public_url is None:
            raise NotImplementedError(f"{type(storage).__name__} cannot generate public URLs")
        print(public_url(args.path, options))
    else:
        print(storage.get_url(args.path))
    return 0


def _cmd_stat(storage: FilesystemAdapter, args: argparse.Namespace) -> int:
    details = {
        "path": args.path,
        "size": storage.file_size(args.path).file_size,
        "mime_type": storage.mime_type(args.path).mime_type,
        "last_modified": storage.last_modified(args.path).last_modified,
    }
    print(json.dumps(details, indent=2))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="supabase-fs",
        description="Browse and manage files in the configured storage backend",
    )
    parser.add_argument('--debug', action='store_true', help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    ls = subparsers.add_parser("ls", help="List entries under a path")
    ls.add_argument("path", nargs="?", default="")
    ls.add_argument("--deep", action="store_true", help="Recurse into sub-directories")
    ls.set_defaults(handler=_cmd_ls)

    cat = subparsers.add_parser("cat", help="Write a file's bytes to stdout")
    cat.add_argument("path")
    cat.set_defaults(handler=_cmd_cat)

    put = subparsers.add_parser("put", help="Upload a local file")
    put.add_argument("source", type=Path)
    put.add_argument("destination")
    put.set_defaults(handler=_cmd_put)

    for name, handler, help_text in (
        ("rm", _cmd_rm, "Delete a file"),
        ("rmdir", _cmd_rmdir, "Delete a directory and everything under it"),
        ("mkdir", _cmd_mkdir, "Create a directory"),
        ("stat", _cmd_stat, "Show size, MIME type and modification time"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("path")
        command.set_defaults(handler=handler)

    for name, handler, help_text in (
        ("mv", _cmd_mv, "Move a file"),
        ("cp", _cmd_cp, "Copy a file"),
    ):
        command = subparsers.add_parser(name, help=help_text)
        command.add_argument("source")
        command.add_argument("destination")
        command.set_defaults(handler=handler)

    url = subparsers.add_parser("url", help="Print a URL for a file")
    url.add_argument("path")
    url.add_argument('--signed', action='store_true', help="Generate a time-limited signed URL")
    url.add_argument(
        '--expires',
        type=int,
        default=None,
        help="Signed URL lifetime in seconds (default: SUPABASE_SIGNED_URL_EXPIRES)",
    )
    url.add_argument('--download', action='store_true', help="Ask the browser to download the file")
    url.set_defaults(handler=_cmd_url)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    """Command-line interface."""

    args = build_parser().parse_args(argv)
    _configure_logging(args.debug)

    try:
        storage = get_storage()
        return args.handler(storage, args)
    except (StorageError, NotImplementedError, httpx.HTTPError) as exc:
        logger.debug("Command %s failed", args.command, exc_info=True)
        print(f"[ERROR] {str(exc) or type(exc).__name__}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
