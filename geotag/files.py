from __future__ import annotations

import os
import shutil
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from .errors import MetadataReadError

SUPPORTED_EXTENSIONS: tuple[str, ...] = (
    ".jpg",
    ".jpeg",
    ".tiff",
    ".tif",
    ".png",
    ".webp",
    ".avif",
    ".heif",
    ".heic",
    ".dng",
    ".cr2",
    ".cr3",
    ".nef",
    ".arw",
    ".orf",
    ".rw2",
    ".raf",
    ".pef",
    ".srw",
)

_UNIX_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


@dataclass(frozen=True, slots=True)
class FileStats:
    size: int
    created: datetime
    modified: datetime
    accessed: datetime
    is_file: bool
    is_dir: bool


def is_supported_image_file(path: str | os.PathLike[str]) -> bool:
    return Path(path).suffix.lower() in SUPPORTED_EXTENSIONS


def get_file_stats(path: str | os.PathLike[str]) -> FileStats:
    try:
        stats = os.stat(path)
    except OSError as exc:
        raise MetadataReadError(f"Failed to get file stats for {path}: {exc}") from exc
    # st_birthtime only exists on some platforms; ctime is the closest elsewhere.
    created = getattr(stats, "st_birthtime", stats.st_ctime)
    return FileStats(
        size=stats.st_size,
        created=datetime.fromtimestamp(created),
        modified=datetime.fromtimestamp(stats.st_mtime),
        accessed=datetime.fromtimestamp(stats.st_atime),
        is_file=Path(path).is_file(),
        is_dir=Path(path).is_dir(),
    )


def modification_time(path: str | os.PathLike[str]) -> datetime:
    return get_file_stats(path).modified


def create_backup(path: str | os.PathLike[str]) -> Path:
    """Copy ``path`` to ``<stem>_backup_<timestamp><suffix>`` next to it."""
    source = Path(path)
    stamp = datetime.now(timezone.utc).strftime("%Y-%m-%dT%H-%M-%S-%fZ")
    backup = source.with_name(f"{source.stem}_backup_{stamp}{source.suffix}")
    try:
        shutil.copy2(source, backup)
    except OSError as exc:
        raise MetadataReadError(f"Failed to create backup for {source}: {exc}") from exc
    return backup


def is_valid_timestamp(value: Any) -> bool:
    try:
        if isinstance(value, datetime):
            moment = value if value.tzinfo else value.astimezone()
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            moment = datetime.fromtimestamp(value, tz=timezone.utc)
        else:
            return False
    except (OverflowError, OSError, ValueError):
        return False
    return moment > _UNIX_EPOCH


__all__ = [
    "FileStats",
    "SUPPORTED_EXTENSIONS",
    "create_backup",
    "get_file_stats",
    "is_supported_image_file",
    "is_valid_timestamp",
    "modification_time",
]
