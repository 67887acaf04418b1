"""Write GPS coordinates back into an image.

Two strategies run in order: rewrite the EXIF block in-process with
``piexif``; if that is not possible, hand the file to ``exiftool``. The
coordinator only raises for invalid coordinates. Environmental failures of
both strategies are reported as ``False``.
"""

from __future__ import annotations

import contextlib
import io
import logging
import os
import shutil
import subprocess
import tempfile
import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

import piexif

from .config import Settings, load_settings
from .coordinates import is_valid_latitude, is_valid_longitude, to_dms
from .errors import InvalidCoordinatesError
from .extractor import detect_image_format

GPS_VERSION = (2, 3, 0, 0)
GPS_VERSION_ARG = ".".join(str(part) for part in GPS_VERSION)

# Containers piexif can splice an APP1/EXIF chunk into.
PIEXIF_FORMATS = frozenset({"JPEG", "WEBP"})

@dataclass(slots=True)
class _PathLock:
    lock: threading.Lock = field(default_factory=threading.Lock)
    users: int = 0


_LOCKS_GUARD = threading.Lock()
_PATH_LOCKS: dict[str, _PathLock] = {}


class GpsWriteStrategy(Protocol):
    name: str

    def write(self, source: Path, target: Path, latitude: float, longitude: float) -> bool:
        ...


@contextlib.contextmanager
def _locked_path(path: Path) -> Iterator[None]:
    """Serialize writers of one target; the entry is dropped when the last one leaves."""
    key = os.path.normcase(str(path.resolve()))
    with _LOCKS_GUARD:
        entry = _PATH_LOCKS.get(key)
        if entry is None:
            entry = _PATH_LOCKS[key] = _PathLock()
        entry.users += 1
    try:
        with entry.lock:
            yield
    finally:
        with _LOCKS_GUARD:
            entry.users -= 1
            if entry.users == 0:
                del _PATH_LOCKS[key]


def _write_atomically(target: Path, payload: bytes, mode_source: Path | None = None) -> None:
    fd, temp_name = tempfile.mkstemp(
        prefix=f".{target.name}.", suffix=".tmp", dir=str(target.parent)
    )
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(payload)
        if target.exists():
            shutil.copymode(target, temp_name)
        elif mode_source is not None:
            shutil.copymode(mode_source, temp_name)
        os.replace(temp_name, target)
    except BaseException:
        Path(temp_name).unlink(missing_ok=True)
        raise


class PiexifGpsWriter:
    name = "piexif"

    def write(self, source: Path, target: Path, latitude: float, longitude: float) -> bool:
        try:
            data = source.read_bytes()
            image_format = detect_image_format(data)
            if image_format not in PIEXIF_FORMATS:
                logging.debug(
                    "piexif cannot embed EXIF into %s (%s)", source, image_format or "unknown"
                )
                return False

            try:
                exif_dict = piexif.load(data)
            except Exception:
                logging.debug("No readable EXIF in %s; starting fresh", source, exc_info=True)
                exif_dict = {"0th": {}, "Exif": {}, "GPS": {}, "1st": {}, "thumbnail": None}

            lat_dms = to_dms(latitude, True)
            lon_dms = to_dms(longitude, False)
            gps_ifd = dict(exif_dict.get("GPS") or {})
            gps_ifd[piexif.GPSIFD.GPSVersionID] = GPS_VERSION
            gps_ifd[piexif.GPSIFD.GPSLatitudeRef] = lat_dms.ref
            gps_ifd[piexif.GPSIFD.GPSLatitude] = lat_dms.as_rationals()
            gps_ifd[piexif.GPSIFD.GPSLongitudeRef] = lon_dms.ref
            gps_ifd[piexif.GPSIFD.GPSLongitude] = lon_dms.as_rationals()
            exif_dict["GPS"] = gps_ifd

            exif_bytes = piexif.dump(exif_dict)
            output = io.BytesIO()
            piexif.insert(exif_bytes, data, output)
            _write_atomically(target, output.getvalue(), mode_source=source)
        except Exception as exc:
            logging.warning("piexif GPS writing failed for %s: %s", source, exc)
            return False
        return True


class ExiftoolGpsWriter:
    name = "exiftool"

    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or load_settings()
        self._available: bool | None = None

    def is_available(self) -> bool:
        if self._available is None:
            self._available = self._probe()
        return self._available

    def _probe(self) -> bool:
        try:
            subprocess.run(
                [self.settings.exiftool_path, "-ver"],
                capture_output=True,
                text=True,
                check=True,
                timeout=self.settings.exiftool_probe_timeout,
            )
        except (OSError, subprocess.SubprocessError) as exc:
            logging.warning("exiftool not available (%s): %s", self.settings.exiftool_path, exc)
            return False
        return True

    def command(self, target: Path, latitude: float, longitude: float) -> list[str]:
        lat_ref = "N" if latitude >= 0 else "S"
        lon_ref = "E" if longitude >= 0 else "W"
        return [
            self.settings.exiftool_path,
            "-overwrite_original",
            f"-GPSLatitude={abs(latitude)}",
            f"-GPSLatitudeRef={lat_ref}",
            f"-GPSLongitude={abs(longitude)}",
            f"-GPSLongitudeRef={lon_ref}",
            f"-GPSVersionID={GPS_VERSION_ARG}",
            str(target.resolve()),
        ]

    def write(self, source: Path, target: Path, latitude: float, longitude: float) -> bool:
        if not self.is_available():
            return False
        try:
            if source.resolve() != target.resolve():
                shutil.copyfile(source, target)
            subprocess.run(
                self.command(target, latitude, longitude),
                capture_output=True,
                text=True,
                check=True,
                timeout=self.settings.exiftool_timeout,
            )
        except subprocess.TimeoutExpired:
            logging.warning(
                "exiftool GPS writing timed out after %ss for %s",
                self.settings.exiftool_timeout,
                target,
            )
            return False
        except subprocess.CalledProcessError as exc:
            logging.warning(
                "exiftool GPS writing failed for %s: %s",
                target,
                (exc.stderr or "").strip() or exc,
            )
            return False
        except OSError as exc:
            logging.warning("exiftool GPS writing failed for %s: %s", target, exc)
            return False
        return True


def default_strategies(settings: Settings | None = None) -> list[GpsWriteStrategy]:
    return [PiexifGpsWriter(), ExiftoolGpsWriter(settings)]


def write_gps_to_exif(
    file_path: str | os.PathLike[str],
    latitude: float,
    longitude: float,
    output_path: str | os.PathLike[str] | None = None,
    *,
    strategies: Sequence[GpsWriteStrategy] | None = None,
) -> bool:
    """Write ``latitude``/``longitude`` into ``output_path`` (default: in place).

    Raises ``InvalidCoordinatesError`` before touching any file when the
    coordinates are out of range.
    """
    if not is_valid_latitude(latitude) or not is_valid_longitude(longitude):
        raise InvalidCoordinatesError(
            f"Invalid GPS coordinates provided: {latitude!r}, {longitude!r}"
        )

    source = Path(file_path)
    target = Path(output_path) if output_path is not None else source
    if strategies is None:
        strategies = default_strategies()

    with _locked_path(target):
        for strategy in strategies:
            if strategy.write(source, target, latitude, longitude):
                logging.info(
                    "GPS coordinates written via %s to %s: %s, %s",
                    strategy.name,
                    target,
                    latitude,
                    longitude,
                    extra={"strategy": strategy.name},
                )
                return True

    logging.warning(
        "Failed to write GPS coordinates to %s - all strategies failed (%s)",
        target,
        ", ".join(strategy.name for strategy in strategies),
    )
    return False


__all__ = [
    "ExiftoolGpsWriter",
    "GPS_VERSION",
    "GpsWriteStrategy",
    "PiexifGpsWriter",
    "default_strategies",
    "write_gps_to_exif",
]
