from __future__ import annotations

import io
import logging
import os
import re
from dataclasses import dataclass, replace
from datetime import datetime
from pathlib import Path
from typing import Any

from PIL import Image

from .coordinates import (
    is_valid_coordinate_pair,
    signed_altitude,
    to_decimal,
)
from .errors import MetadataReadError
from .files import modification_time
from .ifd import DateTimeRecord, ExifScan, GpsRecord, scan_bytes

_HEIF_REGISTERED = False
_HEIF_IMPORT_FAILED = False

_EXIF_DATETIME_PATTERN = re.compile(
    r"^(\d{4}):(\d{2}):(\d{2})\s+(\d{2}):(\d{2}):(\d{2})$"
)

# Checked in priority order; the first parseable value wins.
TIMESTAMP_SOURCES: tuple[tuple[str, str], ...] = (
    ("date_time_original", "DateTimeOriginal"),
    ("date_time_digitized", "DateTimeDigitized"),
    ("date_time", "DateTime"),
)

_ALPHA_MODES = {"RGBA", "RGBa", "LA", "La", "PA"}


@dataclass(frozen=True, slots=True)
class GeoCoordinate:
    latitude: float
    longitude: float
    altitude: float | None = None
    bearing: float | None = None
    accuracy: float | None = None
    timestamp: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "latitude": self.latitude,
            "longitude": self.longitude,
            "altitude": self.altitude,
            "bearing": self.bearing,
            "accuracy": self.accuracy,
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class ExifTimestamp:
    date_time: datetime
    source: str

    def isoformat(self) -> str:
        return self.date_time.isoformat()


@dataclass(frozen=True, slots=True)
class MetadataResult:
    file_path: str
    file_name: str
    file_size: int
    format: str | None = None
    width: int | None = None
    height: int | None = None
    density: tuple[float, float] | None = None
    has_profile: bool = False
    has_alpha: bool = False
    orientation: int | None = None
    exif: bytes | None = None
    icc: bytes | None = None
    iptc: bytes | None = None
    xmp: bytes | None = None
    parsed_exif: ExifScan | None = None
    gps: GeoCoordinate | None = None
    timestamp: ExifTimestamp | None = None
    exif_parse_error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "file_path": self.file_path,
            "file_name": self.file_name,
            "file_size": self.file_size,
            "format": self.format,
            "width": self.width,
            "height": self.height,
            "density": list(self.density) if self.density else None,
            "has_profile": self.has_profile,
            "has_alpha": self.has_alpha,
            "orientation": self.orientation,
            "exif_bytes": len(self.exif) if self.exif else 0,
            "gps": self.gps.to_dict() if self.gps else None,
            "timestamp": None,
        }
        if self.timestamp is not None:
            payload["timestamp"] = {
                "date_time": self.timestamp.isoformat(),
                "source": self.timestamp.source,
            }
        if self.parsed_exif is not None and self.parsed_exif.issues:
            payload["exif_issues"] = [issue.describe() for issue in self.parsed_exif.issues]
        if self.exif_parse_error:
            payload["exif_parse_error"] = self.exif_parse_error
        return payload


@dataclass(frozen=True, slots=True)
class _Container:
    format: str | None
    width: int
    height: int
    density: tuple[float, float] | None
    has_alpha: bool
    orientation: int | None
    exif: bytes | None
    icc: bytes | None
    iptc: bytes | None
    xmp: bytes | None


def extract_exif_metadata(file_path: str | os.PathLike[str]) -> MetadataResult:
    """Read container metadata and the GPS/timestamp subset of EXIF from an image.

    Raises ``MetadataReadError`` only when the file cannot be read or the image
    library cannot decode the container. A corrupt EXIF block degrades to a
    result without ``gps``/``timestamp``.
    """
    path = Path(file_path)
    try:
        data = path.read_bytes()
        container = _read_container(data)
    except Exception as exc:
        raise MetadataReadError(
            f"Failed to extract EXIF metadata from {path}: {exc}"
        ) from exc

    parsed_exif: ExifScan | None = None
    gps: GeoCoordinate | None = None
    timestamp: ExifTimestamp | None = None
    parse_error: str | None = None

    if container.exif:
        try:
            parsed_exif = scan_bytes(container.exif)
            gps = build_geo_coordinate(parsed_exif.gps)
            timestamp = select_timestamp(parsed_exif.datetime)
        except Exception as exc:
            logging.warning("Failed to parse EXIF data for %s: %s", path, exc)
            parse_error = str(exc)
            parsed_exif, gps, timestamp = None, None, None
        else:
            if parsed_exif.issues:
                logging.debug(
                    "EXIF block of %s has %d undecodable entries: %s",
                    path,
                    len(parsed_exif.issues),
                    "; ".join(issue.describe() for issue in parsed_exif.issues),
                )
            if gps is not None and timestamp is not None:
                gps = replace(gps, timestamp=timestamp.isoformat())

    return MetadataResult(
        file_path=str(path.resolve()),
        file_name=path.name,
        file_size=len(data),
        format=container.format,
        width=container.width,
        height=container.height,
        density=container.density,
        has_profile=container.icc is not None,
        has_alpha=container.has_alpha,
        orientation=container.orientation,
        exif=container.exif,
        icc=container.icc,
        iptc=container.iptc,
        xmp=container.xmp,
        parsed_exif=parsed_exif,
        gps=gps,
        timestamp=timestamp,
        exif_parse_error=parse_error,
    )


def build_geo_coordinate(gps: GpsRecord) -> GeoCoordinate | None:
    if (
        gps.latitude is None
        or gps.longitude is None
        or not gps.latitude_ref
        or not gps.longitude_ref
    ):
        return None
    latitude = to_decimal(gps.latitude, gps.latitude_ref)
    longitude = to_decimal(gps.longitude, gps.longitude_ref)
    if latitude is None or longitude is None:
        return None
    if not is_valid_coordinate_pair(latitude, longitude):
        logging.debug("Discarding out-of-range GPS position %s, %s", latitude, longitude)
        return None
    return GeoCoordinate(
        latitude=latitude,
        longitude=longitude,
        altitude=signed_altitude(gps.altitude, gps.altitude_ref),
        bearing=gps.bearing,
        accuracy=gps.accuracy,
    )


def select_timestamp(record: DateTimeRecord) -> ExifTimestamp | None:
    for field_name, source in TIMESTAMP_SOURCES:
        parsed = parse_exif_datetime(getattr(record, field_name))
        if parsed is not None:
            return ExifTimestamp(date_time=parsed, source=source)
    return None


def parse_exif_datetime(value: Any) -> datetime | None:
    """Parse the literal ``YYYY:MM:DD HH:MM:SS`` EXIF pattern into a naive datetime."""
    if not isinstance(value, str):
        return None
    match = _EXIF_DATETIME_PATTERN.match(value.strip())
    if match is None:
        return None
    try:
        return datetime(*(int(part) for part in match.groups()))
    except ValueError:
        return None


def extract_gps_from_image(file_path: str | os.PathLike[str]) -> GeoCoordinate | None:
    try:
        metadata = extract_exif_metadata(file_path)
    except MetadataReadError as exc:
        logging.warning("Failed to extract GPS from %s: %s", file_path, exc)
        return None
    return metadata.gps


def has_gps_coordinates(file_path: str | os.PathLike[str]) -> bool:
    gps = extract_gps_from_image(file_path)
    return gps is not None and is_valid_coordinate_pair(gps.latitude, gps.longitude)


def get_image_timestamp(file_path: str | os.PathLike[str]) -> datetime | None:
    """EXIF capture time if any, otherwise the file modification time."""
    try:
        metadata = extract_exif_metadata(file_path)
    except MetadataReadError as exc:
        logging.warning("Failed to read EXIF timestamp for %s: %s", file_path, exc)
    else:
        if metadata.timestamp is not None:
            return metadata.timestamp.date_time
    try:
        return modification_time(file_path)
    except MetadataReadError as exc:
        logging.warning("Failed to get timestamp for %s: %s", file_path, exc)
        return None


def detect_image_format(data: bytes) -> str | None:
    if len(data) >= 3 and data[:3] == b"\xff\xd8\xff":
        return "JPEG"
    if len(data) >= 4 and data[:4] in {b"II*\x00", b"MM\x00*"}:
        return "TIFF"
    if len(data) >= 12 and data[:4] == b"RIFF" and data[8:12] == b"WEBP":
        return "WEBP"
    if len(data) >= 8 and data[:8] == b"\x89PNG\r\n\x1a\n":
        return "PNG"
    if len(data) >= 12 and data[4:8] == b"ftyp":
        brand = data[8:12]
        if brand in {b"heic", b"heix", b"hevc", b"hevx", b"mif1", b"msf1"}:
            return "HEIC"
        if brand in {b"avif", b"avis"}:
            return "AVIF"
        if brand == b"crx ":
            return "CR3"
    return None


def _ensure_heif_registered() -> None:
    global _HEIF_REGISTERED, _HEIF_IMPORT_FAILED
    if _HEIF_REGISTERED or _HEIF_IMPORT_FAILED:
        return
    try:
        from pillow_heif import register_heif_opener  # type: ignore

        register_heif_opener()
        _HEIF_REGISTERED = True
    except Exception:
        logging.debug("Unable to register pillow_heif", exc_info=True)
        _HEIF_IMPORT_FAILED = True


def _read_container(data: bytes) -> _Container:
    format_hint = detect_image_format(data)
    if format_hint == "HEIC":
        _ensure_heif_registered()

    with Image.open(io.BytesIO(data)) as image:
        info = getattr(image, "info", {}) or {}
        exif = _as_bytes(info.get("exif"))
        if not exif and format_hint == "TIFF":
            # TIFF-based containers carry their tags in the file's own IFDs.
            exif = data
        return _Container(
            format=image.format or format_hint,
            width=image.width,
            height=image.height,
            density=_density(info.get("dpi")),
            has_alpha=image.mode in _ALPHA_MODES or "transparency" in info,
            orientation=_orientation(image),
            exif=exif,
            icc=_as_bytes(info.get("icc_profile")),
            iptc=_iptc_block(image),
            xmp=_as_bytes(info.get("xmp") or info.get("XML:com.adobe.xmp")),
        )


def _as_bytes(value: Any) -> bytes | None:
    if not value:
        return None
    if isinstance(value, str):
        return value.encode("utf-8")
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    return None


def _density(value: Any) -> tuple[float, float] | None:
    if not value:
        return None
    try:
        x_dpi, y_dpi = value
        return (float(x_dpi), float(y_dpi))
    except (TypeError, ValueError):
        return None


def _orientation(image: Image.Image) -> int | None:
    try:
        value = image.getexif().get(0x0112)
    except Exception:
        logging.debug("Unable to read orientation", exc_info=True)
        return None
    return int(value) if isinstance(value, int) else None


def _iptc_block(image: Image.Image) -> bytes | None:
    for marker, payload in getattr(image, "applist", None) or []:
        if marker == "APP13" and payload.startswith(b"Photoshop 3.0"):
            return payload
    return None


__all__ = [
    "ExifTimestamp",
    "GeoCoordinate",
    "MetadataResult",
    "TIMESTAMP_SOURCES",
    "build_geo_coordinate",
    "detect_image_format",
    "extract_exif_metadata",
    "extract_gps_from_image",
    "get_image_timestamp",
    "has_gps_coordinates",
    "parse_exif_datetime",
    "select_timestamp",
]
