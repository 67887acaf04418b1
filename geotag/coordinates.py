from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

SECONDS_DENOMINATOR = 1000

_NEGATIVE_REFS = {"S", "W"}
_VALID_REFS = {"N", "S", "E", "W"}


@dataclass(frozen=True, slots=True)
class DmsCoordinate:
    ref: str
    degrees: int
    minutes: int
    seconds: float

    def as_rationals(self) -> tuple[tuple[int, int], tuple[int, int], tuple[int, int]]:
        """EXIF RATIONAL triple with seconds kept to a thousandth of an arcsecond."""
        return (
            (self.degrees, 1),
            (self.minutes, 1),
            (int(math.floor(self.seconds * SECONDS_DENOMINATOR)), SECONDS_DENOMINATOR),
        )


def _is_number(value: Any) -> bool:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    return math.isfinite(value)


def is_valid_latitude(value: Any) -> bool:
    return _is_number(value) and -90.0 <= value <= 90.0


def is_valid_longitude(value: Any) -> bool:
    return _is_number(value) and -180.0 <= value <= 180.0


def is_valid_coordinate_pair(latitude: Any, longitude: Any) -> bool:
    return is_valid_latitude(latitude) and is_valid_longitude(longitude)


def normalize_ref(ref: Any) -> str | None:
    if isinstance(ref, (bytes, bytearray)):
        ref = bytes(ref).decode("latin-1", errors="ignore")
    if not isinstance(ref, str):
        return None
    letter = ref.replace("\x00", "").strip().upper()[:1]
    return letter if letter in _VALID_REFS else None


def to_decimal(dms: Sequence[float | None] | None, ref: Any) -> float | None:
    """Convert a degrees/minutes/seconds triple to signed decimal degrees.

    Missing components count as zero; a missing or unknown hemisphere
    reference, or fewer than three components, yields ``None``.
    """
    letter = normalize_ref(ref)
    if letter is None:
        return None
    if dms is None or isinstance(dms, (str, bytes)) or len(dms) < 3:
        return None
    degrees, minutes, seconds = (float(part or 0.0) for part in dms[:3])
    decimal = degrees + minutes / 60.0 + seconds / 3600.0
    if letter in _NEGATIVE_REFS:
        decimal = -decimal
    return decimal


def to_dms(decimal: float, is_latitude: bool = True) -> DmsCoordinate:
    if is_latitude:
        ref = "N" if decimal >= 0 else "S"
    else:
        ref = "E" if decimal >= 0 else "W"
    magnitude = abs(decimal)
    degrees = math.floor(magnitude)
    minutes_float = (magnitude - degrees) * 60.0
    minutes = math.floor(minutes_float)
    seconds = (minutes_float - minutes) * 60.0
    return DmsCoordinate(ref=ref, degrees=int(degrees), minutes=int(minutes), seconds=seconds)


def signed_altitude(altitude: float | None, altitude_ref: int | None) -> float | None:
    if altitude is None:
        return None
    if altitude_ref == 1:
        return -altitude
    return altitude


__all__ = [
    "DmsCoordinate",
    "SECONDS_DENOMINATOR",
    "is_valid_coordinate_pair",
    "is_valid_latitude",
    "is_valid_longitude",
    "normalize_ref",
    "signed_altitude",
    "to_decimal",
    "to_dms",
]
