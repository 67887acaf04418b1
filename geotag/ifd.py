from __future__ import annotations

import logging
from dataclasses import dataclass, field, fields, replace
from typing import Callable, TypeVar

from .byteview import ByteView
from .coordinates import normalize_ref

ENTRY_SIZE = 12

EXIF_IFD_POINTER = 0x8769
GPS_IFD_POINTER = 0x8825

# TIFF field type -> width in bytes of one value
_TYPE_WIDTHS = {
    1: 1,  # BYTE
    2: 1,  # ASCII
    3: 2,  # SHORT
    4: 4,  # LONG
    5: 8,  # RATIONAL
    6: 1,  # SBYTE
    7: 1,  # UNDEFINED
    8: 2,  # SSHORT
    9: 4,  # SLONG
    10: 8,  # SRATIONAL
    11: 4,  # FLOAT
    12: 8,  # DOUBLE
    13: 4,  # IFD
}

GPS_TAG_NAMES = {
    0x0001: "GPSLatitudeRef",
    0x0002: "GPSLatitude",
    0x0003: "GPSLongitudeRef",
    0x0004: "GPSLongitude",
    0x0005: "GPSAltitudeRef",
    0x0006: "GPSAltitude",
    0x0010: "GPSImgDirection",
    0x001F: "GPSHPositioningError",
}

DATETIME_TAG_NAMES = {
    0x0132: "DateTime",
    0x9003: "DateTimeOriginal",
    0x9004: "DateTimeDigitized",
}


@dataclass(frozen=True, slots=True)
class DirectoryEntry:
    tag: int
    type: int
    count: int
    value_offset: int
    position: int

    @property
    def value_position(self) -> int:
        """Where the value bytes live: inline in the entry or at ``value_offset``."""
        width = _TYPE_WIDTHS.get(self.type)
        if width is not None and width * self.count <= 4:
            return self.position + 8
        return self.value_offset


@dataclass(frozen=True, slots=True)
class GpsRecord:
    latitude_ref: str | None = None
    latitude: tuple[float, ...] | None = None
    longitude_ref: str | None = None
    longitude: tuple[float, ...] | None = None
    altitude_ref: int | None = None
    altitude: float | None = None
    bearing: float | None = None
    accuracy: float | None = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))


@dataclass(frozen=True, slots=True)
class DateTimeRecord:
    date_time: str | None = None
    date_time_original: str | None = None
    date_time_digitized: str | None = None

    @property
    def is_empty(self) -> bool:
        return all(getattr(self, item.name) is None for item in fields(self))


@dataclass(frozen=True, slots=True)
class DecodeIssue:
    offset: int
    reason: str
    tag: int | None = None

    def describe(self) -> str:
        if self.tag is None:
            return f"{self.reason} at offset {self.offset}"
        return f"tag 0x{self.tag:04X}: {self.reason} at offset {self.offset}"


@dataclass(frozen=True, slots=True)
class ExifScan:
    gps: GpsRecord = field(default_factory=GpsRecord)
    datetime: DateTimeRecord = field(default_factory=DateTimeRecord)
    issues: tuple[DecodeIssue, ...] = ()
    directories: tuple[int, ...] = ()


_RecordT = TypeVar("_RecordT", GpsRecord, DateTimeRecord)


def merge_records(base: _RecordT, update: _RecordT) -> _RecordT:
    """Return ``base`` with every field that ``update`` sets overriding it."""
    changes = {
        item.name: getattr(update, item.name)
        for item in fields(update)
        if getattr(update, item.name) is not None
    }
    if not changes:
        return base
    return replace(base, **changes)


def _read_direction_ref(view: ByteView, entry: DirectoryEntry) -> str | None:
    """Hemisphere letter, stored inline as TIFF does or at ``value_offset``.

    Some writers point ``value_offset`` at the string even when it would fit
    inside the entry; the offset is tried when the inline bytes are not a
    hemisphere letter.
    """
    value = view.read_string(entry.value_position, entry.count)
    if normalize_ref(value) is not None or entry.value_position == entry.value_offset:
        return value
    at_offset = view.read_string(entry.value_offset, entry.count)
    if normalize_ref(at_offset) is not None:
        return at_offset
    return value


def _read_altitude_ref(view: ByteView, entry: DirectoryEntry) -> int | None:
    value = view.read_u8(entry.value_position)
    if value in (0, 1) or entry.value_position == entry.value_offset:
        return value
    at_offset = view.read_u8(entry.value_offset)
    if at_offset in (0, 1):
        return at_offset
    return value


def _decode_gps_value(view: ByteView, entry: DirectoryEntry) -> dict[str, object] | None:
    position = entry.value_position
    if entry.tag == 0x0001:
        return {"latitude_ref": _read_direction_ref(view, entry)}
    if entry.tag == 0x0002:
        return {"latitude": view.read_rationals(position, entry.count)}
    if entry.tag == 0x0003:
        return {"longitude_ref": _read_direction_ref(view, entry)}
    if entry.tag == 0x0004:
        return {"longitude": view.read_rationals(position, entry.count)}
    if entry.tag == 0x0005:
        return {"altitude_ref": _read_altitude_ref(view, entry)}
    if entry.tag == 0x0006:
        return {"altitude": view.read_rational(position)}
    if entry.tag == 0x0010:
        return {"bearing": view.read_rational(position)}
    if entry.tag == 0x001F:
        return {"accuracy": view.read_rational(position)}
    return None


def _decode_datetime_value(view: ByteView, entry: DirectoryEntry) -> dict[str, object] | None:
    key = {
        0x0132: "date_time",
        0x9003: "date_time_original",
        0x9004: "date_time_digitized",
    }.get(entry.tag)
    if key is None:
        return None
    return {key: view.read_string(entry.value_position, entry.count)}


def decode_gps_tag(view: ByteView, entry: DirectoryEntry) -> GpsRecord | None:
    """Decode one GPS entry into a single-field record.

    Returns ``None`` for tags the GPS decoder does not own. Raises ``ValueError``
    when the tag is recognised but its value lies outside the block.
    """
    return _apply_decoder(GpsRecord, _decode_gps_value, view, entry)


def decode_datetime_tag(view: ByteView, entry: DirectoryEntry) -> DateTimeRecord | None:
    return _apply_decoder(DateTimeRecord, _decode_datetime_value, view, entry)


def _apply_decoder(
    record_type: type[_RecordT],
    decoder: Callable[[ByteView, DirectoryEntry], dict[str, object] | None],
    view: ByteView,
    entry: DirectoryEntry,
) -> _RecordT | None:
    values = decoder(view, entry)
    if values is None:
        return None
    if any(value is None for value in values.values()):
        raise ValueError("value out of bounds")
    return record_type(**values)  # type: ignore[arg-type]


def read_entry(view: ByteView, position: int) -> DirectoryEntry | None:
    if not view.fits(position, ENTRY_SIZE):
        return None
    tag = view.read_u16(position)
    type_id = view.read_u16(position + 2)
    count = view.read_u32(position + 4)
    value_offset = view.read_u32(position + 8)
    if tag is None or type_id is None or count is None or value_offset is None:
        return None
    return DirectoryEntry(tag, type_id, count, value_offset, position)


@dataclass(frozen=True, slots=True)
class _Directory:
    gps: GpsRecord
    datetime: DateTimeRecord
    issues: tuple[DecodeIssue, ...]
    links: tuple[int, ...]


def _read_directory(view: ByteView, offset: int) -> _Directory:
    gps = GpsRecord()
    date_time = DateTimeRecord()
    issues: list[DecodeIssue] = []
    links: list[int] = []

    entry_count = view.read_u16(offset)
    if entry_count is None:
        issue = DecodeIssue(offset, "directory header out of bounds")
        return _Directory(gps, date_time, (issue,), ())

    position = offset + 2
    for _ in range(entry_count):
        entry = read_entry(view, position)
        if entry is None:
            issues.append(DecodeIssue(position, "truncated directory entry"))
            break
        position += ENTRY_SIZE
        try:
            gps_update = decode_gps_tag(view, entry)
            datetime_update = decode_datetime_tag(view, entry)
        except Exception as exc:
            logging.debug(
                "Skipping EXIF entry 0x%04X at %s: %s",
                entry.tag,
                entry.position,
                exc,
                extra={"tag": f"0x{entry.tag:04X}"},
            )
            issues.append(DecodeIssue(entry.position, str(exc), tag=entry.tag))
            continue
        if gps_update is not None:
            gps = merge_records(gps, gps_update)
        if datetime_update is not None:
            date_time = merge_records(date_time, datetime_update)
        if entry.tag in (EXIF_IFD_POINTER, GPS_IFD_POINTER):
            pointer = view.read_u32(entry.value_position)
            if pointer:
                links.append(pointer)
    else:
        next_offset = view.read_u32(position)
        if next_offset:
            links.append(next_offset)

    return _Directory(gps, date_time, tuple(issues), tuple(links))


def scan(view: ByteView) -> ExifScan:
    """Walk every reachable directory of ``view``.

    Follows the next-directory chain and the EXIF/GPS sub-directory pointers.
    Each directory offset is visited at most once, so cyclic or self-referencing
    chains terminate. Malformed input never raises; it yields partial records
    and a list of issues.
    """
    if not view.is_tiff or len(view) < 8:
        return ExifScan()

    first_offset = view.read_u32(4)
    if first_offset is None or first_offset >= len(view):
        return ExifScan(issues=(DecodeIssue(4, "first directory offset out of bounds"),))

    gps = GpsRecord()
    date_time = DateTimeRecord()
    issues: list[DecodeIssue] = []
    visited: list[int] = []
    pending = [first_offset]

    while pending:
        offset = pending.pop(0)
        if offset in visited:
            continue
        if offset >= len(view):
            issues.append(DecodeIssue(offset, "directory offset out of bounds"))
            continue
        visited.append(offset)
        directory = _read_directory(view, offset)
        gps = merge_records(gps, directory.gps)
        date_time = merge_records(date_time, directory.datetime)
        issues.extend(directory.issues)
        pending.extend(link for link in directory.links if link not in visited)

    return ExifScan(gps, date_time, tuple(issues), tuple(visited))


def walk(view: ByteView) -> tuple[GpsRecord, DateTimeRecord]:
    result = scan(view)
    return result.gps, result.datetime


def scan_bytes(data: bytes | bytearray | memoryview) -> ExifScan:
    return scan(ByteView.from_bytes(data))


__all__ = [
    "DATETIME_TAG_NAMES",
    "DateTimeRecord",
    "DecodeIssue",
    "DirectoryEntry",
    "ExifScan",
    "GPS_TAG_NAMES",
    "GpsRecord",
    "decode_datetime_tag",
    "decode_gps_tag",
    "merge_records",
    "read_entry",
    "scan",
    "scan_bytes",
    "walk",
]
