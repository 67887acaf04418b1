"""Build small synthetic TIFF/EXIF blocks for walker tests."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Sequence

BYTE = 1
ASCII = 2
SHORT = 3
LONG = 4
RATIONAL = 5


class BlockBuilder:
    """Append-only TIFF block writer.

    Directory entries take either an ``int`` (written as the 32-bit value
    field) or four raw ``bytes`` (written verbatim, for inline values).
    """

    def __init__(self, order: str = "<") -> None:
        self.order = order
        marker = b"II" if order == "<" else b"MM"
        self.buffer = bytearray(marker + struct.pack(order + "HI", 42, 0))

    def _align(self) -> None:
        if len(self.buffer) % 2:
            self.buffer.append(0)

    def add_data(self, raw: bytes) -> int:
        self._align()
        offset = len(self.buffer)
        self.buffer.extend(raw)
        return offset

    def add_rationals(self, values: Sequence[tuple[int, int]]) -> int:
        raw = b"".join(struct.pack(self.order + "II", num, den) for num, den in values)
        return self.add_data(raw)

    def add_ascii(self, text: str) -> tuple[int, int]:
        raw = text.encode("latin-1") + b"\x00"
        return self.add_data(raw), len(raw)

    def inline(self, raw: bytes) -> bytes:
        return raw.ljust(4, b"\x00")[:4]

    def add_directory(
        self,
        entries: Iterable[tuple[int, int, int, int | bytes]],
        next_offset: int = 0,
    ) -> int:
        items = list(entries)
        self._align()
        offset = len(self.buffer)
        self.buffer.extend(struct.pack(self.order + "H", len(items)))
        for tag, type_id, count, value in items:
            self.buffer.extend(struct.pack(self.order + "HHI", tag, type_id, count))
            if isinstance(value, bytes):
                self.buffer.extend(self.inline(value))
            else:
                self.buffer.extend(struct.pack(self.order + "I", value))
        self.buffer.extend(struct.pack(self.order + "I", next_offset))
        return offset

    def set_first_directory(self, offset: int) -> None:
        struct.pack_into(self.order + "I", self.buffer, 4, offset)

    def next_offset_position(self, directory_offset: int) -> int:
        (count,) = struct.unpack_from(self.order + "H", self.buffer, directory_offset)
        return directory_offset + 2 + count * 12

    def link(self, directory_offset: int, next_offset: int) -> None:
        struct.pack_into(
            self.order + "I",
            self.buffer,
            self.next_offset_position(directory_offset),
            next_offset,
        )

    def to_bytes(self) -> bytes:
        return bytes(self.buffer)


def gps_entries(
    builder: BlockBuilder,
    *,
    latitude_ref: str | None = "N",
    latitude: Sequence[tuple[int, int]] | None = ((78, 1), (13, 1), (1626, 100)),
    longitude_ref: str | None = "E",
    longitude: Sequence[tuple[int, int]] | None = ((15, 1), (38, 1), (2301, 100)),
    altitude: tuple[int, int] | None = None,
    altitude_ref: int | None = None,
    bearing: tuple[int, int] | None = None,
    accuracy: tuple[int, int] | None = None,
) -> list[tuple[int, int, int, int | bytes]]:
    entries: list[tuple[int, int, int, int | bytes]] = []
    if latitude_ref is not None:
        entries.append((0x0001, ASCII, 2, latitude_ref.encode("latin-1") + b"\x00"))
    if latitude is not None:
        entries.append((0x0002, RATIONAL, len(latitude), builder.add_rationals(latitude)))
    if longitude_ref is not None:
        entries.append((0x0003, ASCII, 2, longitude_ref.encode("latin-1") + b"\x00"))
    if longitude is not None:
        entries.append((0x0004, RATIONAL, len(longitude), builder.add_rationals(longitude)))
    if altitude_ref is not None:
        entries.append((0x0005, BYTE, 1, bytes([altitude_ref])))
    if altitude is not None:
        entries.append((0x0006, RATIONAL, 1, builder.add_rationals([altitude])))
    if bearing is not None:
        entries.append((0x0010, RATIONAL, 1, builder.add_rationals([bearing])))
    if accuracy is not None:
        entries.append((0x001F, RATIONAL, 1, builder.add_rationals([accuracy])))
    return entries


def datetime_entries(
    builder: BlockBuilder,
    *,
    date_time: str | None = None,
    original: str | None = None,
    digitized: str | None = None,
) -> list[tuple[int, int, int, int | bytes]]:
    entries: list[tuple[int, int, int, int | bytes]] = []
    for tag, text in ((0x0132, date_time), (0x9003, original), (0x9004, digitized)):
        if text is None:
            continue
        offset, count = builder.add_ascii(text)
        entries.append((tag, ASCII, count, offset))
    return entries


def single_directory_block(order: str = "<", **kwargs) -> bytes:
    """One directory carrying GPS and datetime tags side by side."""
    datetime_kwargs = {
        key: kwargs.pop(key) for key in ("date_time", "original", "digitized") if key in kwargs
    }
    builder = BlockBuilder(order)
    entries = gps_entries(builder, **kwargs) + datetime_entries(builder, **datetime_kwargs)
    entries.sort(key=lambda item: item[0])
    directory = builder.add_directory(entries)
    builder.set_first_directory(directory)
    return builder.to_bytes()
