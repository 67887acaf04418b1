"""Bounds-checked primitive reads over a raw EXIF/TIFF block."""

from __future__ import annotations

import struct
from dataclasses import dataclass

EXIF_APP1_PREFIX = b"Exif\x00\x00"

LITTLE_ENDIAN = "<"
BIG_ENDIAN = ">"

_BYTE_ORDER_MARKERS = {
    b"II": LITTLE_ENDIAN,
    b"MM": BIG_ENDIAN,
}


@dataclass(frozen=True, slots=True)
class ByteView:
    """Immutable view over a metadata block with the byte order fixed at construction.

    ``byte_order`` is ``None`` when the first two bytes are not a TIFF marker.
    Every ``read_*`` method returns ``None`` instead of raising when the
    requested span does not fit inside the block.
    """

    data: bytes
    byte_order: str | None

    @classmethod
    def from_bytes(cls, data: bytes | bytearray | memoryview) -> ByteView:
        raw = bytes(data)
        if raw.startswith(EXIF_APP1_PREFIX):
            raw = raw[len(EXIF_APP1_PREFIX):]
        return cls(raw, _BYTE_ORDER_MARKERS.get(raw[:2]))

    def __len__(self) -> int:
        return len(self.data)

    @property
    def is_tiff(self) -> bool:
        return self.byte_order is not None

    def fits(self, offset: int, width: int) -> bool:
        return offset >= 0 and width >= 0 and offset + width <= len(self.data)

    def _unpack(self, fmt: str, offset: int, width: int) -> int | None:
        if self.byte_order is None or not self.fits(offset, width):
            return None
        return struct.unpack_from(self.byte_order + fmt, self.data, offset)[0]

    def read_u8(self, offset: int) -> int | None:
        if not self.fits(offset, 1):
            return None
        return self.data[offset]

    def read_u16(self, offset: int) -> int | None:
        return self._unpack("H", offset, 2)

    def read_u32(self, offset: int) -> int | None:
        return self._unpack("I", offset, 4)

    def read_rational(self, offset: int) -> float | None:
        numerator = self.read_u32(offset)
        denominator = self.read_u32(offset + 4)
        if numerator is None or denominator is None:
            return None
        return rational_to_float(numerator, denominator)

    def read_rationals(self, offset: int, count: int) -> tuple[float, ...] | None:
        if count <= 0 or not self.fits(offset, count * 8):
            return None
        values: list[float] = []
        for index in range(count):
            value = self.read_rational(offset + index * 8)
            if value is None:  # pragma: no cover - span checked above
                return None
            values.append(value)
        return tuple(values)

    def read_string(self, offset: int, length: int) -> str | None:
        if not self.fits(offset, length):
            return None
        raw = self.data[offset:offset + length]
        # EXIF ASCII is NUL terminated and sometimes NUL padded.
        return raw.decode("latin-1").replace("\x00", "")


def rational_to_float(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return 0.0
    return numerator / denominator


__all__ = [
    "BIG_ENDIAN",
    "ByteView",
    "EXIF_APP1_PREFIX",
    "LITTLE_ENDIAN",
    "rational_to_float",
]
