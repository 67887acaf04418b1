from __future__ import annotations

import math
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

from geotag.coordinates import (
    DmsCoordinate,
    is_valid_coordinate_pair,
    normalize_ref,
    signed_altitude,
    to_decimal,
    to_dms,
)


def test_to_decimal_svalbard_example() -> None:
    assert to_decimal([78, 13, 16.26], "N") == pytest.approx(78.22118333, abs=1e-8)
    assert to_decimal([15, 38, 23.01], "E") == pytest.approx(15.639725, abs=1e-8)


@pytest.mark.parametrize("ref", ["N", "E", b"N\x00", " e "])
def test_positive_hemispheres_are_non_negative(ref) -> None:
    assert to_decimal([12, 30, 15.5], ref) >= 0


@pytest.mark.parametrize("ref", ["S", "W", b"W"])
def test_negative_hemispheres_are_non_positive(ref) -> None:
    assert to_decimal([12, 30, 15.5], ref) <= 0
    assert to_decimal([0, 0, 0], ref) <= 0


def test_missing_components_default_to_zero() -> None:
    assert to_decimal([10, None, None], "N") == 10.0
    assert to_decimal((10, 30, 0, 99), "S") == -10.5


@pytest.mark.parametrize(
    "dms,ref",
    [
        ([10, 20, 30], None),
        ([10, 20, 30], ""),
        ([10, 20, 30], "X"),
        ([10, 20], "N"),
        (None, "N"),
        ("10 20 30", "N"),
    ],
)
def test_invalid_input_yields_none(dms, ref) -> None:
    assert to_decimal(dms, ref) is None


def test_to_dms_splits_components_and_ref() -> None:
    dms = to_dms(-33.8568, is_latitude=True)
    assert dms.ref == "S"
    assert dms.degrees == 33
    assert dms.minutes == 51
    assert dms.seconds == pytest.approx(24.48, abs=1e-6)
    assert to_dms(151.2153, is_latitude=False).ref == "E"
    assert to_dms(-0.1276, is_latitude=False).ref == "W"
    assert to_dms(0.0).ref == "N"


def test_as_rationals_keeps_thousandths_of_a_second() -> None:
    dms = DmsCoordinate(ref="N", degrees=78, minutes=13, seconds=16.2609)
    assert dms.as_rationals() == ((78, 1), (13, 1), (16260, 1000))


@pytest.mark.parametrize(
    "latitude,longitude",
    [
        (78.22118333, 15.639725),
        (-33.8568, 151.2153),
        (51.5007, -0.1246),
        (-90.0, 180.0),
        (90.0, -180.0),
        (0.0, 0.0),
    ],
)
def test_dms_round_trip_through_rationals(latitude: float, longitude: float) -> None:
    for value, is_latitude in ((latitude, True), (longitude, False)):
        dms = to_dms(value, is_latitude)
        components = [num / den for num, den in dms.as_rationals()]
        assert to_decimal(components, dms.ref) == pytest.approx(value, abs=1e-4)


def test_coordinate_pair_validation() -> None:
    assert is_valid_coordinate_pair(90, -180)
    assert not is_valid_coordinate_pair(91.0, 0)
    assert not is_valid_coordinate_pair(0, 181.0)
    assert not is_valid_coordinate_pair(math.nan, 0)
    assert not is_valid_coordinate_pair("10", 0)
    assert not is_valid_coordinate_pair(True, 0)


def test_signed_altitude() -> None:
    assert signed_altitude(12.5, 1) == -12.5
    assert signed_altitude(12.5, 0) == 12.5
    assert signed_altitude(12.5, None) == 12.5
    assert signed_altitude(None, 1) is None


def test_normalize_ref() -> None:
    assert normalize_ref("n") == "N"
    assert normalize_ref(b"S\x00") == "S"
    assert normalize_ref("") is None
    assert normalize_ref(1) is None
