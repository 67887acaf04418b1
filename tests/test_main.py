from __future__ import annotations

import json
import sys
from pathlib import Path

import pytest

sys.path.append(str(Path(__file__).resolve().parents[1]))

import main
from geotag.extractor import extract_exif_metadata
from tests.fixtures.images import create_plain_image, create_sample_image


def _json_lines(output: str) -> list[dict]:
    return [json.loads(line) for line in output.splitlines() if line.strip()]


def test_read_prints_gps_and_timestamp(tmp_path, capsys):
    image_path = create_sample_image(tmp_path / "svalbard.jpg")

    assert main.main(["read", str(image_path)]) == 0

    (record,) = _json_lines(capsys.readouterr().out)
    assert record["file_name"] == "svalbard.jpg"
    assert record["format"] == "JPEG"
    assert record["gps"]["latitude"] == pytest.approx(78.221183, abs=1e-5)
    assert record["gps"]["longitude"] == pytest.approx(15.639725, abs=1e-5)
    assert record["timestamp"] == {"date_time": "2024-03-05T10:15:00", "source": "DateTimeOriginal"}


def test_read_skips_unsupported_files(tmp_path, capsys):
    notes = tmp_path / "notes.txt"
    notes.write_text("not an image")

    assert main.main(["read", str(notes)]) == 0
    assert capsys.readouterr().out == ""


def test_read_reports_undecodable_image(tmp_path, capsys):
    broken = tmp_path / "broken.jpg"
    broken.write_bytes(b"definitely not a jpeg")
    good = create_plain_image(tmp_path / "plain.jpg")

    assert main.main(["read", str(broken), str(good)]) == 1

    records = _json_lines(capsys.readouterr().out)
    assert [record["file_name"] for record in records] == ["plain.jpg"]
    assert records[0]["gps"] is None


def test_write_rejects_out_of_range_latitude(tmp_path, capsys):
    image_path = create_plain_image(tmp_path / "plain.jpg")
    original = image_path.read_bytes()

    assert main.main(["write", str(image_path), "--lat", "91", "--lon", "0"]) == 2
    assert "Invalid GPS coordinates" in capsys.readouterr().err
    assert image_path.read_bytes() == original


def test_write_to_output_leaves_source_untouched(tmp_path):
    source = create_plain_image(tmp_path / "plain.jpg")
    original = source.read_bytes()
    target = tmp_path / "tagged.jpg"

    status = main.main(
        ["write", str(source), "--lat", "48.8584", "--lon", "2.2945", "--output", str(target)]
    )

    assert status == 0
    assert source.read_bytes() == original
    gps = extract_exif_metadata(target).gps
    assert gps is not None
    assert gps.latitude == pytest.approx(48.8584, abs=1e-4)
    assert gps.longitude == pytest.approx(2.2945, abs=1e-4)


def test_write_with_backup_keeps_original_copy(tmp_path):
    source = create_plain_image(tmp_path / "plain.jpg")
    original = source.read_bytes()

    assert main.main(["write", str(source), "--lat", "-1.5", "--lon", "-2.5", "--backup"]) == 0

    backups = list(tmp_path.glob("plain_backup_*.jpg"))
    assert len(backups) == 1
    assert backups[0].read_bytes() == original
    assert source.read_bytes() != original


def test_write_failure_exit_code(tmp_path, monkeypatch):
    source = create_plain_image(tmp_path / "plain.png", fmt="PNG")

    def _missing(command, **kwargs):
        raise FileNotFoundError(command[0])

    monkeypatch.setattr("geotag.writer.subprocess.run", _missing)

    assert main.main(["write", str(source), "--lat", "1", "--lon", "2"]) == 1


def test_missing_command_is_a_usage_error():
    with pytest.raises(SystemExit) as excinfo:
        main.main([])
    assert excinfo.value.code == 2
