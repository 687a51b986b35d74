"""Tests for size formatting and result persistence."""

import json

import pytest

from swift_package_size.utils import format_bytes, save_measurement_result


class TestFormatBytes:
    @pytest.mark.parametrize(
        ("size", "expected"),
        [
            (0, "0 bytes"),
            (999, "999 bytes"),
            (1000, "1 KB"),
            (262_144, "262 KB"),
            (10_485_760, "10.5 MB"),
            (10_747_904, "10.7 MB"),
            (2_500_000_000, "2.50 GB"),
            (999_999, "1.0 MB"),
            (999_999_999, "1.00 GB"),
            (999_499, "999 KB"),
        ],
    )
    def test_decimal_units(self, size, expected):
        assert format_bytes(size) == expected

    def test_signed(self):
        assert format_bytes(262_144, signed=True) == "+262 KB"
        assert format_bytes(-262_144, signed=True) == "-262 KB"
        assert format_bytes(0, signed=True) == "0 bytes"

    def test_negative_without_signed_flag(self):
        assert format_bytes(-1_500_000) == "-1.5 MB"


class TestSaveMeasurementResult:
    def test_writes_json(self, tmp_path):
        path = save_measurement_result({"status": "succeeded"}, prefix="RxSwift", results_dir=tmp_path)

        assert path.parent == tmp_path
        assert path.suffix == ".json"
        assert "RxSwift" in path.name
        data = json.loads(path.read_text(encoding="utf-8"))
        assert data["status"] == "succeeded"
        assert "timestamp" in data

    def test_sanitizes_prefix(self, tmp_path):
        path = save_measurement_result({}, prefix="../Rx Swift/evil", results_dir=tmp_path)

        assert path.parent == tmp_path
        assert "/" not in path.name.replace(str(tmp_path), "")

    def test_unique_names(self, tmp_path):
        paths = {save_measurement_result({"i": i}, prefix="same", results_dir=tmp_path) for i in range(5)}
        assert len(paths) == 5
