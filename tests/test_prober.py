"""Tests for the artifact size prober."""

import os

import pytest

from swift_package_size.exceptions import ArtifactNotFound, ProbeError
from swift_package_size.measurement.models import SizeKind
from swift_package_size.measurement.prober import ArtifactSizeProber


def _write(path, size):
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"x" * size)


@pytest.fixture
def prober():
    return ArtifactSizeProber()


class TestArtifactSizeProber:
    def test_single_file(self, prober, tmp_path):
        binary = tmp_path / "MeasurementApp"
        _write(binary, 1234)

        measurement = prober.measure(binary, SizeKind.BASELINE)

        assert measurement.bytes == 1234
        assert measurement.kind == SizeKind.BASELINE
        assert measurement.display == "1 KB"

    def test_bundle_is_summed_recursively(self, prober, tmp_path):
        bundle = tmp_path / "MeasurementApp.app"
        _write(bundle / "MeasurementApp", 1000)
        _write(bundle / "Info.plist", 200)
        _write(bundle / "Frameworks" / "RxSwift.framework" / "RxSwift", 3000)
        _write(bundle / "Frameworks" / "RxSwift.framework" / "Info.plist", 34)

        measurement = prober.measure(bundle, SizeKind.UPDATED)

        assert measurement.bytes == 4234
        assert measurement.kind == SizeKind.UPDATED

    def test_empty_bundle(self, prober, tmp_path):
        bundle = tmp_path / "Empty.app"
        bundle.mkdir()

        assert prober.measure(bundle, SizeKind.BASELINE).bytes == 0

    def test_missing_path_is_not_zero(self, prober, tmp_path):
        missing = tmp_path / "archive.xcarchive" / "Products" / "Applications" / "MeasurementApp.app"

        with pytest.raises(ArtifactNotFound) as exc_info:
            prober.measure(missing, SizeKind.BASELINE)

        assert isinstance(exc_info.value, ProbeError)
        assert exc_info.value.path == missing

    @pytest.mark.skipif(os.name == "nt", reason="symlinks need privileges on Windows")
    def test_symlinks_are_not_followed(self, prober, tmp_path):
        outside = tmp_path / "outside"
        _write(outside / "huge.bin", 50_000)
        bundle = tmp_path / "MeasurementApp.app"
        _write(bundle / "MeasurementApp", 100)
        link = bundle / "Frameworks"
        link.symlink_to(outside, target_is_directory=True)

        measurement = prober.measure(bundle, SizeKind.BASELINE)

        assert measurement.bytes == 100 + link.lstat().st_size

    def test_deterministic(self, prober, tmp_path):
        bundle = tmp_path / "MeasurementApp.app"
        _write(bundle / "a", 10)
        _write(bundle / "b" / "c", 20)

        first = prober.measure(bundle, SizeKind.BASELINE)
        second = prober.measure(bundle, SizeKind.BASELINE)

        assert first == second
