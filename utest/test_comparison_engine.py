"""Unit tests for the comparison engine outcome policy."""

import logging
from dataclasses import FrozenInstanceError
from unittest.mock import MagicMock

import pytest

from ScreenshotCompare.ComparisonEngine import (
    BOOTSTRAPPED,
    FAILED,
    PASSED,
    ComparisonEngine,
    ComparisonReport,
    ComparisonRequest,
    ComparisonSettings,
)
from ScreenshotCompare.exceptions import DiffComputationError, PersistenceError
from ScreenshotCompare.FileStore import FileStore


@pytest.fixture
def paths(tmp_path):
    shot = tmp_path / "shot.png"
    shot.write_bytes(b"captured-image")
    return {
        "shot": shot,
        "ref": tmp_path / "ref.png",
        "diff": tmp_path / "diffs" / "diff.png",
    }


def make_request(paths, **kwargs):
    return ComparisonRequest(
        captured_image_path=str(paths["shot"]),
        reference_image_path=str(paths["ref"]),
        diff_image_path=str(paths["diff"]),
        **kwargs,
    )


def make_engine(differ, tolerance=5.0):
    return ComparisonEngine(ComparisonSettings(mismatch_tolerance=tolerance), FileStore(), differ)


class TestBootstrap:
    def test_missing_reference_is_created_from_capture(self, paths, fake_differ):
        differ = fake_differ(50.0)
        engine = make_engine(differ)

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.mismatch_percentage == 0
        assert report.within_tolerance is True
        assert report.dimensions_match is True
        assert report.is_exact_match is True
        assert report.outcome == BOOTSTRAPPED
        assert paths["ref"].read_bytes() == paths["shot"].read_bytes()
        assert differ.calls == []

    def test_bootstrap_removes_stale_diff(self, paths, fake_differ):
        paths["diff"].parent.mkdir(parents=True)
        paths["diff"].write_bytes(b"old diff")
        engine = make_engine(fake_differ(0.0))

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.diff_path is None
        assert not paths["diff"].exists()

    def test_reference_run_after_failure_leaves_no_diff(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(50.0), tolerance=5)
        failed = engine.compare_element_screenshot(make_request(paths))
        assert paths["diff"].exists()

        report = engine.compare_element_screenshot(make_request(paths, update_reference=True))

        assert failed.outcome == FAILED
        assert report.outcome == BOOTSTRAPPED
        assert not paths["diff"].exists()

    def test_bootstrap_creates_missing_reference_directory(self, tmp_path, paths, fake_differ):
        paths["ref"] = tmp_path / "references" / "suite" / "ref.png"
        engine = make_engine(fake_differ(0.0))

        engine.compare_element_screenshot(make_request(paths))

        assert paths["ref"].exists()

    def test_update_reference_overwrites_existing_reference(self, paths, fake_differ):
        paths["ref"].write_bytes(b"outdated reference")
        differ = fake_differ(80.0)
        engine = make_engine(differ)

        report = engine.compare_element_screenshot(make_request(paths, update_reference=True))

        assert report.outcome == BOOTSTRAPPED
        assert report.within_tolerance is True
        assert paths["ref"].read_bytes() == b"captured-image"
        assert differ.calls == []

    def test_copy_failure_propagates(self, paths, fake_differ):
        store = MagicMock(spec=FileStore)
        store.exists.return_value = False
        store.copy.side_effect = PersistenceError(str(paths["ref"]))
        engine = ComparisonEngine(ComparisonSettings(), store, fake_differ(0.0))

        with pytest.raises(PersistenceError):
            engine.compare_element_screenshot(make_request(paths))


class TestComparison:
    def test_within_tolerance_removes_previous_diff(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        paths["diff"].parent.mkdir(parents=True)
        paths["diff"].write_bytes(b"stale diff")
        engine = make_engine(fake_differ(2.5), tolerance=5)

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.mismatch_percentage == 2.5
        assert report.within_tolerance is True
        assert report.is_exact_match is False
        assert report.outcome == PASSED
        assert report.diff_path is None
        assert not paths["diff"].exists()

    def test_within_tolerance_without_previous_diff(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(0.0))

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.within_tolerance is True
        assert report.is_exact_match is True
        assert not paths["diff"].exists()

    def test_mismatch_writes_diff(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        differ = fake_differ(7.1, buffer=b"encoded diff")
        engine = make_engine(differ, tolerance=5)

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.mismatch_percentage == 7.1
        assert report.within_tolerance is False
        assert report.is_exact_match is False
        assert report.outcome == FAILED
        assert report.diff_path == str(paths["diff"])
        assert paths["diff"].read_bytes() == b"encoded diff"

    def test_mismatch_overwrites_previous_diff(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        paths["diff"].parent.mkdir(parents=True)
        paths["diff"].write_bytes(b"older and longer diff content")
        engine = make_engine(fake_differ(9.0, buffer=b"new"), tolerance=5)

        engine.compare_element_screenshot(make_request(paths))

        assert paths["diff"].read_bytes() == b"new"

    def test_mismatch_equal_to_tolerance_passes(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(5.0), tolerance=5)

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.within_tolerance is True
        assert not paths["diff"].exists()

    def test_override_takes_precedence_over_default(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(3.0), tolerance=10)

        report = engine.compare_element_screenshot(make_request(paths, tolerance_override=2))

        assert report.within_tolerance is False

    def test_zero_override_is_not_treated_as_missing(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(0.5), tolerance=10)

        report = engine.compare_element_screenshot(make_request(paths, tolerance_override=0))

        assert report.within_tolerance is False

    def test_missing_override_uses_default(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(3.0), tolerance=10)

        report = engine.compare_element_screenshot(make_request(paths, tolerance_override=None))

        assert report.within_tolerance is True

    def test_dimension_mismatch_alone_does_not_fail(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(1.0, is_same_dimensions=False), tolerance=5)

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.within_tolerance is True
        assert report.dimensions_match is False

    def test_failed_report_carries_ssim_and_rectangles(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(9.0), tolerance=5)

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.ssim_score == 0.9
        assert report.diff_rectangles == ({"x": 1, "y": 2, "width": 3, "height": 4},)

    def test_passed_report_has_no_rectangles(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(1.0), tolerance=5)

        report = engine.compare_element_screenshot(make_request(paths))

        assert report.ssim_score == 0.9
        assert report.diff_rectangles == ()

    def test_differ_receives_paths_and_options(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        differ = fake_differ(0.0)
        engine = make_engine(differ)

        engine.compare_element_screenshot(
            make_request(paths, ignore="colors", scale_to_same_size=True, mask="top:10")
        )

        image_a, image_b, options = differ.calls[0]
        assert image_a == str(paths["shot"])
        assert image_b == str(paths["ref"])
        assert options == {"ignore": "colors", "scale_to_same_size": True, "mask": "top:10"}

    def test_diff_buffer_only_requested_on_mismatch(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        differ = fake_differ(1.0)
        engine = make_engine(differ, tolerance=5)

        engine.compare_element_screenshot(make_request(paths))

        assert differ.result.buffer_requests == 0

    def test_differ_failure_propagates(self, paths):
        paths["ref"].write_bytes(b"reference")

        def broken_differ(*args, **kwargs):
            raise DiffComputationError("corrupt image")

        engine = make_engine(broken_differ)

        with pytest.raises(DiffComputationError):
            engine.compare_element_screenshot(make_request(paths))

    def test_diff_write_failure_propagates(self, paths, fake_differ):
        store = MagicMock(spec=FileStore)
        store.exists.return_value = True
        store.write_bytes.side_effect = PersistenceError(str(paths["diff"]))
        engine = ComparisonEngine(ComparisonSettings(mismatch_tolerance=0), store, fake_differ(3.0))

        with pytest.raises(PersistenceError):
            engine.compare_element_screenshot(make_request(paths))

    def test_repeated_comparison_gives_identical_reports(self, paths, fake_differ):
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(7.1, buffer=b"encoded diff"), tolerance=5)

        first = engine.compare_element_screenshot(make_request(paths))
        second = engine.compare_element_screenshot(make_request(paths))

        assert first == second
        assert paths["diff"].read_bytes() == b"encoded diff"
        assert paths["ref"].read_bytes() == b"reference"

    def test_outcome_is_logged(self, paths, fake_differ, caplog):
        caplog.set_level(logging.INFO, logger="ScreenshotCompare.ComparisonEngine")
        paths["ref"].write_bytes(b"reference")
        engine = make_engine(fake_differ(7.1), tolerance=5)

        engine.compare_element_screenshot(make_request(paths))

        assert any("Image is different! 7.1%" in record.message for record in caplog.records)


class TestComparisonReport:
    @pytest.mark.parametrize("mismatch, exact", [(0, True), (0.0, True), (0.01, False), (100, False)])
    def test_exact_match_is_derived(self, mismatch, exact):
        report = ComparisonReport(mismatch, True, True)
        assert report.is_exact_match is exact

    def test_exact_match_cannot_be_passed_in(self):
        with pytest.raises(TypeError):
            ComparisonReport(5.0, True, True, is_exact_match=True)

    def test_report_is_immutable(self):
        report = ComparisonReport(1.0, True, True)
        with pytest.raises(FrozenInstanceError):
            report.within_tolerance = False

    def test_to_dict(self):
        report = ComparisonReport(2.5, True, False, screenshot_path="shot.png", reference_path="ref.png", outcome=PASSED)
        assert report.to_dict() == {
            "mismatch_percentage": 2.5,
            "within_tolerance": True,
            "dimensions_match": False,
            "screenshot_path": "shot.png",
            "reference_path": "ref.png",
            "diff_path": None,
            "outcome": PASSED,
            "ssim_score": None,
            "diff_rectangles": (),
            "is_exact_match": False,
        }
