"""Shared pytest fixtures for unit tests."""
from __future__ import annotations

from pathlib import Path
from typing import Callable, List, Optional

import cv2
import numpy as np
import pytest

from ScreenshotCompare.PathNaming import BrowserInfo


class FakeDiffResult:
    """Stand-in for ``ImageDiff.DiffResult`` with fixed metrics."""

    def __init__(self, mismatch_percentage: float, is_same_dimensions: bool = True, buffer: bytes = b"diff-bytes"):
        self.mismatch_percentage = mismatch_percentage
        self.is_same_dimensions = is_same_dimensions
        self.buffer = buffer
        self.buffer_requests = 0
        self.ssim_score = 0.9
        self.diff_rectangles = [{"x": 1, "y": 2, "width": 3, "height": 4}]

    def get_buffer(self) -> bytes:
        self.buffer_requests += 1
        return self.buffer


class FakeDiffer:
    """Records calls and returns a ``FakeDiffResult``."""

    def __init__(self, mismatch_percentage: float = 0.0, is_same_dimensions: bool = True, buffer: bytes = b"diff-bytes"):
        self.result = FakeDiffResult(mismatch_percentage, is_same_dimensions, buffer)
        self.calls: List[tuple] = []

    def __call__(self, image_a, image_b, **options):
        self.calls.append((image_a, image_b, options))
        return self.result


class FakeCapture:
    """Capture backend writing a prepared image instead of talking to a browser."""

    def __init__(self, image: Optional[np.ndarray] = None, browser: str = "chrome"):
        self.image = image if image is not None else np.full((20, 40, 3), 255, dtype=np.uint8)
        self.browser = browser
        self.captured: List[tuple] = []

    def capture_element(self, locator: str, path: str) -> str:
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        cv2.imwrite(str(path), self.image)
        self.captured.append((locator, path))
        return path

    def browser_info(self) -> BrowserInfo:
        return BrowserInfo(name=self.browser, version="120.0", platform="linux")


@pytest.fixture
def white_image() -> np.ndarray:
    """A 40x20 white BGR image, 800 pixels in total."""

    return np.full((20, 40, 3), 255, dtype=np.uint8)


@pytest.fixture
def write_image(tmp_path: Path) -> Callable[[str, np.ndarray], Path]:
    """Write an image below ``tmp_path`` and return its path."""

    def _write(name: str, image: np.ndarray) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        assert cv2.imwrite(str(path), image)
        return path

    return _write


@pytest.fixture
def fake_differ() -> Callable[..., FakeDiffer]:
    return FakeDiffer


@pytest.fixture
def fake_capture() -> Callable[..., FakeCapture]:
    return FakeCapture
