import logging
import os
from functools import cached_property
from typing import Dict, Iterable, List, Optional, Tuple, Union

import cv2
import imutils
import numpy as np
from skimage import metrics

from ScreenshotCompare.config import (
    DEFAULT_IGNORE_MODE,
    DEFAULT_IMAGE_FORMAT,
    DIFF_FADE,
    ERROR_COLOR,
    IGNORE_MODES,
    MIN_SSIM_SIZE,
)
from ScreenshotCompare.exceptions import DiffComputationError
from ScreenshotCompare.IgnoreAreaManager import IgnoreAreaManager

LOG = logging.getLogger(__name__)

ImageSource = Union[str, os.PathLike, bytes, bytearray]


def load_image(image: ImageSource) -> np.ndarray:
    """Load an image from a path or from encoded bytes as a BGRA ``uint8`` array."""
    if isinstance(image, (bytes, bytearray)):
        opencv_image = cv2.imdecode(np.frombuffer(image, np.uint8), cv2.IMREAD_UNCHANGED)
        source = f"<{len(image)} bytes>"
    else:
        source = os.fspath(image)
        if not os.path.isfile(source):
            raise DiffComputationError(f"Image file does not exist: {source}")
        opencv_image = cv2.imread(source, cv2.IMREAD_UNCHANGED)
    if opencv_image is None or opencv_image.size == 0:
        raise DiffComputationError(f"Image could not be decoded: {source}")
    return _to_bgra(opencv_image)


def _to_bgra(image: np.ndarray) -> np.ndarray:
    if image.dtype == np.uint16:
        image = (image >> 8).astype(np.uint8)
    if image.ndim == 2:
        return cv2.cvtColor(image, cv2.COLOR_GRAY2BGRA)
    if image.shape[2] == 3:
        return cv2.cvtColor(image, cv2.COLOR_BGR2BGRA)
    return image


def _brightness(image: np.ndarray) -> np.ndarray:
    return (
        0.3 * image[..., 2].astype(np.float32)
        + 0.59 * image[..., 1].astype(np.float32)
        + 0.11 * image[..., 0].astype(np.float32)
    )


def _antialiased(image: np.ndarray, max_brightness: int) -> np.ndarray:
    # Pixels next to a high contrast edge
    brightness = _brightness(image)
    kernel = np.ones((3, 3), np.uint8)
    local_range = cv2.dilate(brightness, kernel) - cv2.erode(brightness, kernel)
    return local_range > max_brightness


def _mismatch_mask(first: np.ndarray, second: np.ndarray, ignore: str) -> np.ndarray:
    red, green, blue, alpha, min_brightness, max_brightness = IGNORE_MODES[ignore]
    delta = np.abs(first.astype(np.int16) - second.astype(np.int16))
    alpha_similar = delta[..., 3] <= alpha

    if ignore == 'colors':
        brightness_delta = np.abs(_brightness(first) - _brightness(second))
        return ~((brightness_delta <= min_brightness) & alpha_similar)

    similar = (
        (delta[..., 2] <= red)
        & (delta[..., 1] <= green)
        & (delta[..., 0] <= blue)
        & alpha_similar
    )
    mismatch = ~similar
    if ignore == 'antialiasing':
        antialiased = _antialiased(first, max_brightness) | _antialiased(second, max_brightness)
        brightness_similar = np.abs(_brightness(first) - _brightness(second)) <= min_brightness
        mismatch &= ~(antialiased & brightness_similar)
    return mismatch


def _apply_ignore_areas(mismatch: np.ndarray, ignore_areas: List[Dict]):
    height, width = mismatch.shape
    for area in ignore_areas:
        x, y = max(int(area['x']), 0), max(int(area['y']), 0)
        x_end = min(int(area['x']) + int(area['width']), width)
        y_end = min(int(area['y']) + int(area['height']), height)
        if x < x_end and y < y_end:
            mismatch[y:y_end, x:x_end] = False


class DiffResult:
    """Similarity metrics of two images plus a lazily rendered diff image.

    | =Attribute= | =Description= |
    | ``mismatch_percentage`` | Share of mismatching pixels in percent, rounded to two decimals |
    | ``is_same_dimensions`` | Whether both images had the same width and height before any scaling |
    | ``mismatch_count`` | Number of mismatching pixels |
    """

    def __init__(
        self,
        first: np.ndarray,
        second: np.ndarray,
        mismatch: np.ndarray,
        is_same_dimensions: bool,
        error_color: Tuple[int, int, int] = ERROR_COLOR,
    ):
        self.first = first
        self.second = second
        self.mismatch = mismatch
        self.is_same_dimensions = is_same_dimensions
        self.error_color = error_color
        self.mismatch_count = int(np.count_nonzero(mismatch))
        total = mismatch.size
        self.mismatch_percentage = round(self.mismatch_count / total * 100, 2) if total else 0.0

    @cached_property
    def diff_image(self) -> np.ndarray:
        """Faded grayscale copy of the first image with mismatching pixels in ``error_color``."""
        gray = cv2.cvtColor(self.first, cv2.COLOR_BGRA2GRAY).astype(np.float32)
        faded = (gray * DIFF_FADE + 255 * (1 - DIFF_FADE)).astype(np.uint8)
        diff = cv2.cvtColor(faded, cv2.COLOR_GRAY2BGR)
        red, green, blue = self.error_color
        diff[self.mismatch] = (blue, green, red)
        return diff

    def get_buffer(self, extension: str = '.' + DEFAULT_IMAGE_FORMAT) -> bytes:
        """Encode the diff image, PNG by default."""
        success, encoded = cv2.imencode(extension, self.diff_image)
        if not success:
            raise DiffComputationError(f"Diff image could not be encoded as {extension}")
        return encoded.tobytes()

    @cached_property
    def diff_rectangles(self) -> List[Dict]:
        """Bounding boxes of the mismatching regions, nearby pixels grouped together."""
        thresh = self.mismatch.astype(np.uint8) * 255
        thresh = cv2.dilate(thresh, None, iterations=5)
        thresh = cv2.erode(thresh, None, iterations=5)
        cnts = cv2.findContours(thresh, cv2.RETR_EXTERNAL, cv2.CHAIN_APPROX_SIMPLE)
        cnts = imutils.grab_contours(cnts)
        rectangles = [cv2.boundingRect(c) for c in cnts]
        return [
            {"x": rect[0], "y": rect[1], "width": rect[2], "height": rect[3]}
            for rect in rectangles
        ]

    @cached_property
    def ssim_score(self) -> Optional[float]:
        """Structural similarity of the compared region, ``None`` for tiny images."""
        height, width = self.mismatch.shape
        if min(height, width) < MIN_SSIM_SIZE:
            return None
        gray_first = cv2.cvtColor(self.first, cv2.COLOR_BGRA2GRAY)
        gray_second = cv2.cvtColor(self.second, cv2.COLOR_BGRA2GRAY)
        return float(metrics.structural_similarity(gray_first, gray_second, data_range=255))


def highlight_differences(image: np.ndarray, rectangles: Iterable[Dict]) -> np.ndarray:
    """Return a BGR copy of ``image`` with a red frame around every rectangle."""
    highlighted = cv2.cvtColor(_to_bgra(image), cv2.COLOR_BGRA2BGR)
    for rect in rectangles:
        x, y, w, h = rect["x"], rect["y"], rect["width"], rect["height"]
        cv2.rectangle(highlighted, (x, y), (x + w, y + h), (0, 0, 255), 2)
    return highlighted


def compare_images(
    image_a: ImageSource,
    image_b: ImageSource,
    ignore: str = DEFAULT_IGNORE_MODE,
    scale_to_same_size: bool = False,
    mask: Union[str, dict, list, None] = None,
    error_color: Tuple[int, int, int] = ERROR_COLOR,
) -> DiffResult:
    """Compares ``image_a`` with ``image_b`` pixel by pixel.

    | =Arguments= | =Description= |
    | ``image_a`` | Path or encoded bytes of the first image. The diff image is drawn on top of it |
    | ``image_b`` | Path or encoded bytes of the second image |
    | ``ignore`` | ``nothing``, ``less``, ``antialiasing``, ``colors`` or ``alpha``. Controls how much per-channel difference is tolerated per pixel |
    | ``scale_to_same_size`` | Resize ``image_b`` to the dimensions of ``image_a`` before comparing |
    | ``mask`` | Areas excluded from the comparison, see ``IgnoreAreaManager`` for the accepted formats |
    | ``error_color`` | RGB color of mismatching pixels in the diff image |

    Images of different size are compared over their common top-left region.
    """
    if ignore not in IGNORE_MODES:
        raise ValueError(f"Unknown ignore mode '{ignore}'. Use one of {', '.join(IGNORE_MODES)}.")

    first = load_image(image_a)
    second = load_image(image_b)
    is_same_dimensions = first.shape[:2] == second.shape[:2]

    if scale_to_same_size and not is_same_dimensions:
        second = cv2.resize(second, (first.shape[1], first.shape[0]), interpolation=cv2.INTER_AREA)

    height = min(first.shape[0], second.shape[0])
    width = min(first.shape[1], second.shape[1])
    first = np.ascontiguousarray(first[:height, :width])
    second = np.ascontiguousarray(second[:height, :width])

    mismatch = _mismatch_mask(first, second, ignore)
    if mask:
        _apply_ignore_areas(mismatch, IgnoreAreaManager(mask=mask).get_pixel_areas(width, height))

    result = DiffResult(first, second, mismatch, is_same_dimensions, error_color)
    LOG.debug(
        f"Compared {width}x{height} pixels with ignore={ignore}: "
        f"{result.mismatch_count} mismatching ({result.mismatch_percentage}%)"
    )
    return result
