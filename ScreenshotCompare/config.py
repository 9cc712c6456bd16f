# config.py
import os
from typing import Optional

DEFAULT_MISMATCH_TOLERANCE = 0.0  # Mismatch percentage still considered a pass
DEFAULT_IGNORE_MODE = 'less'
DEFAULT_IMAGE_FORMAT = 'png'
DEFAULT_REFERENCE_DIR = 'references'
DEFAULT_SCREENSHOT_DIR = 'screenshots'
DEFAULT_DIFF_DIR = 'diffs'
DEFAULT_NAME_TEMPLATE = '{suite}/{test}_{selector}_{browser}_{number}.png'
ERROR_COLOR = (255, 0, 255)  # RGB, magenta like resemble.js
DIFF_FADE = 0.3  # Opacity of the grayscale background in diff images
MIN_SSIM_SIZE = 7  # skimage SSIM needs at least a 7x7 window

# Per-channel tolerances in the order red, green, blue, alpha, min_brightness, max_brightness
IGNORE_MODES = {
    'nothing': (0, 0, 0, 0, 0, 255),
    'less': (16, 16, 16, 16, 16, 240),
    'antialiasing': (32, 32, 32, 32, 64, 96),
    'colors': (16, 16, 16, 16, 16, 240),
    'alpha': (16, 16, 16, 255, 16, 240),
}

ENV_TOLERANCE = 'SCREENSHOT_COMPARE_TOLERANCE'
ENV_REFERENCE_RUN = 'SCREENSHOT_COMPARE_REFERENCE_RUN'


def _as_bool(value: Optional[str], default: bool = False) -> bool:
    if value is None:
        return default
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return default


def _as_float(value: Optional[str], default: Optional[float]) -> Optional[float]:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def tolerance_from_env(default: float = DEFAULT_MISMATCH_TOLERANCE) -> float:
    return _as_float(os.getenv(ENV_TOLERANCE), default)


def reference_run_from_env(default: bool = False) -> bool:
    return _as_bool(os.getenv(ENV_REFERENCE_RUN), default)
