import logging
import math
from dataclasses import asdict, dataclass, field
from numbers import Real
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ScreenshotCompare.config import DEFAULT_IGNORE_MODE, DEFAULT_MISMATCH_TOLERANCE
from ScreenshotCompare.FileStore import FileStore
from ScreenshotCompare.ImageDiff import compare_images

LOG = logging.getLogger(__name__)

BOOTSTRAPPED = "bootstrapped"
PASSED = "passed"
FAILED = "failed"


@dataclass
class ComparisonSettings:
    """Process-wide configuration, handed to the engine at construction time.

    The naming callables receive a ``PathNaming.NamingContext`` and return a path.
    They are only used by callers building a ``ComparisonRequest``.
    """

    mismatch_tolerance: float = DEFAULT_MISMATCH_TOLERANCE
    screenshot_name: Optional[Callable[[Any], str]] = None
    reference_name: Optional[Callable[[Any], str]] = None
    diff_name: Optional[Callable[[Any], str]] = None


@dataclass(frozen=True)
class ComparisonRequest:
    captured_image_path: str
    reference_image_path: str
    diff_image_path: str
    tolerance_override: Optional[float] = None
    ignore: str = DEFAULT_IGNORE_MODE
    scale_to_same_size: bool = False
    mask: Union[str, dict, list, None] = None
    update_reference: bool = False


@dataclass(frozen=True)
class ComparisonReport:
    mismatch_percentage: float
    within_tolerance: bool
    dimensions_match: bool
    screenshot_path: Optional[str] = None
    reference_path: Optional[str] = None
    diff_path: Optional[str] = None
    outcome: Optional[str] = None
    ssim_score: Optional[float] = None
    diff_rectangles: Tuple[Dict, ...] = ()
    is_exact_match: bool = field(init=False)

    def __post_init__(self):
        object.__setattr__(self, "is_exact_match", self.mismatch_percentage == 0)

    def to_dict(self) -> dict:
        return asdict(self)


def resolve_tolerance(override, default: float) -> float:
    """Return ``override`` when it is a usable number, ``default`` otherwise.

    ``None`` means no override. ``0`` is a valid override and disables any tolerance.
    """
    if override is None:
        return default
    if isinstance(override, bool):
        LOG.warning(f"Ignoring boolean mismatch tolerance {override}, using default {default}")
        return default
    if isinstance(override, Real):
        tolerance = float(override)
    else:
        try:
            tolerance = float(str(override).strip())
        except ValueError:
            LOG.warning(f"Ignoring non-numeric mismatch tolerance '{override}', using default {default}")
            return default
    if math.isnan(tolerance):
        LOG.warning(f"Ignoring mismatch tolerance NaN, using default {default}")
        return default
    return tolerance


class ComparisonEngine:
    """Decides the outcome of comparing a captured screenshot with its reference image.

    Three outcomes are possible for every call:

    - the reference image does not exist yet: the capture is copied to the reference
      path and the comparison passes as an exact match,
    - the mismatch percentage is within the tolerance: any diff image left over from a
      previous failure is removed and the comparison passes,
    - the mismatch percentage exceeds the tolerance: the diff image is written and the
      comparison fails. The report carries the SSIM score and the bounding boxes of
      the differences for diagnostics.

    Failures of the store or the differ are not handled here and reach the caller.
    """

    def __init__(
        self,
        settings: Optional[ComparisonSettings] = None,
        store: Optional[FileStore] = None,
        differ: Callable = compare_images,
    ):
        self.settings = settings or ComparisonSettings()
        self.store = store or FileStore()
        self.differ = differ

    def compare_element_screenshot(self, request: ComparisonRequest) -> ComparisonReport:
        tolerance = resolve_tolerance(request.tolerance_override, self.settings.mismatch_tolerance)

        if request.update_reference or not self.store.exists(request.reference_image_path):
            return self._bootstrap_reference(request)

        result = self.differ(
            request.captured_image_path,
            request.reference_image_path,
            ignore=request.ignore,
            scale_to_same_size=request.scale_to_same_size,
            mask=request.mask,
        )
        mismatch_percentage = float(result.mismatch_percentage)
        ssim_score = result.ssim_score
        LOG.debug(f"SSIM score: {ssim_score}")

        if mismatch_percentage > tolerance:
            LOG.info(
                f"Image is different! {mismatch_percentage}% (tolerance {tolerance}%), SSIM score: {ssim_score}"
            )
            self.store.write_bytes(request.diff_image_path, result.get_buffer())
            return self.create_result_report(
                request,
                mismatch_percentage,
                False,
                result.is_same_dimensions,
                diff_path=request.diff_image_path,
                outcome=FAILED,
                ssim_score=ssim_score,
                diff_rectangles=tuple(result.diff_rectangles),
            )

        LOG.info(f"Image is within tolerance or the same: {mismatch_percentage}% (tolerance {tolerance}%)")
        self.store.remove(request.diff_image_path)
        return self.create_result_report(
            request,
            mismatch_percentage,
            True,
            result.is_same_dimensions,
            outcome=PASSED,
            ssim_score=ssim_score,
        )

    def _bootstrap_reference(self, request: ComparisonRequest) -> ComparisonReport:
        if request.update_reference:
            LOG.info(f"Reference run - overwrite reference file {request.reference_image_path}")
        else:
            LOG.info(f"First run - create reference file {request.reference_image_path}")
        self.store.copy(request.captured_image_path, request.reference_image_path)
        # Diff of an earlier failure at this path
        self.store.remove(request.diff_image_path)
        return self.create_result_report(request, 0.0, True, True, outcome=BOOTSTRAPPED)

    @staticmethod
    def create_result_report(
        request: ComparisonRequest,
        mismatch_percentage: float,
        within_tolerance: bool,
        dimensions_match: bool,
        diff_path: Optional[str] = None,
        outcome: Optional[str] = None,
        ssim_score: Optional[float] = None,
        diff_rectangles: Tuple[Dict, ...] = (),
    ) -> ComparisonReport:
        return ComparisonReport(
            mismatch_percentage=mismatch_percentage,
            within_tolerance=within_tolerance,
            dimensions_match=bool(dimensions_match),
            screenshot_path=request.captured_image_path,
            reference_path=request.reference_image_path,
            diff_path=diff_path,
            outcome=outcome,
            ssim_score=ssim_score,
            diff_rectangles=diff_rectangles,
        )
