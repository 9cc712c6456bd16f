import base64
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Callable, Optional, Union

import cv2
from assertionengine import AssertionOperator, float_str_verify_assertion
from robot.api.deco import keyword, library
from robot.libraries.BuiltIn import BuiltIn, RobotNotRunningError

from ScreenshotCompare.Capture import create_capture
from ScreenshotCompare.ComparisonEngine import (
    ComparisonEngine,
    ComparisonRequest,
    ComparisonReport,
    ComparisonSettings,
    resolve_tolerance,
)
from ScreenshotCompare.config import (
    DEFAULT_DIFF_DIR,
    DEFAULT_IGNORE_MODE,
    DEFAULT_NAME_TEMPLATE,
    DEFAULT_REFERENCE_DIR,
    DEFAULT_SCREENSHOT_DIR,
    reference_run_from_env,
    tolerance_from_env,
)
from ScreenshotCompare.ImageDiff import highlight_differences, load_image
from ScreenshotCompare.PathNaming import NamingContext, as_naming_function, resolve_paths

LOG = logging.getLogger(__name__)

IMG_STYLE = "width:50%; height: auto;"

Naming = Union[str, Callable[[NamingContext], str], None]


@library
class ElementCheck:
    """Visual regression checks for single elements of a web page.

    The element is captured, compared with its reference image and the result is
    returned as a dictionary with the keys ``mismatch_percentage``, ``within_tolerance``,
    ``dimensions_match``, ``is_exact_match``, ``screenshot_path``, ``reference_path``,
    ``diff_path``, ``outcome``, ``ssim_score`` and ``diff_rectangles``.

    If no reference image exists yet, the screenshot becomes the reference image and
    the check passes. If the mismatch is higher than the tolerance, a diff image is
    written. A later passing check removes it again.
    """

    ROBOT_LIBRARY_VERSION = 1.0

    def __init__(
        self,
        mismatch_tolerance: Optional[float] = None,
        capture: Any = "SeleniumLibrary",
        reference_dir: str = DEFAULT_REFERENCE_DIR,
        screenshot_dir: str = DEFAULT_SCREENSHOT_DIR,
        diff_dir: str = DEFAULT_DIFF_DIR,
        name_template: str = DEFAULT_NAME_TEMPLATE,
        reference_name: Naming = None,
        screenshot_name: Naming = None,
        diff_name: Naming = None,
        ignore: str = DEFAULT_IGNORE_MODE,
        show_diff: bool = True,
        embed_screenshots: bool = False,
        **kwargs,
    ):
        """
        Initialize the ElementCheck library.

        | =Arguments= | =Description= |
        | ``mismatch_tolerance`` | Highest mismatch percentage (0 - 100) still considered a pass. Defaults to ``SCREENSHOT_COMPARE_TOLERANCE`` or ``0``. |
        | ``capture`` | ``SeleniumLibrary``, ``Browser`` or the name of a keyword taking ``locator`` and ``path``. Default is ``SeleniumLibrary``. |
        | ``reference_dir`` | Directory of the reference images. Relative paths are resolved against the current working directory. Default is ``references``. |
        | ``screenshot_dir`` | Directory below ``${OUTPUT DIR}`` for the captured screenshots. Default is ``screenshots``. |
        | ``diff_dir`` | Directory below ``${OUTPUT DIR}`` for diff images. Default is ``diffs``. |
        | ``name_template`` | File name template used for all three images, default ``{suite}/{test}_{selector}_{browser}_{number}.png``. |
        | ``reference_name`` / ``screenshot_name`` / ``diff_name`` | Template or callable overriding ``name_template`` for one kind of image. |
        | ``ignore`` | Default ignore mode of the pixel comparison: ``nothing``, ``less``, ``antialiasing``, ``colors`` or ``alpha``. Default is ``less``. |
        | ``show_diff`` | Add the diff image of failed checks and the screenshot with highlighted differences to the log. Default is True. |
        | ``embed_screenshots`` | Embed images as base64 in the log instead of linking them. Default is False. |
        | ``**kwargs`` | Everything else. |
        """
        built_in = BuiltIn()
        try:
            self.output_directory = Path(built_in.get_variable_value("${OUTPUT DIR}"))
            reference_run = built_in.get_variable_value("${REFERENCE_RUN}", False)
            self.PABOTQUEUEINDEX = built_in.get_variable_value("${PABOTQUEUEINDEX}")
        except RobotNotRunningError:
            LOG.debug("Robot Framework is not running")
            self.output_directory = Path.cwd()
            reference_run = False
            self.PABOTQUEUEINDEX = None

        self.reference_run = reference_run_from_env(bool(reference_run))
        if mismatch_tolerance is None:
            mismatch_tolerance = tolerance_from_env()
        self.ignore = ignore
        self.show_diff = show_diff
        self.embed_screenshots = embed_screenshots
        self.screenshot_dir = screenshot_dir
        self.settings = ComparisonSettings(
            mismatch_tolerance=mismatch_tolerance,
            screenshot_name=as_naming_function(
                screenshot_name or name_template, self.output_directory / screenshot_dir
            ),
            reference_name=as_naming_function(reference_name or name_template, Path(reference_dir)),
            diff_name=as_naming_function(diff_name or name_template, self.output_directory / diff_dir),
        )
        self.engine = ComparisonEngine(self.settings)
        self.capture = create_capture(capture)

    @keyword
    def check_element(
        self,
        locator: str,
        mismatch_tolerance: Optional[float] = None,
        screenshot_number: Optional[int] = None,
        ignore: Optional[str] = None,
        scale_to_same_size: bool = False,
        mask: Union[str, dict, list, None] = None,
    ) -> dict:
        """Captures the element ``locator`` and compares it with its reference image.

        The check itself never fails the test. Use `Element Should Match Reference`
        for that or inspect the returned dictionary.

        | =Arguments= | =Description= |
        | ``locator`` | Locator of the element, in the syntax of the capture library |
        | ``mismatch_tolerance`` | Tolerance for this check only. ``0`` is a valid value and allows no mismatch at all |
        | ``screenshot_number`` | Distinguishes several checks of the same test, available as ``{number}`` in name templates |
        | ``ignore`` | Ignore mode of the pixel comparison for this check |
        | ``scale_to_same_size`` | Scale the reference image to the size of the screenshot before comparing |
        | ``mask`` | Areas to exclude, e.g. ``top:10;bottom:10`` or ``{"type": "coordinates", "x": 0, "y": 0, "width": 100, "height": 20}`` |

        Examples:
        | ${result}    `Check Element`    id:logo
        | Should Be True    ${result}[within_tolerance]
        | ${result}    `Check Element`    css:.header    mismatch_tolerance=2.5    screenshot_number=2
        | ${result}    `Check Element`    id:banner    mask=top:10    ignore=antialiasing
        """
        return self._check(
            locator, mismatch_tolerance, screenshot_number, ignore, scale_to_same_size, mask
        ).to_dict()

    @keyword
    def element_should_match_reference(
        self,
        locator: str,
        mismatch_tolerance: Optional[float] = None,
        screenshot_number: Optional[int] = None,
        ignore: Optional[str] = None,
        scale_to_same_size: bool = False,
        mask: Union[str, dict, list, None] = None,
    ) -> dict:
        """Like `Check Element`, but fails if the mismatch is higher than the tolerance.

        Examples:
        | `Element Should Match Reference`    id:logo
        | `Element Should Match Reference`    id:chart    mismatch_tolerance=1
        """
        report = self._check(
            locator, mismatch_tolerance, screenshot_number, ignore, scale_to_same_size, mask
        )
        if not report.within_tolerance:
            tolerance = resolve_tolerance(mismatch_tolerance, self.settings.mismatch_tolerance)
            self._raise_comparison_failure(
                f"Element '{locator}' differs from reference {report.reference_path} by "
                f"{report.mismatch_percentage}% (tolerance {tolerance}%). Diff: {report.diff_path}"
            )
        return report.to_dict()

    @keyword
    def get_element_mismatch(
        self,
        locator: str,
        assertion_operator: Optional[AssertionOperator] = None,
        assertion_expected: Any = None,
        message: str = None,
        screenshot_number: Optional[int] = None,
        ignore: Optional[str] = None,
        scale_to_same_size: bool = False,
        mask: Union[str, dict, list, None] = None,
    ) -> float:
        """Returns the mismatch percentage of the element compared with its reference image.

        | =Arguments= | =Description= |
        | ``locator`` | Locator of the element |
        | ``assertion_operator`` | Assertion operator to be used. |
        | ``assertion_expected`` | Expected value for the assertion. |
        | ``message`` | Message to be displayed in the log. |

        Examples:
        | `Get Element Mismatch`    id:logo    <=    1.5
        | ${mismatch}    `Get Element Mismatch`    id:logo
        """
        report = self._check(locator, None, screenshot_number, ignore, scale_to_same_size, mask)
        return float_str_verify_assertion(
            report.mismatch_percentage,
            assertion_operator,
            assertion_expected,
            "Mismatch percentage",
            message,
        )

    @keyword
    def set_mismatch_tolerance(self, mismatch_tolerance: float):
        """Set the default mismatch tolerance in percent.

        Examples:
        | `Set Mismatch Tolerance`    0.5
        """
        self.settings.mismatch_tolerance = mismatch_tolerance

    @keyword
    def set_reference_run(self, reference_run: bool):
        """Set whether the run is a reference run.
        In a Reference Run, the screenshots overwrite the reference images and every check passes.

        Examples:
        | `Set Reference Run`    True
        | `Check Element`    id:logo    # Saves the screenshot as new reference image
        """
        self.reference_run = reference_run

    @keyword
    def set_capture_backend(self, capture: str):
        """Set the library or keyword used to take element screenshots.

        Examples:
        | `Set Capture Backend`    Browser
        | `Set Capture Backend`    My Screenshot Keyword
        """
        self.capture = create_capture(capture)

    @keyword
    def set_show_diff(self, show_diff: bool):
        """Set whether the diff image of failed checks is added to the log."""
        self.show_diff = show_diff

    @keyword
    def set_embed_screenshots(self, embed_screenshots: bool):
        """Set whether to embed images as base64 in the log."""
        self.embed_screenshots = embed_screenshots

    def _check(
        self, locator, mismatch_tolerance, screenshot_number, ignore, scale_to_same_size, mask
    ) -> ComparisonReport:
        context = self._create_context(
            locator,
            mismatch_tolerance=mismatch_tolerance,
            screenshot_number=screenshot_number,
            ignore=ignore,
            scale_to_same_size=scale_to_same_size,
        )
        screenshot_path, reference_path, diff_path = resolve_paths(self.settings, context)
        self.capture.capture_element(locator, screenshot_path)
        request = ComparisonRequest(
            captured_image_path=screenshot_path,
            reference_image_path=reference_path,
            diff_image_path=diff_path,
            tolerance_override=mismatch_tolerance,
            ignore=ignore or self.ignore,
            scale_to_same_size=scale_to_same_size,
            mask=mask,
            update_reference=self.reference_run,
        )
        report = self.engine.compare_element_screenshot(request)
        self._log_report(locator, report)
        return report

    def _create_context(self, locator: str, **options) -> NamingContext:
        built_in = BuiltIn()
        try:
            test = built_in.get_variable_value("${TEST NAME}", "")
            suite = built_in.get_variable_value("${SUITE NAME}", "")
        except RobotNotRunningError:
            test, suite = "", ""
        return NamingContext(
            test=test or "",
            suite=suite or "",
            browser=self.capture.browser_info(),
            options=dict(options, selector=locator),
            worker=self.PABOTQUEUEINDEX,
        )

    def _log_report(self, locator: str, report: ComparisonReport):
        if report.outcome == "bootstrapped":
            print(f"Reference image for '{locator}' saved as {report.reference_path}")
        elif report.within_tolerance:
            print(f"Element '{locator}' matches reference with {report.mismatch_percentage}% mismatch.")
        else:
            print(
                f"Element '{locator}' differs from reference by {report.mismatch_percentage}%. "
                f"SSIM score: {report.ssim_score}"
            )
            if self.show_diff:
                self._add_differences_to_log(report)

    def _add_differences_to_log(self, report: ComparisonReport):
        if report.diff_path:
            self.add_image_to_log(report.diff_path, "Diff")
        if report.diff_rectangles:
            screenshot = load_image(report.screenshot_path)
            self.add_screenshot_to_log(highlight_differences(screenshot, report.diff_rectangles), "Screenshot")
            # Rectangles are in screenshot coordinates, a scaled reference would not match
            if report.dimensions_match:
                reference = load_image(report.reference_path)
                self.add_screenshot_to_log(highlight_differences(reference, report.diff_rectangles), "Reference")

    def _raise_comparison_failure(self, message: str = "The element differs from its reference image."):
        raise AssertionError(message)

    def add_image_to_log(self, image_path: str, label: str):
        """Add the image file ``image_path`` to the Robot Framework log."""
        if self.embed_screenshots:
            with open(image_path, "rb") as f:
                self._print_embedded_image(f.read(), label)
        else:
            self._print_linked_image(image_path, label)

    def add_screenshot_to_log(self, image, label: str):
        """Add the OpenCV image ``image`` to the Robot Framework log.

        Unless ``embed_screenshots`` is set, the image is written below the screenshot directory.
        """
        if self.embed_screenshots:
            _, encoded_img = cv2.imencode(".png", image)
            self._print_embedded_image(encoded_img.tobytes(), label)
            return
        screenshot_name = f"{uuid.uuid1()}-{label.lower()}.png"
        if self.PABOTQUEUEINDEX is not None:
            screenshot_name = f"{self.PABOTQUEUEINDEX}-{screenshot_name}"
        abs_screenshot_path = self.output_directory / self.screenshot_dir / screenshot_name
        os.makedirs(abs_screenshot_path.parent, exist_ok=True)
        cv2.imwrite(str(abs_screenshot_path), image)
        self._print_linked_image(str(abs_screenshot_path), label)

    def _print_embedded_image(self, data: bytes, label: str):
        im_b64 = base64.b64encode(data).decode()
        print(
            "*HTML* "
            + f'{label}:<br><img alt="screenshot" src="data:image/png;base64,{im_b64}" style="{IMG_STYLE}">'
        )

    def _print_linked_image(self, image_path: str, label: str):
        rel_path = Path(os.path.relpath(image_path, self.output_directory)).as_posix()
        print(
            "*HTML* "
            + f'{label}:<br><a href="{rel_path}" target="_blank"><img src="{rel_path}" style="{IMG_STYLE}"></a>'
        )
