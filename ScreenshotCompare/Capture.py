import logging
import os
import shutil
from typing import Union

from robot.libraries.BuiltIn import BuiltIn

from ScreenshotCompare.exceptions import CaptureError
from ScreenshotCompare.PathNaming import BrowserInfo

LOG = logging.getLogger(__name__)


def _ensure_parent(path):
    directory = os.path.dirname(path)
    if directory:
        os.makedirs(directory, exist_ok=True)


class SeleniumCapture:
    """Takes element screenshots in the active ``SeleniumLibrary`` browser."""

    def __init__(self, library_name: str = "SeleniumLibrary"):
        self.library_name = library_name

    def _library(self):
        return BuiltIn().get_library_instance(self.library_name)

    def capture_element(self, locator: str, path: str) -> str:
        try:
            element = self._library().find_element(locator)
            _ensure_parent(path)
            saved = element.screenshot(path)
        except Exception as err:
            raise CaptureError(locator, f"Could not take a screenshot of element '{locator}': {err}") from err
        if not saved:
            raise CaptureError(locator, f"Screenshot of element '{locator}' could not be written to {path}")
        LOG.debug(f"Captured element {locator} to {path}")
        return path

    def browser_info(self) -> BrowserInfo:
        try:
            driver = self._library().driver
            capabilities = driver.capabilities
            user_agent = driver.execute_script("return navigator.userAgent;")
        except Exception as err:
            raise CaptureError(message=f"Browser session is not available: {err}") from err
        return BrowserInfo(
            name=capabilities.get("browserName") or "unknown",
            version=capabilities.get("browserVersion") or capabilities.get("version") or "",
            platform=capabilities.get("platformName") or capabilities.get("platform") or "",
            user_agent=user_agent or "",
        )


class BrowserCapture:
    """Takes element screenshots with the ``Take Screenshot`` keyword of the ``Browser`` library."""

    def __init__(self, library_name: str = "Browser"):
        self.library_name = library_name

    def capture_element(self, locator: str, path: str) -> str:
        filename, extension = os.path.splitext(path)
        file_type = extension.lstrip(".").lower() or "png"
        if file_type == "jpg":
            file_type = "jpeg"
        try:
            _ensure_parent(path)
            saved = BuiltIn().run_keyword(
                f"{self.library_name}.Take Screenshot", filename, locator, f"fileType={file_type}"
            )
            # Browser appends its own extension, e.g. .jpeg for .jpg paths
            if saved and os.path.abspath(saved) != os.path.abspath(path) and os.path.isfile(saved):
                shutil.move(saved, path)
        except Exception as err:
            raise CaptureError(locator, f"Could not take a screenshot of element '{locator}': {err}") from err
        if not os.path.isfile(path):
            raise CaptureError(locator, f"Screenshot of element '{locator}' was not written to {path}")
        LOG.debug(f"Captured element {locator} to {path}")
        return path

    def browser_info(self) -> BrowserInfo:
        built_in = BuiltIn()
        try:
            user_agent, platform = built_in.run_keyword(
                f"{self.library_name}.Evaluate JavaScript",
                None,
                "() => [navigator.userAgent, navigator.platform]",
            )
            catalog = built_in.run_keyword(f"{self.library_name}.Get Browser Catalog")
        except Exception as err:
            raise CaptureError(message=f"Browser session is not available: {err}") from err
        active = next((browser for browser in catalog if browser.get("activeBrowser")), {})
        return BrowserInfo(
            name=active.get("type") or "unknown",
            platform=platform or "",
            user_agent=user_agent or "",
        )


class KeywordCapture:
    """Delegates the screenshot to any keyword accepting ``locator`` and ``path``."""

    def __init__(self, keyword_name: str, browser_name: str = "unknown"):
        self.keyword_name = keyword_name
        self.browser_name = browser_name

    def capture_element(self, locator: str, path: str) -> str:
        try:
            _ensure_parent(path)
            BuiltIn().run_keyword(self.keyword_name, locator, path)
        except Exception as err:
            raise CaptureError(locator, f"Keyword '{self.keyword_name}' failed for element '{locator}': {err}") from err
        if not os.path.isfile(path):
            raise CaptureError(locator, f"Keyword '{self.keyword_name}' did not write {path}")
        return path

    def browser_info(self) -> BrowserInfo:
        return BrowserInfo(name=self.browser_name)


def create_capture(capture: Union[str, object]):
    """Return a capture backend for ``SeleniumLibrary``, ``Browser`` or a keyword name.

    Objects that already provide ``capture_element`` are returned unchanged.
    """
    if hasattr(capture, "capture_element"):
        return capture
    name = str(capture)
    if name.lower() in ("seleniumlibrary", "selenium"):
        return SeleniumCapture()
    if name.lower() in ("browser", "playwright"):
        return BrowserCapture()
    return KeywordCapture(name)
