class ScreenshotCompareError(RuntimeError):
    """Base class for faults that abort an element comparison."""


class CaptureError(ScreenshotCompareError):
    """Raised when an element could not be located or screenshotted."""

    def __init__(self, locator: str = "", message: str = ""):
        self.locator = locator
        default = f"Could not take a screenshot of element '{locator}'."
        super().__init__(message or default)


class PersistenceError(ScreenshotCompareError):
    """Raised when a reference or diff image could not be copied, written or removed."""

    def __init__(self, path: str = "", message: str = ""):
        self.path = path
        default = f"File operation failed for '{path}'."
        super().__init__(message or default)


class DiffComputationError(ScreenshotCompareError):
    """Raised when two images could not be compared, e.g. unreadable or corrupt files."""
