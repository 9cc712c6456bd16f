import hashlib
import os
import re
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Tuple, Union

from ScreenshotCompare.ComparisonEngine import ComparisonSettings

_UNSAFE_CHARACTERS = re.compile(r"[^\w.-]+")


def sanitize(value) -> str:
    """Make ``value`` usable as a single path segment.

    Unsafe characters become ``_``. If that changed the value, the first six hex digits
    of its SHA-1 are appended so different values do not share a segment.
    """
    text = str(value)
    cleaned = _UNSAFE_CHARACTERS.sub("_", text).strip("_")
    if not cleaned.strip("."):
        return "unknown"
    if cleaned != text:
        cleaned = f"{cleaned}_{hashlib.sha1(text.encode('utf-8')).hexdigest()[:6]}"
    return cleaned


@dataclass(frozen=True)
class BrowserInfo:
    name: str = "unknown"
    version: str = ""
    platform: str = ""
    user_agent: str = ""


@dataclass(frozen=True)
class NamingContext:
    """Everything a naming function may use to build a path.

    Assembled by the caller for each check. The comparison engine never looks at it.
    """

    test: str = ""
    suite: str = ""
    browser: BrowserInfo = field(default_factory=BrowserInfo)
    options: Dict[str, Any] = field(default_factory=dict)
    worker: Optional[str] = None

    def format_fields(self) -> Dict[str, str]:
        number = self.options.get("screenshot_number")
        return {
            "test": sanitize(self.test),
            "suite": sanitize(self.suite),
            "browser": sanitize(self.browser.name),
            "browser_version": sanitize(self.browser.version),
            "platform": sanitize(self.browser.platform),
            "number": sanitize(number if number is not None else 0),
            "selector": sanitize(self.options.get("selector", "")),
            "worker": sanitize(self.worker if self.worker is not None else 0),
        }


class TemplateNaming:
    """Naming function built from a ``str.format`` template below a root directory.

    | =Field= | =Value= |
    | ``{suite}`` | Name of the current suite |
    | ``{test}`` | Name of the current test |
    | ``{browser}`` | Browser name, e.g. ``chrome`` or ``chromium`` |
    | ``{browser_version}`` | Browser version |
    | ``{platform}`` | Operating system reported by the browser |
    | ``{number}`` | ``screenshot_number`` of the check, ``0`` when not given |
    | ``{selector}`` | Locator of the element |
    | ``{worker}`` | pabot queue index, ``0`` when not running with pabot |
    """

    def __init__(self, root: Union[str, os.PathLike], template: str):
        self.root = root
        self.template = template

    def __call__(self, context: NamingContext) -> str:
        return os.path.join(os.fspath(self.root), self.template.format(**context.format_fields()))

    def __repr__(self):
        return f"TemplateNaming({os.fspath(self.root)!r}, {self.template!r})"


def as_naming_function(
    naming: Union[str, Callable[[NamingContext], str]], root: Union[str, os.PathLike]
) -> Callable[[NamingContext], str]:
    """Use callables as they are, turn strings into a ``TemplateNaming`` below ``root``."""
    if callable(naming):
        return naming
    return TemplateNaming(root, str(naming))


def resolve_paths(settings: ComparisonSettings, context: NamingContext) -> Tuple[str, str, str]:
    """Return the screenshot, reference and diff path for ``context``."""
    namings = (settings.screenshot_name, settings.reference_name, settings.diff_name)
    if any(naming is None for naming in namings):
        raise ValueError("screenshot_name, reference_name and diff_name must all be configured.")
    return tuple(os.fspath(naming(context)) for naming in namings)
