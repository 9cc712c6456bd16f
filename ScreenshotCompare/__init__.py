"""
# robotframework-screenshotcompare
----
[Robot Framework](https://robotframework.org) library for visual regression checks of single web page elements.

The element is captured in the running browser session, compared pixel by pixel with a stored
reference image and the check passes if the mismatch stays within a tolerance.

```RobotFramework
*** Settings ***
Library    SeleniumLibrary
Library    ScreenshotCompare.ElementCheck    mismatch_tolerance=1

*** Test Cases ***
Logo Looks Like Before
    Open Browser    https://example.com    chrome
    Element Should Match Reference    css:h1
```

# Installation instructions

`pip install --upgrade robotframework-screenshotcompare`

Install `robotframework-seleniumlibrary` or `robotframework-browser` as well, depending on which
library drives your browser.

# How it works

| Situation | Result |
| No reference image exists yet | The screenshot is saved as reference image, the check passes as exact match |
| Mismatch is lower than or equal to the tolerance | The check passes, an old diff image is removed |
| Mismatch is higher than the tolerance | The check fails, a diff image with the mismatching pixels in magenta is written |

Different image sizes alone do not fail a check. The result contains `dimensions_match`
for tests that care about it.

`Check Element` returns a dictionary and never fails:

```RobotFramework
*** Test Cases ***
Inspect The Result
    ${result}    Check Element    id:chart    mismatch_tolerance=2.5
    Should Be True    ${result}[within_tolerance]
    Should Be True    ${result}[dimensions_match]
```

`Get Element Mismatch` supports assertion operators:

```RobotFramework
*** Test Cases ***
Chart Almost Unchanged
    Get Element Mismatch    id:chart    <=    0.5
```

# Configuration

```RobotFramework
*** Settings ***
Library    Browser
Library    ScreenshotCompare.ElementCheck
...    capture=Browser
...    mismatch_tolerance=0.5
...    reference_dir=${CURDIR}/references
...    name_template={suite}/{test}_{selector}_{number}.png
...    ignore=antialiasing
```

Name templates may use `{suite}`, `{test}`, `{browser}`, `{browser_version}`, `{platform}`,
`{number}`, `{selector}` and `{worker}` (the pabot queue index). The default is
`{suite}/{test}_{selector}_{browser}_{number}.png`, so every element of a test gets its own images.
Values are made path safe. Values that had to be changed get a short hash of the original
appended, so `Login: A` and `Login? A` do not share a file.
Reference images live below `reference_dir`, screenshots and diff images below `${OUTPUT DIR}`.

A mismatch tolerance of `0` passed to a single check is honoured and allows no mismatch at all.

The default tolerance can also be set with the environment variable `SCREENSHOT_COMPARE_TOLERANCE`.
Set `SCREENSHOT_COMPARE_REFERENCE_RUN=true` or `${REFERENCE_RUN}` to overwrite all reference images.

### Ignore parts of an element

```RobotFramework
*** Test Cases ***
Ignore The Timestamp Row
    Element Should Match Reference    id:report    mask=bottom:10
    Element Should Match Reference    id:report    mask={"type": "coordinates", "x": 0, "y": 0, "width": 200, "height": 20}
```

### Parallel runs

Checks sharing the same reference or diff path must not run at the same time.
When using pabot, give each test its own images or put `{worker}` into the name template.

# Development

Feel free to create issues or pull requests.
"""
from importlib import metadata

try:
    __version__ = metadata.version("robotframework-screenshotcompare")
except metadata.PackageNotFoundError:
    __version__ = "0.0.0"
