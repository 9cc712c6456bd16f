from setuptools import setup, find_packages
import datetime

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="robotframework-screenshotcompare",
    version="0.1.0.dev" + datetime.datetime.now().strftime("%Y%m%d%H%M%S"),
    description="Visual regression checks of web page elements for Robot Framework",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["ScreenshotCompare", "ScreenshotCompare.*"]),
    python_requires=">=3.8",
    install_requires=['imutils', 'numpy', 'opencv-python-headless', 'robotframework', 'robotframework-assertion-engine', 'scikit-image'],
    extras_require={
        'selenium': ['robotframework-seleniumlibrary'],
        'browser': ['robotframework-browser'],
        'test': ['pytest', 'coverage', 'invoke'],
    },
    zip_safe=False
)
