import pathlib
import subprocess

from invoke import task

import ScreenshotCompare
from ScreenshotCompare import __version__ as VERSION

ROOT = pathlib.Path(__file__).parent.resolve().as_posix()


@task
def utests(context):
    cmd = [
        "coverage",
        "run",
        "--source=ScreenshotCompare",
        "-p",
        "-m",
        "pytest",
        "--junitxml=results/pytest.xml",
        f"{ROOT}/utest",
    ]
    completed_process = subprocess.run(" ".join(cmd), shell=True, check=False)
    coverage_report(context)
    if completed_process.returncode != 0:
        raise Exception("Tests failed")


@task
def coverage_report(context):
    subprocess.run("coverage combine", shell=True, check=False)
    subprocess.run("coverage report", shell=True, check=False)
    subprocess.run("coverage html -d results/htmlcov", shell=True, check=False)


@task
def libdoc(context):
    source = f"{ROOT}/ScreenshotCompare/ElementCheck.py"
    for target in (f"{ROOT}/docs/ElementCheck.html", f"{ROOT}/docs/ElementCheck-{VERSION}.html"):
        cmd = [
            "python",
            "-m",
            "robot.libdoc",
            "-n",
            "ElementCheck",
            "-v",
            VERSION,
            source,
            target,
        ]
        subprocess.run(" ".join(cmd), shell=True)


@task
def readme(context):
    doc_string = ScreenshotCompare.__doc__ or ""
    with open(f"{ROOT}/README.md", "w", encoding="utf-8") as readme:
        readme.write(str(doc_string).strip() + "\n")
