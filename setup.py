"""Set up the gitway package."""
import json
from pathlib import Path

from setuptools import find_packages, setup

DESCRIPTION = (
    "A Git Smart HTTP gateway that serves repositories"
    " through the git executable."
)

REQUIREMENTS = [
    "aiofiles",
    "fastapi>=0.100.0",
    "pydantic>=2.6.1",
    "python-dotenv>=0.19.0",
    "shortuuid>=1.0.1",
    "starlette",
    "uvicorn>=0.23.2",
    "prometheus-client>=0.21.0",
]

ROOT_DIR = Path(__file__).parent.resolve()
README_FILE = ROOT_DIR / "README.md"
LONG_DESCRIPTION = (
    README_FILE.read_text(encoding="utf-8") if README_FILE.exists() else DESCRIPTION
)
VERSION_FILE = ROOT_DIR / "gitway" / "VERSION"
VERSION = json.loads(VERSION_FILE.read_text(encoding="utf-8"))["version"]


setup(
    name="gitway",
    version=VERSION,
    description=DESCRIPTION,
    long_description=LONG_DESCRIPTION,
    long_description_content_type="text/markdown",
    license="MIT",
    packages=find_packages(include=["gitway", "gitway.*"]),
    package_data={"gitway": ["VERSION"]},
    python_requires=">=3.9",
    include_package_data=True,
    install_requires=REQUIREMENTS,
    extras_require={
        "test": [
            "pytest",
            "pytest-asyncio",
            "httpx>=0.21.1",
        ],
    },
    zip_safe=False,
    entry_points={"console_scripts": ["gitway = gitway.__main__:main"]},
)
