"""Installs the woody package.
"""

import os
import sys

import setuptools

# Add current folder to path
# This is required to import the version string in an isolated pip build
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

import woody  # noqa: E402 # pylint: disable=wrong-import-position

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    version=woody.__version__,
    name="woody",
    description="Bridge that translates HTTP requests into PINE requests for the PCSX2 and RPCS3 emulators.",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    packages=setuptools.find_packages(include=["woody", "woody.*"]),
    python_requires=">=3.9",
    install_requires=["PyYAML", "retry", "fastapi", "uvicorn"],
    extras_require={
        "test": ["pytest", "hypothesis", "httpx"],
    },
    entry_points={
        "console_scripts": [
            "woody=woody.application.backend:main",
            "woody-cli=woody.application.frontend:main",
        ],
    },
)
