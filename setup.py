#!/usr/bin/env python3
"""Setup script for Photo Cloud Sync."""

from pathlib import Path
from setuptools import setup, find_packages

this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

# Read requirements
requirements = []
with open(this_directory / "requirements.txt") as f:
    for line in f:
        line = line.strip()
        if line and not line.startswith("#"):
            requirements.append(line)

setup(
    name="photo-cloud-sync",
    version="1.0.0",
    author="Photo Cloud Sync contributors",
    description=(
        "Keeps a local photo catalog consistent with a remote photo store"
    ),
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Multimedia :: Graphics",
        "Topic :: System :: Archiving :: Mirroring",
    ],
    python_requires=">=3.10",
    install_requires=requirements,
    extras_require={"test": ["pytest>=7.4"]},
    entry_points={
        "console_scripts": [
            "photo-sync=photo_sync.cli.main:cli",
        ],
    },
    include_package_data=True,
    zip_safe=False,
)
