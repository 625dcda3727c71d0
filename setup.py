"""Setup script for Worklog Migrator."""

from setuptools import setup, find_packages
from pathlib import Path

# Read version from VERSION file
version_file = Path(__file__).parent / "VERSION"
version = version_file.read_text().strip() if version_file.exists() else "0.1.0"

# Read requirements from requirements.txt
requirements_file = Path(__file__).parent / "requirements.txt"
if requirements_file.exists():
    with open(requirements_file, "r") as f:
        requirements = [line.strip() for line in f if line.strip() and not line.startswith("#")]
else:
    requirements = []

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="worklog-migrator",
    version=version,
    description="Reconcile and migrate Jira worklogs to parent tasks in another Jira or Tempo",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Worklog Migrator",
    packages=find_packages(where=".", include=["worklog_migrator*"]),
    package_dir={"": "."},
    py_modules=[],
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "worklog-migrator=worklog_migrator.main:cli",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Office/Business",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    keywords="jira tempo worklog migration time-tracking cli",
)
