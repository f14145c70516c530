"""
Setup script for cadence-scheduler.

cadence is the adaptive learning scheduling core. It serves three roles:

1. Memory model - FSRS review scheduling from timing-aware ratings
2. Ability model - IRT theta estimation and item calibration
3. Session planner - priority ranking and load-budgeted session composition

The 'cadence' command exposes every operation over JSON files for
developers and calibration jobs.
"""

from setuptools import find_packages, setup

setup(
    name="cadence-scheduler",
    version="0.1.0",
    description="Adaptive learning scheduling core: FSRS, IRT, priority ranking and session planning",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.12.0",
        "rich>=13.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Numerics
        "numpy>=1.24.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "cadence=cadence.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning spaced-repetition fsrs irt education cognitive",
)
