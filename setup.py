"""
Setup script for fluency-engine.

fluency-engine is the calibration core of an adaptive language-learning
system. It serves three roles:

1. Task Composition - Fills task templates with language objects under
   a cognitive-load budget and linguistic constraints
2. Response Calibration - Scores multi-object responses and updates
   per-component ability, mastery stage and review schedule
3. Usage Tracking - Records the contexts an object has been used in and
   estimates how far that usage generalizes

The 'fluency' command exposes the engine from the terminal.
"""

from setuptools import find_packages, setup

setup(
    name="fluency-engine",
    version="1.0.0",
    description="Adaptive calibration engine for multi-component language learning",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["config"],
    python_requires=">=3.10",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
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
            "fluency=fluency.cli.main:run",
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
    keywords="language-learning irt calibration adaptive education",
)
