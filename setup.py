#!/usr/bin/env python3
"""
Setup script for Poll Dispatcher package - HTTP + JSON-RPC long-poll task dispatch
"""
from setuptools import setup, find_packages
from pathlib import Path

# Read version from __init__.py
version_file = Path(__file__).parent / "poll_dispatcher" / "__init__.py"
version = {}
with open(version_file) as f:
    # Only execute the lines we need for version info, avoid imports
    lines = f.readlines()
    version_lines = []
    for line in lines:
        if line.strip().startswith('__version__') or line.strip().startswith('__author__') or line.strip().startswith('__description__'):
            version_lines.append(line)
    exec('\n'.join(version_lines), version)

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    with open(readme_file, encoding="utf-8") as f:
        long_description = f.read()

setup(
    name="poll-dispatcher",
    version=version["__version__"],
    author=version["__author__"],
    description=version["__description__"],
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "pydantic>=2.0.0",
        "starlette>=0.27.0",
        "httpx>=0.25.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.24.0",
            "pytest-cov>=4.0.0",
            "black>=22.0.0",
            "flake8>=5.0.0",
            "mypy>=1.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.24.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "poll-dispatcher=poll_dispatcher.cli:main",
            "poll-dispatcher-worker=poll_dispatcher.client:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Distributed Computing",
    ],
    keywords="dispatcher long-poll worker task queue json-rpc",
    include_package_data=True,
    zip_safe=False,
)
