#!/usr/bin/env python3
"""
FogMine - rules engine for a fog-of-war play-to-earn mining game

Install with: pip install -e .
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="fogmine",
    version="1.0.0",
    author="FogMine Team",
    description="Rules engine for a fog-of-war mining game with ZK or proof-of-work block reveals",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="https://github.com/fogmine/fogmine",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Games/Entertainment",
        "Topic :: Security :: Cryptography",
    ],
    python_requires=">=3.8",
    install_requires=[
        "argon2-cffi>=21.3.0",
        "ecdsa>=0.18.0",
        "py-ecc>=6.0.0",
    ],
    entry_points={
        "console_scripts": [
            "fogmine=fogmine.cli:main",
            "fogmine-server=fogmine.server:main",
        ],
    },
)
