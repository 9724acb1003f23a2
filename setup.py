"""Ukulima offline setup - Queue it, replay it, never lose it."""
from setuptools import setup, find_packages

setup(
    name="ukulima-offline",
    version="1.0.0",
    description="Ukulima Biashara offline action queue and sync client",
    packages=find_packages(include=["ukulima", "ukulima.*", "ukulima_cli", "ukulima_cli.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "requests>=2.28",
        "blake3>=0.3",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "ukulima=ukulima_cli.main:cli",
        ],
    },
)
