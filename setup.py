"""tillsync setup - keep selling when the network does not."""
from setuptools import setup, find_packages

setup(
    name="tillsync",
    version="0.1.0",
    description="tillsync: offline sale queue and reconciliation for point-of-sale tills",
    packages=find_packages(include=["tillsync", "tillsync.*", "tillsync_cli", "tillsync_cli.*"]),
    python_requires=">=3.10",
    install_requires=[
        "click>=8.0",
        "requests>=2.28",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tillsync=tillsync_cli.main:cli",
        ],
    },
)
