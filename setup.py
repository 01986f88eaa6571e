# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the Application Package Manager
"""

from setuptools import setup, find_packages

setup(
    name="apppm",
    version="1.0.0",
    description="Application package registry and install/uninstall transactions",
    author="Jason Cafarelli",
    packages=find_packages(include=["apppm", "apppm.*"]),
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0",
        "PyYAML>=6.0",
        "python-gnupg>=0.5.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ]
    },
    entry_points={
        "console_scripts": [
            "pm=apppm.cli:main",
        ]
    },
)
