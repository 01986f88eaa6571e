# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Core utilities and shared modules for the package manager.

This package contains:
- config: Configuration management
- errors: Error taxonomy and exceptions
- logging: Structured logging
"""

from apppm.core.config import load_config, Config
from apppm.core.errors import ErrorKind, PackageManagerError, NotFoundError
from apppm.core.logging import get_logger, log_event

__all__ = [
    "load_config",
    "Config",
    "ErrorKind",
    "PackageManagerError",
    "NotFoundError",
    "get_logger",
    "log_event",
]
