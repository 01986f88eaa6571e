# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
apppm - application package manager.

Installs, upgrades, removes and indexes application packages (native
and quick apps) on a device filesystem.
"""

__version__ = "1.0.0"
