# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Registry Module - Application Package Management

Each module does one thing:
- parser: manifest.json -> PackageRecord
- package_list: persisted packages.list
- index: in-memory registry with lazy validation
- staging: unpack/verify sources, checksum trees
- installer: install/uninstall transactions
- transactions: transaction audit log
- service: facade composing all of the above
"""

from .parser import ManifestParser
from .package_list import PackageListStore
from .index import PackageRegistry
from .staging import ArchiveStager, TreeChecksummer, NullChecksummer
from .transactions import TransactionLogger
from .installer import PackageInstaller
from .observers import InstallObserver, UninstallObserver, ResultWaiter
from .service import PackageManagerService

__all__ = [
    "ManifestParser",
    "PackageListStore",
    "PackageRegistry",
    "ArchiveStager",
    "TreeChecksummer",
    "NullChecksummer",
    "TransactionLogger",
    "PackageInstaller",
    "InstallObserver",
    "UninstallObserver",
    "ResultWaiter",
    "PackageManagerService",
]
