# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Registry

Single responsibility: in-memory index of installed packages, keyed by
package name.

An entry is in one of two states:
- PackageSummary: loaded from the package list, not yet validated
- PackageRecord: manifest parsed in this process (is_fully_validated)

Reads validate summaries on demand and swap the entry for the fresh
record. Every access holds the registry lock.
"""

import logging
import threading
from typing import Dict, List, Optional, Union

from apppm.core.errors import NotFoundError, PackageManagerError
from apppm.models.package_models import PackageRecord, PackageSummary

from .parser import ManifestParser

logger = logging.getLogger(__name__)

Entry = Union[PackageSummary, PackageRecord]


class PackageRegistry:
    """Authoritative runtime view of installed packages"""

    def __init__(self, parser: ManifestParser, first_owner_id: int = 10000):
        """
        Initialize package registry.

        Args:
            parser: Manifest parser used for lazy validation
            first_owner_id: Owner id handed to the first installed package
        """
        self.parser = parser
        self.first_owner_id = first_owner_id
        self.lock = threading.RLock()
        self._entries: Dict[str, Entry] = {}

    def __len__(self) -> int:
        with self.lock:
            return len(self._entries)

    def load(self, summaries: Dict[str, PackageSummary]) -> None:
        """Replace the index with unvalidated summaries"""
        with self.lock:
            self._entries = dict(summaries)
        logger.info(f"Registry loaded {len(summaries)} packages")

    def contains(self, package_name: str) -> bool:
        with self.lock:
            return package_name in self._entries

    def names(self) -> List[str]:
        with self.lock:
            return list(self._entries.keys())

    def peek(self, package_name: str) -> Optional[Entry]:
        """Raw entry without validation (copy), or None"""
        with self.lock:
            entry = self._entries.get(package_name)
            return entry.model_copy(deep=True) if entry is not None else None

    def get(self, package_name: str) -> PackageRecord:
        """
        Get a validated record.

        Raises:
            NotFoundError: If the package is not registered
            ManifestError: If the installed manifest no longer validates
        """
        with self.lock:
            if package_name not in self._entries:
                logger.error(f"Package {package_name} not found")
                raise NotFoundError("Package", package_name)
            return self._validated(package_name).model_copy(deep=True)

    def get_all(self) -> List[PackageRecord]:
        """
        All records that validate.

        Packages whose manifest fails to parse are skipped: a broken
        installation is invisible, not fatal.
        """
        records = []
        with self.lock:
            for package_name in list(self._entries.keys()):
                try:
                    records.append(self._validated(package_name).model_copy(deep=True))
                except PackageManagerError as e:
                    logger.warning(f"Skipping invalid package {package_name}: {e}")
        return records

    def upsert(self, record: PackageRecord) -> PackageRecord:
        """
        Insert or replace a record.

        An existing entry's owner_id is kept, so an upgrade never
        renumbers ownership.

        Returns:
            The stored record (copy)
        """
        with self.lock:
            previous = self._entries.get(record.package_name)
            stored = record.model_copy(deep=True)
            if previous is not None:
                stored.owner_id = previous.owner_id
            self._entries[record.package_name] = stored
            return stored.model_copy(deep=True)

    def remove(self, package_name: str) -> bool:
        """
        Remove the in-memory entry only.

        Returns:
            True if an entry was removed
        """
        with self.lock:
            return self._entries.pop(package_name, None) is not None

    def allocate_owner_id(self) -> int:
        """Next unused owner id"""
        with self.lock:
            highest = max(
                (entry.owner_id for entry in self._entries.values()),
                default=self.first_owner_id - 1
            )
            return max(highest, self.first_owner_id - 1) + 1

    def _validated(self, package_name: str) -> PackageRecord:
        entry = self._entries[package_name]
        if isinstance(entry, PackageRecord) and entry.is_fully_validated:
            return entry

        record = self.parser.parse(entry)
        self._entries[package_name] = record
        logger.debug(f"Validated package {package_name}")
        return record
