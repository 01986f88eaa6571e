# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package List Store

Single responsibility: persist the set of installed packages in one JSON
document (packages.list). No business logic.

Document format:
    {
      "version": 1,
      "packages": [
        {"package": ..., "appType": ..., "uid": ..., "installedTime": ...,
         "installedPath": ..., "size": ..., "shasum": ..., "version": ...}
      ]
    }
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, Iterable, Union

from pydantic import ValidationError

from apppm.core.errors import PackageListCorruptError, PackageListIOError
from apppm.models.package_models import PackageRecord, PackageSummary, is_valid_package_name
from apppm.utils.fs import read_json, write_json_atomic

logger = logging.getLogger(__name__)

PACKAGE_LIST_VERSION = 1

Entry = Union[PackageRecord, PackageSummary]


class PackageListStore:
    """File-backed list of installed package summaries"""

    def __init__(self, list_path: Path):
        """
        Initialize package list store.

        Args:
            list_path: Path to packages.list
        """
        self.list_path = Path(list_path)

    def exists(self) -> bool:
        return self.list_path.exists()

    def create(self) -> None:
        """Write an empty package list, replacing any existing one"""
        self._write(self._empty_document())
        logger.info(f"Created package list at {self.list_path}")

    def load(self) -> Dict[str, PackageSummary]:
        """
        Load persisted summaries keyed by package name, in file order.

        Returns:
            Empty dict if the list file does not exist

        Raises:
            PackageListCorruptError: If the file exists but cannot be parsed
            PackageListIOError: If the file exists but cannot be read
        """
        if not self.exists():
            return {}

        document = self._read()
        summaries: Dict[str, PackageSummary] = {}
        for entry in document["packages"]:
            if not isinstance(entry, dict) or not entry.get("package"):
                logger.error(f"{self.list_path} has an entry with empty package field")
                continue
            if not is_valid_package_name(str(entry["package"])):
                logger.error(f"Skipping entry with invalid package name {entry['package']!r} in {self.list_path}")
                continue
            try:
                summary = PackageSummary.model_validate(entry)
            except ValidationError as e:
                logger.error(f"Skipping invalid entry {entry.get('package')} in {self.list_path}: {e}")
                continue
            summaries[summary.package_name] = summary
        return summaries

    def is_empty(self) -> bool:
        """True when the list is missing or holds no packages"""
        if not self.exists():
            return True
        return len(self._read()["packages"]) == 0

    def append(self, records: Union[Entry, Iterable[Entry]]) -> None:
        """
        Append one or more packages to the persisted list.

        Read-modify-write of the whole document; atomic per call.
        """
        if isinstance(records, (PackageRecord, PackageSummary)):
            records = [records]

        document = self._read() if self.exists() else self._empty_document()
        for record in records:
            summary = record.to_summary() if isinstance(record, PackageRecord) else record
            document["packages"].append(summary.to_list_entry())
        self._write(document)

    def remove(self, package_name: str) -> bool:
        """
        Remove a package from the persisted list.

        Returns:
            True if an entry was removed
        """
        document = self._read() if self.exists() else self._empty_document()
        packages = document["packages"]
        remaining = [
            entry for entry in packages
            if not (isinstance(entry, dict) and entry.get("package") == package_name)
        ]
        document["packages"] = remaining
        self._write(document)
        return len(remaining) != len(packages)

    def _empty_document(self) -> Dict[str, Any]:
        return {"version": PACKAGE_LIST_VERSION, "packages": []}

    def _read(self) -> Dict[str, Any]:
        try:
            document = read_json(self.list_path)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            logger.error(f"Package list {self.list_path} exists but is not json format: {e}")
            raise PackageListCorruptError(f"Corrupt package list: {e}", list_path=str(self.list_path))
        except OSError as e:
            raise PackageListIOError(f"Cannot read package list: {e}", path=str(self.list_path))

        if not isinstance(document, dict):
            raise PackageListCorruptError("Package list root must be an object", list_path=str(self.list_path))

        packages = document.get("packages", [])
        if not isinstance(packages, list):
            raise PackageListCorruptError("'packages' must be an array", list_path=str(self.list_path))
        document["packages"] = packages
        document.setdefault("version", PACKAGE_LIST_VERSION)
        return document

    def _write(self, document: Dict[str, Any]) -> None:
        try:
            write_json_atomic(self.list_path, document)
        except OSError as e:
            logger.error(f"Failed to write package list {self.list_path}: {e}")
            raise PackageListIOError(f"Cannot write package list: {e}", path=str(self.list_path))
