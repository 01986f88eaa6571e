# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Manifest Parser

Single responsibility: read one application's manifest.json and produce a
validated PackageRecord. Never touches the filesystem beyond reading.
"""

import json
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from apppm.core.errors import (
    MalformedManifestError,
    ManifestIOError,
    ManifestParseError,
    UnsupportedTypeError,
)
from apppm.models.package_models import (
    ActivityDescriptor,
    ApplicationType,
    PackageRecord,
    PackageSummary,
    QuickAppExtra,
    RouterDescriptor,
    ServiceDescriptor,
    get_application_type,
    is_valid_package_name,
)
from apppm.utils.fs import current_time, directory_size

from .staging import Checksummer, NullChecksummer

logger = logging.getLogger(__name__)

DEFAULT_APP_TYPE = "QUICKAPP"

# Quick apps declare no executable or activities; the launcher runs them
# through the quick app engine with this synthesized entry.
QUICKAPP_EXECFILE = "vappxms"
QUICKAPP_ENTRY = "QuickActivity"
QUICKAPP_LAUNCH_MODE = "singleTask"

ManifestSource = Union[str, Path, PackageSummary, PackageRecord]


def _get(document: Any, key: str, default: Any) -> Any:
    """
    Typed lookup: returns default when the key is absent or has a
    different JSON type than the default.
    """
    if not isinstance(document, dict) or key not in document:
        return default
    value = document[key]
    if isinstance(default, bool):
        return value if isinstance(value, bool) else default
    if isinstance(default, int):
        return value if isinstance(value, int) and not isinstance(value, bool) else default
    if default is None or isinstance(value, type(default)):
        return value
    return default


def _actions(component: Dict[str, Any]) -> List[str]:
    intent = _get(component, "intent-filter", {})
    return [action for action in _get(intent, "actions", []) if isinstance(action, str)]


class ManifestParser:
    """Parses native and quick app manifests into PackageRecords"""

    def __init__(self, checksummer: Optional[Checksummer] = None):
        """
        Initialize manifest parser.

        Args:
            checksummer: Digest collaborator used on first-time parses
        """
        self.checksummer = checksummer or NullChecksummer()

    def parse(self, source: ManifestSource) -> PackageRecord:
        """
        Parse a manifest.

        Args:
            source: Path to a manifest.json, or a summary/record carrying
                    the manifest path. A source without a package name is
                    a first-time parse and also derives installed path,
                    install time, size and checksum.

        Returns:
            New PackageRecord with is_fully_validated=True

        Raises:
            ManifestIOError: Manifest cannot be read
            ManifestParseError: Manifest is not a JSON object
            MalformedManifestError: Required field missing
            UnsupportedTypeError: Unknown appType
        """
        record = self._seed_record(source)
        document = self._read_document(record.manifest_path)

        if not record.package_name:
            self._parse_identity(document, record)

        record.display_name = _get(document, "name", "")
        record.icon = _get(document, "icon", "")

        app_type = get_application_type(record.app_type)
        if app_type == ApplicationType.NATIVE:
            self._parse_native(document, record)
        elif app_type == ApplicationType.QUICKAPP:
            self._parse_quickapp(document, record)
        else:
            raise UnsupportedTypeError(
                f"Unsupported application type '{record.app_type}' in {record.manifest_path}",
                manifest_path=record.manifest_path
            )

        record.is_fully_validated = True
        return record

    def _seed_record(self, source: ManifestSource) -> PackageRecord:
        if isinstance(source, PackageSummary):
            record = PackageRecord(**source.model_dump())
            record.manifest_path = source.manifest_path
            return record
        if isinstance(source, PackageRecord):
            # Derived fields are rebuilt from the manifest
            return source.model_copy(update={
                "activities": [],
                "services": [],
                "extra": None,
                "is_fully_validated": False,
            }, deep=True)
        return PackageRecord(manifest_path=str(source))

    def _read_document(self, manifest_path: str) -> Dict[str, Any]:
        try:
            with open(manifest_path, "r", encoding="utf-8") as f:
                content = f.read()
        except OSError as e:
            logger.error(f"Failed to read manifest {manifest_path}: {e}")
            raise ManifestIOError(f"Cannot read manifest {manifest_path}: {e}", manifest_path=manifest_path)
        except UnicodeDecodeError as e:
            logger.error(f"Manifest {manifest_path} is not utf-8: {e}")
            raise ManifestParseError(f"Manifest {manifest_path} is not valid UTF-8: {e}", manifest_path=manifest_path)

        try:
            document = json.loads(content)
        except json.JSONDecodeError as e:
            logger.error(f"Manifest {manifest_path} is not json format: {e}")
            raise ManifestParseError(f"Invalid JSON in manifest {manifest_path}: {e}", manifest_path=manifest_path)

        if not isinstance(document, dict):
            raise ManifestParseError(f"Manifest {manifest_path} must be a JSON object", manifest_path=manifest_path)
        return document

    def _parse_identity(self, document: Dict[str, Any], record: PackageRecord) -> None:
        record.package_name = _get(document, "package", "")
        if not record.package_name:
            logger.error(f"Failed parse manifest {record.manifest_path}: package field")
            raise MalformedManifestError(
                f"Manifest {record.manifest_path} has no package name",
                manifest_path=record.manifest_path,
                field="package"
            )
        if not is_valid_package_name(record.package_name):
            logger.error(f"Failed parse manifest {record.manifest_path}: invalid package name {record.package_name!r}")
            raise MalformedManifestError(
                f"Manifest {record.manifest_path} has an invalid package name {record.package_name!r}",
                manifest_path=record.manifest_path,
                field="package"
            )

        record.app_type = _get(document, "appType", DEFAULT_APP_TYPE)
        record.version = _get(document, "versionName", "")

        installed_path = Path(record.manifest_path).parent
        record.installed_path = str(installed_path)
        record.install_time = current_time()
        record.size_bytes = directory_size(installed_path)
        try:
            record.checksum = self.checksummer.checksum(installed_path) or ""
        except Exception as e:
            logger.warning(f"Checksum of {installed_path} failed, recording empty digest: {e}")
            record.checksum = ""

    def _require(self, value: str, field: str, record: PackageRecord) -> str:
        if not value:
            logger.error(f"Failed parse manifest {record.manifest_path}: {field} field")
            raise MalformedManifestError(
                f"Manifest {record.manifest_path} is missing required field '{field}'",
                manifest_path=record.manifest_path,
                field=field
            )
        return value

    def _parse_native(self, document: Dict[str, Any], record: PackageRecord) -> None:
        record.entry = self._require(_get(document, "entry", ""), "entry", record)
        record.execfile = self._require(_get(document, "execfile", ""), "execfile", record)

        for item in _get(document, "activities", []):
            name = self._require(_get(item, "name", ""), "activities.name", record)
            record.activities.append(ActivityDescriptor(
                name=name,
                launch_mode=_get(item, "launchMode", "standard"),
                task_affinity=_get(item, "taskAffinity", record.package_name),
                actions=_actions(item),
            ))

        for item in _get(document, "services", []):
            name = self._require(_get(item, "name", ""), "services.name", record)
            record.services.append(ServiceDescriptor(
                name=name,
                exported=_get(item, "exported", False),
                actions=_actions(item),
            ))

    def _parse_quickapp(self, document: Dict[str, Any], record: PackageRecord) -> None:
        record.execfile = _get(document, "execfile", QUICKAPP_EXECFILE)
        record.entry = _get(document, "entry", QUICKAPP_ENTRY)
        record.activities.append(ActivityDescriptor(
            name=QUICKAPP_ENTRY,
            launch_mode=QUICKAPP_LAUNCH_MODE,
            task_affinity=record.package_name,
        ))

        features = []
        for item in _get(document, "features", []):
            name = _get(item, "name", "")
            if name:
                features.append(name)

        router = _get(document, "router", {})
        pages = _get(router, "pages", {})

        record.extra = QuickAppExtra(
            version_code=_get(document, "versionCode", 0),
            features=features,
            router=RouterDescriptor(
                entry=_get(router, "entry", ""),
                pages=[page for page in pages if isinstance(page, str)],
            ),
        )

        for item in _get(document, "services", []):
            record.services.append(ServiceDescriptor(
                name=_get(item, "name", ""),
                path=_get(item, "path", ""),
            ))
