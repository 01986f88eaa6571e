# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Data Models

Defines data structures for installed packages, their manifests,
the persisted package list, and install/uninstall transactions.
"""

from typing import List, Optional
from datetime import datetime
from pathlib import Path
from pydantic import BaseModel, Field
from enum import Enum


MANIFEST_NAME = "manifest.json"

_FORBIDDEN_NAME_CHARS = ("/", "\\", "\0")


def is_valid_package_name(package_name: str) -> bool:
    """
    A package name becomes a single directory component under the
    installed and data roots, so separators and dot names are rejected.
    """
    if not package_name or package_name in (".", ".."):
        return False
    return not any(char in package_name for char in _FORBIDDEN_NAME_CHARS)


class ApplicationType(str, Enum):
    """Application type declared by a manifest"""
    NATIVE = "NATIVE"
    QUICKAPP = "QUICKAPP"
    UNKNOWN = "UNKNOWN"


def get_application_type(app_type: str) -> ApplicationType:
    """
    Map a declared type string to an ApplicationType.

    Only the prefix before the first '/' is significant,
    so "NATIVE/service" resolves to NATIVE.
    """
    prefix = (app_type or "").split("/", 1)[0]
    if prefix == ApplicationType.NATIVE.value:
        return ApplicationType.NATIVE
    if prefix == ApplicationType.QUICKAPP.value:
        return ApplicationType.QUICKAPP
    return ApplicationType.UNKNOWN


class TransactionState(str, Enum):
    """Install/uninstall transaction state"""
    STAGED = "staged"
    VERIFIED = "verified"
    PARSED = "parsed"
    PLACED = "placed"
    COMMITTED = "committed"
    ABORTED = "aborted"


class TransactionOperation(str, Enum):
    """Type of transaction operation"""
    INSTALL = "install"
    UNINSTALL = "uninstall"


class ActivityDescriptor(BaseModel):
    """Activity declared by a native manifest"""
    name: str
    launch_mode: str = "standard"
    task_affinity: str = ""
    actions: List[str] = Field(default_factory=list)


class ServiceDescriptor(BaseModel):
    """
    Service declared by a manifest.

    Native services use exported/actions; quick app services only carry
    name and path.
    """
    name: str
    exported: bool = False
    actions: List[str] = Field(default_factory=list)
    path: str = ""


class RouterDescriptor(BaseModel):
    """Quick app page router"""
    entry: str = ""
    pages: List[str] = Field(default_factory=list)


class QuickAppExtra(BaseModel):
    """Quick app specific metadata"""
    version_code: int = 0
    features: List[str] = Field(default_factory=list)
    router: RouterDescriptor = Field(default_factory=RouterDescriptor)


class PackageSummary(BaseModel):
    """
    Persisted, unvalidated view of an installed package.

    This is what survives a restart. Field aliases are the keys used in
    the package list file.
    """
    package_name: str = Field(alias="package")
    app_type: str = Field(default="", alias="appType")
    owner_id: int = Field(default=0, alias="uid")
    install_time: str = Field(default="", alias="installedTime")
    installed_path: str = Field(default="", alias="installedPath")
    size_bytes: int = Field(default=0, alias="size")
    checksum: str = Field(default="", alias="shasum")
    version: str = ""

    class Config:
        populate_by_name = True

    @property
    def manifest_path(self) -> str:
        return str(Path(self.installed_path) / MANIFEST_NAME)

    def to_list_entry(self) -> dict:
        """Serialize with package list keys"""
        return self.model_dump(by_alias=True)


class PackageRecord(BaseModel):
    """Validated record of an installed package"""
    package_name: str = ""
    display_name: str = ""
    app_type: str = ""
    version: str = ""
    icon: str = ""
    entry: str = ""
    execfile: str = ""
    installed_path: str = ""
    manifest_path: str = ""
    install_time: str = ""
    checksum: str = ""
    owner_id: int = 0
    size_bytes: int = 0
    is_fully_validated: bool = False
    activities: List[ActivityDescriptor] = Field(default_factory=list)
    services: List[ServiceDescriptor] = Field(default_factory=list)
    extra: Optional[QuickAppExtra] = None

    @property
    def application_type(self) -> ApplicationType:
        return get_application_type(self.app_type)

    def to_summary(self) -> PackageSummary:
        """Project onto the persisted fields"""
        return PackageSummary(
            package_name=self.package_name,
            app_type=self.app_type,
            owner_id=self.owner_id,
            install_time=self.install_time,
            installed_path=self.installed_path,
            size_bytes=self.size_bytes,
            checksum=self.checksum,
            version=self.version,
        )


class InstallParam(BaseModel):
    """Install request"""
    path: str


class UninstallParam(BaseModel):
    """Uninstall request"""
    package_name: str
    clear_cache: bool = False


class PackageStats(BaseModel):
    """Disk usage of an installed package, in bytes"""
    package_name: str
    code_size: int = 0
    data_size: int = 0
    cache_size: int = 0


class TransactionRecord(BaseModel):
    """Transaction record for install/uninstall operations"""
    id: str
    operation: TransactionOperation
    package_name: str
    source: Optional[str] = None
    state: TransactionState
    code: int = 0
    message: str = ""
    started_at: datetime
    completed_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        """Convert to dictionary for serialization"""
        return {
            "id": self.id,
            "operation": self.operation.value,
            "package_name": self.package_name,
            "source": self.source,
            "state": self.state.value,
            "code": self.code,
            "message": self.message,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
        }


class ReconcileReport(BaseModel):
    """Outcome of a startup reconciliation pass"""
    dropped: List[str] = Field(default_factory=list)
    untracked_dirs: List[str] = Field(default_factory=list)
    stale_staging_dirs: List[str] = Field(default_factory=list)
