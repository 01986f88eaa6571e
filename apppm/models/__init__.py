# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

from apppm.models.package_models import (
    MANIFEST_NAME,
    ApplicationType,
    get_application_type,
    TransactionState,
    TransactionOperation,
    ActivityDescriptor,
    ServiceDescriptor,
    RouterDescriptor,
    QuickAppExtra,
    PackageSummary,
    PackageRecord,
    InstallParam,
    UninstallParam,
    PackageStats,
    TransactionRecord,
    ReconcileReport,
)

__all__ = [
    "MANIFEST_NAME",
    "ApplicationType",
    "get_application_type",
    "TransactionState",
    "TransactionOperation",
    "ActivityDescriptor",
    "ServiceDescriptor",
    "RouterDescriptor",
    "QuickAppExtra",
    "PackageSummary",
    "PackageRecord",
    "InstallParam",
    "UninstallParam",
    "PackageStats",
    "TransactionRecord",
    "ReconcileReport",
]
