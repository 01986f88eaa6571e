# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package manager configuration - single source of truth.
YAML is king. Env vars ONLY for the config location and log level.

Every component receives the Config it needs at construction time.
There is no module-level instance.
"""

import os
import yaml
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from apppm.core.errors import ConfigurationError, IllegalStateError
from apppm.models.package_models import is_valid_package_name


DEFAULT_CONFIG_PATH = "/etc/apppm/package.yaml"


# =============================================================================
# CONFIGURATION DATACLASS
# =============================================================================

@dataclass(frozen=True)
class Config:
    """
    Immutable package manager configuration.
    All values from YAML. No hidden state.
    """

    # -- Paths --
    app_preset_path: str = "/system/app"
    app_installed_path: str = "/data/app"
    app_data_path: str = "/data/data"
    package_list_name: str = "packages.list"
    transaction_log_name: str = "transactions.jsonl"

    # -- Registry --
    first_owner_id: int = 10000
    scan_installed_on_boot: bool = False
    reconcile_on_start: bool = True

    # -- Verification --
    gpgcheck: bool = False
    gpg_keyring: Optional[str] = None
    checksum_enabled: bool = True

    # -- Runtime --
    max_workers: int = 4
    log_level: str = "INFO"
    log_format: str = "text"

    # -- Derived paths --
    @property
    def package_list_path(self) -> Path:
        return Path(self.app_installed_path) / self.package_list_name

    @property
    def staging_path(self) -> Path:
        """Private scratch area used while unpacking a package"""
        return Path(self.app_data_path) / "tmp"

    @property
    def transaction_log_path(self) -> Path:
        return Path(self.app_installed_path) / self.transaction_log_name

    def installed_dir_for(self, package_name: str) -> Path:
        return _package_dir(self.app_installed_path, package_name)

    def data_dir_for(self, package_name: str) -> Path:
        return _package_dir(self.app_data_path, package_name)


def _package_dir(base: str, package_name: str) -> Path:
    """
    Directory of one package directly under base.

    Raises:
        IllegalStateError: If the name would resolve outside base
    """
    root = os.path.normpath(base)
    target = os.path.normpath(os.path.join(root, package_name or ""))
    if not is_valid_package_name(package_name) or os.path.dirname(target) != root:
        raise IllegalStateError(f"Package name {package_name!r} escapes {root}", details={"base": root})
    return Path(target)


# =============================================================================
# LOADER
# =============================================================================

def load_config(path: Optional[str] = None) -> Config:
    """
    Load configuration from YAML.
    Returns defaults if file doesn't exist.

    Args:
        path: YAML file path. Falls back to APPPM_CONFIG_PATH, then
              DEFAULT_CONFIG_PATH.

    Raises:
        ConfigurationError: If the file exists but is not valid YAML
    """
    path = path or os.getenv("APPPM_CONFIG_PATH", DEFAULT_CONFIG_PATH)
    log_level = os.getenv("APPPM_LOG_LEVEL", "INFO")

    if not Path(path).exists():
        return Config(log_level=log_level)

    try:
        with open(path) as f:
            y = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in config: {e}", config_file=path)

    if not isinstance(y, dict):
        raise ConfigurationError("Config root must be a mapping", config_file=path)

    # Helper to safely navigate nested dicts
    def get(d: dict, *keys, default=None):
        for k in keys:
            if not isinstance(d, dict):
                return default
            d = d.get(k, {})
        return d if d != {} else default

    return Config(
        # Paths
        app_preset_path=get(y, "paths", "preset") or "/system/app",
        app_installed_path=get(y, "paths", "installed") or "/data/app",
        app_data_path=get(y, "paths", "data") or "/data/data",
        package_list_name=get(y, "paths", "package_list") or "packages.list",
        transaction_log_name=get(y, "paths", "transaction_log") or "transactions.jsonl",

        # Registry
        first_owner_id=get(y, "registry", "first_owner_id") or 10000,
        scan_installed_on_boot=bool(get(y, "registry", "scan_installed_on_boot", default=False)),
        reconcile_on_start=bool(get(y, "registry", "reconcile_on_start", default=True)),

        # Verification
        gpgcheck=bool(get(y, "verification", "gpgcheck", default=False)),
        gpg_keyring=get(y, "verification", "gpg_keyring"),
        checksum_enabled=bool(get(y, "verification", "checksum", default=True)),

        # Runtime
        max_workers=get(y, "runtime", "max_workers") or 4,
        log_level=os.getenv("APPPM_LOG_LEVEL") or get(y, "logging", "level") or "INFO",
        log_format=get(y, "logging", "format") or "text",
    )
