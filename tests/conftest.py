# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Test Fixtures and Utilities

Every test gets an isolated device layout under tmp_path:

    tmp_path/system/app   preset applications
    tmp_path/data/app     installed applications + packages.list
    tmp_path/data/data    per-package data directories
    tmp_path/sources      install sources built by the tests
"""

import json
import tarfile
import zipfile
from pathlib import Path
from typing import Dict, Optional

import pytest

from apppm.core.config import Config
from apppm.services.registry.service import PackageManagerService


# ============================================================================
# Manifest Builders
# ============================================================================

def build_native_manifest(package: str = "com.example.app", version: str = "1.0.0", **overrides) -> dict:
    manifest = {
        "package": package,
        "name": "Example App",
        "appType": "NATIVE",
        "versionName": version,
        "icon": "res/icon.png",
        "entry": "MainActivity",
        "execfile": "bin/example",
        "activities": [
            {
                "name": "MainActivity",
                "intent-filter": {"actions": ["android.intent.action.MAIN"]},
            }
        ],
        "services": [
            {"name": "SyncService", "exported": True},
        ],
    }
    manifest.update(overrides)
    return manifest


def build_quickapp_manifest(package: str = "com.example.quick", version: str = "1.0.0", **overrides) -> dict:
    manifest = {
        "package": package,
        "name": "Quick Example",
        "appType": "QUICKAPP",
        "versionName": version,
        "versionCode": 3,
        "icon": "common/logo.png",
        "features": [{"name": "system.fetch"}, {"name": "system.storage"}],
        "router": {"entry": "Home", "pages": {"Home": {"component": "index"}}},
    }
    manifest.update(overrides)
    return manifest


@pytest.fixture
def native_manifest():
    """Factory for native manifest documents"""
    return build_native_manifest


@pytest.fixture
def quickapp_manifest():
    """Factory for quick app manifest documents"""
    return build_quickapp_manifest


# ============================================================================
# Filesystem Layout
# ============================================================================

@pytest.fixture
def pm_root(tmp_path) -> Dict[str, Path]:
    """Isolated preset/installed/data/sources directories"""
    layout = {
        "preset": tmp_path / "system" / "app",
        "installed": tmp_path / "data" / "app",
        "data": tmp_path / "data" / "data",
        "sources": tmp_path / "sources",
    }
    for path in layout.values():
        path.mkdir(parents=True)
    return layout


@pytest.fixture
def config(pm_root) -> Config:
    """Config pointing at the isolated layout"""
    return Config(
        app_preset_path=str(pm_root["preset"]),
        app_installed_path=str(pm_root["installed"]),
        app_data_path=str(pm_root["data"]),
        max_workers=2,
    )


@pytest.fixture
def write_package_dir():
    """Write a package directory: manifest.json plus optional extra files"""

    def _write(directory: Path, manifest, files: Optional[Dict[str, str]] = None) -> Path:
        directory.mkdir(parents=True, exist_ok=True)
        if isinstance(manifest, str):
            (directory / "manifest.json").write_text(manifest)
        elif manifest is not None:
            (directory / "manifest.json").write_text(json.dumps(manifest))
        for name, content in (files or {}).items():
            target = directory / name
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_text(content)
        return directory

    return _write


@pytest.fixture
def make_rpk(pm_root):
    """Build a .rpk (zip) install source in the sources directory"""

    def _make(manifest, name: Optional[str] = None, files: Optional[Dict[str, str]] = None) -> Path:
        if name is None:
            name = f"{manifest['package']}.rpk"
        path = pm_root["sources"] / name
        with zipfile.ZipFile(path, "w") as rpk:
            if manifest is not None:
                rpk.writestr("manifest.json", json.dumps(manifest))
            for member, content in (files or {"bin/example": "#!/bin/sh\necho example\n"}).items():
                rpk.writestr(member, content)
        return path

    return _make


@pytest.fixture
def make_tarball(pm_root, write_package_dir, tmp_path):
    """Build a .tar.gz install source in the sources directory"""

    def _make(manifest, name: Optional[str] = None, files: Optional[Dict[str, str]] = None) -> Path:
        if name is None:
            name = f"{manifest['package']}.tar.gz"
        content_dir = write_package_dir(tmp_path / "tar-content" / name, manifest, files)
        path = pm_root["sources"] / name
        with tarfile.open(path, "w:gz") as tar:
            for entry in sorted(content_dir.rglob("*")):
                tar.add(entry, arcname=str(entry.relative_to(content_dir)), recursive=False)
        return path

    return _make


# ============================================================================
# Service
# ============================================================================

@pytest.fixture
def service(config):
    """Started service; shut down (waiting for workers) after the test"""
    pm = PackageManagerService(config)
    pm.start()
    yield pm
    pm.shutdown(wait=True)
