# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for ManifestParser

Covers native and quick app manifests, first-time parse bookkeeping,
re-validation of persisted summaries, and every failure kind.
"""

import re

import pytest

from apppm.core.errors import (
    MalformedManifestError,
    ManifestIOError,
    ManifestParseError,
    UnsupportedTypeError,
)
from apppm.models.package_models import ApplicationType, PackageSummary
from apppm.services.registry.parser import ManifestParser
from apppm.services.registry.staging import TreeChecksummer


@pytest.fixture
def parser():
    return ManifestParser()


@pytest.fixture
def app_dir(tmp_path):
    return tmp_path / "com.example.app"


class TestNativeManifest:
    """Test native application manifests"""

    def test_valid_manifest_is_fully_validated(self, parser, app_dir, write_package_dir, native_manifest):
        """Should parse a complete native manifest"""
        write_package_dir(app_dir, native_manifest())

        record = parser.parse(app_dir / "manifest.json")

        assert record.is_fully_validated is True
        assert record.package_name == "com.example.app"
        assert record.display_name == "Example App"
        assert record.application_type == ApplicationType.NATIVE
        assert record.version == "1.0.0"
        assert record.entry == "MainActivity"
        assert record.execfile == "bin/example"
        assert record.icon == "res/icon.png"
        assert record.extra is None

    def test_activity_defaults(self, parser, app_dir, write_package_dir, native_manifest):
        """Should default launch mode to standard and task affinity to package"""
        write_package_dir(app_dir, native_manifest())

        activity = parser.parse(app_dir / "manifest.json").activities[0]

        assert activity.name == "MainActivity"
        assert activity.launch_mode == "standard"
        assert activity.task_affinity == "com.example.app"
        assert activity.actions == ["android.intent.action.MAIN"]

    def test_activity_explicit_values(self, parser, app_dir, write_package_dir, native_manifest):
        manifest = native_manifest(activities=[
            {"name": "Main", "launchMode": "singleTop", "taskAffinity": "shared.task"}
        ])
        write_package_dir(app_dir, manifest)

        activity = parser.parse(app_dir / "manifest.json").activities[0]

        assert activity.launch_mode == "singleTop"
        assert activity.task_affinity == "shared.task"
        assert activity.actions == []

    def test_services(self, parser, app_dir, write_package_dir, native_manifest):
        manifest = native_manifest(services=[
            {"name": "SyncService", "exported": True, "intent-filter": {"actions": ["sync"]}},
            {"name": "LocalService"},
        ])
        write_package_dir(app_dir, manifest)

        services = parser.parse(app_dir / "manifest.json").services

        assert [s.name for s in services] == ["SyncService", "LocalService"]
        assert services[0].exported is True
        assert services[0].actions == ["sync"]
        assert services[1].exported is False

    def test_app_type_prefix(self, parser, app_dir, write_package_dir, native_manifest):
        """Should classify by the prefix before '/'"""
        write_package_dir(app_dir, native_manifest(appType="NATIVE/daemon"))

        record = parser.parse(app_dir / "manifest.json")

        assert record.app_type == "NATIVE/daemon"
        assert record.application_type == ApplicationType.NATIVE

    @pytest.mark.parametrize("field", ["entry", "execfile"])
    def test_missing_required_field(self, parser, app_dir, write_package_dir, native_manifest, field):
        """Should reject native manifests without entry or execfile"""
        manifest = native_manifest()
        del manifest[field]
        write_package_dir(app_dir, manifest)

        with pytest.raises(MalformedManifestError) as exc_info:
            parser.parse(app_dir / "manifest.json")
        assert exc_info.value.field == field

    def test_empty_entry_rejected(self, parser, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest(entry=""))

        with pytest.raises(MalformedManifestError):
            parser.parse(app_dir / "manifest.json")

    def test_unnamed_activity_rejected(self, parser, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest(activities=[{"launchMode": "standard"}]))

        with pytest.raises(MalformedManifestError) as exc_info:
            parser.parse(app_dir / "manifest.json")
        assert exc_info.value.field == "activities.name"

    def test_unnamed_service_rejected(self, parser, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest(services=[{"exported": True}]))

        with pytest.raises(MalformedManifestError) as exc_info:
            parser.parse(app_dir / "manifest.json")
        assert exc_info.value.field == "services.name"

    def test_wrong_typed_optional_field_uses_default(self, parser, app_dir, write_package_dir, native_manifest):
        """Should ignore optional fields of the wrong JSON type"""
        write_package_dir(app_dir, native_manifest(name=42, icon=["x"]))

        record = parser.parse(app_dir / "manifest.json")

        assert record.display_name == ""
        assert record.icon == ""


class TestQuickAppManifest:
    """Test quick app manifests"""

    def test_synthesized_defaults(self, parser, app_dir, write_package_dir, quickapp_manifest):
        """Should fill execfile, entry and a single launcher activity"""
        write_package_dir(app_dir, quickapp_manifest())

        record = parser.parse(app_dir / "manifest.json")

        assert record.application_type == ApplicationType.QUICKAPP
        assert record.execfile == "vappxms"
        assert record.entry == "QuickActivity"
        assert len(record.activities) == 1
        assert record.activities[0].name == "QuickActivity"
        assert record.activities[0].launch_mode == "singleTask"
        assert record.activities[0].task_affinity == "com.example.quick"

    def test_extra(self, parser, app_dir, write_package_dir, quickapp_manifest):
        """Should collect version code, features and router"""
        write_package_dir(app_dir, quickapp_manifest())

        extra = parser.parse(app_dir / "manifest.json").extra

        assert extra.version_code == 3
        assert extra.features == ["system.fetch", "system.storage"]
        assert extra.router.entry == "Home"
        assert extra.router.pages == ["Home"]

    def test_default_app_type_is_quickapp(self, parser, app_dir, write_package_dir, quickapp_manifest):
        manifest = quickapp_manifest()
        del manifest["appType"]
        write_package_dir(app_dir, manifest)

        record = parser.parse(app_dir / "manifest.json")

        assert record.app_type == "QUICKAPP"
        assert record.application_type == ApplicationType.QUICKAPP

    def test_services_keep_path(self, parser, app_dir, write_package_dir, quickapp_manifest):
        write_package_dir(app_dir, quickapp_manifest(services=[{"name": "push", "path": "services/push"}]))

        services = parser.parse(app_dir / "manifest.json").services

        assert services[0].name == "push"
        assert services[0].path == "services/push"

    def test_features_without_name_skipped(self, parser, app_dir, write_package_dir, quickapp_manifest):
        write_package_dir(app_dir, quickapp_manifest(features=[{"name": "a"}, {}, {"name": ""}]))

        assert parser.parse(app_dir / "manifest.json").extra.features == ["a"]


class TestFirstTimeParse:
    """Test bookkeeping derived on first-time parse"""

    def test_derives_installed_path_and_size(self, parser, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest(), files={"bin/example": "x" * 100})

        record = parser.parse(app_dir / "manifest.json")

        assert record.installed_path == str(app_dir)
        assert record.manifest_path == str(app_dir / "manifest.json")
        assert record.size_bytes >= 100
        assert re.fullmatch(r"\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2}", record.install_time)

    def test_default_checksum_is_empty(self, parser, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest())

        assert parser.parse(app_dir / "manifest.json").checksum == ""

    def test_tree_checksum(self, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest())

        record = ManifestParser(TreeChecksummer()).parse(app_dir / "manifest.json")

        assert re.fullmatch(r"[0-9a-f]{64}", record.checksum)

    def test_checksum_failure_is_tolerated(self, app_dir, write_package_dir, native_manifest):
        """Should record an empty digest when the checksummer fails"""

        class BrokenChecksummer:
            def checksum(self, directory):
                raise RuntimeError("disk on fire")

        write_package_dir(app_dir, native_manifest())

        record = ManifestParser(BrokenChecksummer()).parse(app_dir / "manifest.json")

        assert record.checksum == ""
        assert record.is_fully_validated is True


class TestRevalidation:
    """Test parsing from persisted summaries"""

    def test_summary_keeps_persisted_fields(self, parser, app_dir, write_package_dir, native_manifest):
        """Should keep identity and bookkeeping from the summary"""
        write_package_dir(app_dir, native_manifest(version="2.0.0"))
        summary = PackageSummary(
            package_name="com.example.app",
            app_type="NATIVE",
            owner_id=10007,
            install_time="2024-01-01 00:00:00",
            installed_path=str(app_dir),
            size_bytes=1234,
            checksum="abc",
            version="1.9.0",
        )

        record = parser.parse(summary)

        assert record.is_fully_validated is True
        assert record.owner_id == 10007
        assert record.install_time == "2024-01-01 00:00:00"
        assert record.size_bytes == 1234
        assert record.checksum == "abc"
        assert record.version == "1.9.0"
        assert record.entry == "MainActivity"
        assert len(record.activities) == 1

    def test_record_reparse_does_not_duplicate(self, parser, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest())
        record = parser.parse(app_dir / "manifest.json")

        again = parser.parse(record)

        assert len(again.activities) == 1
        assert len(again.services) == 1

    def test_summary_with_broken_manifest(self, parser, app_dir, write_package_dir, native_manifest):
        manifest = native_manifest()
        del manifest["entry"]
        write_package_dir(app_dir, manifest)
        summary = PackageSummary(package_name="com.example.app", app_type="NATIVE", installed_path=str(app_dir))

        with pytest.raises(MalformedManifestError):
            parser.parse(summary)


class TestParseFailures:
    """Test failure kinds"""

    def test_missing_file(self, parser, tmp_path):
        with pytest.raises(ManifestIOError):
            parser.parse(tmp_path / "nope" / "manifest.json")

    def test_invalid_json(self, parser, app_dir, write_package_dir):
        write_package_dir(app_dir, "{not json")

        with pytest.raises(ManifestParseError):
            parser.parse(app_dir / "manifest.json")

    def test_non_object_document(self, parser, app_dir, write_package_dir):
        write_package_dir(app_dir, "[1, 2, 3]")

        with pytest.raises(ManifestParseError):
            parser.parse(app_dir / "manifest.json")

    def test_missing_package_name(self, parser, app_dir, write_package_dir, native_manifest):
        """Should reject manifests with no package name"""
        manifest = native_manifest()
        del manifest["package"]
        write_package_dir(app_dir, manifest)

        with pytest.raises(MalformedManifestError) as exc_info:
            parser.parse(app_dir / "manifest.json")
        assert exc_info.value.field == "package"

    def test_unknown_app_type(self, parser, app_dir, write_package_dir, native_manifest):
        write_package_dir(app_dir, native_manifest(appType="WIDGET"))

        with pytest.raises(UnsupportedTypeError) as exc_info:
            parser.parse(app_dir / "manifest.json")
        assert exc_info.value.code == 3

    @pytest.mark.parametrize("package", [".", "..", "a/b", "../escape", "a\\b", "a\0b"])
    def test_package_name_must_be_one_directory(self, parser, app_dir, write_package_dir, native_manifest, package):
        """Should reject names that are not a single path component"""
        write_package_dir(app_dir, native_manifest(package=package))

        with pytest.raises(MalformedManifestError) as exc_info:
            parser.parse(app_dir / "manifest.json")
        assert exc_info.value.field == "package"

    def test_non_utf8_manifest(self, parser, app_dir, write_package_dir):
        write_package_dir(app_dir, "{}")
        (app_dir / "manifest.json").write_bytes(b'{"package": "com.\xff\xfe"}')

        with pytest.raises(ManifestParseError):
            parser.parse(app_dir / "manifest.json")
