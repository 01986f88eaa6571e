# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Tests for the pm command line front-end
"""

import json

import pytest

from apppm.cli import main


@pytest.fixture
def config_file(tmp_path, pm_root, monkeypatch):
    """YAML config pointing at the isolated layout"""
    monkeypatch.delenv("APPPM_LOG_LEVEL", raising=False)
    path = tmp_path / "package.yaml"
    path.write_text(
        "paths:\n"
        f"  preset: {pm_root['preset']}\n"
        f"  installed: {pm_root['installed']}\n"
        f"  data: {pm_root['data']}\n"
        "logging:\n"
        "  level: ERROR\n"
    )
    return str(path)


def run(config_file, *args) -> int:
    return main(["--config", config_file, "--timeout", "30", *args])


class TestCommands:
    """Test each subcommand end to end"""

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage: pm" in capsys.readouterr().out

    def test_install_list_get(self, config_file, make_rpk, native_manifest, capsys):
        source = make_rpk(native_manifest())

        assert run(config_file, "install", str(source)) == 0
        out = capsys.readouterr().out
        assert "onInstallResult: com.example.app(success 0)" in out
        assert "onInstallProgress 100" in out

        assert run(config_file, "list", "--names") == 0
        assert capsys.readouterr().out.split() == ["com.example.app"]

        assert run(config_file, "get", "com.example.app") == 0
        record = json.loads(capsys.readouterr().out)
        assert record["package_name"] == "com.example.app"
        assert record["owner_id"] == 10000

    def test_list_full_records(self, config_file, make_rpk, quickapp_manifest, capsys):
        run(config_file, "install", str(make_rpk(quickapp_manifest())))
        capsys.readouterr()

        assert run(config_file, "list") == 0
        records = json.loads(capsys.readouterr().out)
        assert records[0]["execfile"] == "vappxms"

    def test_install_missing_source(self, config_file, pm_root, capsys):
        assert run(config_file, "install", str(pm_root["sources"] / "ghost.rpk")) == 1
        assert "onInstallResult" in capsys.readouterr().out

    def test_uninstall(self, config_file, make_rpk, native_manifest, capsys):
        run(config_file, "install", str(make_rpk(native_manifest())))

        assert run(config_file, "uninstall", "com.example.app", "--clear-cache") == 0
        assert "onUninstallResult: com.example.app(success 0)" in capsys.readouterr().out

        assert run(config_file, "get", "com.example.app") == 1

    def test_uninstall_unknown(self, config_file):
        assert run(config_file, "uninstall", "com.zzz") == 1

    def test_clear_and_stats(self, config_file, pm_root, make_rpk, native_manifest, capsys):
        run(config_file, "install", str(make_rpk(native_manifest())))
        (pm_root["data"] / "com.example.app" / "blob").write_text("x" * 10)
        capsys.readouterr()

        assert run(config_file, "stats", "com.example.app") == 0
        assert json.loads(capsys.readouterr().out)["data_size"] == 10

        assert run(config_file, "clear", "com.example.app") == 0
        assert "clearAppCache com.example.app(0)" in capsys.readouterr().out
        assert not (pm_root["data"] / "com.example.app" / "blob").exists()

    def test_stats_unknown(self, config_file):
        assert run(config_file, "stats", "com.zzz") == 1

    def test_reconcile_and_transactions(self, config_file, pm_root, make_rpk, native_manifest, capsys):
        run(config_file, "install", str(make_rpk(native_manifest())))
        (pm_root["installed"] / "com.orphan").mkdir()
        capsys.readouterr()

        assert run(config_file, "reconcile") == 0
        report = json.loads(capsys.readouterr().out)
        assert report["untracked_dirs"] == [str(pm_root["installed"] / "com.orphan")]

        assert run(config_file, "transactions", "--limit", "1") == 0
        assert json.loads(capsys.readouterr().out)[0]["state"] == "committed"

    def test_invalid_config(self, tmp_path, capsys):
        bad = tmp_path / "bad.yaml"
        bad.write_text("paths: [oops\n")

        assert main(["--config", str(bad), "list"]) != 0
        assert "Invalid configuration" in capsys.readouterr().err

    def test_corrupt_list_refuses_to_start(self, config_file, pm_root):
        (pm_root["installed"] / "packages.list").write_text("{")

        assert run(config_file, "list") == 7
