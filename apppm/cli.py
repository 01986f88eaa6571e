# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
pm - command line front-end for the package manager.

Usage:
    pm install PATH
    pm uninstall PACKAGE [--clear-cache]
    pm list [--names]
    pm get PACKAGE
    pm clear PACKAGE
    pm stats PACKAGE
    pm reconcile
    pm transactions [--limit N]

Runs the service in-process against the configured directories and
waits for each transaction's terminal result.
"""

import argparse
import json
import logging
import sys
from typing import List, Optional

from apppm.core.config import load_config
from apppm.core.errors import ErrorKind, PackageManagerError
from apppm.core.logging import configure_logging
from apppm.models.package_models import InstallParam, UninstallParam
from apppm.services.registry.observers import ResultWaiter
from apppm.services.registry.service import PackageManagerService

logger = logging.getLogger(__name__)


class CliResultWaiter(ResultWaiter):
    """ResultWaiter that echoes callbacks to stdout"""

    def on_install_progress(self, package_name: str, percent: int) -> None:
        super().on_install_progress(package_name, percent)
        print(f"onInstallProgress {percent}")

    def on_install_result(self, package_name: str, code: int, message: str) -> None:
        print(f"onInstallResult: {package_name}({message} {code})")
        super().on_install_result(package_name, code, message)

    def on_uninstall_result(self, package_name: str, code: int, message: str) -> None:
        print(f"onUninstallResult: {package_name}({message} {code})")
        super().on_uninstall_result(package_name, code, message)


def _dump(data) -> None:
    print(json.dumps(data, indent=2, default=str))


def _wait(waiter: ResultWaiter, timeout: float) -> int:
    if not waiter.wait(timeout):
        print(f"Timed out after {timeout}s waiting for result", file=sys.stderr)
        return int(ErrorKind.ILLEGAL_STATE)
    return waiter.code


def run_install(service: PackageManagerService, args: argparse.Namespace) -> int:
    waiter = CliResultWaiter()
    status = service.install(InstallParam(path=args.path), waiter)
    if status:
        return status
    return _wait(waiter, args.timeout)


def run_uninstall(service: PackageManagerService, args: argparse.Namespace) -> int:
    waiter = CliResultWaiter()
    param = UninstallParam(package_name=args.package, clear_cache=args.clear_cache)
    status = service.uninstall(param, waiter)
    if status:
        return status
    return _wait(waiter, args.timeout)


def run_list(service: PackageManagerService, args: argparse.Namespace) -> int:
    if args.names:
        for name in service.list_package_names():
            print(name)
        return 0
    _dump([record.model_dump() for record in service.list_packages()])
    return 0


def run_get(service: PackageManagerService, args: argparse.Namespace) -> int:
    try:
        record = service.get(args.package)
    except PackageManagerError as e:
        print(f"get {args.package} failed: {e.message}", file=sys.stderr)
        return e.code
    _dump(record.model_dump())
    return 0


def run_clear(service: PackageManagerService, args: argparse.Namespace) -> int:
    status = service.clear_cache(args.package)
    print(f"clearAppCache {args.package}({status})")
    return status


def run_stats(service: PackageManagerService, args: argparse.Namespace) -> int:
    try:
        stats = service.size_stats(args.package)
    except PackageManagerError as e:
        print(f"stats {args.package} failed: {e.message}", file=sys.stderr)
        return e.code
    _dump(stats.model_dump())
    return 0


def run_reconcile(service: PackageManagerService, args: argparse.Namespace) -> int:
    _dump(service.reconcile().model_dump())
    return 0


def run_transactions(service: PackageManagerService, args: argparse.Namespace) -> int:
    _dump(service.list_transactions(limit=args.limit))
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="pm", description="Application package manager")
    parser.add_argument(
        "--config",
        help="Config YAML path (default: $APPPM_CONFIG_PATH or /etc/apppm/package.yaml)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=300,
        help="Seconds to wait for install/uninstall results (default: 300)",
    )

    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    install = subparsers.add_parser("install", help="Install or upgrade a package")
    install.add_argument("path", help="Package source (.rpk, .zip, .tar.gz or directory)")
    install.set_defaults(handler=run_install)

    uninstall = subparsers.add_parser("uninstall", help="Uninstall a package")
    uninstall.add_argument("package")
    uninstall.add_argument("--clear-cache", action="store_true", help="Also remove the data directory")
    uninstall.set_defaults(handler=run_uninstall)

    list_cmd = subparsers.add_parser("list", help="List installed packages")
    list_cmd.add_argument("--names", action="store_true", help="Print package names only")
    list_cmd.set_defaults(handler=run_list)

    get = subparsers.add_parser("get", help="Show one package")
    get.add_argument("package")
    get.set_defaults(handler=run_get)

    clear = subparsers.add_parser("clear", help="Clear a package's data directory")
    clear.add_argument("package")
    clear.set_defaults(handler=run_clear)

    stats = subparsers.add_parser("stats", help="Show disk usage of a package")
    stats.add_argument("package")
    stats.set_defaults(handler=run_stats)

    reconcile = subparsers.add_parser("reconcile", help="Reconcile registry with the filesystem")
    reconcile.set_defaults(handler=run_reconcile)

    transactions = subparsers.add_parser("transactions", help="Show recent transactions")
    transactions.add_argument("--limit", type=int, default=20)
    transactions.set_defaults(handler=run_transactions)

    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    if not getattr(args, "handler", None):
        parser.print_help()
        return 0

    try:
        config = load_config(args.config)
    except PackageManagerError as e:
        print(f"Invalid configuration: {e.message}", file=sys.stderr)
        return e.code

    configure_logging(config)
    service = PackageManagerService(config)
    try:
        service.start()
    except PackageManagerError as e:
        logger.critical(f"Package manager failed to start: {e}")
        return e.code

    try:
        return args.handler(service, args)
    finally:
        service.shutdown(wait=True)


if __name__ == "__main__":
    sys.exit(main())
