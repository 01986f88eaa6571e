# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Manager Service - Modular Composition

Composes focused modules into the package manager facade:
- ManifestParser: manifest.json -> PackageRecord
- PackageListStore: persisted packages.list
- PackageRegistry: in-memory index with lazy validation
- PackageInstaller: install/uninstall transactions
- TransactionLogger: transaction audit trail

Install and uninstall run on a worker pool and report back through
observers; every other operation is synchronous.
"""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any, Callable, List, Optional

from apppm.core.config import Config
from apppm.core.errors import (
    ErrorKind,
    NotFoundError,
    PackageListCorruptError,
    PackageManagerError,
    ServiceUnavailableError,
    sanitize_error_for_user,
)
from apppm.models.package_models import (
    MANIFEST_NAME,
    InstallParam,
    PackageRecord,
    PackageStats,
    PackageSummary,
    ReconcileReport,
    UninstallParam,
)
from apppm.utils.fs import (
    child_directories,
    clear_directory,
    create_directory,
    directory_size,
)

from .index import PackageRegistry
from .installer import PackageInstaller
from .observers import InstallObserver, UninstallObserver
from .package_list import PackageListStore
from .parser import ManifestParser
from .staging import ArchiveStager, Checksummer, NullChecksummer, Stager, TreeChecksummer
from .transactions import TransactionLogger

logger = logging.getLogger(__name__)

SUCCESS_MESSAGE = "success"


class PackageManagerService:
    """
    Package manager facade (modular composition).

    Example:
        >>> service = PackageManagerService(load_config())
        >>> service.start()
        >>> waiter = ResultWaiter()
        >>> service.install(InstallParam(path="/data/com.demo.app.rpk"), waiter)
        0
        >>> waiter.wait(30)
        True
    """

    def __init__(
        self,
        config: Config,
        stager: Optional[Stager] = None,
        checksummer: Optional[Checksummer] = None,
        max_workers: Optional[int] = None
    ):
        """
        Initialize package manager service.

        Nothing touches the filesystem until start().

        Args:
            config: Package manager configuration
            stager: Source unpack collaborator (defaults to ArchiveStager)
            checksummer: Digest collaborator (defaults per config.checksum_enabled)
            max_workers: Transaction worker threads (defaults to config.max_workers)
        """
        self.config = config
        self.max_workers = max_workers or config.max_workers

        if checksummer is None:
            checksummer = TreeChecksummer() if config.checksum_enabled else NullChecksummer()
        if stager is None:
            stager = ArchiveStager(gpgcheck=config.gpgcheck, keyring_dir=config.gpg_keyring)

        self.stager = stager
        self.parser = ManifestParser(checksummer)
        self.package_list = PackageListStore(config.package_list_path)
        self.registry = PackageRegistry(self.parser, first_owner_id=config.first_owner_id)
        self.transaction_logger: Optional[TransactionLogger] = None
        self.installer: Optional[PackageInstaller] = None

        self._executor: Optional[ThreadPoolExecutor] = None
        self._state_lock = threading.Lock()
        self._started = False
        self._first_boot = False

    # ========================================================================
    # Lifecycle
    # ========================================================================

    def start(self) -> None:
        """
        Bootstrap the registry and start the worker pool.

        Raises:
            PackageListCorruptError: The persisted list cannot be trusted
        """
        with self._state_lock:
            if self._started:
                return

            self.transaction_logger = TransactionLogger(self.config.transaction_log_path)
            self.installer = PackageInstaller(
                config=self.config,
                registry=self.registry,
                package_list=self.package_list,
                parser=self.parser,
                stager=self.stager,
                transaction_logger=self.transaction_logger
            )

            self._bootstrap()
            if self.config.reconcile_on_start:
                self.reconcile()

            self._executor = ThreadPoolExecutor(
                max_workers=self.max_workers,
                thread_name_prefix="apppm-txn"
            )
            self._started = True

        logger.info(
            f"Package manager started: {len(self.registry)} packages, "
            f"first_boot={self._first_boot}"
        )

    def shutdown(self, wait: bool = True) -> None:
        """Stop accepting transactions; optionally wait for running ones"""
        with self._state_lock:
            executor = self._executor
            self._executor = None
            self._started = False

        if executor is not None:
            executor.shutdown(wait=wait)
            logger.info("Package manager stopped")

    def is_first_boot(self) -> bool:
        """True when the package list was absent at startup"""
        return self._first_boot

    def _bootstrap(self) -> None:
        if not self.package_list.exists():
            self._first_boot = True
            logger.info(f"No package list at {self.package_list.list_path}, first boot")
            self.package_list.create()

            scan_paths = child_directories(self.config.app_preset_path)
            if self.config.scan_installed_on_boot:
                scan_paths = child_directories(self.config.app_installed_path) + scan_paths
            self.package_list.append(self._scan(scan_paths))
            return

        if self.config.scan_installed_on_boot:
            logger.info("Rebuilding package list from preset and installed directories")
            self.package_list.create()
            scan_paths = (
                child_directories(self.config.app_installed_path)
                + child_directories(self.config.app_preset_path)
            )
            self.package_list.append(self._scan(scan_paths))
            return

        if self.package_list.is_empty():
            logger.info(f"Package list {self.package_list.list_path} exists but holds no packages")
            self.package_list.create()
            records = self._scan(child_directories(self.config.app_preset_path))
            if not records:
                raise PackageListCorruptError(
                    "Package list is empty and no preset packages were found",
                    list_path=str(self.package_list.list_path)
                )
            self.package_list.append(records)
            return

        self.registry.load(self.package_list.load())

    def _scan(self, directories: List[Path]) -> List[PackageRecord]:
        """
        Parse every directory's manifest into the registry.

        Unparsable directories are skipped; the first directory wins when
        two declare the same package.
        """
        records = []
        with self.registry.lock:
            for directory in directories:
                manifest_path = directory / MANIFEST_NAME
                try:
                    record = self.parser.parse(manifest_path)
                except PackageManagerError as e:
                    logger.warning(f"Skipping {directory}: {e}")
                    continue

                if self.registry.contains(record.package_name):
                    logger.warning(f"Duplicate package {record.package_name} in {directory}, skipping")
                    continue

                record.owner_id = self.registry.allocate_owner_id()
                records.append(self.registry.upsert(record))

                data_dir = self.config.data_dir_for(record.package_name)
                if not data_dir.exists():
                    create_directory(data_dir)

        logger.info(f"Scanned {len(directories)} directories, found {len(records)} packages")
        return records

    # ========================================================================
    # Transactions
    # ========================================================================

    def install(self, param: InstallParam, observer: Optional[InstallObserver] = None) -> int:
        """
        Submit an install transaction.

        Returns:
            0 when accepted, otherwise an ErrorKind code. An accepted
            transaction always ends in exactly one on_install_result.
        """
        logger.debug(f"install: {param.path}")
        try:
            self._submit(self._run_install, param, observer)
        except ServiceUnavailableError as e:
            logger.error(f"Install of {param.path} rejected: {e}")
            return e.code
        return int(ErrorKind.OK)

    def uninstall(self, param: UninstallParam, observer: Optional[UninstallObserver] = None) -> int:
        """
        Submit an uninstall transaction.

        Returns:
            0 when accepted, otherwise an ErrorKind code. An accepted
            transaction always ends in exactly one on_uninstall_result.
        """
        logger.debug(f"uninstall: {param.package_name} clear_cache={param.clear_cache}")
        try:
            self._submit(self._run_uninstall, param, observer)
        except ServiceUnavailableError as e:
            logger.error(f"Uninstall of {param.package_name} rejected: {e}")
            return e.code
        return int(ErrorKind.OK)

    def _submit(self, fn: Callable, *args: Any) -> None:
        with self._state_lock:
            if not self._started or self._executor is None:
                raise ServiceUnavailableError("Package manager service is not running")
            self._executor.submit(fn, *args)

    def _run_install(self, param: InstallParam, observer: Optional[InstallObserver]) -> None:
        package_name = param.path
        code = int(ErrorKind.ILLEGAL_STATE)
        message = "Install did not complete"

        def progress(name: str, percent: int) -> None:
            self._dispatch(observer, "on_install_progress", name, percent)

        try:
            record = self.installer.install(param, progress=progress)
            package_name = record.package_name
            code, message = int(ErrorKind.OK), SUCCESS_MESSAGE
        except PackageManagerError as e:
            package_name = e.details.get("package_name", package_name)
            code, message = e.code, sanitize_error_for_user(e)
        except Exception as e:
            logger.exception(f"Unexpected error installing {param.path}")
            message = sanitize_error_for_user(e, include_type=True)
        finally:
            self._dispatch(observer, "on_install_result", package_name, code, message)

    def _run_uninstall(self, param: UninstallParam, observer: Optional[UninstallObserver]) -> None:
        code = int(ErrorKind.ILLEGAL_STATE)
        message = "Uninstall did not complete"

        try:
            self.installer.uninstall(param)
            code, message = int(ErrorKind.OK), SUCCESS_MESSAGE
        except PackageManagerError as e:
            code, message = e.code, sanitize_error_for_user(e)
        except Exception as e:
            logger.exception(f"Unexpected error uninstalling {param.package_name}")
            message = sanitize_error_for_user(e, include_type=True)
        finally:
            self._dispatch(observer, "on_uninstall_result", param.package_name, code, message)

    def _dispatch(self, observer: Optional[object], method: str, *args: Any) -> None:
        if observer is None:
            return
        try:
            getattr(observer, method)(*args)
        except Exception:
            logger.exception(f"Observer {method} failed")

    # ========================================================================
    # Queries
    # ========================================================================

    def list_packages(self) -> List[PackageRecord]:
        """All packages whose manifest validates"""
        return self.registry.get_all()

    def list_package_names(self) -> List[str]:
        return [record.package_name for record in self.registry.get_all()]

    def list_summaries(self) -> List[PackageSummary]:
        """Persisted view of every registered package, without validating"""
        summaries = []
        with self.registry.lock:
            for name in self.registry.names():
                entry = self.registry.peek(name)
                if isinstance(entry, PackageRecord):
                    entry = entry.to_summary()
                summaries.append(entry)
        return summaries

    def get(self, package_name: str) -> PackageRecord:
        """
        Get a validated package record.

        Raises:
            NotFoundError: Package not registered
            ManifestError: Installed manifest no longer validates
        """
        return self.registry.get(package_name)

    def clear_cache(self, package_name: str) -> int:
        """
        Delete everything in a package's data directory.

        Returns:
            0 on success, NOT_FOUND or IO_ERROR otherwise
        """
        with self.registry.lock:
            if not self.registry.contains(package_name):
                logger.error(f"clear_cache: package {package_name} not found")
                return int(ErrorKind.NOT_FOUND)

            data_dir = self.config.data_dir_for(package_name)
            if not clear_directory(data_dir):
                logger.error(f"clear_cache: failed to clear {data_dir}")
                return int(ErrorKind.IO_ERROR)

        logger.info(f"Cleared data of {package_name}")
        return int(ErrorKind.OK)

    def size_stats(self, package_name: str) -> PackageStats:
        """
        Disk usage of a package.

        Raises:
            NotFoundError: Package not registered
        """
        with self.registry.lock:
            entry = self.registry.peek(package_name)
        if entry is None:
            raise NotFoundError("Package", package_name)

        data_dir = self.config.data_dir_for(package_name)
        return PackageStats(
            package_name=package_name,
            code_size=directory_size(entry.installed_path),
            data_size=directory_size(data_dir),
            cache_size=directory_size(data_dir / "cache"),
        )

    # ========================================================================
    # Maintenance
    # ========================================================================

    def reconcile(self) -> ReconcileReport:
        """
        Bring the registry back in line with the filesystem.

        - entries whose installed directory is gone are dropped
        - directories under the installed path that no package owns are
          reported, never adopted
        - leftover staging directories are removed
        """
        report = ReconcileReport()

        with self.registry.lock:
            tracked = set()
            for name in self.registry.names():
                entry = self.registry.peek(name)
                installed_dir = Path(entry.installed_path)
                if installed_dir.is_dir():
                    tracked.add(installed_dir.resolve())
                    continue

                logger.warning(f"Dropping {name}: installed directory {installed_dir} is missing")
                self.registry.remove(name)
                self.package_list.remove(name)
                report.dropped.append(name)

            for directory in child_directories(self.config.app_installed_path):
                if directory.resolve() not in tracked:
                    logger.warning(f"Untracked directory {directory} under installed path")
                    report.untracked_dirs.append(str(directory))

        if self.installer is not None:
            report.stale_staging_dirs = self.installer.clear_stale_staging()

        return report

    def list_transactions(self, limit: int = 50) -> List[dict]:
        """Recent transaction log entries, most recent first"""
        if self.transaction_logger is None:
            return []
        return self.transaction_logger.list_transactions(limit=limit)
