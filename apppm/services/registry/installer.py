# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Package Installer

Single responsibility: install and uninstall packages as multi-step
transactions that keep installed directories, the registry and the
package list consistent.

Install:   STAGED -> VERIFIED -> PARSED -> PLACED -> COMMITTED
Uninstall: directory removal, then registry and list
Any failure before COMMITTED ends in ABORTED.
"""

import errno
import logging
import os
import threading
from contextlib import contextmanager
from pathlib import Path
from typing import Callable, Dict, Iterator, List, Optional

from apppm.core.config import Config
from apppm.core.errors import (
    ErrorKind,
    IllegalStateError,
    MalformedManifestError,
    ManifestError,
    NotFoundError,
    PackageIOError,
    PackageManagerError,
    PermissionDeniedError,
    UnsupportedTypeError,
)
from apppm.core.logging import log_event
from apppm.models.package_models import (
    MANIFEST_NAME,
    InstallParam,
    PackageRecord,
    TransactionOperation,
    TransactionRecord,
    TransactionState,
    UninstallParam,
)
from apppm.utils.fs import child_directories, create_directory, remove_tree

from .index import PackageRegistry
from .package_list import PackageListStore
from .parser import ManifestParser
from .staging import Stager, staging_name
from .transactions import TransactionLogger

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str, int], None]


class PackageInstaller:
    """Runs install and uninstall transactions"""

    def __init__(
        self,
        config: Config,
        registry: PackageRegistry,
        package_list: PackageListStore,
        parser: ManifestParser,
        stager: Stager,
        transaction_logger: TransactionLogger
    ):
        """
        Initialize package installer.

        Args:
            config: Package manager configuration
            registry: In-memory package index (its lock guards commits)
            package_list: Persisted package list
            parser: Manifest parser
            stager: Source verification/unpack collaborator
            transaction_logger: Transaction logger
        """
        self.config = config
        self.registry = registry
        self.package_list = package_list
        self.parser = parser
        self.stager = stager
        self.transaction_logger = transaction_logger

        self._staging_locks: Dict[str, List] = {}
        self._staging_guard = threading.Lock()

    @contextmanager
    def _staging_lock(self, staging_dir: Path, blocking: bool = True) -> Iterator[bool]:
        """
        Hold the lock of one staging directory.

        Yields whether the lock was acquired. Entries are reference counted
        and dropped once no install holds or waits for them.
        """
        key = str(staging_dir)
        with self._staging_guard:
            entry = self._staging_locks.setdefault(key, [threading.Lock(), 0])
            entry[1] += 1

        acquired = False
        try:
            acquired = entry[0].acquire(blocking=blocking)
            yield acquired
        finally:
            if acquired:
                entry[0].release()
            with self._staging_guard:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._staging_locks[key]

    def install(
        self,
        param: InstallParam,
        progress: Optional[ProgressCallback] = None
    ) -> PackageRecord:
        """
        Install (or upgrade) a package from a source path.

        Args:
            param: Install request
            progress: Optional callback receiving (package_name, percent)

        Returns:
            Committed package record

        Raises:
            NotFoundError: Source does not exist
            IllegalStateError: Staging or verification failed
            MalformedManifestError / UnsupportedTypeError: Manifest rejected
            PermissionDeniedError / PackageIOError: Placement or commit failed
        """
        source = Path(param.path)
        transaction = self.transaction_logger.create_transaction(
            TransactionOperation.INSTALL,
            source=str(source)
        )
        self.transaction_logger.log(transaction)

        try:
            record = self._install(source, transaction, progress)
        except Exception as e:
            self._abort(transaction, e)
            raise

        self.transaction_logger.advance(transaction, TransactionState.COMMITTED)
        log_event(
            logger, f"Package {record.package_name}@{record.version} installed",
            transaction_id=transaction.id, package=record.package_name,
            installed_path=record.installed_path, owner_id=record.owner_id
        )
        return record

    def _install(
        self,
        source: Path,
        transaction: TransactionRecord,
        progress: Optional[ProgressCallback]
    ) -> PackageRecord:
        # Checked before anything is created on disk
        if not source.exists():
            raise NotFoundError("Source", str(source))

        staging_dir = self.config.staging_path / staging_name(source)

        with self._staging_lock(staging_dir):
            self._stage(source, staging_dir)
            self.transaction_logger.advance(transaction, TransactionState.VERIFIED)

            record = self._parse_staged(staging_dir)
            transaction.package_name = record.package_name
            self.transaction_logger.advance(transaction, TransactionState.PARSED)
            # Progress is keyed by package name, known only once parsed
            self._notify(progress, record.package_name, 25)
            self._notify(progress, record.package_name, 50)

            with self.registry.lock:
                previous = self.registry.peek(record.package_name)
                installed_dir = self._place(staging_dir, record.package_name)
                self.transaction_logger.advance(transaction, TransactionState.PLACED)
                self._notify(progress, record.package_name, 75)

                data_dir = self.config.data_dir_for(record.package_name)
                if not data_dir.exists():
                    create_directory(data_dir)

                committed = self._commit(record, installed_dir, previous)

        self._notify(progress, committed.package_name, 100)
        return committed

    def _stage(self, source: Path, staging_dir: Path) -> None:
        if staging_dir.exists() or staging_dir.is_symlink():
            logger.warning(f"Removing stale staging directory {staging_dir}")
            if not remove_tree(staging_dir):
                raise IllegalStateError(f"Cannot clear staging directory {staging_dir}")

        try:
            staging_dir.parent.mkdir(parents=True, exist_ok=True)
            self.stager.stage(source, staging_dir)
        except IllegalStateError:
            self._discard(staging_dir)
            raise
        except OSError as e:
            self._discard(staging_dir)
            raise IllegalStateError(f"Failed to stage {source}: {e}")

    def _parse_staged(self, staging_dir: Path) -> PackageRecord:
        manifest_path = staging_dir / MANIFEST_NAME
        try:
            return self.parser.parse(manifest_path)
        except UnsupportedTypeError:
            self._discard(staging_dir)
            raise
        except ManifestError as e:
            self._discard(staging_dir)
            logger.error(f"Parse manifest {manifest_path} failed: {e}")
            raise MalformedManifestError(
                f"Failed to parse manifest: {e.message}",
                manifest_path=str(manifest_path),
                field=getattr(e, "field", None)
            ) from e

    def _place(self, staging_dir: Path, package_name: str) -> Path:
        """
        Move the staged directory to its final location.

        On failure the staging directory is left behind.
        """
        installed_dir = self.config.installed_dir_for(package_name)

        if installed_dir.exists() or installed_dir.is_symlink():
            if not remove_tree(installed_dir):
                raise PermissionDeniedError(
                    f"Cannot remove existing directory {installed_dir}",
                    path=str(installed_dir)
                )

        try:
            installed_dir.parent.mkdir(parents=True, exist_ok=True)
            os.rename(staging_dir, installed_dir)
        except OSError as e:
            logger.error(f"Move from {staging_dir} to {installed_dir} failed: {e}")
            if e.errno in (errno.EACCES, errno.EPERM):
                raise PermissionDeniedError(f"Failed to place package: {e}", path=str(installed_dir))
            raise PackageIOError(f"Failed to place package: {e}", path=str(installed_dir))

        return installed_dir

    def _commit(
        self,
        record: PackageRecord,
        installed_dir: Path,
        previous: Optional[object]
    ) -> PackageRecord:
        """Publish the placed package to the registry and package list"""
        record.installed_path = str(installed_dir)
        record.manifest_path = str(installed_dir / MANIFEST_NAME)

        if previous is not None:
            # Upgrade: identity survives, ownership is kept
            record.owner_id = previous.owner_id
            self.registry.remove(record.package_name)
            self.package_list.remove(record.package_name)
            if previous.installed_path and Path(previous.installed_path) != installed_dir:
                old_dir = Path(previous.installed_path)
                if old_dir.exists() and not remove_tree(old_dir):
                    logger.warning(f"Failed to remove previous installation {old_dir}")
        else:
            record.owner_id = self.registry.allocate_owner_id()

        stored = self.registry.upsert(record)
        try:
            self.package_list.append(stored)
        except PackageManagerError:
            self.registry.remove(stored.package_name)
            raise
        return stored

    def uninstall(self, param: UninstallParam) -> PackageRecord:
        """
        Uninstall a package.

        The installed directory goes first; the registry and package list
        only change once it is gone.

        Returns:
            The registry entry that was removed (as a record)

        Raises:
            NotFoundError: Package not registered (nothing is touched)
            PermissionDeniedError: Directory could not be removed (nothing
                                   else is touched)
        """
        transaction = self.transaction_logger.create_transaction(
            TransactionOperation.UNINSTALL,
            package_name=param.package_name
        )
        self.transaction_logger.log(transaction)

        try:
            removed = self._uninstall(param)
        except Exception as e:
            self._abort(transaction, e)
            raise

        self.transaction_logger.advance(transaction, TransactionState.COMMITTED)
        log_event(
            logger, f"Package {param.package_name} uninstalled",
            transaction_id=transaction.id, package=param.package_name,
            clear_cache=param.clear_cache
        )
        return removed

    def _uninstall(self, param: UninstallParam) -> PackageRecord:
        package_name = param.package_name

        with self.registry.lock:
            entry = self.registry.peek(package_name)
            if entry is None:
                logger.error(f"Uninstall package {package_name}: not found")
                raise NotFoundError("Package", package_name)

            installed_dir = Path(entry.installed_path)
            if installed_dir.exists() or installed_dir.is_symlink():
                if not remove_tree(installed_dir):
                    raise PermissionDeniedError(
                        f"Delete directory {installed_dir} failed",
                        path=str(installed_dir)
                    )
            else:
                # Left over from an interrupted uninstall
                logger.warning(f"Installed directory {installed_dir} already missing")

            self.registry.remove(package_name)
            self.package_list.remove(package_name)

        if param.clear_cache:
            data_dir = self.config.data_dir_for(package_name)
            if data_dir.exists() and not remove_tree(data_dir):
                logger.warning(f"Failed to remove data directory {data_dir}")

        if isinstance(entry, PackageRecord):
            return entry
        return PackageRecord(**entry.model_dump())

    def clear_stale_staging(self) -> List[str]:
        """
        Remove staging directories left behind by interrupted installs.

        Directories whose install is still running are skipped.

        Returns:
            Paths that were removed
        """
        removed = []
        for staging_dir in child_directories(self.config.staging_path):
            with self._staging_lock(staging_dir, blocking=False) as acquired:
                if acquired and remove_tree(staging_dir):
                    removed.append(str(staging_dir))
        if removed:
            logger.info(f"Removed {len(removed)} stale staging directories")
        return removed

    def _abort(self, transaction: TransactionRecord, error: Exception) -> None:
        if isinstance(error, PackageManagerError):
            transaction.code = error.code
            transaction.message = error.message
            if transaction.package_name:
                error.details.setdefault("package_name", transaction.package_name)
        else:
            transaction.code = int(ErrorKind.ILLEGAL_STATE)
            transaction.message = str(error)
        self.transaction_logger.advance(transaction, TransactionState.ABORTED)
        log_event(
            logger, f"Transaction {transaction.id} aborted: {transaction.message}",
            level="ERROR", transaction_id=transaction.id,
            operation=transaction.operation.value, code=transaction.code
        )

    def _discard(self, staging_dir: Path) -> None:
        if staging_dir.exists() and not remove_tree(staging_dir):
            logger.warning(f"Failed to remove staging directory {staging_dir}")

    def _notify(self, progress: Optional[ProgressCallback], package_name: str, percent: int) -> None:
        if progress is None:
            return
        try:
            progress(package_name, percent)
        except Exception:
            logger.exception(f"Progress callback failed for {package_name}")
