# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Transaction observers.

Callers hand one of these to install/uninstall and then wait for the
terminal result, which is delivered exactly once per transaction.
"""

import threading
from typing import List, Optional, Protocol, Tuple, runtime_checkable


@runtime_checkable
class InstallObserver(Protocol):
    def on_install_progress(self, package_name: str, percent: int) -> None:
        ...

    def on_install_result(self, package_name: str, code: int, message: str) -> None:
        ...


@runtime_checkable
class UninstallObserver(Protocol):
    def on_uninstall_result(self, package_name: str, code: int, message: str) -> None:
        ...


class ResultWaiter:
    """
    Observer for both transaction kinds that lets a caller block until
    the terminal callback arrives.

    Example:
        >>> waiter = ResultWaiter()
        >>> service.install(InstallParam(path="/data/app.rpk"), waiter)
        0
        >>> waiter.wait(timeout=30)
        True
        >>> waiter.code
        0
    """

    def __init__(self):
        self._done = threading.Event()
        self._lock = threading.Lock()
        self.package_name: Optional[str] = None
        self.code: Optional[int] = None
        self.message: str = ""
        self.progress: List[int] = []
        self.results: List[Tuple[str, int, str]] = []

    def on_install_progress(self, package_name: str, percent: int) -> None:
        with self._lock:
            self.progress.append(percent)

    def on_install_result(self, package_name: str, code: int, message: str) -> None:
        self._finish(package_name, code, message)

    def on_uninstall_result(self, package_name: str, code: int, message: str) -> None:
        self._finish(package_name, code, message)

    def wait(self, timeout: Optional[float] = None) -> bool:
        """True once the terminal result has been delivered"""
        return self._done.wait(timeout)

    @property
    def succeeded(self) -> bool:
        return self.code == 0

    def _finish(self, package_name: str, code: int, message: str) -> None:
        with self._lock:
            self.package_name = package_name
            self.code = code
            self.message = message
            self.results.append((package_name, code, message))
        self._done.set()
