# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Unit tests for TransactionLogger and ResultWaiter
"""

import threading

import pytest

from apppm.models.package_models import TransactionOperation, TransactionState
from apppm.services.registry.observers import InstallObserver, ResultWaiter, UninstallObserver
from apppm.services.registry.transactions import TransactionLogger


@pytest.fixture
def log_file(tmp_path):
    return tmp_path / "app" / "transactions.jsonl"


@pytest.fixture
def transaction_logger(log_file):
    return TransactionLogger(log_file)


class TestTransactionLogger:
    """Test JSONL transaction log"""

    def test_creates_log_file(self, transaction_logger, log_file):
        assert log_file.exists()
        assert transaction_logger.list_transactions() == []

    def test_create_transaction(self, transaction_logger):
        txn = transaction_logger.create_transaction(TransactionOperation.INSTALL, source="/x.rpk")

        assert txn.id.startswith("txn-")
        assert txn.state == TransactionState.STAGED
        assert txn.package_name == ""
        assert txn.source == "/x.rpk"
        assert txn.completed_at is None

    def test_advance_logs_each_state(self, transaction_logger):
        """Should append one line per state change, newest first on read"""
        txn = transaction_logger.create_transaction(TransactionOperation.UNINSTALL, package_name="com.a")
        transaction_logger.log(txn)
        transaction_logger.advance(txn, TransactionState.COMMITTED)

        entries = transaction_logger.list_transactions()

        assert [e["state"] for e in entries] == ["committed", "staged"]
        assert entries[0]["operation"] == "uninstall"
        assert entries[0]["completed_at"] is not None
        assert entries[1]["completed_at"] is None

    def test_get_transaction_returns_latest_state(self, transaction_logger):
        txn = transaction_logger.create_transaction(TransactionOperation.INSTALL)
        for state in (TransactionState.STAGED, TransactionState.VERIFIED, TransactionState.ABORTED):
            transaction_logger.advance(txn, state)

        assert transaction_logger.get_transaction(txn.id)["state"] == "aborted"
        assert transaction_logger.get_transaction("txn-missing") is None

    def test_limit(self, transaction_logger):
        for _ in range(5):
            transaction_logger.log(transaction_logger.create_transaction(TransactionOperation.INSTALL))

        assert len(transaction_logger.list_transactions(limit=3)) == 3

    def test_corrupt_lines_are_skipped(self, transaction_logger, log_file):
        transaction_logger.log(transaction_logger.create_transaction(TransactionOperation.INSTALL))
        with open(log_file, "a") as f:
            f.write("{broken\n\n")

        assert len(transaction_logger.list_transactions()) == 1

    def test_write_failure_is_not_raised(self, transaction_logger, log_file):
        """A failed audit write should never fail the caller"""
        log_file.unlink()
        log_file.mkdir()

        transaction_logger.log(transaction_logger.create_transaction(TransactionOperation.INSTALL))


class TestResultWaiter:
    """Test the blocking observer"""

    def test_satisfies_both_protocols(self):
        waiter = ResultWaiter()
        assert isinstance(waiter, InstallObserver)
        assert isinstance(waiter, UninstallObserver)

    def test_wait_times_out(self):
        waiter = ResultWaiter()

        assert waiter.wait(timeout=0.01) is False
        assert waiter.code is None
        assert waiter.succeeded is False

    def test_result_from_another_thread(self):
        waiter = ResultWaiter()

        def worker():
            waiter.on_install_progress("com.a", 50)
            waiter.on_install_result("com.a", 0, "success")

        threading.Thread(target=worker).start()

        assert waiter.wait(timeout=5) is True
        assert waiter.succeeded is True
        assert waiter.package_name == "com.a"
        assert waiter.progress == [50]
        assert waiter.results == [("com.a", 0, "success")]

    def test_uninstall_result(self):
        waiter = ResultWaiter()
        waiter.on_uninstall_result("com.a", 1, "Package not found: com.a")

        assert waiter.wait(0) is True
        assert waiter.code == 1
        assert waiter.message == "Package not found: com.a"
