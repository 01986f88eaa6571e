# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Transaction Logger

Single responsibility: Log and retrieve transaction state changes
(append-only JSONL)
"""

import json
import logging
import threading
import uuid
from pathlib import Path
from typing import List, Dict, Any, Optional
from datetime import datetime, timezone

from apppm.models.package_models import (
    TransactionRecord,
    TransactionOperation,
    TransactionState
)

logger = logging.getLogger(__name__)


class TransactionLogger:
    """Manages transaction logging to append-only JSONL file"""

    def __init__(self, log_file: Path):
        """
        Initialize transaction logger.

        Args:
            log_file: Path to transactions.jsonl
        """
        self.log_file = Path(log_file)
        self._lock = threading.Lock()

        self.log_file.parent.mkdir(parents=True, exist_ok=True)
        if not self.log_file.exists():
            self.log_file.touch()

    def create_transaction(
        self,
        operation: TransactionOperation,
        package_name: str = "",
        source: Optional[str] = None
    ) -> TransactionRecord:
        """
        Create a new transaction record.

        Args:
            operation: Type of operation
            package_name: Package name, if already known
            source: Install source path

        Returns:
            New transaction record
        """
        return TransactionRecord(
            id=f"txn-{uuid.uuid4().hex[:12]}",
            operation=operation,
            package_name=package_name,
            source=source,
            state=TransactionState.STAGED,
            started_at=datetime.now(timezone.utc)
        )

    def advance(self, transaction: TransactionRecord, state: TransactionState) -> None:
        """Move a transaction to a new state and log it"""
        transaction.state = state
        if state in (TransactionState.COMMITTED, TransactionState.ABORTED):
            transaction.completed_at = datetime.now(timezone.utc)
        self.log(transaction)

    def log(self, transaction: TransactionRecord):
        """
        Append transaction to JSONL log file.

        A failed audit write never fails the transaction itself.

        Args:
            transaction: Transaction record to log
        """
        log_line = json.dumps(transaction.to_dict())
        try:
            with self._lock:
                with open(self.log_file, "a") as f:
                    f.write(log_line + "\n")
        except OSError as e:
            logger.error(f"Failed to write transaction log {self.log_file}: {e}")

    def list_transactions(self, limit: int = 50) -> List[Dict[str, Any]]:
        """
        List recent transaction log entries.

        Args:
            limit: Maximum number of entries to return

        Returns:
            List of entries (most recent first)
        """
        if not self.log_file.exists():
            return []

        transactions = []
        with open(self.log_file, "r") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    transactions.append(json.loads(line))
                except json.JSONDecodeError as e:
                    logger.error(f"Failed to parse transaction log line: {e}")

        return list(reversed(transactions[-limit:]))

    def get_transaction(self, transaction_id: str) -> Optional[Dict[str, Any]]:
        """
        Latest logged state of a transaction.

        Args:
            transaction_id: Transaction ID

        Returns:
            Transaction entry or None if not found
        """
        latest = None
        for txn in reversed(self.list_transactions(limit=10**9)):
            if txn.get("id") == transaction_id:
                latest = txn
        return latest
