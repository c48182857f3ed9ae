"""
Persistence of the node's current update status.

update_status holds at most one row: the last update transaction applied to
this node and whether updating finished. Reads verify the invariant, writes
defend it. Every operation accepts an optional TxScope; when it refers to an
open transaction the operation joins it and leaves commit/rollback to the
caller.
"""
from __future__ import annotations

import logging
import sqlite3
from contextlib import contextmanager
from typing import Iterator, Optional

from ..db import ConnectionProvider, TxScope
from ..domain.errors import (
    InvariantViolationError,
    ReconstructionError,
    StorageError,
    UpdaterRepositoryError,
)
from ..domain.loader import TransactionLoader
from ..domain.models import UpdateStatus
from ..repository import update_status_repo
from ..repository.update_status_repo import TABLE

logger = logging.getLogger(__name__)


class UpdateStatusStore:
    def __init__(self, provider: ConnectionProvider, loader: TransactionLoader):
        self._provider = provider
        self._loader = loader

    # ---------------- scope helpers ----------------

    @contextmanager
    def _connection(self, scope: Optional[TxScope]) -> Iterator[sqlite3.Connection]:
        if scope is not None and scope.active:
            yield scope.connection
            return
        with self._provider.acquire() as conn:
            yield conn

    @contextmanager
    def _transactional(self, scope: Optional[TxScope], operation: str) -> Iterator[sqlite3.Connection]:
        ambient = self._provider.is_in_transaction(scope)
        if ambient:
            tx = scope
        else:
            if scope is not None:
                logger.debug("%s: scope is not open, starting own transaction", operation)
            try:
                tx = self._provider.begin_transaction()
            except sqlite3.Error as e:
                logger.error("%s: unable to begin transaction", operation, exc_info=True)
                raise StorageError(f"{operation}: unable to begin transaction: {e}") from e
        try:
            yield tx.connection
            if not ambient:
                self._provider.commit_transaction(tx)
        except Exception as e:
            if not ambient:
                self._rollback(tx, operation)
            logger.error("%s failed: %s", operation, e)
            if isinstance(e, UpdaterRepositoryError):
                raise
            raise StorageError(f"{operation} failed: {e}") from e
        finally:
            if not ambient:
                self._end(tx, operation)

    def _rollback(self, tx: TxScope, operation: str) -> None:
        try:
            self._provider.rollback_transaction(tx)
        except sqlite3.Error:
            logger.exception("%s: rollback failed", operation)

    def _end(self, tx: TxScope, operation: str) -> None:
        try:
            self._provider.end_transaction(tx)
        except sqlite3.Error:
            logger.warning("%s: unable to end transaction cleanly", operation, exc_info=True)

    # ---------------- operations ----------------

    def get_last(self, scope: Optional[TxScope] = None) -> Optional[UpdateStatus]:
        try:
            with self._connection(scope) as conn:
                cur = update_status_repo.select_joined(conn)
                row = cur.fetchone()
                if row is None:
                    return None
                tx = self._loader.reconstruct(row)
                updated = bool(row["updated"])
                rest = cur.fetchall()
                if rest:
                    raise InvariantViolationError(TABLE, 1 + len(rest), "get_last")
                return UpdateStatus(tx, updated)
        except (sqlite3.Error, ReconstructionError) as e:
            logger.debug("Unable to load update transaction", exc_info=True)
            raise StorageError(f"unable to load update status: {e}") from e

    def save(self, record: UpdateStatus, scope: Optional[TxScope] = None) -> None:
        try:
            with self._connection(scope) as conn:
                self._insert(conn, record)
        except sqlite3.Error as e:
            logger.error("Unable to save update transaction %s", record.transaction_id, exc_info=True)
            raise StorageError(f"unable to save update status: {e}") from e

    def _insert(self, conn: sqlite3.Connection, record: UpdateStatus) -> None:
        inserted = update_status_repo.insert_status(conn, record.transaction_id, record.updated)
        if inserted != 1:
            raise InvariantViolationError(TABLE, inserted, "save", expected="exactly 1")

    def update(self, record: UpdateStatus, scope: Optional[TxScope] = None) -> int:
        """Set the updated flag on the matching row; returns rows affected (0 or 1)."""
        with self._transactional(scope, "update") as conn:
            affected = update_status_repo.update_flag(conn, record.transaction_id, record.updated)
            if affected > 1:
                raise InvariantViolationError(TABLE, affected, "update")
        return affected

    def clear(self, scope: Optional[TxScope] = None) -> int:
        """Best effort: a failure is logged and reported as 0 rows removed."""
        try:
            with self._connection(scope) as conn:
                return update_status_repo.delete_all(conn)
        except sqlite3.Error:
            logger.warning("Unable to delete update_status entries", exc_info=True)
            return 0

    def clear_and_save(self, record: UpdateStatus, scope: Optional[TxScope] = None) -> None:
        with self._transactional(scope, "clear_and_save") as conn:
            # 此处删除必须严格：删除失败时不能继续插入，否则会留下两行
            removed = update_status_repo.delete_all(conn)
            self._insert(conn, record)
        logger.debug("update status replaced (removed=%s, transaction=%s, updated=%s)",
                     removed, record.transaction_id, record.updated)

    def count(self, scope: Optional[TxScope] = None) -> int:
        try:
            with self._connection(scope) as conn:
                return update_status_repo.count_all(conn)
        except sqlite3.Error as e:
            raise StorageError(f"unable to count update status rows: {e}") from e
