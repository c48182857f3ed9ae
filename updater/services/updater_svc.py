from __future__ import annotations

# updater/services/updater_svc.py
import logging
import sqlite3
from typing import Optional

from ..db import ConnectionProvider
from ..domain.errors import StorageError
from ..domain.loader import TransactionLoader
from ..domain.models import Transaction, UpdateStatus
from ..logs import LogContext
from ..repository import transaction_repo
from .status_store import UpdateStatusStore

logger = logging.getLogger(__name__)


class UpdaterMediator:
    """Bundles the collaborators the updater persistence needs."""

    def __init__(self, provider: ConnectionProvider | None = None, loader: TransactionLoader | None = None):
        self.provider = provider or ConnectionProvider()
        self.loader = loader or TransactionLoader()

    def load_transaction(self, row) -> Transaction:
        return self.loader.reconstruct(row)

    def status_store(self) -> UpdateStatusStore:
        return UpdateStatusStore(self.provider, self.loader)


def default_mediator() -> UpdaterMediator:
    return UpdaterMediator()


def _as_transaction(data) -> Transaction:
    if isinstance(data, Transaction):
        return data
    # pydantic ValidationError 是 ValueError 子类，路由层按 400 处理
    return Transaction.model_validate(data)


def register_transaction(data, log: LogContext, mediator: UpdaterMediator | None = None) -> dict:
    """Add an update transaction to the ledger; an existing id is left as is."""
    tx = _as_transaction(data)
    m = mediator or default_mediator()
    try:
        with m.provider.acquire() as conn:
            created = transaction_repo.insert_transaction(conn, tx.to_row()) == 1
    except sqlite3.Error as e:
        raise StorageError(f"unable to register transaction {tx.id}: {e}") from e
    log.set_entity("TRANSACTION", str(tx.id))
    log.set_after(tx.to_row())
    return {"transaction": tx.to_row(), "created": created}


def list_transactions(limit: int = 50, mediator: UpdaterMediator | None = None) -> list[dict]:
    m = mediator or default_mediator()
    try:
        with m.provider.acquire() as conn:
            rows = transaction_repo.list_recent(conn, limit)
    except sqlite3.Error as e:
        raise StorageError(f"unable to list transactions: {e}") from e
    return [m.load_transaction(r).to_row() for r in rows]


def get_status(mediator: UpdaterMediator | None = None) -> Optional[dict]:
    m = mediator or default_mediator()
    status = m.status_store().get_last()
    return status.to_dict() if status else None


def record_applied(data, updated: bool, log: LogContext, mediator: UpdaterMediator | None = None) -> dict:
    """
    记录“已应用某更新交易”：在同一个事务内
    1) 若 ledger 中没有该交易则写入；
    2) clear_and_save 替换当前状态（复用本事务，不自行提交）。
    任一步失败整体回滚。
    """
    tx = _as_transaction(data)
    m = mediator or default_mediator()
    store = m.status_store()
    record = UpdateStatus(tx, bool(updated))
    try:
        with m.provider.transaction() as scope:
            try:
                before = store.get_last(scope)
            except StorageError:
                logger.warning("previous update status unreadable, replacing it", exc_info=True)
                before = None
            if transaction_repo.insert_transaction(scope.connection, tx.to_row()) == 0:
                # ledger 已有该 id：只接受内容一致的交易，否则会记录一个从未存储的版本
                stored = m.load_transaction(transaction_repo.get_transaction_row(scope.connection, tx.id))
                if stored != tx:
                    raise ValueError(
                        f"transaction {tx.id} is already registered with different content "
                        f"(stored version {stored.version}, got {tx.version})"
                    )
            store.clear_and_save(record, scope)
    except sqlite3.Error as e:
        raise StorageError(f"unable to record update transaction {tx.id}: {e}") from e
    log.set_entity("UPDATE_STATUS", str(tx.id))
    log.set_before(before.to_dict() if before else None)
    log.set_after(record.to_dict())
    logger.info("update transaction %s recorded (updated=%s)", tx.id, record.updated)
    return record.to_dict()


def mark_updated(transaction_id: int, log: LogContext, updated: bool = True,
                 mediator: UpdaterMediator | None = None) -> dict:
    m = mediator or default_mediator()
    store = m.status_store()
    try:
        with m.provider.transaction() as scope:
            current = store.get_last(scope)
            if current is None or current.transaction_id != transaction_id:
                raise LookupError(f"no update status recorded for transaction {transaction_id}")
            after = UpdateStatus(current.transaction, bool(updated))
            store.update(after, scope)
    except sqlite3.Error as e:
        raise StorageError(f"unable to mark transaction {transaction_id}: {e}") from e
    log.set_entity("UPDATE_STATUS", str(transaction_id))
    log.set_before(current.to_dict())
    log.set_after(after.to_dict())
    return after.to_dict()


def reset_status(log: LogContext, mediator: UpdaterMediator | None = None) -> int:
    m = mediator or default_mediator()
    removed = m.status_store().clear()
    log.set_entity("UPDATE_STATUS", "*")
    log.set_after({"removed": removed})
    return removed
