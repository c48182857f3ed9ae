from __future__ import annotations

# updater/db.py
import sqlite3
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator
import os
import yaml

# DB 路径解析顺序：
# 1) 环境变量 UPD_DB_PATH（最高优先级）
# 2) config.yaml 的 test_db_path（当检测到测试环境时）
# 3) config.yaml 的 db_path（生产默认）
# 4) 兜底：项目根 updater.db
_PROJECT_ROOT = os.path.dirname(os.path.dirname(__file__))
_ROOT_DB = os.path.join(_PROJECT_ROOT, "updater.db")
_SCHEMA_PATH = os.path.join(_PROJECT_ROOT, "schema.sql")

DEFAULT_BUSY_TIMEOUT_S = 5.0


def _read_config_yaml() -> dict:
    cfg_path = os.path.join(_PROJECT_ROOT, "config.yaml")
    if not os.path.exists(cfg_path):
        return {}
    try:
        with open(cfg_path, "r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError):
        return {}
    if not isinstance(cfg, dict):
        return {}
    out = {}
    for k in ("db_path", "test_db_path"):
        v = cfg.get(k)
        if isinstance(v, str) and v.strip():
            out[k] = v.strip()
    timeout = cfg.get("busy_timeout_s")
    if isinstance(timeout, (int, float)) and timeout > 0:
        out["busy_timeout_s"] = float(timeout)
    return out


def get_db_path(_: str | None = None) -> str:
    env_path = os.environ.get("UPD_DB_PATH")
    cfg = _read_config_yaml()
    cfg_db = cfg.get("db_path")
    cfg_test = cfg.get("test_db_path")
    is_test = (os.environ.get("APP_ENV") == "test") or (os.environ.get("PYTEST_CURRENT_TEST") is not None)

    if env_path:
        path = env_path
    elif is_test and cfg_test:
        path = cfg_test
    elif cfg_db:
        path = cfg_db
    else:
        path = _ROOT_DB

    # 确保目录存在
    dirn = os.path.dirname(path) or "."
    os.makedirs(dirn, exist_ok=True)
    return path


def get_busy_timeout() -> float:
    return _read_config_yaml().get("busy_timeout_s", DEFAULT_BUSY_TIMEOUT_S)


def _connect(path: str, timeout: float) -> sqlite3.Connection:
    conn = sqlite3.connect(
        path,
        timeout=timeout,
        detect_types=sqlite3.PARSE_DECLTYPES | sqlite3.PARSE_COLNAMES,
        check_same_thread=False,
        isolation_level=None,
    )
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
    except sqlite3.Error:
        conn.close()
        raise
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_conn(db_path: str | None = None) -> Iterator[sqlite3.Connection]:
    """
    获取 SQLite 连接。优先使用显式传入的 db_path，否则走 get_db_path()。
    打开 foreign_keys，设置 row_factory 为 Row；autocommit 模式，事务需显式 BEGIN。
    """
    conn = _connect(db_path or get_db_path(), get_busy_timeout())
    try:
        yield conn
    finally:
        conn.close()


def ensure_schema(db_path: str | None = None) -> None:
    with open(_SCHEMA_PATH, "r", encoding="utf-8") as f:
        ddl = f.read()
    with get_conn(db_path) as conn:
        conn.executescript(ddl)


@dataclass
class TxScope:
    """Handle for an explicitly opened transaction.

    Passed into store operations so they can join the caller's transaction
    instead of opening their own.
    """
    connection: sqlite3.Connection
    active: bool = True


class ConnectionProvider:
    """Hands out connections and explicit transaction scopes for one DB file."""

    def __init__(self, db_path: str | None = None, timeout: float | None = None):
        self._db_path = db_path
        self._timeout = timeout

    @property
    def db_path(self) -> str:
        return self._db_path or get_db_path()

    @property
    def timeout(self) -> float:
        return self._timeout if self._timeout is not None else get_busy_timeout()

    def _open(self) -> sqlite3.Connection:
        try:
            path = self.db_path
        except OSError as e:
            # 目录无法创建等路径问题，按连接失败处理
            raise sqlite3.OperationalError(f"unable to open database file: {e}") from e
        return _connect(path, self.timeout)

    @contextmanager
    def acquire(self) -> Iterator[sqlite3.Connection]:
        conn = self._open()
        try:
            yield conn
        finally:
            conn.close()

    def is_in_transaction(self, scope: TxScope | None) -> bool:
        return scope is not None and scope.active and scope.connection.in_transaction

    def begin_transaction(self) -> TxScope:
        conn = self._open()
        try:
            # IMMEDIATE: 立即拿写锁，并发写入由 SQLite 串行化
            conn.execute("BEGIN IMMEDIATE")
        except sqlite3.Error:
            conn.close()
            raise
        return TxScope(conn)

    def commit_transaction(self, scope: TxScope) -> None:
        scope.connection.execute("COMMIT")

    def rollback_transaction(self, scope: TxScope) -> None:
        if scope.connection.in_transaction:
            scope.connection.execute("ROLLBACK")

    def end_transaction(self, scope: TxScope) -> None:
        if not scope.active:
            return
        try:
            # 未提交的部分一律丢弃
            if scope.connection.in_transaction:
                scope.connection.execute("ROLLBACK")
        finally:
            scope.active = False
            scope.connection.close()

    @contextmanager
    def transaction(self) -> Iterator[TxScope]:
        """Caller-owned transaction: commit on success, rollback on error."""
        scope = self.begin_transaction()
        try:
            yield scope
            self.commit_transaction(scope)
        finally:
            self.end_transaction(scope)
