import os
import sys
import sqlite3
import pytest
from pathlib import Path

# Ensure project root on sys.path
_THIS_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _THIS_DIR.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


@pytest.fixture(scope="session")
def tmp_db_path(tmp_path_factory):
    path = tmp_path_factory.mktemp("db") / "updater_test.db"
    # Point updater to this temp DB
    os.environ["UPD_DB_PATH"] = str(path)
    # Initialize schema
    schema = Path(_PROJECT_ROOT / "schema.sql").read_text(encoding="utf-8")
    conn = sqlite3.connect(str(path))
    try:
        conn.executescript(schema)
        conn.commit()
    finally:
        conn.close()
    return str(path)


@pytest.fixture()
def client(tmp_db_path):
    # Import app after DB ready so startup hooks can use it
    from updater.api import app
    from fastapi.testclient import TestClient
    with TestClient(app) as c:
        yield c


@pytest.fixture(autouse=True)
def _clean_db(tmp_db_path):
    # Clean tables before each test for isolation
    # Safety: ensure we only ever wipe the temp DB, never a real one
    assert os.environ.get("UPD_DB_PATH") == tmp_db_path, "Refusing to clean non-temp DB"
    tables = ["update_status", '"transaction"', "operation_log"]
    conn = sqlite3.connect(tmp_db_path)
    try:
        for t in tables:
            conn.execute(f"DELETE FROM {t}")
        conn.commit()
    finally:
        conn.close()
    yield


@pytest.fixture()
def provider(tmp_db_path):
    from updater.db import ConnectionProvider
    return ConnectionProvider(tmp_db_path, timeout=1.0)


@pytest.fixture()
def store(provider):
    from updater.domain.loader import TransactionLoader
    from updater.services.status_store import UpdateStatusStore
    return UpdateStatusStore(provider, TransactionLoader())


@pytest.fixture()
def make_tx():
    from updater.domain.models import Transaction

    def _make(tx_id: int, **kw) -> Transaction:
        data = {
            "id": tx_id,
            "height": 1000 + tx_id,
            "timestamp": 1_700_000_000 + tx_id,
            "sender_id": -4_000_000_000 + tx_id,
            "update_level": "IMPORTANT",
            "version": "1.2.3",
            "platform": "LINUX",
            "architecture": "AMD64",
            "url": f"https://updates.example.org/{tx_id}.jar",
            "hash": "ab" * 32,
        }
        data.update(kw)
        return Transaction(**data)

    return _make


@pytest.fixture()
def ledger(tmp_db_path):
    """Insert ledger rows directly (bypassing the services)."""
    from updater.repository import transaction_repo

    def _add(*txs):
        conn = sqlite3.connect(tmp_db_path)
        try:
            for tx in txs:
                transaction_repo.insert_transaction(conn, tx.to_row())
            conn.commit()
        finally:
            conn.close()
        return txs

    return _add
