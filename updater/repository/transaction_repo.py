from __future__ import annotations

from sqlite3 import Connection

_COLUMNS = ("id", "height", "timestamp", "sender_id", "update_level", "version",
            "platform", "architecture", "url", "hash")


def insert_transaction(conn: Connection, row: dict) -> int:
    """Returns 1 when inserted, 0 when the id already exists."""
    cur = conn.execute(
        'INSERT OR IGNORE INTO "transaction"(id, height, timestamp, sender_id, update_level, version, '
        "platform, architecture, url, hash) "
        "VALUES(:id, :height, :timestamp, :sender_id, :update_level, :version, "
        ":platform, :architecture, :url, :hash)",
        {c: row.get(c) for c in _COLUMNS},
    )
    return cur.rowcount


def get_transaction_row(conn: Connection, transaction_id: int):
    return conn.execute(
        'SELECT * FROM "transaction" WHERE id=?', (transaction_id,)
    ).fetchone()


def exists(conn: Connection, transaction_id: int) -> bool:
    row = conn.execute('SELECT 1 FROM "transaction" WHERE id=?', (transaction_id,)).fetchone()
    return row is not None


def list_recent(conn: Connection, limit: int = 50):
    return conn.execute(
        'SELECT * FROM "transaction" ORDER BY height DESC, id DESC LIMIT ?', (limit,)
    ).fetchall()
