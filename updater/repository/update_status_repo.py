from __future__ import annotations

from sqlite3 import Connection, Cursor

TABLE = "update_status"


def select_joined(conn: Connection) -> Cursor:
    """Status row(s) with the referenced ledger transaction; caller iterates."""
    return conn.execute(
        "SELECT s.transaction_id, s.updated, "
        "t.id, t.height, t.timestamp, t.sender_id, t.update_level, t.version, "
        "t.platform, t.architecture, t.url, t.hash "
        'FROM update_status s LEFT JOIN "transaction" t ON s.transaction_id = t.id'
    )


def insert_status(conn: Connection, transaction_id: int, updated: bool) -> int:
    cur = conn.execute(
        "INSERT INTO update_status(transaction_id, updated) VALUES(?, ?)",
        (transaction_id, int(bool(updated))),
    )
    return cur.rowcount


def update_flag(conn: Connection, transaction_id: int, updated: bool) -> int:
    cur = conn.execute(
        "UPDATE update_status SET updated=? WHERE transaction_id=?",
        (int(bool(updated)), transaction_id),
    )
    return cur.rowcount


def delete_all(conn: Connection) -> int:
    return conn.execute("DELETE FROM update_status").rowcount


def count_all(conn: Connection) -> int:
    return int(conn.execute("SELECT COUNT(1) AS c FROM update_status").fetchone()["c"])
