#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Node update status (SQLite)

Commands:
  init                Create the schema in the configured DB
  status              Print the current update status
  register            Add an update transaction to the local ledger
  record              Record a transaction as applied (replaces the current status)
  mark-updated        Flip the updated flag of the current status
  clear               Remove the current status (best effort)
  export-log          Export the operation log to CSV

Notes:
- DB path comes from --db, then UPD_DB_PATH, then config.yaml (db_path).
- `record` is atomic: the ledger row and the status replacement commit together.
"""

import argparse
import datetime as dt
import json
import os
import sys

import pandas as pd

from updater.db import ConnectionProvider, ensure_schema
from updater.domain.errors import InvariantViolationError, StorageError
from updater.logs import LogContext, fetch_logs
from updater.services import updater_svc


def _mediator() -> updater_svc.UpdaterMediator:
    return updater_svc.UpdaterMediator(ConnectionProvider())


def _tx_from_args(args) -> dict:
    return {
        "id": args.id,
        "height": args.height,
        "timestamp": args.timestamp if args.timestamp is not None else int(dt.datetime.now().timestamp()),
        "sender_id": args.sender_id,
        "update_level": args.level,
        "version": args.version,
        "platform": args.platform,
        "architecture": args.architecture,
        "url": args.url,
        "hash": args.hash,
    }


def _run_logged(action: str, fn):
    log = LogContext(action, user="cli")
    try:
        out = fn(log)
    except (InvariantViolationError, StorageError, LookupError, ValueError) as e:
        log.write("ERROR", str(e))
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)
    log.write("OK")
    return out


# ---------------- Commands ----------------

def cmd_init(args):
    ensure_schema()
    print("DB initialized.")


def cmd_status(args):
    try:
        status = updater_svc.get_status(_mediator())
    except (InvariantViolationError, StorageError) as e:
        print(f"[ERROR] {e}", file=sys.stderr)
        sys.exit(1)
    if status is None:
        print("(no update recorded)")
    else:
        print(json.dumps(status, ensure_ascii=False, indent=2))


def cmd_register(args):
    out = _run_logged("TRANSACTION_REGISTER",
                      lambda log: updater_svc.register_transaction(_tx_from_args(args), log, _mediator()))
    print("Transaction registered." if out["created"] else "Transaction already known.")


def cmd_record(args):
    out = _run_logged("UPDATE_STATUS_RECORD",
                      lambda log: updater_svc.record_applied(_tx_from_args(args), args.updated, log, _mediator()))
    print(f"Update status recorded: transaction {out['transaction_id']} updated={out['updated']}")


def cmd_mark_updated(args):
    out = _run_logged("UPDATE_STATUS_MARK",
                      lambda log: updater_svc.mark_updated(args.id, log, not args.undo, _mediator()))
    print(f"Transaction {out['transaction_id']} updated={out['updated']}")


def cmd_clear(args):
    removed = _run_logged("UPDATE_STATUS_CLEAR", lambda log: updater_svc.reset_status(log, _mediator()))
    print(f"Removed {removed} status row(s).")


def cmd_export_log(args):
    df = pd.DataFrame(fetch_logs(args.action, args.limit))
    pd.set_option("display.max_rows", 200)
    pd.set_option("display.width", 160)
    if df.empty:
        print("(empty)")
        return
    print(df[["ts", "action", "entity_id", "result", "latency_ms"]])

    out_dir = os.path.join(os.path.dirname(os.path.abspath(__file__)), "exports")
    os.makedirs(out_dir, exist_ok=True)
    stamp = dt.datetime.now().strftime("%Y%m%d_%H%M%S")
    path = os.path.join(out_dir, f"operation_log_{stamp}.csv")
    df.to_csv(path, index=False, encoding="utf-8-sig")
    print(f"\nCSV exported to {path}")


# ---------------- Entry ----------------

def _add_tx_args(p):
    p.add_argument("--id", required=True, type=int)
    p.add_argument("--height", required=True, type=int)
    p.add_argument("--timestamp", required=False, type=int)
    p.add_argument("--sender_id", required=True, type=int)
    p.add_argument("--level", required=True, choices=["CRITICAL", "IMPORTANT", "MINOR"])
    p.add_argument("--version", required=True, help="x.y.z")
    p.add_argument("--platform", required=False)
    p.add_argument("--architecture", required=False)
    p.add_argument("--url", required=False)
    p.add_argument("--hash", required=False, help="hex")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Node update status (SQLite)")
    parser.add_argument("--db", default=None, help="DB path (overrides config)")
    sub = parser.add_subparsers()

    p_init = sub.add_parser("init", help="create schema")
    p_init.set_defaults(func=cmd_init)

    p_status = sub.add_parser("status", help="show current update status")
    p_status.set_defaults(func=cmd_status)

    p_reg = sub.add_parser("register", help="register an update transaction")
    _add_tx_args(p_reg)
    p_reg.set_defaults(func=cmd_register)

    p_rec = sub.add_parser("record", help="record an update transaction as applied")
    _add_tx_args(p_rec)
    p_rec.add_argument("--updated", action="store_true", help="update already finished")
    p_rec.set_defaults(func=cmd_record)

    p_mark = sub.add_parser("mark-updated", help="set the updated flag of the current status")
    p_mark.add_argument("--id", required=True, type=int)
    p_mark.add_argument("--undo", action="store_true", help="reset the flag to false")
    p_mark.set_defaults(func=cmd_mark_updated)

    p_clear = sub.add_parser("clear", help="remove the current status")
    p_clear.set_defaults(func=cmd_clear)

    p_exp = sub.add_parser("export-log", help="export operation log to CSV")
    p_exp.add_argument("--action", required=False)
    p_exp.add_argument("--limit", type=int, default=1000)
    p_exp.set_defaults(func=cmd_export_log)
    return parser


def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.db:
        # 操作日志与业务数据写入同一个库
        os.environ["UPD_DB_PATH"] = args.db
    if hasattr(args, "func"):
        args.func(args)
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
