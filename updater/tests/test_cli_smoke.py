from __future__ import annotations

import pytest

import update_status_cli


def _tx_args(tx_id: int) -> list[str]:
    return [
        "--id", str(tx_id), "--height", "10", "--timestamp", "1700000000",
        "--sender_id", "5", "--level", "MINOR", "--version", "0.9.1",
    ]


def test_record_status_mark_and_export(tmp_db_path, capsys, monkeypatch, tmp_path):
    update_status_cli.main(["init"])
    update_status_cli.main(["record", *_tx_args(12)])
    assert "transaction 12 updated=False" in capsys.readouterr().out

    update_status_cli.main(["mark-updated", "--id", "12"])
    update_status_cli.main(["status"])
    out = capsys.readouterr().out
    assert '"transaction_id": 12' in out
    assert '"updated": true' in out

    monkeypatch.setattr(update_status_cli, "__file__", str(tmp_path / "update_status_cli.py"))
    update_status_cli.main(["export-log"])
    out = capsys.readouterr().out
    assert "UPDATE_STATUS_MARK" in out
    assert list((tmp_path / "exports").glob("operation_log_*.csv"))


def test_mark_updated_without_status_exits(tmp_db_path, capsys):
    with pytest.raises(SystemExit) as ei:
        update_status_cli.main(["mark-updated", "--id", "3"])
    assert ei.value.code == 1
    assert "no update status recorded" in capsys.readouterr().err


def test_clear_and_empty_status(tmp_db_path, capsys):
    update_status_cli.main(["register", *_tx_args(4)])
    update_status_cli.main(["clear"])
    update_status_cli.main(["status"])
    out = capsys.readouterr().out
    assert "Transaction registered." in out
    assert "Removed 0 status row(s)." in out
    assert "(no update recorded)" in out
