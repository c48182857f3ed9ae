from __future__ import annotations

from typing import Any, Mapping

from pydantic import ValidationError

from .errors import ReconstructionError
from .models import Transaction

_FIELDS = tuple(Transaction.model_fields)


class TransactionLoader:
    """Rebuild Transaction objects from raw ledger rows (sqlite3.Row or dict)."""

    def reconstruct(self, row: Mapping[str, Any]) -> Transaction:
        keys = set(row.keys())
        missing = [f for f in _FIELDS if f not in keys]
        if missing:
            raise ReconstructionError(f"row lacks transaction columns: {', '.join(missing)}")
        data = {f: row[f] for f in _FIELDS}
        if data["id"] is None:
            # LEFT JOIN 未匹配到 transaction 行
            ref = row["transaction_id"] if "transaction_id" in keys else None
            raise ReconstructionError(f"transaction {ref} is not present in the ledger")
        try:
            return Transaction.model_validate(data)
        except ValidationError as e:
            raise ReconstructionError(f"invalid transaction {data['id']}: {e}") from e
