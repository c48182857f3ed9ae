from __future__ import annotations

from typing import Optional
from fastapi import APIRouter, HTTPException, Query
from pydantic import BaseModel

from ..domain.errors import StorageError
from ..logs import LogContext
from ..services.updater_svc import list_transactions, register_transaction

router = APIRouter()


class TransactionBody(BaseModel):
    id: int
    height: int
    timestamp: int
    sender_id: int
    update_level: str  # CRITICAL/IMPORTANT/MINOR
    version: str  # x.y.z
    platform: Optional[str] = None
    architecture: Optional[str] = None
    url: Optional[str] = None
    hash: Optional[str] = None


@router.get("/api/transactions/list")
def api_transactions_list(limit: int = Query(50, ge=1, le=500)):
    try:
        return {"items": list_transactions(limit)}
    except (StorageError, ValueError) as e:
        raise HTTPException(status_code=500, detail=str(e))


@router.post("/api/transactions/register", status_code=201)
def api_transactions_register(body: TransactionBody):
    log = LogContext("TRANSACTION_REGISTER")
    log.set_payload(body.model_dump())
    try:
        out = register_transaction(body.model_dump(), log)
        log.write("OK")
        return {"message": "ok", **out}
    except ValueError as e:
        log.write("ERROR", str(e))
        raise HTTPException(status_code=400, detail=str(e))
    except StorageError as e:
        log.write("ERROR", str(e))
        raise HTTPException(status_code=500, detail=str(e))
