from __future__ import annotations

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from ..domain.errors import InvariantViolationError, StorageError
from ..logs import LogContext
from ..services.updater_svc import get_status, mark_updated, record_applied, reset_status
from .transactions import TransactionBody

router = APIRouter()


class RecordBody(BaseModel):
    transaction: TransactionBody
    updated: bool = False


class MarkUpdatedBody(BaseModel):
    transaction_id: int
    updated: bool = True


def _fail(log: LogContext, e: Exception) -> HTTPException:
    log.write("ERROR", str(e))
    if isinstance(e, InvariantViolationError):
        return HTTPException(status_code=409, detail=str(e))
    if isinstance(e, LookupError):
        return HTTPException(status_code=404, detail=str(e))
    if isinstance(e, ValueError):
        return HTTPException(status_code=400, detail=str(e))
    return HTTPException(status_code=500, detail=str(e))


@router.get("/api/update-status/last")
def api_status_last():
    try:
        status = get_status()
    except InvariantViolationError as e:
        raise HTTPException(status_code=409, detail=str(e))
    except StorageError as e:
        raise HTTPException(status_code=500, detail=str(e))
    return {"status": status}


@router.post("/api/update-status/record", status_code=201)
def api_status_record(body: RecordBody):
    log = LogContext("UPDATE_STATUS_RECORD")
    log.set_payload(body.model_dump())
    try:
        status = record_applied(body.transaction.model_dump(), body.updated, log)
    except (InvariantViolationError, StorageError, ValueError) as e:
        raise _fail(log, e)
    log.write("OK")
    return {"message": "ok", "status": status}


@router.post("/api/update-status/mark-updated")
def api_status_mark_updated(body: MarkUpdatedBody):
    log = LogContext("UPDATE_STATUS_MARK")
    log.set_payload(body.model_dump())
    try:
        status = mark_updated(body.transaction_id, log, updated=body.updated)
    except (InvariantViolationError, StorageError, LookupError, ValueError) as e:
        raise _fail(log, e)
    log.write("OK")
    return {"message": "ok", "status": status}


@router.post("/api/update-status/clear")
def api_status_clear():
    log = LogContext("UPDATE_STATUS_CLEAR")
    removed = reset_status(log)
    log.write("OK")
    return {"message": "ok", "removed": removed}
