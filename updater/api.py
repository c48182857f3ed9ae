"""
FastAPI app entry point aggregating routers under updater/routes.
Keep as `uvicorn updater.api:app`.
"""
from __future__ import annotations


from fastapi import FastAPI

from .logs import ensure_log_schema


app = FastAPI(title="update-status-api", version="0.1.0")


@app.on_event("startup")
def on_startup():
    ensure_log_schema()


from .routes import base as base_routes
from .routes import status as status_routes
from .routes import transactions as transactions_routes
from .routes import logs as logs_routes

app.include_router(base_routes.router)
app.include_router(status_routes.router)
app.include_router(transactions_routes.router)
app.include_router(logs_routes.router)
