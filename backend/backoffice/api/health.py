import os

from fastapi import APIRouter, Request
from sqlalchemy import text

from backoffice.db import engine

router = APIRouter()


@router.get("/health", tags=["health"])
def health(request: Request):
    db_ok = False
    storage_ok = False
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            db_ok = True
    except Exception:
        db_ok = False

    storage = getattr(request.app.state, "blob_storage", None)
    if storage is not None:
        storage_ok = os.path.isdir(storage.root_dir) and os.access(storage.root_dir, os.W_OK)

    auth_ok = getattr(request.app.state, "auth_provider", None) is not None

    return {
        "status": "ok" if db_ok and storage_ok and auth_ok else "degraded",
        "db": db_ok,
        "blob_storage": storage_ok,
        "auth_provider": auth_ok,
    }
