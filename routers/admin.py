from __future__ import annotations

from datetime import timedelta

from fastapi import APIRouter, Depends, Query

from db import SessionLocal
from deps.auth import require_admin
from services.catalog import sync_catalog
from services.outbox import StatsNotifier, get_notifier
from services.session_store import abandon_stale_sessions

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])


@router.post("/reload")
def reload_catalog():
    with SessionLocal() as db:
        n = sync_catalog(db)
    return {"ok": True, "count": n}


@router.post("/sessions/expire")
def expire_sessions(hours: int = Query(default=24, ge=1)):
    with SessionLocal() as db:
        n = abandon_stale_sessions(db, timedelta(hours=hours))
    return {"ok": True, "abandoned": n}


@router.post("/outbox/dispatch")
def dispatch_outbox(
    limit: int = Query(default=50, ge=1, le=500),
    notifier: StatsNotifier = Depends(get_notifier),
):
    return {"ok": True, **notifier.dispatch_pending(limit)}
