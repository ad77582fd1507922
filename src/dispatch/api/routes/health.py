"""Health endpoints."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status

from ...persistence.supabase_store import COMMIT_RPC, SCHEMA_SQL, SupabaseStore
from ...services.engine import DispatchEngine
from ..deps import get_engine

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health_root() -> dict:
    """Simple health check endpoint that doesn't require any dependencies."""
    return {"status": "ok"}


@router.get("/health/store", status_code=status.HTTP_200_OK)
def health_store(engine: DispatchEngine = Depends(get_engine)) -> dict:
    """Check that the record store answers queries."""
    backend = "supabase" if isinstance(engine.store, SupabaseStore) else "memory"
    try:
        drivers = engine.store.list_drivers()
        orders = engine.store.list_orders()
    except Exception as exc:
        return {"backend": backend, "connected": False, "error": str(exc)}
    payload = {
        "backend": backend,
        "connected": True,
        "drivers": len(drivers),
        "orders": len(orders),
        "lock_strategy": engine.locks.strategy,
    }
    if backend == "supabase":
        # writes need this function installed; reads alone do not prove it exists
        payload["commit_function"] = COMMIT_RPC
        payload["schema_file"] = SCHEMA_SQL.name
    return payload
