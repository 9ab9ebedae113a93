"""Health check endpoint."""

from typing import Optional

from fastapi import APIRouter

from jobsync.jobs.store import JobStore
from jobsync.realtime.connection import RealtimeConnection

router = APIRouter()

# Set by main.py during lifespan
_store: Optional[JobStore] = None
_connection: Optional[RealtimeConnection] = None


def set_store(store: Optional[JobStore]):
    global _store
    _store = store


def set_connection(connection: Optional[RealtimeConnection]):
    global _connection
    _connection = connection


@router.get("/health")
async def health_check():
    """Service health, push channel state and tracked job count."""
    state = _store.snapshot() if _store is not None else None
    return {
        "status": "healthy",
        "push_connected": _connection.is_connected() if _connection is not None else False,
        "tracked_jobs": len(state.jobs) if state is not None else 0,
        "current_job": state.current_job.job_id if state is not None and state.current_job else None,
    }
