"""Scraper job API for the display layer: read the store, trigger actions."""

import asyncio
from typing import Any, Dict, Optional

from fastapi import APIRouter, HTTPException, Query, status
from pydantic import BaseModel, ConfigDict, Field

from jobsync.config import settings
from jobsync.jobs.errors import InvalidJobRequest, TransportError, describe_error
from jobsync.jobs.initiators import ScraperActions
from jobsync.jobs.models import JobStatus, ScraperJob, StoreState
from jobsync.jobs.poller import JobPoller, resolve_job
from jobsync.jobs.results import render_result

router = APIRouter()

# Set by main.py during lifespan
_actions: Optional[ScraperActions] = None


def set_actions(actions: Optional[ScraperActions]):
    global _actions
    _actions = actions


def _require_actions() -> ScraperActions:
    if _actions is None:
        raise HTTPException(status_code=503, detail="Job tracking not initialized")
    return _actions


class StartJobRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    url: str = Field(min_length=1)
    currency_pair: str = Field(alias="currencyPair", min_length=1)
    target_sheet_id: Optional[str] = Field(default=None, alias="targetSheetId")


class StartJobAccepted(BaseModel):
    job_id: str = Field(serialization_alias="jobId")
    status: str
    message: str


def _job_out(job: Optional[ScraperJob]) -> Optional[Dict[str, Any]]:
    return job.model_dump(mode="json", by_alias=True) if job is not None else None


def _state_out(state: StoreState) -> Dict[str, Any]:
    return state.model_dump(mode="json", by_alias=True)


def _view_out(job: Optional[ScraperJob]) -> Dict[str, Any]:
    rendered = render_result(job) if job is not None else None
    return {
        "job": _job_out(job),
        "result": rendered.model_dump(mode="json") if rendered is not None else None,
    }


@router.get("/scraper/state")
async def get_state():
    """Read-only snapshot of the job store."""
    return _state_out(_require_actions().store.snapshot())


@router.post(
    "/scraper/jobs",
    response_model=StartJobAccepted,
    response_model_by_alias=True,
    status_code=status.HTTP_201_CREATED,
)
async def start_job(request: StartJobRequest):
    """Start an exchange rate scraping job and make it current."""
    actions = _require_actions()
    try:
        job_id = await actions.start_job(
            request.url,
            request.currency_pair,
            request.target_sheet_id,
        )
    except InvalidJobRequest as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    except TransportError as exc:
        raise HTTPException(status_code=502, detail=describe_error(exc, "Failed to start job"))
    return StartJobAccepted(
        job_id=job_id,
        status=JobStatus.PENDING.value,
        message="Job started. Poll GET /api/v1/scraper/jobs/{id} for status.",
    )


@router.get("/scraper/jobs/{job_id}")
async def get_job(job_id: str):
    """The job a view for ``job_id`` would show (falls back to the current job)."""
    state = _require_actions().store.snapshot()
    return _view_out(resolve_job(state, job_id))


@router.post("/scraper/jobs/{job_id}/refresh")
async def refresh_job(job_id: str):
    actions = _require_actions()
    await actions.get_status(job_id)
    return _state_out(actions.store.snapshot())


@router.get("/scraper/jobs/{job_id}/wait")
async def wait_for_job(
    job_id: str,
    timeout: Optional[float] = Query(default=None, gt=0),
):
    """Block until the job finishes, polling like a mounted progress view would.

    Returns immediately if the job is already terminal. On timeout the
    latest known job is returned with ``finished: false``.
    """
    actions = _require_actions()
    job = actions.store.snapshot().find(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail="Job not tracked")
    if job.status.is_terminal:
        return {"finished": True, **_view_out(job)}

    loop = asyncio.get_running_loop()
    done: asyncio.Future = loop.create_future()

    def settle(_: Any) -> None:
        if not done.done():
            done.set_result(None)

    def on_change(previous: StoreState, current: StoreState) -> None:
        latest = current.find(job_id)
        if latest is not None and latest.status == JobStatus.CANCELLED:
            settle(None)

    poller = JobPoller(actions, job_id=job_id, on_complete=settle, on_error=settle)
    unsubscribe = actions.store.subscribe(on_change)
    poller.start()
    try:
        await asyncio.wait_for(done, timeout=timeout or settings.wait_timeout_s)
        finished = True
    except asyncio.TimeoutError:
        finished = False
    finally:
        poller.close()
        unsubscribe()

    return {"finished": finished, **_view_out(actions.store.snapshot().find(job_id))}


@router.post("/scraper/recent")
async def load_recent():
    """Reload the job list from the server's recent jobs."""
    actions = _require_actions()
    await actions.get_recent()
    return _state_out(actions.store.snapshot())


@router.delete("/scraper/current")
async def clear_current():
    actions = _require_actions()
    actions.clear_current()
    return _state_out(actions.store.snapshot())
