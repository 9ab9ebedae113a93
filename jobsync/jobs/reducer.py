"""Pure reducer merging actions into the job store state.

No I/O and no clock here: every input the merge needs is carried by the
action, so the same (state, action) pair always yields the same result.
"""

from typing import Iterable, Optional, Tuple

from jobsync.jobs.actions import (
    Action,
    ClearError,
    JobCompleted,
    JobFailed,
    JobsLoaded,
    JobStarted,
    JobUpdated,
    SetCurrent,
    SetError,
    SetLoading,
)
from jobsync.jobs.models import JobPatch, ScraperJob, StoreState

UNKNOWN_ERROR = "Unknown error"


def _merge_current(current: Optional[ScraperJob], patch: JobPatch) -> Optional[ScraperJob]:
    if current is not None and current.job_id == patch.job_id:
        return current.merged(patch)
    return current


def _merge(state: StoreState, patch: JobPatch, **extra) -> StoreState:
    jobs = tuple(
        job.merged(patch) if job.job_id == patch.job_id else job
        for job in state.jobs
    )
    return state.model_copy(update={
        "jobs": jobs,
        "current_job": _merge_current(state.current_job, patch),
        **extra,
    })


def _start(state: StoreState, job: ScraperJob) -> StoreState:
    previous = state.find(job.job_id)
    if previous is not None:
        # fields the new record does not carry keep their known values
        job = previous.merged(JobPatch.from_job(job))
    rest = tuple(j for j in state.jobs if j.job_id != job.job_id)
    return state.model_copy(update={
        "jobs": (job,) + rest,
        "current_job": job,
        "loading": False,
    })


def _unique(jobs: Iterable[ScraperJob]) -> Tuple[ScraperJob, ...]:
    # first occurrence wins
    seen = set()
    kept = []
    for job in jobs:
        if job.job_id in seen:
            continue
        seen.add(job.job_id)
        kept.append(job)
    return tuple(kept)


def reduce(state: StoreState, action: Action) -> StoreState:
    """Apply one action and return the new state. ``state`` is never mutated."""
    if isinstance(action, JobStarted):
        return _start(state, action.job)

    if isinstance(action, JobUpdated):
        return _merge(state, action.patch)

    if isinstance(action, JobCompleted):
        return _merge(state, action.patch, loading=False)

    if isinstance(action, JobFailed):
        return _merge(
            state,
            action.patch,
            loading=False,
            error=action.patch.error or UNKNOWN_ERROR,
        )

    if isinstance(action, JobsLoaded):
        return state.model_copy(update={"jobs": _unique(action.jobs), "loading": False})

    if isinstance(action, SetCurrent):
        return state.model_copy(update={"current_job": action.job})

    if isinstance(action, SetLoading):
        return state.model_copy(update={"loading": action.loading})

    if isinstance(action, SetError):
        return state.model_copy(update={"error": action.message})

    if isinstance(action, ClearError):
        return state.model_copy(update={"error": None})

    raise TypeError(f"Unknown action: {type(action).__name__}")
