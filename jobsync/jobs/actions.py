"""Closed set of actions the reducer understands."""

from dataclasses import dataclass
from typing import Optional, Sequence, Union

from jobsync.jobs.models import JobPatch, JobStatus, ScraperJob


@dataclass(frozen=True)
class JobStarted:
    job: ScraperJob


@dataclass(frozen=True)
class JobUpdated:
    patch: JobPatch


@dataclass(frozen=True)
class JobCompleted:
    patch: JobPatch


@dataclass(frozen=True)
class JobFailed:
    patch: JobPatch


@dataclass(frozen=True)
class JobsLoaded:
    jobs: Sequence[ScraperJob]


@dataclass(frozen=True)
class SetCurrent:
    job: Optional[ScraperJob]


@dataclass(frozen=True)
class SetLoading:
    loading: bool


@dataclass(frozen=True)
class SetError:
    message: Optional[str]


@dataclass(frozen=True)
class ClearError:
    pass


Action = Union[
    JobStarted,
    JobUpdated,
    JobCompleted,
    JobFailed,
    JobsLoaded,
    SetCurrent,
    SetLoading,
    SetError,
    ClearError,
]


def status_action(job: ScraperJob) -> Union[JobUpdated, JobCompleted, JobFailed]:
    """Pick the merge action matching a freshly fetched job's status."""
    patch = JobPatch.from_job(job)
    if job.status == JobStatus.SUCCESS:
        return JobCompleted(patch)
    if job.status == JobStatus.FAILED:
        return JobFailed(patch)
    return JobUpdated(patch)
