"""Job record data model for client-side job tracking."""

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field


EXCHANGE_RATE_TASK = "update_exchange_rate"


class JobStatus(str, Enum):
    PENDING = "pending"
    RUNNING = "running"
    SUCCESS = "success"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in (JobStatus.PENDING, JobStatus.RUNNING)


TERMINAL_STATUSES = frozenset({JobStatus.SUCCESS, JobStatus.FAILED, JobStatus.CANCELLED})


class ScraperJob(BaseModel):
    """One tracked scraper task as the client knows it.

    Unknown keys from the server (task-specific data) are kept as extras so a
    later merge does not lose them.
    """
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    job_id: str = Field(alias="jobId")
    task: str = "unknown"
    status: JobStatus
    progress: Optional[float] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    def merged(self, patch: "JobPatch") -> "ScraperJob":
        """Return a copy with the fields present in ``patch`` applied."""
        data = self.model_dump()
        changes = patch.changes()
        if self.created_at is not None:
            changes.pop("created_at", None)
        if changes.get("status") is None:
            changes.pop("status", None)
        data.update(changes)
        return ScraperJob.model_validate(data)


class JobPatch(BaseModel):
    """Partial job update. Only explicitly provided fields are applied."""
    model_config = ConfigDict(populate_by_name=True, frozen=True, extra="allow")

    job_id: str = Field(alias="jobId")
    task: Optional[str] = None
    status: Optional[JobStatus] = None
    progress: Optional[float] = None
    result: Optional[Any] = None
    error: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, alias="createdAt")

    def changes(self) -> Dict[str, Any]:
        fields = type(self).model_fields
        data = {
            name: getattr(self, name)
            for name in self.model_fields_set
            if name in fields and name != "job_id"
        }
        data.update(self.model_extra or {})
        return data

    @classmethod
    def from_job(cls, job: ScraperJob) -> "JobPatch":
        """Patch carrying every field the job has set."""
        data = {name: getattr(job, name) for name in job.model_fields_set}
        data.update(job.model_extra or {})
        data["job_id"] = job.job_id
        return cls.model_validate(data)


class StoreState(BaseModel):
    """Immutable snapshot of everything the display layer may read."""
    model_config = ConfigDict(populate_by_name=True, frozen=True)

    jobs: Tuple[ScraperJob, ...] = ()
    current_job: Optional[ScraperJob] = Field(default=None, alias="currentJob")
    loading: bool = False
    error: Optional[str] = None

    def find(self, job_id: str) -> Optional[ScraperJob]:
        for job in self.jobs:
            if job.job_id == job_id:
                return job
        return None
