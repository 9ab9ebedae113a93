"""Push event payloads, one variant per event name."""

from typing import Any, Dict, Optional, Type

from pydantic import BaseModel, ConfigDict, Field

from jobsync.jobs.models import JobPatch, JobStatus, ScraperJob


class PushEvent(BaseModel):
    """Fields every scraper event carries. Task-specific keys are kept as extras."""
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    job_id: str = Field(alias="jobId", min_length=1)
    status: JobStatus

    def to_patch(self) -> JobPatch:
        data: Dict[str, Any] = {name: getattr(self, name) for name in self.model_fields_set}
        data.update(self.model_extra or {})
        return JobPatch.model_validate(data)


class JobStartedEvent(PushEvent):
    task: str = "unknown"

    def to_job(self) -> ScraperJob:
        data: Dict[str, Any] = {name: getattr(self, name) for name in self.model_fields_set}
        data.update(self.model_extra or {})
        return ScraperJob.model_validate(data)


class JobProgressEvent(PushEvent):
    progress: Optional[float] = None


class JobCompletedEvent(PushEvent):
    result: Optional[Any] = None


class JobFailedEvent(PushEvent):
    error: Optional[str] = None


EVENT_TYPES: Dict[str, Type[PushEvent]] = {
    "started": JobStartedEvent,
    "progress": JobProgressEvent,
    "completed": JobCompletedEvent,
    "failed": JobFailedEvent,
}
