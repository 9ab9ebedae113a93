"""Request initiators: the async entry points the display layer calls.

Each one follows the same shape: raise the loading flag, clear the previous
error, call the scraper API, dispatch the outcome. On a transport failure a
readable message lands in the store's error field. ``loading`` is lowered on
every exit path.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from jobsync.client.scraper_api import ScraperApi
from jobsync.jobs.actions import (
    ClearError,
    JobsLoaded,
    JobStarted,
    SetCurrent,
    SetError,
    SetLoading,
    status_action,
)
from jobsync.jobs.errors import InvalidJobRequest, TransportError, describe_error
from jobsync.jobs.models import EXCHANGE_RATE_TASK, JobStatus, ScraperJob
from jobsync.jobs.store import JobStore

logger = logging.getLogger(__name__)


class ScraperActions:
    """Binds the store to a scraper API implementation."""

    def __init__(self, store: JobStore, api: ScraperApi):
        self._store = store
        self._api = api

    @property
    def store(self) -> JobStore:
        return self._store

    def _begin(self) -> None:
        self._store.dispatch(SetLoading(True))
        self._store.dispatch(ClearError())

    async def start_job(
        self,
        url: str,
        currency_pair: str,
        target_sheet_id: Optional[str] = None,
    ) -> str:
        """Submit an exchange rate job and make it the current job.

        Raises:
            InvalidJobRequest: ``url`` or ``currency_pair`` is empty.
            TransportError: the submission failed. The store's error is set
                before the exception propagates.
        """
        if not url or not url.strip():
            raise InvalidJobRequest("Please enter a source URL")
        if not currency_pair or not currency_pair.strip():
            raise InvalidJobRequest("Please enter a currency pair")

        self._begin()
        try:
            response = await self._api.start(url, currency_pair, target_sheet_id or None)
            job = ScraperJob(
                job_id=response.job_id,
                task=EXCHANGE_RATE_TASK,
                status=JobStatus.PENDING,
                created_at=datetime.now(timezone.utc),
            )
            self._store.dispatch(JobStarted(job))
            logger.info("Started exchange rate job %s for %s", job.job_id, currency_pair)
            return job.job_id
        except TransportError as exc:
            logger.error("Failed to start exchange rate job: %s", exc)
            self._store.dispatch(SetError(describe_error(exc, "Failed to start job")))
            raise
        finally:
            self._store.dispatch(SetLoading(False))

    async def get_status(self, job_id: str) -> None:
        """Refresh one job from the API. Unknown jobs are ignored."""
        self._begin()
        try:
            job = await self._api.get_status(job_id)
            if job is None:
                logger.debug("Job %s not found on server", job_id)
                return
            self._store.dispatch(status_action(job))
        except TransportError as exc:
            logger.error("Failed to get job status for %s: %s", job_id, exc)
            self._store.dispatch(SetError(describe_error(exc, "Failed to get job status")))
        finally:
            self._store.dispatch(SetLoading(False))

    async def get_recent(self) -> None:
        """Replace the job list with the server's recent jobs."""
        self._begin()
        try:
            jobs = await self._api.get_recent()
            self._store.dispatch(JobsLoaded(jobs))
        except TransportError as exc:
            logger.error("Failed to get recent jobs: %s", exc)
            self._store.dispatch(SetError(describe_error(exc, "Failed to get recent jobs")))
        finally:
            self._store.dispatch(SetLoading(False))

    def clear_current(self) -> None:
        self._store.dispatch(SetCurrent(None))
