"""Per-view poll driver with edge-triggered completion callbacks.

A ``JobPoller`` belongs to one observing view. While the observed job is
pending or running it asks the scraper API for the job's status once per
interval. Independently of where an update came from (its own poll, a push
event, another view's refresh) it watches every store transition and tells
the view, once, when the job enters ``success`` or ``failed``.
"""

import asyncio
import logging
from typing import Any, Callable, Optional, Set

from jobsync.config import settings
from jobsync.jobs.initiators import ScraperActions
from jobsync.jobs.models import JobStatus, ScraperJob, StoreState
from jobsync.jobs.reducer import UNKNOWN_ERROR

logger = logging.getLogger(__name__)

CompleteCallback = Callable[[Any], None]
ErrorCallback = Callable[[str], None]


def resolve_job(state: StoreState, job_id: Optional[str]) -> Optional[ScraperJob]:
    """The job a view displays: the record with ``job_id``, else the current job."""
    if job_id is not None:
        job = state.find(job_id)
        if job is not None:
            return job
    return state.current_job


class JobPoller:
    """Inactive until the observed job is pending/running, then polls until terminal."""

    def __init__(
        self,
        actions: ScraperActions,
        job_id: Optional[str] = None,
        on_complete: Optional[CompleteCallback] = None,
        on_error: Optional[ErrorCallback] = None,
        interval_ms: Optional[int] = None,
    ):
        self._actions = actions
        self._store = actions.store
        self._job_id = job_id
        self._on_complete = on_complete
        self._on_error = on_error
        self._interval = (interval_ms if interval_ms is not None else settings.poll_interval_ms) / 1000.0

        self._task: Optional[asyncio.Task] = None
        self._polled_id: Optional[str] = None
        self._in_flight: Set[asyncio.Task] = set()
        self._notified: Set[str] = set()
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._closed = False

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Attach to the store and start polling if the job is still in progress."""
        if self._closed:
            raise RuntimeError("JobPoller is closed")
        if self._unsubscribe is None:
            self._unsubscribe = self._store.subscribe(self._on_store_change)
        self._sync(self._resolve(self._store.snapshot()))

    def observe(self, job_id: Optional[str]) -> None:
        """Switch the view to another job (or to the current job with ``None``)."""
        if job_id == self._job_id:
            return
        self._job_id = job_id
        self._stop_timer()
        if self._unsubscribe is not None:
            self._sync(self._resolve(self._store.snapshot()))

    def close(self) -> None:
        """Stop the timer and detach. No callback fires after this returns."""
        self._closed = True
        self._stop_timer()
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    @property
    def active(self) -> bool:
        return self._task is not None

    @property
    def job(self) -> Optional[ScraperJob]:
        return self._resolve(self._store.snapshot())

    # ------------------------------------------------------------------
    # Store transitions
    # ------------------------------------------------------------------

    def _resolve(self, state: StoreState) -> Optional[ScraperJob]:
        return resolve_job(state, self._job_id)

    def _on_store_change(self, previous: StoreState, current: StoreState) -> None:
        if self._closed:
            return
        before = self._resolve(previous)
        after = self._resolve(current)
        self._detect_transition(before, after)
        if not self._closed:
            self._sync(after)

    def _detect_transition(self, before: Optional[ScraperJob], after: Optional[ScraperJob]) -> None:
        if before is None or after is None or before.job_id != after.job_id:
            return
        if before.status == after.status or after.job_id in self._notified:
            return

        if after.status == JobStatus.SUCCESS:
            self._notified.add(after.job_id)
            logger.debug("Job %s completed", after.job_id)
            if self._on_complete is not None:
                self._on_complete(after.result)
        elif after.status == JobStatus.FAILED:
            self._notified.add(after.job_id)
            logger.debug("Job %s failed: %s", after.job_id, after.error)
            if self._on_error is not None:
                self._on_error(after.error or UNKNOWN_ERROR)

    # ------------------------------------------------------------------
    # Timer
    # ------------------------------------------------------------------

    def _sync(self, job: Optional[ScraperJob]) -> None:
        if job is None or not job.status.is_active:
            self._stop_timer()
            return
        if self._task is not None and self._polled_id == job.job_id:
            return
        self._stop_timer()
        self._polled_id = job.job_id
        self._task = asyncio.get_running_loop().create_task(self._poll_loop(job.job_id))

    def _stop_timer(self) -> None:
        task = self._task
        self._task = None
        self._polled_id = None
        if task is None or task.done():
            return
        # A status request already on the wire is left to finish; the loop
        # notices it was replaced and exits on its own.
        if task not in self._in_flight and task is not _current_task():
            task.cancel()

    async def _poll_loop(self, job_id: str) -> None:
        task = asyncio.current_task()
        while self._task is task:
            await asyncio.sleep(self._interval)
            if self._task is not task:
                break
            self._in_flight.add(task)
            try:
                await self._actions.get_status(job_id)
            except Exception:
                logger.exception("Status poll for job %s failed", job_id)
            finally:
                self._in_flight.discard(task)


def _current_task() -> Optional[asyncio.Task]:
    try:
        return asyncio.current_task()
    except RuntimeError:
        return None
