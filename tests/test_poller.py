"""Poll driver: timer lifecycle and edge-triggered callbacks."""

import asyncio

import pytest

from conftest import make_job
from jobsync.jobs.actions import JobCompleted, JobStarted, JobUpdated, SetCurrent
from jobsync.jobs.models import JobPatch, StoreState
from jobsync.jobs.poller import JobPoller, resolve_job

INTERVAL_MS = 40
INTERVAL_S = INTERVAL_MS / 1000


def patch(job_id, **fields):
    return JobPatch.model_validate({"jobId": job_id, **fields})


class Recorder:
    def __init__(self):
        self.completed = []
        self.errors = []

    def on_complete(self, result):
        self.completed.append(result)

    def on_error(self, message):
        self.errors.append(message)


def make_poller(actions, recorder, job_id=None):
    return JobPoller(
        actions,
        job_id=job_id,
        on_complete=recorder.on_complete,
        on_error=recorder.on_error,
        interval_ms=INTERVAL_MS,
    )


def test_resolve_job_prefers_matching_record_then_current():
    current = make_job("C")
    state = StoreState(jobs=(make_job("A"),), current_job=current)

    assert resolve_job(state, "A").job_id == "A"
    assert resolve_job(state, "missing") is current
    assert resolve_job(state, None) is current
    assert resolve_job(StoreState(), "missing") is None


@pytest.mark.asyncio
async def test_no_query_before_first_full_interval(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "pending")))
    poller = make_poller(actions, Recorder())
    poller.start()
    try:
        assert poller.active
        await asyncio.sleep(INTERVAL_S / 4)
        assert fake_api.status_calls == []
        await asyncio.sleep(INTERVAL_S * 1.5)
        assert fake_api.status_calls[:1] == ["J1"]
    finally:
        poller.close()


@pytest.mark.asyncio
async def test_stale_reference_is_inert(actions, store, fake_api):
    recorder = Recorder()
    poller = make_poller(actions, recorder, job_id="nowhere")
    poller.start()
    await asyncio.sleep(INTERVAL_S * 2)

    assert not poller.active
    assert poller.job is None
    assert fake_api.status_calls == []
    poller.close()


@pytest.mark.asyncio
async def test_terminal_job_is_not_polled_and_fires_nothing(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "success", result={"rate": 1})))
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()
    await asyncio.sleep(INTERVAL_S * 2)

    assert not poller.active
    assert fake_api.status_calls == []
    assert recorder.completed == []
    poller.close()


@pytest.mark.asyncio
async def test_poll_result_completes_job_and_stops_timer(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "running")))
    fake_api.jobs["J1"] = make_job("J1", "success", result={"currency_pair": "BTC/USD", "rate": 67000})
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()

    await asyncio.sleep(INTERVAL_S * 1.5)
    assert recorder.completed == [{"currency_pair": "BTC/USD", "rate": 67000}]
    assert not poller.active

    calls = len(fake_api.status_calls)
    await asyncio.sleep(INTERVAL_S * 3)
    assert len(fake_api.status_calls) == calls == 1
    assert recorder.completed == [{"currency_pair": "BTC/USD", "rate": 67000}]
    poller.close()


@pytest.mark.asyncio
async def test_push_completion_fires_once(actions, store):
    store.dispatch(JobStarted(make_job("J1", "running")))
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()

    result = {"currency_pair": "BTC/USD", "rate": 67000}
    store.dispatch(JobCompleted(patch("J1", status="success", result=result)))
    store.dispatch(JobUpdated(patch("J1", progress=100)))
    store.dispatch(JobCompleted(patch("J1", status="success", result=result)))

    assert recorder.completed == [result]
    assert store.snapshot().jobs[0].result["rate"] == 67000
    assert not poller.active
    poller.close()


@pytest.mark.asyncio
async def test_reentry_into_success_does_not_fire_again(actions, store):
    store.dispatch(JobStarted(make_job("J1", "running")))
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()

    store.dispatch(JobUpdated(patch("J1", status="success", result=1)))
    store.dispatch(JobUpdated(patch("J1", status="running")))
    store.dispatch(JobUpdated(patch("J1", status="success", result=2)))

    assert recorder.completed == [1]
    poller.close()


@pytest.mark.asyncio
async def test_failure_fires_on_error_with_message(actions, store):
    store.dispatch(JobStarted(make_job("J1", "running")))
    store.dispatch(JobStarted(make_job("J2", "running")))
    recorder = Recorder()
    first = make_poller(actions, recorder, job_id="J1")
    first.start()

    store.dispatch(JobUpdated(patch("J1", status="failed", error="blocked by captcha")))
    store.dispatch(JobUpdated(patch("J2", status="failed")))

    assert recorder.errors == ["blocked by captcha"]

    other = Recorder()
    second = make_poller(actions, other, job_id="J2")
    second.start()
    assert other.errors == []
    first.close()
    second.close()


@pytest.mark.asyncio
async def test_cancelled_fires_nothing_and_stops(actions, store):
    store.dispatch(JobStarted(make_job("J1", "running")))
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()

    store.dispatch(JobUpdated(patch("J1", status="cancelled")))

    assert recorder.completed == [] and recorder.errors == []
    assert not poller.active
    poller.close()


@pytest.mark.asyncio
async def test_start_twice_keeps_single_timer(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "pending")))
    poller = make_poller(actions, Recorder())
    poller.start()
    first_task = poller._task
    poller.start()

    assert poller._task is first_task
    await asyncio.sleep(INTERVAL_S * 1.5)
    assert fake_api.status_calls == ["J1"]
    poller.close()


@pytest.mark.asyncio
async def test_close_stops_polling_and_callbacks(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "running")))
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()
    poller.close()

    store.dispatch(JobUpdated(patch("J1", status="success")))
    await asyncio.sleep(INTERVAL_S * 2)

    assert fake_api.status_calls == []
    assert recorder.completed == []
    assert not poller.active


@pytest.mark.asyncio
async def test_in_flight_request_finishes_after_close(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "running")))
    fake_api.jobs["J1"] = make_job("J1", "success", result={"rate": 3})
    fake_api.status_gate = asyncio.Event()
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()

    await asyncio.sleep(INTERVAL_S * 1.5)
    assert fake_api.status_calls == ["J1"]
    poller.close()
    fake_api.status_gate.set()
    await asyncio.sleep(0.01)

    # the late response still reaches the store, but the closed view hears nothing
    assert store.snapshot().jobs[0].status == "success"
    assert recorder.completed == []


@pytest.mark.asyncio
async def test_observe_switches_job(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "running")))
    store.dispatch(JobStarted(make_job("J2", "success")))
    poller = make_poller(actions, Recorder(), job_id="J2")
    poller.start()
    assert not poller.active

    poller.observe("J1")
    assert poller.active
    await asyncio.sleep(INTERVAL_S * 1.5)
    assert fake_api.status_calls[0] == "J1"
    poller.close()


@pytest.mark.asyncio
async def test_following_current_job_restarts_on_new_start(actions, store, fake_api):
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()
    assert not poller.active

    await actions.start_job("https://x", "BTC/USD")
    assert poller.active

    store.dispatch(SetCurrent(None))
    assert not poller.active
    poller.close()


@pytest.mark.asyncio
async def test_unexpected_poll_error_does_not_stop_polling(actions, store, fake_api):
    store.dispatch(JobStarted(make_job("J1", "running")))
    fake_api.status_error = RuntimeError("broken client")
    recorder = Recorder()
    poller = make_poller(actions, recorder)
    poller.start()

    await asyncio.sleep(INTERVAL_S * 1.5)
    assert fake_api.status_calls == ["J1"]
    assert poller.active
    assert store.snapshot().loading is False

    fake_api.status_error = None
    fake_api.jobs["J1"] = make_job("J1", "success", result={"rate": 4})
    await asyncio.sleep(INTERVAL_S * 1.5)

    assert recorder.completed == [{"rate": 4}]
    assert not poller.active
    poller.close()
