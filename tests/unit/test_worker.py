import pytest

from casework_notifier.jobs import worker


@pytest.mark.asyncio
async def test_run_worker_runs_job(monkeypatch):
    called = {"ok": False}

    async def dummy_job():
        called["ok"] = True

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("dummy")

    assert called["ok"] is True


@pytest.mark.asyncio
async def test_run_worker_normalizes_job_name(monkeypatch):
    called = []

    async def dummy_job():
        called.append(True)

    monkeypatch.setitem(worker.JOB_REGISTRY, "dummy", dummy_job)

    await worker.run_worker("  DUMMY ")

    assert called == [True]


@pytest.mark.asyncio
async def test_run_worker_unknown_job():
    with pytest.raises(ValueError):
        await worker.run_worker("missing")


@pytest.mark.asyncio
async def test_run_worker_shuts_down_runtime_after_failure(monkeypatch):
    closed = []

    async def failing_job():
        raise RuntimeError("boom")

    async def fake_shutdown():
        closed.append(True)

    monkeypatch.setitem(worker.JOB_REGISTRY, "failing", failing_job)
    monkeypatch.setattr(worker, "shutdown_runtime", fake_shutdown)

    with pytest.raises(RuntimeError):
        await worker.run_worker("failing")

    assert closed == [True]


def test_job_name_from_env(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["casework-worker"])
    monkeypatch.setenv("WORKER_JOB", "Summary_Reminders")

    assert worker._resolve_job_name() == "summary_reminders"


def test_job_name_defaults_to_contact_reminders(monkeypatch):
    monkeypatch.setattr(worker.sys, "argv", ["casework-worker"])
    monkeypatch.delenv("WORKER_JOB", raising=False)

    assert worker._resolve_job_name() == "contact_reminders"


def test_registry_has_scheduler_and_single_run_jobs():
    for name in ("contact_reminders", "summary_reminders", "config_refresh"):
        assert name in worker.JOB_REGISTRY
        assert f"{name}_once" in worker.JOB_REGISTRY
