"""Tests for the scan scheduler."""

import asyncio
from datetime import timedelta

import pytest

from conftest import BASE_TIME, local_files, write_file
from files_uploader.sync.retention import RetentionEnforcer
from files_uploader.sync.scheduler import ScanScheduler, SchedulerState
from files_uploader.sync.transfer import TransferEngine


def _scheduler(config, store, interval_seconds=None):
    return ScanScheduler(
        config,
        TransferEngine(store),
        RetentionEnforcer(store),
        interval_seconds=interval_seconds,
    )


@pytest.mark.asyncio
async def test_cycle_uploads_then_prunes(make_config, store, staging):
    for i in range(3):
        store.add_object("uploads", f"photos/old{i}.jpg", BASE_TIME - timedelta(days=1, minutes=i))
    write_file(staging, "photos/new.jpg")
    scheduler = _scheduler(make_config(max_files_to_store=2), store)

    report = await scheduler.run_cycle(asyncio.Event())

    # The fresh upload is newest, so the two oldest pre-existing objects go
    assert store.keys("uploads") == ["photos/new.jpg", "photos/old0.jpg"]
    assert report.scan.files_uploaded == 1
    assert sorted(report.prune.deleted) == ["photos/old1.jpg", "photos/old2.jpg"]
    assert report.errors == []
    assert scheduler.state == SchedulerState.IDLE


@pytest.mark.asyncio
async def test_retention_runs_after_partial_upload_failure(make_config, store, staging):
    write_file(staging, "c.txt")
    store.fail_uploads.add("c.txt")
    for i in range(3):
        store.add_object("uploads", f"f/{i}.txt", BASE_TIME + timedelta(minutes=i))

    report = await _scheduler(make_config(max_files_to_store=1), store).run_cycle(asyncio.Event())

    assert local_files(staging) == ["c.txt"]
    assert store.keys("uploads") == ["f/2.txt"]
    assert report.prune is not None


@pytest.mark.asyncio
async def test_unexpected_fault_is_contained(make_config, store):
    scheduler = _scheduler(make_config(max_files_to_store=5), store)

    async def explode(*args, **kwargs):
        raise RuntimeError("boom")

    scheduler.transfer.scan_and_upload = explode

    report = await scheduler.run_cycle(asyncio.Event())

    assert report.errors == ["upload: boom"]
    assert report.prune is not None
    assert not scheduler._gate.locked()


@pytest.mark.asyncio
async def test_cycles_never_overlap(make_config, store, staging):
    scheduler = _scheduler(make_config(), store)
    running = 0
    peak = 0

    async def slow_scan(root, container, stop_event):
        nonlocal running, peak
        running += 1
        peak = max(peak, running)
        await asyncio.sleep(0.05)
        running -= 1

    scheduler.transfer.scan_and_upload = slow_scan
    stop_event = asyncio.Event()

    first, second = await asyncio.gather(
        scheduler.run_cycle(stop_event), scheduler.run_cycle(stop_event)
    )

    assert peak == 1
    # The second caller waited rather than being dropped
    assert first is not None and second is not None
    assert {first.number, second.number} == {1, 2}


@pytest.mark.asyncio
async def test_run_stops_during_sleep(make_config, store):
    scheduler = _scheduler(make_config(), store)
    stop_event = asyncio.Event()

    task = asyncio.create_task(scheduler.run(stop_event))
    while scheduler.state != SchedulerState.SLEEPING:
        await asyncio.sleep(0.01)
    stop_event.set()
    await asyncio.wait_for(task, timeout=5)

    assert scheduler.cycles_run == 1
    assert scheduler.state == SchedulerState.STOPPED


@pytest.mark.asyncio
async def test_loop_survives_failing_cycles(make_config, store):
    scheduler = _scheduler(make_config(), store, interval_seconds=0.01)
    stop_event = asyncio.Event()
    calls = 0

    async def flaky(root, container, stop_event_):
        nonlocal calls
        calls += 1
        if calls >= 3:
            stop_event.set()
        raise OSError("disk unplugged")

    scheduler.transfer.scan_and_upload = flaky

    await asyncio.wait_for(scheduler.run(stop_event), timeout=5)

    assert calls == 3
    assert scheduler.last_report.errors == ["upload: disk unplugged"]
    assert scheduler.state == SchedulerState.STOPPED


@pytest.mark.asyncio
async def test_no_cycle_after_stop(make_config, store, staging):
    write_file(staging, "a.txt")
    scheduler = _scheduler(make_config(), store)
    stop_event = asyncio.Event()
    stop_event.set()

    await scheduler.run(stop_event)

    assert scheduler.cycles_run == 0
    assert await scheduler.run_cycle(stop_event) is None
    assert local_files(staging) == ["a.txt"]
    assert scheduler.state == SchedulerState.STOPPED


def test_interval_comes_from_config(make_config, store):
    scheduler = _scheduler(make_config(scan_interval_minutes=15), store)

    assert scheduler.interval_seconds == 900
