"""Tests for the background sync scheduler."""

import asyncio

import pytest

from conftest import ScriptedProvider, extraction_json, make_message
from inbox_facts.ai.registry import AiProviderRegistry
from inbox_facts.config import HISTORY_DAYS_KEY, SYNC_INTERVAL_KEY, Settings, SyncFolder
from inbox_facts.extraction.extractor import FactExtractor
from inbox_facts.extraction.repair import SchemaRepair
from inbox_facts.pipeline import ExtractionPipeline
from inbox_facts.sources.memory import InMemoryMailSource
from inbox_facts.storage.relational.memory import InMemoryRelationalStore
from inbox_facts.storage.vector.memory import InMemoryVectorStore
from inbox_facts.sync import ScanReport, SyncManager, SyncPhase, SyncSettings

FOLDERS = [SyncFolder(folder_id="a", name="A"), SyncFolder(folder_id="b", name="B")]


class AlwaysValidProvider(ScriptedProvider):
    """Answers every extraction request with the same valid JSON."""

    async def chat_completion(self, request):
        self.replies = [extraction_json()]
        return await super().chat_completion(request)


def build(source, provider=None, **settings):
    provider = provider or AlwaysValidProvider()
    registry = AiProviderRegistry(provider)
    relational_store = InMemoryRelationalStore()
    pipeline = ExtractionPipeline(
        relational_store, InMemoryVectorStore(), registry, FactExtractor(SchemaRepair(registry))
    )
    manager = SyncManager(source, pipeline, SyncSettings(folders=FOLDERS, **settings))
    return manager, relational_store


@pytest.mark.asyncio
async def test_failing_folder_does_not_stop_the_next():
    source = InMemoryMailSource(
        {"a": [make_message(entry_id="a1")], "b": [make_message(entry_id="b1", folder="B")]}
    )
    source.fail_folder("a")
    manager, relational_store = build(source)

    report = await manager.run_initial_scan()

    assert report.folders_failed == ["A"]
    assert report.folders_ok == ["B"]
    assert report.processed == 1
    assert relational_store.count_messages() == 1
    assert not report.clean


@pytest.mark.asyncio
async def test_failing_message_does_not_stop_the_folder():
    source = InMemoryMailSource(
        {
            "a": [
                make_message(entry_id="bad", subject="bad", age_days=0.1),
                make_message(entry_id="good", subject="good", age_days=0.2),
            ]
        }
    )
    # Newest first: "bad" gets the invalid replies, "good" the valid one
    provider = ScriptedProvider(replies=["nope", "nope", extraction_json()])
    manager, relational_store = build(source, provider)

    report = await manager.run_initial_scan()

    assert report.processed == 1
    assert report.failed == 1
    assert relational_store.count_messages() == 2
    assert [m.subject for m in relational_store.get_messages_without_facts()] == ["bad"]


@pytest.mark.asyncio
async def test_scan_windows():
    source = InMemoryMailSource()
    manager, _ = build(source, history_days=90.0, delta_window_days=1.0)

    await manager.run_initial_scan()
    await manager.run_delta_scan()
    await manager.force_resync(7)
    await manager.force_resync()

    assert source.fetch_log == [
        ("a", 90.0), ("b", 90.0),
        ("a", 1.0), ("b", 1.0),
        ("a", 7), ("b", 7),
        ("a", 90.0), ("b", 90.0),
    ]


@pytest.mark.asyncio
async def test_delta_scan_only_sees_recent_messages():
    source = InMemoryMailSource(
        {"a": [make_message(entry_id="old", age_days=30), make_message(entry_id="new")]}
    )
    manager, _ = build(source)

    report = await manager.run_delta_scan()

    assert report.kind == "delta"
    assert report.processed == 1


@pytest.mark.asyncio
async def test_reprocess_unextracted():
    source = InMemoryMailSource({"a": [make_message(entry_id="x")]})
    provider = ScriptedProvider(replies=["nope", "nope", extraction_json()])
    manager, relational_store = build(source, provider)

    await manager.run_initial_scan()
    assert relational_store.get_stats()["with_facts"] == 0

    report = await manager.reprocess_unextracted()

    assert report.processed == 1
    assert relational_store.get_stats()["with_facts"] == 1


@pytest.mark.asyncio
async def test_run_forever_scans_then_ticks_until_stopped():
    source = InMemoryMailSource({"a": [make_message()]})
    manager, relational_store = build(source, sync_interval_minutes=0.0005)

    task = asyncio.create_task(manager.run_forever())
    # initial scan (2 fetches) + at least two delta scans (2 fetches each)
    while len(source.fetch_log) < 6:
        await asyncio.sleep(0.01)

    assert manager.phase == SyncPhase.STEADY_STATE
    manager.stop()
    await asyncio.wait_for(task, timeout=5)

    assert source.fetch_log[0] == ("a", 90.0)
    assert source.fetch_log[2] == ("a", 1.0)
    assert relational_store.count_messages() == 1


@pytest.mark.asyncio
async def test_tick_failure_is_logged_and_loop_continues():
    source = InMemoryMailSource({"a": [make_message()]})
    manager, _ = build(source, sync_interval_minutes=0.0005)
    calls = []
    original = manager.run_delta_scan

    async def flaky_delta_scan():
        calls.append(1)
        if len(calls) == 1:
            raise RuntimeError("unexpected")
        return await original()

    manager.run_delta_scan = flaky_delta_scan

    task = asyncio.create_task(manager.run_forever())
    while len(calls) < 3:
        await asyncio.sleep(0.01)
    manager.stop()
    await asyncio.wait_for(task, timeout=5)

    assert len(calls) >= 3


@pytest.mark.asyncio
async def test_stop_before_start_runs_initial_scan_only():
    source = InMemoryMailSource()
    manager, _ = build(source, sync_interval_minutes=60)

    manager.stop()
    await asyncio.wait_for(manager.run_forever(), timeout=5)

    assert source.fetch_log == [("a", 90.0), ("b", 90.0)]


def test_settings_resolve_applies_store_overrides():
    store = InMemoryRelationalStore()
    store.set_config(HISTORY_DAYS_KEY, "30")
    store.set_config(SYNC_INTERVAL_KEY, "5")

    resolved = SyncSettings.resolve(Settings(_env_file=None), store)

    assert resolved.history_days == 30.0
    assert resolved.sync_interval_minutes == 5.0
    assert resolved.interval_seconds == 300.0
    assert resolved.delta_window_days == 1.0


def test_settings_resolve_ignores_bad_values():
    store = InMemoryRelationalStore()
    store.set_config(HISTORY_DAYS_KEY, "ninety")
    store.set_config(SYNC_INTERVAL_KEY, "-1")

    resolved = SyncSettings.resolve(Settings(_env_file=None), store)

    assert resolved.history_days == 90.0
    assert resolved.sync_interval_minutes == 2.0


def test_scan_report_clean():
    assert ScanReport(kind="delta", window_days=1.0, folders_ok=["A"], processed=3).clean
    assert not ScanReport(kind="delta", window_days=1.0, failed=1).clean
