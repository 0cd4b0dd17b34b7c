"""
Tests for SourceTreeWatcher event conversion, debouncing and delivery.

Most tests drive the watcher directly with watchdog event objects and a
mocked engine; one test runs the real observer against a temp directory.
"""

import asyncio
import pytest
from pathlib import Path
from unittest.mock import Mock

from watchdog.events import (
    DirCreatedEvent,
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
)

from core.models.config import SyncConfig
from core.models.outcomes import BatchReport
from core.sync.engine import SyncEngine
from core.sync.events import EventBatch, EventType, FileSystemEvent
from core.sync.watcher import SourceTreeWatcher, WatcherConfig


@pytest.fixture
def engine():
    engine = Mock()
    engine.process_batch.return_value = BatchReport()
    return engine


@pytest.fixture
def watcher(tmp_path, engine):
    return SourceTreeWatcher(
        root=tmp_path,
        engine=engine,
        debounce_ms=50,
        ignored_directories=[".git", ".artifact-sync"]
    )


class TestWatcherConfig:
    """Test timing configuration"""

    def test_explicit_debounce(self):
        assert WatcherConfig.from_env(250).debounce_ms == 250

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("ARTIFACT_SYNC_DEBOUNCE_MS", "900")
        monkeypatch.setenv("ARTIFACT_SYNC_SHUTDOWN_TIMEOUT", "1.5")

        config = WatcherConfig.from_env()

        assert config.debounce_ms == 900
        assert config.shutdown_timeout_s == 1.5


class TestEventConversion:
    """Test watchdog -> FileSystemEvent conversion"""

    def test_created(self, watcher, tmp_path):
        event = watcher.convert_watchdog_event(FileCreatedEvent(str(tmp_path / "Scripts" / "Foo.py")))

        assert event.event_type == EventType.CREATED
        assert event.file_path == "Scripts/Foo.py"

    def test_modified_and_deleted(self, watcher, tmp_path):
        modified = watcher.convert_watchdog_event(FileModifiedEvent(str(tmp_path / "Foo.py")))
        deleted = watcher.convert_watchdog_event(FileDeletedEvent(str(tmp_path / "Foo.py")))

        assert modified.event_type == EventType.MODIFIED
        assert deleted.event_type == EventType.DELETED

    def test_moved(self, watcher, tmp_path):
        event = watcher.convert_watchdog_event(
            FileMovedEvent(str(tmp_path / "A" / "Foo.py"), str(tmp_path / "B" / "Bar.py"))
        )

        assert event.event_type == EventType.MOVED
        assert event.old_path == "A/Foo.py"
        assert event.file_path == "B/Bar.py"

    def test_moved_in_from_outside(self, watcher, tmp_path):
        """Test a file entering the tree from outside counts as created"""
        event = watcher.convert_watchdog_event(
            FileMovedEvent(str(tmp_path.parent / "elsewhere.py"), str(tmp_path / "Foo.py"))
        )

        assert event.event_type == EventType.CREATED
        assert event.file_path == "Foo.py"

    def test_moved_into_ignored_directory(self, watcher, tmp_path):
        event = FileMovedEvent(str(tmp_path / "Foo.py"), str(tmp_path / ".git" / "Foo.py"))
        assert watcher.convert_watchdog_event(event) is None

    def test_ignored_directory(self, watcher, tmp_path):
        event = FileCreatedEvent(str(tmp_path / ".artifact-sync" / "config.json"))
        assert watcher.convert_watchdog_event(event) is None

    def test_directory_events_ignored(self, watcher, tmp_path):
        assert watcher.convert_watchdog_event(DirCreatedEvent(str(tmp_path / "Scripts"))) is None


class TestBatchDelivery:
    """Test pending events and flushing"""

    @pytest.mark.asyncio
    async def test_flush_delivers_one_batch(self, watcher, engine):
        watcher.record_event(FileSystemEvent.create_file_created("A.py"))
        watcher.record_event(FileSystemEvent.create_file_modified("A.py"))
        watcher.record_event(FileSystemEvent.create_file_moved("B.py", "C.py"))

        report = await watcher.flush()

        assert report is engine.process_batch.return_value
        engine.process_batch.assert_called_once()
        batch = engine.process_batch.call_args[0][0]
        assert isinstance(batch, EventBatch)
        assert batch.created == ["A.py"]
        assert batch.move_pairs == [("B.py", "C.py")]
        assert watcher.pending_count == 0

    @pytest.mark.asyncio
    async def test_flush_nothing_pending(self, watcher, engine):
        assert await watcher.flush() is None
        engine.process_batch.assert_not_called()

    @pytest.mark.asyncio
    async def test_report_callback(self, tmp_path, engine):
        reports = []
        watcher = SourceTreeWatcher(tmp_path, engine, debounce_ms=50, report_callback=reports.append)
        watcher.record_event(FileSystemEvent.create_file_created("A.py"))

        await watcher.flush()

        assert reports == [engine.process_batch.return_value]

    @pytest.mark.asyncio
    async def test_engine_failure_is_contained(self, watcher, engine):
        engine.process_batch.side_effect = RuntimeError("boom")
        watcher.record_event(FileSystemEvent.create_file_created("A.py"))

        assert await watcher.flush() is None

        status = watcher.get_status()
        assert status["error_count"] == 1
        assert "boom" in status["last_error"]

    @pytest.mark.asyncio
    async def test_debounce_coalesces_events(self, watcher, engine, tmp_path):
        """Test a burst of events is delivered as a single batch"""
        assert await watcher.start_monitoring()
        try:
            for name in ("A.py", "B.py", "C.py"):
                watcher.handle_watchdog_event(FileCreatedEvent(str(tmp_path / name)))
                await asyncio.sleep(0.01)

            await asyncio.sleep(0.3)
        finally:
            await watcher.stop_monitoring()

        engine.process_batch.assert_called_once()
        assert engine.process_batch.call_args[0][0].created == ["A.py", "B.py", "C.py"]

    @pytest.mark.asyncio
    async def test_stop_flushes_pending(self, watcher, engine, tmp_path):
        assert await watcher.start_monitoring()
        watcher.handle_watchdog_event(FileCreatedEvent(str(tmp_path / "A.py")))

        await watcher.stop_monitoring()

        engine.process_batch.assert_called_once()
        assert not watcher.is_monitoring

    @pytest.mark.asyncio
    async def test_start_on_missing_root(self, tmp_path, engine):
        watcher = SourceTreeWatcher(tmp_path / "missing", engine, debounce_ms=50)

        assert await watcher.start_monitoring() is False
        assert watcher.get_status()["error_count"] == 1


class TestWatcherIntegration:
    """Real observer against a temp directory"""

    @pytest.mark.asyncio
    async def test_new_source_gets_artifact(self, tmp_path):
        engine = SyncEngine.for_project(SyncConfig(root=tmp_path))

        async with SourceTreeWatcher(tmp_path, engine, debounce_ms=100) as watcher:
            assert watcher.is_monitoring
            (tmp_path / "Foo.py").write_text("class Foo(Behaviour):\n    pass\n", encoding="utf-8")

            artifact = tmp_path / "Foo.asset"
            for _ in range(50):
                if artifact.exists():
                    break
                await asyncio.sleep(0.1)

        assert artifact.is_file()
