"""
Source Tree Watcher.

A thin host around the synchronization engine: watches a project tree with
watchdog, debounces notifications into event batches and hands each batch
to the engine, one at a time.
"""

import asyncio
import logging
import os
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional, Set

from watchdog.events import (
    FileCreatedEvent,
    FileDeletedEvent,
    FileModifiedEvent,
    FileMovedEvent,
    FileSystemEvent as WatchdogEvent,
    FileSystemEventHandler,
)
from watchdog.observers import Observer

from ..models.outcomes import BatchReport
from ..registry.paths import normalize_path
from .engine import SyncEngine
from .events import EventBatch, FileSystemEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class WatcherConfig:
    """Timing configuration for the watcher."""
    debounce_ms: int = 500
    shutdown_timeout_s: float = 5.0

    @classmethod
    def from_env(cls, debounce_ms: Optional[int] = None) -> 'WatcherConfig':
        """Create config from environment variables."""
        if debounce_ms is None:
            debounce_ms = int(os.environ.get('ARTIFACT_SYNC_DEBOUNCE_MS', '500'))
        return cls(
            debounce_ms=debounce_ms,
            shutdown_timeout_s=float(os.environ.get('ARTIFACT_SYNC_SHUTDOWN_TIMEOUT', '5.0'))
        )


class SourceTreeWatcher:
    """
    Watches a project tree and feeds debounced event batches to a SyncEngine.

    Created and modified notifications both become ``created`` entries,
    moves become index-aligned ``moved``/``moved_from`` entries and
    deletions are passed through as ``deleted``. Extension filtering is
    left to the engine.
    """

    def __init__(
        self,
        root: Path,
        engine: SyncEngine,
        debounce_ms: Optional[int] = None,
        ignored_directories: Optional[Iterable[str]] = None,
        report_callback: Optional[Callable[[BatchReport], None]] = None,
        recursive: bool = True
    ):
        """
        Initialize the watcher.

        Args:
            root: Project root to monitor
            engine: Engine that processes each batch
            debounce_ms: Quiet period before a batch is delivered
            ignored_directories: Directory names whose contents are ignored
            report_callback: Optional callback receiving each BatchReport
            recursive: Whether to monitor subdirectories
        """
        self.root = Path(root).resolve()
        self.engine = engine
        self._config = WatcherConfig.from_env(debounce_ms)
        self.ignored_directories: Set[str] = set(ignored_directories or ())
        self.report_callback = report_callback
        self.recursive = recursive

        # Watchdog components
        self.observer: Optional[Observer] = None
        self.event_handler: Optional['SyncFileSystemEventHandler'] = None

        # Debouncing state
        self._loop: Optional[asyncio.AbstractEventLoop] = None
        self._pending_events: List[FileSystemEvent] = []
        self._flush_handle: Optional[asyncio.TimerHandle] = None
        self._flush_tasks: Set[asyncio.Task] = set()
        self._flush_lock: Optional[asyncio.Lock] = None

        # Monitoring state
        self._is_monitoring = False
        self._monitor_start_time: Optional[datetime] = None
        self._batches_delivered = 0

        # Error tracking
        self._error_count = 0
        self._last_error: Optional[str] = None

        logger.info(f"Initialized SourceTreeWatcher for {self.root} (debounce {self.debounce_ms}ms)")

    @property
    def debounce_ms(self) -> int:
        return self._config.debounce_ms

    @property
    def is_monitoring(self) -> bool:
        return self._is_monitoring

    @property
    def pending_count(self) -> int:
        return len(self._pending_events)

    async def start_monitoring(self) -> bool:
        """
        Start watching the tree.

        Returns:
            True if monitoring started successfully, False otherwise
        """
        if self._is_monitoring:
            logger.warning("File system monitoring is already active")
            return True

        try:
            if not self.root.is_dir():
                raise NotADirectoryError(f"Project root is not a directory: {self.root}")

            self._loop = asyncio.get_running_loop()
            self._flush_lock = asyncio.Lock()

            self.event_handler = SyncFileSystemEventHandler(self)
            self.event_handler.set_event_loop(self._loop)

            self.observer = Observer()
            self.observer.schedule(self.event_handler, str(self.root), recursive=self.recursive)
            self.observer.start()

            self._is_monitoring = True
            self._monitor_start_time = datetime.now()
            logger.info(f"Started monitoring {self.root} (recursive={self.recursive})")
            return True

        except Exception as e:
            error_msg = f"Failed to start file system monitoring: {e}"
            logger.error(error_msg)
            self._last_error = error_msg
            self._error_count += 1
            return False

    async def stop_monitoring(self, flush: bool = True) -> None:
        """Stop watching; by default pending events are delivered first."""
        if not self._is_monitoring:
            return

        self._is_monitoring = False

        if self.event_handler:
            self.event_handler.set_event_loop(None)

        if self.observer:
            try:
                self.observer.stop()
                self.observer.join(timeout=self._config.shutdown_timeout_s)
            except Exception as e:
                logger.warning(f"Error stopping observer: {e}")
            finally:
                self.observer = None

        if self._flush_handle is not None:
            self._flush_handle.cancel()
            self._flush_handle = None

        if self._flush_tasks:
            try:
                await asyncio.wait_for(
                    asyncio.gather(*self._flush_tasks, return_exceptions=True),
                    timeout=self._config.shutdown_timeout_s
                )
            except asyncio.TimeoutError:
                logger.warning("Timeout waiting for batch delivery to finish")

        if flush and self._pending_events:
            await self.flush()

        self._pending_events.clear()
        self.event_handler = None
        logger.info(f"Stopped monitoring {self.root} ({self._batches_delivered} batches delivered)")

    def _is_ignored(self, path: Path) -> bool:
        try:
            relative = path.relative_to(self.root)
        except ValueError:
            return True
        return any(part in self.ignored_directories for part in relative.parts[:-1])

    def convert_watchdog_event(self, event: WatchdogEvent) -> Optional[FileSystemEvent]:
        """
        Convert a watchdog event to a root-relative FileSystemEvent.

        Returns:
            FileSystemEvent or None if the event should be ignored
        """
        if event.is_directory:
            return None

        try:
            src = Path(os.fsdecode(event.src_path)).resolve()

            if isinstance(event, FileMovedEvent):
                dest = Path(os.fsdecode(event.dest_path)).resolve()
                src_ignored = self._is_ignored(src)
                dest_ignored = self._is_ignored(dest)
                if dest_ignored:
                    return None
                if src_ignored:
                    # Moved in from outside the watched scope
                    return FileSystemEvent.create_file_created(normalize_path(dest, root=self.root))
                return FileSystemEvent.create_file_moved(
                    normalize_path(src, root=self.root),
                    normalize_path(dest, root=self.root)
                )

            if self._is_ignored(src):
                return None

            relative = normalize_path(src, root=self.root)
            if isinstance(event, FileCreatedEvent):
                return FileSystemEvent.create_file_created(relative)
            if isinstance(event, FileModifiedEvent):
                return FileSystemEvent.create_file_modified(relative)
            if isinstance(event, FileDeletedEvent):
                return FileSystemEvent.create_file_deleted(relative)

            logger.debug(f"Ignoring watchdog event type: {type(event).__name__}")
            return None

        except Exception as e:
            logger.warning(f"Error converting watchdog event {event}: {e}")
            return None

    def record_event(self, event: FileSystemEvent) -> None:
        """
        Add an event to the pending batch and restart the debounce timer.

        Must be called on the watcher's event loop.
        """
        self._pending_events.append(event)

        if self._loop is None:
            return
        if self._flush_handle is not None:
            self._flush_handle.cancel()
        self._flush_handle = self._loop.call_later(self.debounce_ms / 1000.0, self._start_flush)

    def handle_watchdog_event(self, event: WatchdogEvent) -> None:
        """Handle a watchdog event on the event loop."""
        fs_event = self.convert_watchdog_event(event)
        if fs_event is None:
            return
        logger.debug(f"Recorded event: {fs_event}")
        self.record_event(fs_event)

    def _start_flush(self) -> None:
        self._flush_handle = None
        task = asyncio.ensure_future(self.flush())
        self._flush_tasks.add(task)
        task.add_done_callback(self._flush_tasks.discard)

    async def flush(self) -> Optional[BatchReport]:
        """
        Deliver all pending events to the engine as one batch.

        Returns:
            The engine's report, or None if nothing was pending
        """
        if self._flush_lock is None:
            self._flush_lock = asyncio.Lock()

        async with self._flush_lock:
            if not self._pending_events:
                return None

            events, self._pending_events = self._pending_events, []
            batch = EventBatch.from_events(events)

            try:
                loop = asyncio.get_running_loop()
                report = await loop.run_in_executor(None, self.engine.process_batch, batch)
            except Exception as e:
                error_msg = f"Error delivering batch {batch.batch_id}: {e}"
                logger.error(error_msg)
                self._last_error = error_msg
                self._error_count += 1
                return None

            self._batches_delivered += 1

        if self.report_callback:
            try:
                self.report_callback(report)
            except Exception as e:
                logger.warning(f"Error in report callback: {e}")

        return report

    def get_status(self) -> Dict[str, Any]:
        """Get status information."""
        return {
            "is_monitoring": self._is_monitoring,
            "root": str(self.root),
            "recursive": self.recursive,
            "debounce_ms": self.debounce_ms,
            "pending_events": len(self._pending_events),
            "batches_delivered": self._batches_delivered,
            "monitoring_since": self._monitor_start_time.isoformat() if self._monitor_start_time else None,
            "error_count": self._error_count,
            "last_error": self._last_error,
        }

    async def __aenter__(self):
        """Async context manager entry."""
        await self.start_monitoring()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.stop_monitoring()


class SyncFileSystemEventHandler(FileSystemEventHandler):
    """
    Watchdog event handler that forwards events to SourceTreeWatcher.

    Watchdog calls this from its own thread; events are handed over to the
    watcher's event loop with call_soon_threadsafe.
    """

    def __init__(self, watcher: SourceTreeWatcher):
        super().__init__()
        self.watcher = watcher
        self._event_loop: Optional[asyncio.AbstractEventLoop] = None

    def set_event_loop(self, loop: Optional[asyncio.AbstractEventLoop]) -> None:
        self._event_loop = loop

    def on_any_event(self, event: WatchdogEvent) -> None:
        loop = self._event_loop
        if loop is None or loop.is_closed():
            logger.debug(f"No event loop available, dropping event: {event}")
            return
        try:
            loop.call_soon_threadsafe(self.watcher.handle_watchdog_event, event)
        except RuntimeError as e:
            # Loop closing during shutdown
            if "closed" not in str(e).lower():
                logger.error(f"Failed to schedule event on loop: {e}")
