"""Real-Time File Monitoring

Watches the book tree and keeps the persisted cross-reference index in step
with the documents on disk.
"""

import asyncio
import time
from datetime import datetime
from pathlib import Path
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional

import structlog
from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer

from xref_index.store.index_store import XRefIndexStore

if TYPE_CHECKING:
    from xref_index.project import BookProject

logger = structlog.get_logger(__name__)

ADDED = "added"
MODIFIED = "modified"
REMOVED = "removed"


class FileChangeEvent:
    """Represents a file system change event."""

    def __init__(self, event_type: str, file_path: Path):
        self.event_type = event_type  # added, modified, removed
        self.file_path = file_path

    def __repr__(self) -> str:
        return f"<FileChangeEvent({self.event_type}, {self.file_path})>"


class ChangeBuffer:
    """Coalesce bursts of file changes into one final event per path.

    Nothing is released until the whole tree has been quiet for
    ``settle_delay`` seconds. Events queued with a delay (the initial scan
    uses ``initial_scan_delay``) are additionally held until that delay has
    passed. A later event for a path replaces the earlier one.
    """

    def __init__(
        self,
        settle_delay: float = 0.5,
        initial_scan_delay: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.settle_delay = settle_delay
        self.initial_scan_delay = initial_scan_delay
        self._clock = clock
        self._changes: Dict[Path, FileChangeEvent] = {}
        self._not_before: Dict[Path, float] = {}
        self._last_change_time: Optional[float] = None

    def add_change(self, event: FileChangeEvent, delay: float = 0.0) -> None:
        """Add a change event to the buffer."""
        current_time = self._clock()
        self._changes[event.file_path] = event
        self._not_before[event.file_path] = current_time + delay
        self._last_change_time = current_time

    def add_initial(self, event: FileChangeEvent) -> None:
        self.add_change(event, delay=self.initial_scan_delay)

    def get_ready_changes(self) -> List[FileChangeEvent]:
        """Get changes that are ready to be processed, in arrival order."""
        if not self._changes:
            return []
        current_time = self._clock()
        if current_time - self._last_change_time < self.settle_delay:
            return []

        ready = [
            path for path, not_before in self._not_before.items()
            if current_time >= not_before
        ]
        return [self._pop(path) for path in ready]

    def flush_all(self) -> List[FileChangeEvent]:
        """Get all buffered changes immediately."""
        changes = list(self._changes.values())
        self._changes.clear()
        self._not_before.clear()
        return changes

    def _pop(self, path: Path) -> FileChangeEvent:
        self._not_before.pop(path, None)
        return self._changes.pop(path)

    @property
    def pending_count(self) -> int:
        """Get number of pending changes."""
        return len(self._changes)


class LoopForwardingEventHandler(FileSystemEventHandler):
    """Hands watchdog events from the observer thread to the event loop."""

    def __init__(self, monitor: "FileMonitor", loop: asyncio.AbstractEventLoop):
        super().__init__()
        self.monitor = monitor
        self.loop = loop

    def _forward(self, event_type: str, path: str) -> None:
        self.loop.call_soon_threadsafe(self.monitor.handle_event, event_type, Path(path))

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(ADDED, event.src_path)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(MODIFIED, event.src_path)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(REMOVED, event.src_path)

    def on_moved(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._forward(REMOVED, event.src_path)
            self._forward(ADDED, event.dest_path)


class FileMonitor:
    """Drives re-indexing of the index store from file system changes."""

    def __init__(
        self,
        project: "BookProject",
        store: XRefIndexStore,
        settle_delay: float = 0.5,
        initial_scan_delay: float = 3.0,
        poll_interval: float = 0.25,
        clock: Callable[[], float] = time.monotonic,
        observer_factory: Callable[[], Any] = Observer,
    ):
        self.project = project
        self.store = store
        self.poll_interval = poll_interval
        self.change_buffer = ChangeBuffer(settle_delay, initial_scan_delay, clock)
        self._observer_factory = observer_factory
        self.observer: Optional[Any] = None

        # State
        self._running = False
        self._task: Optional[asyncio.Task] = None
        self._processing_lock = asyncio.Lock()

        # Statistics
        self.events_received = 0
        self.changes_processed = 0
        self.last_processed_time: Optional[datetime] = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self) -> None:
        """Start watching the book tree and queue the initial scan."""
        if self._running:
            logger.warning("File monitor already running")
            return

        root = self.project.root_path
        logger.info("Starting file monitor", root_path=str(root))

        loop = asyncio.get_running_loop()
        self.observer = self._observer_factory()
        self.observer.schedule(LoopForwardingEventHandler(self, loop), str(root), recursive=True)
        self.observer.start()
        self._running = True

        queued = await self.queue_initial_scan()
        self._task = asyncio.create_task(self._process_changes_loop())
        logger.info("File monitor started", initial_documents=queued)

    async def stop(self) -> None:
        """Stop file monitoring."""
        if not self._running:
            return

        logger.info("Stopping file monitor", root_path=str(self.project.root_path))
        self._running = False

        if self.observer is not None and self.observer.is_alive():
            self.observer.stop()
            await asyncio.to_thread(self.observer.join)
        self.observer = None

        # waits for a batch already taken from the buffer to finish
        async with self._processing_lock:
            if self._task is not None:
                self._task.cancel()

            remaining = self.change_buffer.flush_all()
            if remaining:
                await self._process_changes(remaining)

        if self._task is not None:
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None

        logger.info("File monitor stopped")

    async def queue_initial_scan(self) -> int:
        """Queue an ``added`` event for every document currently in the tree."""
        count = 0
        async for file_path in self.project.document_filter.discover():
            self.change_buffer.add_initial(FileChangeEvent(ADDED, file_path))
            count += 1
        return count

    def handle_event(self, event_type: str, file_path: Path) -> None:
        """Filter a raw event and buffer it when it concerns a book document."""
        self.events_received += 1
        if not self.project.is_book_document(file_path):
            return
        self.change_buffer.add_change(FileChangeEvent(event_type, file_path))

    async def _process_changes_loop(self) -> None:
        """Background loop to process buffered changes."""
        while self._running:
            try:
                await self.process_ready()
                await asyncio.sleep(self.poll_interval)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error("Error in change processing loop", error=str(e))
                await asyncio.sleep(self.poll_interval * 4)

    async def process_ready(self) -> int:
        async with self._processing_lock:
            changes = self.change_buffer.get_ready_changes()
            if changes:
                await self._process_changes(changes)
        return len(changes)

    async def _process_changes(self, changes: List[FileChangeEvent]) -> None:
        """Process a batch of coalesced changes, one per path."""
        logger.info("Processing file changes", count=len(changes))
        await asyncio.gather(*(self._dispatch(change) for change in changes))
        self.changes_processed += len(changes)
        self.last_processed_time = datetime.now()

    async def _dispatch(self, change: FileChangeEvent) -> None:
        relative_path = self.project.relative_path(change.file_path)
        if relative_path is None:
            return

        try:
            if change.event_type == ADDED:
                await self.store.reindex_if_stale(relative_path)
            elif change.event_type == MODIFIED:
                await self.store.reindex(relative_path)
            elif change.event_type == REMOVED:
                await self.store.evict(relative_path)
        except Exception as e:
            logger.error(
                "Error processing file change",
                file=relative_path,
                event_type=change.event_type,
                error=str(e),
            )

    def get_stats(self) -> Dict[str, Any]:
        """Get monitoring statistics."""
        return {
            "root_path": str(self.project.root_path),
            "running": self._running,
            "events_received": self.events_received,
            "changes_processed": self.changes_processed,
            "pending_changes": self.change_buffer.pending_count,
            "last_processed_time": self.last_processed_time.isoformat() if self.last_processed_time else None,
        }
