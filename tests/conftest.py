"""Shared fixtures for the cross-reference index tests."""

from pathlib import Path
from typing import List

import pytest

from xref_index.analyzer.renderer import PandocRenderer
from xref_index.documents import SourceDatabase
from xref_index.project import BookProject
from xref_index.scanner.file_monitor import FileMonitor
from xref_index.service import XRefIndexService
from xref_index.store.index_store import XRefIndexStore
from xref_index.utils.config import Settings


class FakeRenderer(PandocRenderer):
    """Renderer whose entries are simply the lines of the document."""

    def __init__(self):
        super().__init__()
        self.calls: List[bytes] = []

    async def index(self, content: bytes) -> List[str]:
        self.calls.append(content)
        self.renders_completed += 1
        return content.decode("utf-8").splitlines()


class FakeObserver:
    """Stand-in for a watchdog observer that never emits events."""

    def __init__(self):
        self.scheduled = []
        self.alive = False

    def schedule(self, handler, path, recursive=False):
        self.scheduled.append((handler, path, recursive))

    def start(self):
        self.alive = True

    def stop(self):
        self.alive = False

    def join(self, timeout=None):
        pass

    def is_alive(self):
        return self.alive


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def book_root(tmp_path: Path) -> Path:
    root = tmp_path / "book"
    root.mkdir()
    (root / "_bookdown.yml").write_text("book_filename: test-book\n", encoding="utf-8")
    return root


@pytest.fixture
def settings(book_root: Path, tmp_path: Path) -> Settings:
    return Settings(
        book_root=book_root,
        scratch_dir=tmp_path / "scratch",
        require_bookdown_package=False,
        settle_delay_seconds=0.5,
        initial_scan_delay_seconds=3.0,
    )


@pytest.fixture
def project(book_root: Path, settings: Settings) -> BookProject:
    return BookProject(book_root, settings)


@pytest.fixture
def renderer() -> FakeRenderer:
    return FakeRenderer()


@pytest.fixture
def store(project: BookProject, settings: Settings, renderer: FakeRenderer) -> XRefIndexStore:
    return XRefIndexStore.for_project(settings.scratch_dir, project.root_path, renderer)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def monitor(project: BookProject, store: XRefIndexStore, clock: FakeClock) -> FileMonitor:
    return FileMonitor(
        project,
        store,
        settle_delay=0.5,
        initial_scan_delay=3.0,
        poll_interval=0.01,
        clock=clock,
        observer_factory=FakeObserver,
    )


@pytest.fixture
def source_database() -> SourceDatabase:
    return SourceDatabase()


@pytest.fixture
def service(project, source_database, renderer, store, settings) -> XRefIndexService:
    return XRefIndexService(
        project,
        source_database,
        renderer=renderer,
        store=store,
        settings=settings,
        monitor_factory=lambda *args, **kwargs: FileMonitor(
            *args, observer_factory=FakeObserver, **kwargs
        ),
    )


@pytest.fixture
def write_doc(book_root: Path):
    """Write a book document whose lines are the entries FakeRenderer returns."""

    def _write(relative_path: str, entries: List[str]) -> Path:
        path = book_root / relative_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("\n".join(entries) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture
def fake_pandoc(monkeypatch):
    """Make services built from settings use FakeRenderer instead of pandoc."""
    monkeypatch.setattr(
        PandocRenderer, "from_settings", classmethod(lambda cls, settings=None: FakeRenderer())
    )
