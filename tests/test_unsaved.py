"""Tests for the unsaved-document overlay."""

import asyncio

from xref_index.analyzer.renderer import PandocRenderer
from xref_index.models import XRefFileIndex
from xref_index.store.unsaved import XRefUnsavedIndex


class GatedRenderer(PandocRenderer):
    """Renderer that blocks until released, to interleave overlay operations."""

    def __init__(self):
        super().__init__()
        self.started = asyncio.Event()
        self.release = asyncio.Event()

    async def index(self, content: bytes):
        self.started.set()
        await self.release.wait()
        return content.decode("utf-8").splitlines()


async def test_dirty_update_stores_index(renderer):
    unsaved = XRefUnsavedIndex(renderer)

    await unsaved.update("ch1.Rmd", "fig:a A\nfig:b B", dirty=True)

    assert unsaved.get("ch1.Rmd") == XRefFileIndex("ch1.Rmd", ["fig:a A", "fig:b B"])
    assert "ch1.Rmd" in unsaved


async def test_update_replaces_previous_entry(renderer):
    unsaved = XRefUnsavedIndex(renderer)
    await unsaved.update("ch1.Rmd", "fig:a A", dirty=True)

    await unsaved.update("ch1.Rmd", "fig:b B", dirty=True)

    assert unsaved.get("ch1.Rmd").entries == ["fig:b B"]


async def test_clean_update_removes_entry(renderer):
    unsaved = XRefUnsavedIndex(renderer)
    await unsaved.update("ch1.Rmd", "fig:a A", dirty=True)

    await unsaved.update("ch1.Rmd", "fig:a A", dirty=False)

    assert unsaved.get("ch1.Rmd") is None
    assert len(renderer.calls) == 1


async def test_remove_missing_is_noop(renderer):
    unsaved = XRefUnsavedIndex(renderer)
    await unsaved.remove("nope.Rmd")
    assert len(unsaved) == 0


async def test_clear_drops_everything(renderer):
    unsaved = XRefUnsavedIndex(renderer)
    await unsaved.update("a.Rmd", "fig:a A", dirty=True)
    await unsaved.update("b.Rmd", "fig:b B", dirty=True)

    unsaved.clear()

    assert len(unsaved) == 0


async def test_clear_discards_render_in_flight():
    renderer = GatedRenderer()
    unsaved = XRefUnsavedIndex(renderer)

    task = asyncio.create_task(unsaved.update("ch1.Rmd", "fig:a A", dirty=True))
    await renderer.started.wait()
    unsaved.clear()
    renderer.release.set()
    await task

    assert unsaved.get("ch1.Rmd") is None


async def test_remove_after_pending_update_wins():
    renderer = GatedRenderer()
    unsaved = XRefUnsavedIndex(renderer)

    update = asyncio.create_task(unsaved.update("ch1.Rmd", "fig:a A", dirty=True))
    await renderer.started.wait()
    remove = asyncio.create_task(unsaved.remove("ch1.Rmd"))
    renderer.release.set()
    await asyncio.gather(update, remove)

    assert unsaved.get("ch1.Rmd") is None


async def test_previous_entry_is_dropped_while_rerendering():
    renderer = GatedRenderer()
    renderer.release.set()
    unsaved = XRefUnsavedIndex(renderer)
    await unsaved.update("ch1.Rmd", "fig:a A", dirty=True)

    renderer.started.clear()
    renderer.release.clear()
    task = asyncio.create_task(unsaved.update("ch1.Rmd", "fig:b B", dirty=True))
    await renderer.started.wait()

    assert unsaved.get("ch1.Rmd") is None

    renderer.release.set()
    await task
    assert unsaved.get("ch1.Rmd").entries == ["fig:b B"]


async def test_contents_with_lone_surrogate_are_indexed(renderer):
    unsaved = XRefUnsavedIndex(renderer)

    await unsaved.update("ch1.Rmd", "fig:a A \ud800", dirty=True)

    assert unsaved.get("ch1.Rmd").entries == ["fig:a A ?"]
