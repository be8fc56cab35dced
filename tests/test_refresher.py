import asyncio
from pathlib import Path

import pytest

from pdf_live.refresher import ArtifactRefresher
from pdf_live.store import ArtifactStore
from tests.samples import PDF_A, PDF_B


@pytest.fixture
def store():
    return ArtifactStore()


@pytest.mark.asyncio
async def test_first_refresh_publishes_file_contents(store, pdf_path, write_pdf):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)

    artifact = await refresher.refresh()

    assert artifact is not None
    assert artifact.data == PDF_A
    assert store.current is artifact
    assert refresher.publishes == 1


@pytest.mark.asyncio
async def test_unchanged_timestamp_skips_the_read(store, pdf_path, write_pdf):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)
    await refresher.refresh()

    for _ in range(5):
        assert await refresher.refresh() is None

    assert refresher.reads == 1
    assert store.version == 1


@pytest.mark.asyncio
async def test_touch_without_byte_change_never_publishes(store, pdf_path, write_pdf, touch_pdf):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)
    await refresher.refresh()

    touch_pdf(pdf_path)
    assert await refresher.refresh() is None

    assert refresher.reads == 2
    assert refresher.publishes == 1
    assert store.version == 1


@pytest.mark.asyncio
async def test_touch_then_edit_publishes_once(store, pdf_path, write_pdf, touch_pdf):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)
    await refresher.refresh()
    baseline = refresher.publishes

    touch_pdf(pdf_path)
    await refresher.refresh()
    write_pdf(pdf_path, PDF_B)
    await refresher.refresh()

    assert refresher.publishes - baseline == 1
    assert store.current.data == PDF_B
    assert store.version == 2


@pytest.mark.asyncio
async def test_missing_file_keeps_previous_artifact(store, pdf_path, write_pdf):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)
    await refresher.refresh()

    pdf_path.unlink()
    assert await refresher.refresh() is None

    assert store.current.data == PDF_A


@pytest.mark.asyncio
async def test_missing_file_at_startup_is_not_fatal(store, pdf_path):
    refresher = ArtifactRefresher(pdf_path, store)
    assert await refresher.refresh() is None
    assert store.current is None


@pytest.mark.asyncio
async def test_read_failure_leaves_store_untouched(store, pdf_path, write_pdf, monkeypatch):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)
    await refresher.refresh()

    write_pdf(pdf_path, PDF_B)

    def fail(self):
        raise PermissionError("locked by writer")

    monkeypatch.setattr(Path, "read_bytes", fail)
    assert await refresher.refresh() is None
    assert store.current.data == PDF_A
    assert store.version == 1


@pytest.mark.asyncio
async def test_concurrent_refreshes_publish_once(store, pdf_path, write_pdf):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)

    results = await asyncio.gather(*(refresher.refresh() for _ in range(4)))

    assert sum(r is not None for r in results) == 1
    assert store.version == 1


@pytest.mark.asyncio
async def test_published_bytes_match_disk(store, pdf_path, write_pdf):
    payload = bytes(range(256)) * 4096
    write_pdf(pdf_path, payload)
    refresher = ArtifactRefresher(pdf_path, store)
    await refresher.refresh()

    assert store.current.data == pdf_path.read_bytes()


@pytest.mark.asyncio
async def test_background_task_refreshes_on_notify(store, pdf_path, write_pdf):
    write_pdf(pdf_path, PDF_A)
    refresher = ArtifactRefresher(pdf_path, store)
    refresher.start()
    try:
        first = await store.current_or_wait(timeout=2)
        assert first.data == PDF_A

        sub = store.subscribe()
        assert (await sub.next()).version == 1

        write_pdf(pdf_path, PDF_B)
        # Several ticks before the task runs fold into one refresh.
        for _ in range(3):
            refresher.notify()

        second = await asyncio.wait_for(sub.next(), 2)
        assert second.data == PDF_B
        assert refresher.publishes == 2
    finally:
        await refresher.stop()

    assert not refresher.is_running


@pytest.mark.asyncio
async def test_notify_from_foreign_thread(store, pdf_path, write_pdf):
    refresher = ArtifactRefresher(pdf_path, store)
    refresher.start()
    try:
        waiting = asyncio.create_task(store.current_or_wait())
        await asyncio.sleep(0.05)
        assert not waiting.done()

        write_pdf(pdf_path, PDF_A)
        await asyncio.to_thread(refresher.notify)

        artifact = await asyncio.wait_for(waiting, 2)
        assert artifact.data == PDF_A
    finally:
        await refresher.stop()


def test_notify_before_start_is_dropped(pdf_path):
    refresher = ArtifactRefresher(pdf_path, ArtifactStore())
    refresher.notify()
    assert not refresher.is_running
