import asyncio

import pytest

from pdf_live.engine import LiveEngine
from pdf_live.store import StoreClosedError
from tests.samples import PDF_A, PDF_B


@pytest.mark.asyncio
async def test_engine_publishes_initial_version_and_file_changes(tmp_path, pdf_path, write_pdf):
    write_pdf(pdf_path, PDF_A)
    async with LiveEngine(tmp_path, pdf_path, debounce_seconds=0.05) as engine:
        first = await engine.store.current_or_wait(timeout=2)
        assert first.data == PDF_A

        sub = engine.store.subscribe()
        assert (await sub.next()).version == 1

        write_pdf(pdf_path, PDF_B)
        second = await asyncio.wait_for(sub.next(), 5)
        assert second.data == PDF_B
        assert second.version == 2

    assert engine.store.closed
    assert not engine.detector.is_running
    assert not engine.refresher.is_running


@pytest.mark.asyncio
async def test_fetch_waits_for_file_to_appear(tmp_path, pdf_path, write_pdf):
    async with LiveEngine(tmp_path, pdf_path, debounce_seconds=0.05) as engine:
        fetch = asyncio.create_task(engine.store.current_or_wait())
        await asyncio.sleep(0.1)
        assert not fetch.done()

        write_pdf(pdf_path, PDF_A)
        artifact = await asyncio.wait_for(fetch, 5)
        assert artifact.data == PDF_A


@pytest.mark.asyncio
async def test_shutdown_releases_pending_fetch(tmp_path, pdf_path):
    engine = LiveEngine(tmp_path, pdf_path, debounce_seconds=0.05)
    await engine.start()
    fetch = asyncio.create_task(engine.store.current_or_wait())
    await asyncio.sleep(0.05)

    await engine.stop()
    await engine.stop()

    with pytest.raises(StoreClosedError):
        await asyncio.wait_for(fetch, 1)


@pytest.mark.asyncio
async def test_watch_failure_is_surfaced(tmp_path, pdf_path):
    engine = LiveEngine(tmp_path / "missing", pdf_path)
    with pytest.raises(FileNotFoundError):
        await engine.start()
    assert not engine.started
    assert not engine.refresher.is_running
    assert engine.store.closed


@pytest.mark.asyncio
async def test_engines_are_independent(tmp_path, write_pdf):
    one = tmp_path / "one.pdf"
    two = tmp_path / "two.pdf"
    write_pdf(one, PDF_A)
    write_pdf(two, PDF_B)
    async with LiveEngine(tmp_path, one) as first, LiveEngine(tmp_path, two) as second:
        assert (await first.store.current_or_wait(timeout=2)).data == PDF_A
        assert (await second.store.current_or_wait(timeout=2)).data == PDF_B
        assert first.store is not second.store
