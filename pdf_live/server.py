"""
HTTP and WebSocket delivery for PDF Live Server.

Endpoints:
- GET /                      -> pdf.js viewer (keeps the scroll position across updates)
- GET /simple                -> plain iframe viewer
- GET /viewer.mjs            -> viewer script
- GET /served.pdf            -> current PDF bytes (waits briefly for the first version)
- WS  /__pdf_live_server_ws  -> pushes every new version as a binary frame

Endpoints only read from the engine's store; the refresher is its sole writer.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import asynccontextmanager
from importlib import resources

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.responses import HTMLResponse, PlainTextResponse, Response
from starlette.websockets import WebSocketState

from pdf_live import __app_name__, __version__
from pdf_live.config import Config
from pdf_live.engine import LiveEngine
from pdf_live.store import StoreClosedError, Subscription

logger = logging.getLogger(__name__)

WS_PATH = "/__pdf_live_server_ws"
FALLBACK_MESSAGE = "The PDF is not available yet. Reload the page once it has been written."
_NO_CACHE = {"Cache-Control": "no-store"}


def _asset(name: str) -> str:
    return (resources.files("pdf_live") / "static" / name).read_text(encoding="utf-8")


def create_app(config: Config, engine: LiveEngine | None = None) -> FastAPI:
    """Build the FastAPI application around *engine* (created from *config* if omitted)."""
    if engine is None:
        engine = LiveEngine(
            config.watch_dir,
            config.served_pdf,
            debounce_seconds=config.debounce_seconds,
        )
    store = engine.store
    fetch_timeout = config.fetch_timeout
    index_html = _asset("index.html")
    simple_html = _asset("simple.html")
    viewer_js = _asset("viewer.mjs")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await engine.start()
        try:
            yield
        finally:
            logger.info("Shutting down engine.")
            await engine.stop()

    app = FastAPI(
        title=__app_name__,
        version=__version__,
        lifespan=lifespan,
        docs_url=None,
        redoc_url=None,
        openapi_url=None,
    )
    app.state.engine = engine

    @app.get("/", response_class=HTMLResponse)
    async def index() -> HTMLResponse:
        return HTMLResponse(index_html)

    @app.get("/simple", response_class=HTMLResponse)
    async def simple() -> HTMLResponse:
        return HTMLResponse(simple_html)

    @app.get("/viewer.mjs")
    async def viewer_script() -> Response:
        return Response(viewer_js, media_type="text/javascript", headers=_NO_CACHE)

    @app.get("/served.pdf")
    async def served_pdf() -> Response:
        try:
            artifact = await store.current_or_wait(timeout=fetch_timeout)
        except (StoreClosedError, asyncio.TimeoutError) as exc:
            logger.info("No PDF to serve yet (%s).", type(exc).__name__)
            return PlainTextResponse(
                FALLBACK_MESSAGE,
                status_code=503,
                headers={**_NO_CACHE, "Retry-After": "1"},
            )
        return Response(
            artifact.data,
            media_type="application/pdf",
            headers={**_NO_CACHE, "X-Artifact-Version": str(artifact.version)},
        )

    @app.websocket(WS_PATH)
    async def push_channel(websocket: WebSocket) -> None:
        await websocket.accept()
        try:
            sub = store.subscribe()
        except StoreClosedError:
            await websocket.close(code=1001)
            return
        logger.debug("Connected via WebSocket.")
        reader = asyncio.create_task(_watch_disconnect(websocket, sub))
        try:
            async for artifact in sub:
                await websocket.send_bytes(artifact.data)
                logger.debug("Sent version %d via WebSocket.", artifact.version)
        except (WebSocketDisconnect, RuntimeError, OSError) as exc:
            logger.debug("WebSocket send failed: %r", exc)
        finally:
            sub.close()
            reader.cancel()
            await asyncio.gather(reader, return_exceptions=True)
        if websocket.client_state == WebSocketState.CONNECTED:
            # Store closed: the server is going away.
            try:
                await websocket.close(code=1001)
            except (RuntimeError, OSError) as exc:
                logger.debug("WebSocket close failed: %r", exc)
        logger.info("Closing WebSocket connection.")

    return app


async def _watch_disconnect(websocket: WebSocket, sub: Subscription) -> None:
    """Drain client frames and drop *sub* as soon as the client goes away."""
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        sub.close()
