"""
Main application controller for PDF Live Server.

Ties together configuration, logging, the change-detection engine and
the uvicorn-served FastAPI delivery endpoints.
"""

import logging
import logging.handlers
import sys
from pathlib import Path

import uvicorn

from pdf_live import __app_name__, __version__
from pdf_live.config import Config
from pdf_live.engine import LiveEngine
from pdf_live.server import create_app

logger = logging.getLogger(__name__)

_LOG_FORMAT = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"


class StartupError(Exception):
    """The server could not bind its address or start the engine."""


class LiveServer(uvicorn.Server):
    """uvicorn server that stops the engine as soon as shutdown begins.

    uvicorn only runs the lifespan shutdown after open connections drain,
    and a fetch waiting for the first PDF would hold that up.  Closing the
    store first releases such waiters (they answer 503) and ends every
    push channel.
    """

    def __init__(self, config: uvicorn.Config, engine: LiveEngine) -> None:
        super().__init__(config)
        self.engine = engine

    async def shutdown(self, sockets=None) -> None:
        await self.engine.stop()
        await super().shutdown(sockets=sockets)


class App:
    """Central orchestrator: logging, validation, then serve until interrupted."""

    def __init__(self, config: Config) -> None:
        self.config = config

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def run(self) -> None:
        """Validate the configuration and serve until Ctrl-C.

        Raises :class:`~pdf_live.config.ConfigError` for unusable settings
        and :class:`StartupError` when the address cannot be bound or the
        engine fails to start.
        """
        self._setup_logging()
        logger.info("%s %s starting.", __app_name__, __version__)

        cfg = self.config
        cfg.validate()

        app = create_app(cfg)
        server = LiveServer(
            uvicorn.Config(
                app,
                host=cfg.host,
                port=cfg.port,
                lifespan="on",
                log_config=None,  # route uvicorn's loggers through ours
                log_level=cfg.log_level.lower(),
            ),
            app.state.engine,
        )
        logger.info("Starting to listen on http://%s.", cfg.socket_addr)
        try:
            server.run()
        except SystemExit as exc:
            # uvicorn exits on its own when the address cannot be bound.
            if server.started:
                raise
            raise StartupError(f"Could not listen on {cfg.socket_addr}.") from exc
        if not server.started:
            raise StartupError("Application startup failed; see the log for details.")
        logger.info("%s stopped.", __app_name__)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _setup_logging(self) -> None:
        """Configure stderr logging and, if requested, a rotating file log."""
        level = getattr(logging, self.config.log_level.upper(), logging.INFO)
        root_logger = logging.getLogger()
        root_logger.setLevel(level)

        fmt = logging.Formatter(_LOG_FORMAT)

        sh = logging.StreamHandler(sys.stderr)
        sh.setLevel(level)
        sh.setFormatter(fmt)
        root_logger.addHandler(sh)

        if self.config.log_file:
            log_path = Path(self.config.log_file)
            log_path.parent.mkdir(parents=True, exist_ok=True)
            max_bytes = self.config.max_log_size_mb * 1024 * 1024
            fh = logging.handlers.RotatingFileHandler(
                str(log_path),
                maxBytes=max_bytes,
                backupCount=self.config.log_backup_count,
                encoding="utf-8",
            )
            fh.setLevel(level)
            fh.setFormatter(fmt)
            root_logger.addHandler(fh)

        # The watcher is chatty below INFO even when we are not.
        logging.getLogger("watchdog").setLevel(max(level, logging.INFO))
