"""Entry point for PDF Live Server.

Usage:
    python -m pdf_live -f paper.pdf                 Serve paper.pdf, watch ./
    python -m pdf_live -f out/paper.pdf -d src      Watch src/ for changes
    python -m pdf_live -f paper.pdf -s 0.0.0.0:8080 Bind another address
"""

import argparse
import logging
import sys
from pathlib import Path

from pdf_live import __app_name__, __version__
from pdf_live.config import Config, ConfigError, parse_socket_addr

logger = logging.getLogger(__name__)


def build_parser() -> argparse.ArgumentParser:
    """Return the command-line parser."""
    parser = argparse.ArgumentParser(
        prog="pdf-live-server",
        description="Serve a PDF file live and reload the browser on changes.",
    )
    parser.add_argument(
        "-d", "--watch-dir",
        help="Directory to watch for changes (default: ./).",
    )
    parser.add_argument(
        "-f", "--served-pdf",
        help="PDF file to serve. Its modified time also decides whether changes occurred.",
    )
    parser.add_argument(
        "-s", "--socket-addr",
        type=parse_socket_addr,
        help="Address to bind the server (default: 127.0.0.1:3000).",
    )
    parser.add_argument("--config", type=Path, help="JSON configuration file.")
    parser.add_argument("--debounce-ms", type=int, help="Debounce window in milliseconds.")
    parser.add_argument("--log-level", help="Logging level name (DEBUG, INFO, ...).")
    parser.add_argument("--log-file", help="Also log to this rotating file.")
    parser.add_argument(
        "--save-config",
        action="store_true",
        help="Write the effective settings back to the configuration file.",
    )
    parser.add_argument("--version", action="version", version=f"{__app_name__} {__version__}")
    return parser


def load_config(args: argparse.Namespace) -> Config:
    """Merge command-line overrides over the configuration file."""
    cfg = Config(args.config)
    if args.watch_dir is not None:
        cfg.watch_dir = args.watch_dir
    if args.served_pdf is not None:
        cfg.served_pdf = args.served_pdf
    if args.socket_addr is not None:
        cfg.host, cfg.port = args.socket_addr
    if args.debounce_ms is not None:
        cfg.debounce_ms = args.debounce_ms
    if args.log_level is not None:
        cfg.log_level = args.log_level
    if args.log_file is not None:
        cfg.log_file = args.log_file
    return cfg


def main(argv: list[str] | None = None) -> int:
    """Run the server; returns the process exit code."""
    args = build_parser().parse_args(argv)
    cfg = load_config(args)
    if args.save_config:
        cfg.save()

    from pdf_live.app import App, StartupError

    try:
        App(cfg).run()
    except ConfigError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1
    except StartupError as exc:
        logger.error("Fatal startup error: %s", exc)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
