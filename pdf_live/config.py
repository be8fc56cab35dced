"""Configuration management for PDF Live Server.

Settings come from three layers: built-in defaults, an optional JSON
config file, and command-line overrides applied by the entry point.
"""

import json
import logging
import re
from pathlib import Path
from typing import Any

from pdf_live.platform_utils import get_config_path

logger = logging.getLogger(__name__)

DEFAULT_CONFIG: dict[str, Any] = {
    "watch_dir": "./",
    "served_pdf": "",
    "host": "127.0.0.1",
    "port": 3000,
    "debounce_ms": 100,  # minimum time between processed ticks
    "fetch_timeout_seconds": 30,  # how long GET /served.pdf waits for a first version
    "log_level": "INFO",
    # ---- log rotation ----
    "log_file": "",  # blank = stderr only
    "max_log_size_mb": 10,
    "log_backup_count": 3,
}

_SOCKET_ADDR_RE = re.compile(r"^(?:\[(?P<v6>[^\]]+)\]|(?P<host>[^:\[\]]+)):(?P<port>\d+)$")


class ConfigError(Exception):
    """Raised when the configuration cannot be used to start the server."""


def parse_socket_addr(value: str) -> tuple[str, int]:
    """Split ``host:port`` (or ``[v6]:port``) into a ``(host, port)`` pair."""
    match = _SOCKET_ADDR_RE.match(value.strip())
    if not match:
        raise ValueError(f"Invalid socket address: {value!r} (expected HOST:PORT)")
    host = match.group("v6") or match.group("host")
    port = int(match.group("port"))
    if not 0 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}")
    return host, port


class Config:
    """Configuration backed by an optional JSON file."""

    def __init__(self, path: Path | None = None):
        """Load config from *path* if it exists, otherwise use defaults."""
        self._path = path or get_config_path()
        self._data: dict[str, Any] = dict(DEFAULT_CONFIG)
        self.load()

    @property
    def path(self) -> Path:
        return self._path

    # ---- persistence ----

    def load(self) -> None:
        """Load configuration from disk, applying defaults for missing keys."""
        if not self._path.exists():
            self._data = dict(DEFAULT_CONFIG)
            logger.debug("No configuration file at %s; using defaults.", self._path)
            return
        try:
            with open(self._path, encoding="utf-8") as fh:
                stored = json.load(fh)
            if not isinstance(stored, dict):
                raise ValueError("top-level JSON value is not an object")
            # Merge stored values over defaults so new keys get defaults
            self._data = {**DEFAULT_CONFIG, **stored}
            logger.info("Configuration loaded from %s", self._path)
        except (json.JSONDecodeError, ValueError, OSError) as exc:
            logger.warning("Could not read config (%s); using defaults.", exc)
            self._data = dict(DEFAULT_CONFIG)

    def save(self) -> None:
        """Persist the current configuration to disk."""
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(self._path, "w", encoding="utf-8") as fh:
                json.dump(self._data, fh, indent=2)
            logger.info("Configuration saved to %s", self._path)
        except OSError as exc:
            logger.error("Failed to save configuration: %s", exc)

    # ---- watched paths ----

    @property
    def watch_dir(self) -> str:
        """Return the directory watched (recursively) for changes."""
        return self._data["watch_dir"]

    @watch_dir.setter
    def watch_dir(self, value: str) -> None:
        self._data["watch_dir"] = str(value)

    @property
    def served_pdf(self) -> str:
        """Return the path of the PDF that is served and re-read on change."""
        return self._data["served_pdf"]

    @served_pdf.setter
    def served_pdf(self, value: str) -> None:
        self._data["served_pdf"] = str(value)

    # ---- server address ----

    @property
    def host(self) -> str:
        return self._data["host"]

    @host.setter
    def host(self, value: str) -> None:
        self._data["host"] = value.strip()

    @property
    def port(self) -> int:
        return int(self._data["port"])

    @port.setter
    def port(self, value: int) -> None:
        value = int(value)
        if not 0 <= value <= 65535:
            raise ValueError(f"Port out of range: {value}")
        self._data["port"] = value

    @property
    def socket_addr(self) -> str:
        """Return the bind address as ``host:port``."""
        host = f"[{self.host}]" if ":" in self.host else self.host
        return f"{host}:{self.port}"

    @socket_addr.setter
    def socket_addr(self, value: str) -> None:
        self.host, self.port = parse_socket_addr(value)

    # ---- timing ----

    @property
    def debounce_ms(self) -> int:
        """Return the debounce window in milliseconds."""
        return int(self._data["debounce_ms"])

    @debounce_ms.setter
    def debounce_ms(self, value: int) -> None:
        """Set the debounce window (minimum 10 ms)."""
        self._data["debounce_ms"] = max(10, int(value))

    @property
    def debounce_seconds(self) -> float:
        return self.debounce_ms / 1000.0

    @property
    def fetch_timeout(self) -> float:
        """Return how long a fetch waits for the first version, in seconds."""
        return float(self._data["fetch_timeout_seconds"])

    @fetch_timeout.setter
    def fetch_timeout(self, value: float) -> None:
        self._data["fetch_timeout_seconds"] = max(0.0, float(value))

    # ---- logging ----

    @property
    def log_level(self) -> str:
        """Return the current logging level name."""
        return self._data.get("log_level", "INFO")

    @log_level.setter
    def log_level(self, value: str) -> None:
        self._data["log_level"] = value.upper()

    @property
    def log_file(self) -> str:
        """Return the rotating log file path (blank = no file log)."""
        return self._data.get("log_file", "")

    @log_file.setter
    def log_file(self, value: str) -> None:
        self._data["log_file"] = str(value).strip()

    @property
    def max_log_size_mb(self) -> int:
        """Return the maximum log file size in MB before rotation."""
        return int(self._data.get("max_log_size_mb", 10))

    @max_log_size_mb.setter
    def max_log_size_mb(self, value: int) -> None:
        """Set the maximum log file size in MB (minimum 1)."""
        self._data["max_log_size_mb"] = max(1, int(value))

    @property
    def log_backup_count(self) -> int:
        """Return the number of rotated log backups to keep."""
        return int(self._data.get("log_backup_count", 3))

    @log_backup_count.setter
    def log_backup_count(self, value: int) -> None:
        self._data["log_backup_count"] = max(0, int(value))

    # ---- convenience ----

    def is_configured(self) -> bool:
        """Return True when a served PDF has been set."""
        return bool(self.served_pdf)

    def validate(self) -> None:
        """Raise :class:`ConfigError` if the server cannot start with these settings."""
        if not self.is_configured():
            raise ConfigError("No PDF to serve; pass --served-pdf or set 'served_pdf'.")
        if not Path(self.watch_dir).is_dir():
            raise ConfigError(f"Watch directory does not exist: {self.watch_dir}")
