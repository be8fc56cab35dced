"""
Cross-platform utilities for PDF Live Server.

Centralises all OS-detection logic so every other module can import
a single canonical set of helpers rather than scattering ``sys.platform``
checks throughout the codebase.
"""

from __future__ import annotations

import os
import sys
from pathlib import Path

# ---- platform flags ----------------------------------------------------

IS_WINDOWS: bool = sys.platform == "win32"
IS_MACOS: bool = sys.platform == "darwin"

_APP_DIR_NAME = "PdfLiveServer"

# ---- directories -------------------------------------------------------


def get_config_dir() -> Path:
    """
    Return the application config directory (not created).

    - Windows : ``%APPDATA%\\PdfLiveServer``
    - macOS   : ``~/Library/Application Support/PdfLiveServer``
    - Linux   : ``$XDG_CONFIG_HOME/PdfLiveServer`` (default ``~/.config``)
    """
    if IS_WINDOWS:
        base = os.environ.get("APPDATA", str(Path.home()))
    elif IS_MACOS:
        base = str(Path.home() / "Library" / "Application Support")
    else:
        base = os.environ.get("XDG_CONFIG_HOME", str(Path.home() / ".config"))
    return Path(base) / _APP_DIR_NAME


def get_config_path() -> Path:
    """Return the path to the default configuration file."""
    return get_config_dir() / "config.json"

