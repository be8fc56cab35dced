"""Shared fixtures for the PDF Live Server tests."""

import itertools
import os
from pathlib import Path

import pytest


@pytest.fixture
def mtimes():
    """Distinct, increasing modification times (whole seconds apart).

    Real writes can land on the same coarse timestamp, so tests set the
    time explicitly after each write.
    """
    return itertools.count(1_700_000_000 * 10**9, 10**9)


@pytest.fixture
def write_pdf(mtimes):
    """Write *data* to *path* and give it a fresh modification time."""

    def _write(path: Path, data: bytes) -> None:
        path.write_bytes(data)
        stamp = next(mtimes)
        os.utime(path, ns=(stamp, stamp))

    return _write


@pytest.fixture
def touch_pdf(mtimes):
    """Bump the modification time of *path* without changing its bytes."""

    def _touch(path: Path) -> None:
        stamp = next(mtimes)
        os.utime(path, ns=(stamp, stamp))

    return _touch


@pytest.fixture
def pdf_path(tmp_path):
    return tmp_path / "served.pdf"
