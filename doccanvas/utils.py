"""
Utility functions for doccanvas.

Provides executable-directory discovery (used to anchor relative
download roots), directory creation, timestamps for asset filenames,
and the reader/writer lock guarding the shared configuration.
"""

from __future__ import annotations

import os
import sys
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

# ── Filesystem helpers ───────────────────────────────────────────────────────


def executable_dir() -> str:
    """Return the directory of the running program.

    For a frozen build this is the directory holding the executable;
    otherwise it is the directory of the entry script (``sys.argv[0]``),
    falling back to the current working directory.
    """
    if getattr(sys, "frozen", False):
        return os.path.dirname(os.path.abspath(sys.executable))
    entry = sys.argv[0] if sys.argv and sys.argv[0] else ""
    if entry and entry != "-c":
        return os.path.dirname(os.path.abspath(entry))
    return os.getcwd()


def ensure_dir(path: str) -> str:
    """Create directory if it doesn't exist.

    Parameters:
        path: Directory path.

    Returns:
        The directory path.
    """
    os.makedirs(path, exist_ok=True)
    return path


def timestamp() -> str:
    """Local time formatted as ``yyyyMMdd_HHmmss``."""
    return datetime.now().strftime("%Y%m%d_%H%M%S")


# ── Locking ──────────────────────────────────────────────────────────────────


class ReadWriteLock:
    """Reader/writer lock: many concurrent readers, one exclusive writer.

    Writers are preferred: once a writer is waiting, new readers block
    until it has finished, so a ``save`` is never starved by a stream of
    ``get_config`` calls.
    """

    def __init__(self):
        self._cond = threading.Condition(threading.Lock())
        self._readers = 0
        self._writer = False
        self._waiting_writers = 0

    def acquire_read(self) -> None:
        with self._cond:
            while self._writer or self._waiting_writers:
                self._cond.wait()
            self._readers += 1

    def release_read(self) -> None:
        with self._cond:
            self._readers -= 1
            if self._readers == 0:
                self._cond.notify_all()

    def acquire_write(self) -> None:
        with self._cond:
            self._waiting_writers += 1
            try:
                while self._writer or self._readers:
                    self._cond.wait()
            finally:
                self._waiting_writers -= 1
            self._writer = True

    def release_write(self) -> None:
        with self._cond:
            self._writer = False
            self._cond.notify_all()

    @contextmanager
    def read_locked(self) -> Iterator[None]:
        self.acquire_read()
        try:
            yield
        finally:
            self.release_read()

    @contextmanager
    def write_locked(self) -> Iterator[None]:
        self.acquire_write()
        try:
            yield
        finally:
            self.release_write()
