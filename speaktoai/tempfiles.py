"""Tracking and expiry of temporary audio files."""

from __future__ import annotations

import logging
import os
import threading
import time
from typing import Callable

logger = logging.getLogger(__name__)

DEFAULT_CLEANUP_TIMEOUT = 30 * 60.0
DEFAULT_CHECK_INTERVAL = 5 * 60.0


def _delete_file(path: str, description: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as err:
        logger.error("Error removing %s %s: %s", description, path, err)


class TempFileManager:
    """Remembers temporary files and deletes those older than a timeout.

    With ``run_cleanup`` a background thread checks for expired files every
    ``check_interval`` seconds until :meth:`stop` is called.
    """

    def __init__(
        self,
        cleanup_timeout: float = DEFAULT_CLEANUP_TIMEOUT,
        check_interval: float = DEFAULT_CHECK_INTERVAL,
        *,
        clock: Callable[[], float] = time.monotonic,
        run_cleanup: bool = False,
    ) -> None:
        self.cleanup_timeout = cleanup_timeout
        self.check_interval = check_interval
        self._clock = clock
        self._files: dict[str, float] = {}
        self._lock = threading.Lock()
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        if run_cleanup:
            self._thread = threading.Thread(
                target=self._cleanup_loop, name="temp-file-cleanup", daemon=True
            )
            self._thread.start()

    def __contains__(self, path: object) -> bool:
        if not isinstance(path, (str, os.PathLike)):
            return False
        with self._lock:
            return os.fspath(path) in self._files

    def __len__(self) -> int:
        with self._lock:
            return len(self._files)

    @property
    def running(self) -> bool:
        """True while the background cleanup thread is active."""
        return self._thread is not None and self._thread.is_alive()

    def add_file(self, path: str | os.PathLike[str]) -> None:
        """Start tracking ``path`` from the current time."""
        with self._lock:
            self._files[os.fspath(path)] = self._clock()

    def remove_file(self, path: str | os.PathLike[str], delete: bool) -> None:
        """Stop tracking ``path`` and, if ``delete`` is true, remove it from disk."""
        key = os.fspath(path)
        with self._lock:
            self._files.pop(key, None)
            if delete:
                _delete_file(key, "temp file")

    def cleanup_old_files(self) -> list[str]:
        """Delete and forget every file tracked for longer than the timeout."""
        with self._lock:
            now = self._clock()
            expired = [
                path
                for path, added in self._files.items()
                if now - added > self.cleanup_timeout
            ]
            for path in expired:
                _delete_file(path, "old temp file")
                del self._files[path]
        return expired

    def stop(self) -> None:
        """Shut down the background cleanup thread, if it is running."""
        thread = self._thread
        if thread is None:
            return
        self._stop_event.set()
        thread.join()
        self._thread = None

    def _cleanup_loop(self) -> None:
        while not self._stop_event.wait(self.check_interval):
            self.cleanup_old_files()


_shared_manager: TempFileManager | None = None
_shared_manager_lock = threading.Lock()


def get_temp_file_manager() -> TempFileManager:
    """Return the process-wide manager, creating it with cleanup running on first use."""
    global _shared_manager
    with _shared_manager_lock:
        if _shared_manager is None:
            _shared_manager = TempFileManager(run_cleanup=True)
        return _shared_manager