from __future__ import annotations

import logging
import threading
from datetime import datetime, timedelta
from typing import Callable, Optional, Sequence

from ..common.datetime_utils import now_utc
from ..core.constants import DEFAULT_DIRECTORY_REFRESH_SECONDS
from ..core.exceptions import DirectoryUnavailableError, PersistenceError
from ..timewindows.model import TimeWindow
from .model import CenterDirectory
from .repository import CenterRepository

logger = logging.getLogger(__name__)


class CenterDirectoryProvider:
    """Hands out the current CenterDirectory snapshot.

    Readers take a reference to the published snapshot and keep it for the
    whole resolution. A refresh builds a new snapshot and swaps the
    reference in one assignment, so in-flight readers never see a
    half-updated directory. Refresh happens on demand when the snapshot is
    older than ``max_age_seconds``; if it fails the old snapshot stays.
    """

    def __init__(
        self,
        source: CenterRepository,
        *,
        default_windows: Sequence[TimeWindow] = (),
        max_age_seconds: float = DEFAULT_DIRECTORY_REFRESH_SECONDS,
        clock: Callable[[], datetime] = now_utc,
    ):
        self._source = source
        self._default_windows = tuple(default_windows)
        self._max_age = timedelta(seconds=float(max_age_seconds))
        self._clock = clock
        self._snapshot: Optional[CenterDirectory] = None
        self._refresh_lock = threading.Lock()

    def snapshot(self) -> CenterDirectory:
        current = self._snapshot
        if current is not None and not self._is_stale(current):
            return current

        # Readers with a fresh snapshot never touch this lock.
        with self._refresh_lock:
            current = self._snapshot
            if current is not None and not self._is_stale(current):
                return current
            try:
                return self._reload(current)
            except DirectoryUnavailableError:
                if current is None:
                    raise
                logger.warning("Center directory refresh failed; keeping snapshot v%s", current.version)
                return current

    def refresh(self) -> CenterDirectory:
        with self._refresh_lock:
            return self._reload(self._snapshot)

    def invalidate(self) -> None:
        """Make the next snapshot() reload, e.g. after an admin edit."""
        with self._refresh_lock:
            current = self._snapshot
            if current is not None:
                self._snapshot = CenterDirectory(
                    centers=current.centers,
                    version=current.version,
                    loaded_at=None,
                    default_windows=current.default_windows,
                )

    def _reload(self, current: Optional[CenterDirectory]) -> CenterDirectory:
        try:
            centers = tuple(self._source.list_centers())
        except PersistenceError as e:
            raise DirectoryUnavailableError(f"Center directory unavailable: {e}") from e

        fresh = CenterDirectory(
            centers=centers,
            version=(current.version + 1) if current is not None else 1,
            loaded_at=self._clock(),
            default_windows=self._default_windows,
        )
        self._snapshot = fresh
        logger.info("Loaded center directory v%s (%s centers)", fresh.version, len(centers))
        return fresh

    def _is_stale(self, directory: CenterDirectory) -> bool:
        if directory.loaded_at is None:
            return True
        return self._clock() - directory.loaded_at >= self._max_age
