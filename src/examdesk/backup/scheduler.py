"""
Module: backup.scheduler

Purpose:
    Background timers owned by the application: periodic autosave of the
    Store and periodic backups while backups are enabled. Nothing starts
    on construction; the owner calls start() and stop()/shutdown().

Key Classes:
    - RepeatingTask: Daemon thread calling an action every N seconds
    - BackupScheduler: Autosave + backup timers and the teardown hook

Used By:
    - app.DataCore
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Optional

from ..storage.store import Store
from .manager import BackupManager
from .settings import BackupSettings

logger = logging.getLogger(__name__)

DEFAULT_AUTOSAVE_SECONDS = 5.0


class RepeatingTask:
    """
    Run ``action`` every ``interval_seconds`` on a daemon thread.

    The first run happens one interval after start(). An exception from
    the action is logged and the task keeps running.

    Example:
        >>> task = RepeatingTask("autosave", 5.0, store.save)
        >>> task.start()
        >>> # ... later ...
        >>> task.stop()
    """

    def __init__(self, name: str, interval_seconds: float, action: Callable[[], Any]):
        if interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive: {interval_seconds}")
        self.name = name
        self.interval_seconds = interval_seconds
        self.action = action
        self._stop_event = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop_event.clear()

        def _loop():
            while not self._stop_event.wait(self.interval_seconds):
                try:
                    self.action()
                except Exception:
                    logger.exception(f"Scheduled task {self.name!r} failed")

        self._thread = threading.Thread(target=_loop, name=f"examdesk-{self.name}", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop_event.set()
        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout)


class BackupScheduler:
    """
    Owns the autosave and backup timers.

    Args:
        manager: BackupManager used for timed and teardown backups
        store: Store saved by the autosave timer (defaults to manager.store)
        autosave_interval_seconds: Autosave period
    """

    def __init__(
        self,
        manager: BackupManager,
        store: Optional[Store] = None,
        *,
        autosave_interval_seconds: float = DEFAULT_AUTOSAVE_SECONDS,
    ):
        self.manager = manager
        self.store = store or manager.store
        self._autosave = RepeatingTask("autosave", autosave_interval_seconds, self.store.save)
        self._backup: Optional[RepeatingTask] = None
        self._lock = threading.Lock()
        self._shut_down = False

    @property
    def settings(self) -> BackupSettings:
        return self.manager.settings

    @property
    def backup_running(self) -> bool:
        return self._backup is not None and self._backup.running

    @property
    def autosave_running(self) -> bool:
        return self._autosave.running

    def start(self) -> None:
        """Start autosave, and the backup timer if backups are enabled."""
        self._autosave.start()
        self._start_backup_timer()

    def stop(self) -> None:
        """Stop both timers. Does not save or back up."""
        self._stop_backup_timer()
        self._autosave.stop()

    def _start_backup_timer(self) -> None:
        with self._lock:
            if self._backup is not None:
                self._backup.stop()
                self._backup = None
            settings = self.manager.settings
            if not settings.enabled:
                return
            self._backup = RepeatingTask("backup", settings.interval.seconds, self.tick)
            self._backup.start()
        logger.info(f"Automatic backups started (interval: {settings.interval})")

    def _stop_backup_timer(self) -> None:
        with self._lock:
            if self._backup is not None:
                self._backup.stop()
                self._backup = None
                logger.info("Automatic backups stopped")

    def update_settings(self, **changes: Any) -> BackupSettings:
        """
        Persist new settings and restart the backup timer to match.

        Raises:
            ValueError: If a value is invalid
        """
        settings = self.manager.update_settings(**changes)
        self._stop_backup_timer()
        if settings.enabled and not self._shut_down:
            self._start_backup_timer()
        return settings

    def tick(self) -> bool:
        """One backup timer firing."""
        return self.manager.create_backup()

    def shutdown(self) -> None:
        """
        Teardown hook: stop timers, save, and back up if enabled.

        Runs at most once; later calls do nothing.
        """
        if self._shut_down:
            return
        self._shut_down = True
        self.stop()
        self.store.save()
        if self.manager.settings.enabled:
            self.manager.create_backup()
        logger.info("Backup scheduler shut down")
