import logging
import threading
from typing import Callable

logger = logging.getLogger(__name__)


class SpinTimer:
    """Repeating background task that drives one room's wheel.

    - Calls ``callback(timer)`` every ``interval_sec`` until cancelled
    - Passes itself to the callback so the room can ignore stale timers
    - Cancellation is idempotent and takes effect before the next call
    """

    def __init__(self, socketio, interval_sec: float, callback: Callable[['SpinTimer'], None], name: str = ''):
        self._socketio = socketio
        self._interval = interval_sec
        self._callback = callback
        self._cancelled = threading.Event()
        self.name = name

    @property
    def cancelled(self) -> bool:
        return self._cancelled.is_set()

    def start(self) -> 'SpinTimer':
        logger.debug(f"[timer-set] room={self.name} interval={self._interval}s")
        self._socketio.start_background_task(self._worker)
        return self

    def cancel(self) -> None:
        if not self._cancelled.is_set():
            self._cancelled.set()
            logger.debug(f"[timer-cancel] room={self.name}")

    def _worker(self) -> None:
        while not self._cancelled.is_set():
            self._socketio.sleep(self._interval)
            if self._cancelled.is_set():
                break
            try:
                self._callback(self)
            except Exception:
                logger.exception(f"[timer-error] room={self.name} tick failed, stopping timer")
                self.cancel()


def spin_timer_factory(socketio, interval_sec: float):
    """Return a ``timer_factory(callback, name)`` that starts SpinTimers."""
    def _factory(callback, name=''):
        return SpinTimer(socketio, interval_sec, callback, name=name).start()
    return _factory


def sweep_idle_rooms(socketio, registry, interval_sec: float, on_sweep=None) -> None:
    """Background loop retiring idle rooms from the registry.

    Runs for the process lifetime; ``on_sweep()`` runs after every pass so
    other services can expire their own per-room data.
    """
    while True:
        socketio.sleep(interval_sec)
        try:
            retired = registry.prune_idle()
            if retired:
                logger.info(f"[sweeper] retired {len(retired)} rooms, {len(registry)} remain")
            if on_sweep is not None:
                on_sweep()
        except Exception:
            logger.exception("[sweeper] pass failed")
