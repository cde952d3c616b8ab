import itertools
import logging
from typing import Callable

from buzzer.models import CountdownHandle, Room

logger = logging.getLogger(__name__)


def _run_inline(fn, *args, **kwargs):
    fn(*args, **kwargs)


class RoundClock:
    """Cancelable countdown-to-active timer, at most one per room.

    The pending handle lives on ``room.countdown_timer``. A background task
    cannot be interrupted, so cancelling just marks the handle; when the task
    wakes it acts only if its handle is still the one stored on the room.
    """

    def __init__(self, spawn=None, sleep=None, grace_ms: int = 100):
        # Set by init_app unless given explicitly
        self._spawn = spawn
        self._sleep = sleep
        self.grace_ms = grace_ms
        self._epochs = itertools.count(1)

    def init_app(self, app, socketio) -> None:
        self.grace_ms = int(app.config.get('COUNTDOWN_GRACE_MS', 100))
        # No real timers under test unless asked for
        if app.config.get('TESTING') and not app.config.get('ENABLE_CLOCK_IN_TESTS'):
            self._spawn = _run_inline
            self._sleep = lambda _seconds: None
        else:
            self._spawn = socketio.start_background_task
            self._sleep = socketio.sleep
        app.extensions['round_clock'] = self

    def schedule(self, room: Room, delay_seconds: float, on_elapse: Callable[[Room], None]) -> CountdownHandle:
        """Run ``on_elapse(room)`` after the countdown plus grace, superseding any pending one."""
        if self._spawn is None or self._sleep is None:
            raise RuntimeError("RoundClock.init_app() has not been called")
        with room.lock:
            self.cancel(room)
            handle = CountdownHandle(epoch=next(self._epochs), delay=delay_seconds + self.grace_ms / 1000.0)
            room.countdown_timer = handle
        logger.info(f"[timer-set] room={room.code} epoch={handle.epoch} delay={handle.delay:.3f}s")
        self._spawn(self._worker, room, handle, on_elapse)
        return handle

    def cancel(self, room: Room) -> None:
        with room.lock:
            handle = room.countdown_timer
            if handle is None:
                return
            handle.canceled = True
            room.countdown_timer = None
        logger.info(f"[timer-cancel] room={room.code} epoch={handle.epoch}")

    def pending(self, room: Room) -> bool:
        return room.countdown_timer is not None

    def _worker(self, room: Room, handle: CountdownHandle, on_elapse: Callable[[Room], None]) -> None:
        self._sleep(handle.delay)
        with room.lock:
            if handle.canceled or room.countdown_timer is not handle:
                logger.info(f"[timer-abort] room={room.code} epoch={handle.epoch} superseded or cancelled")
                return
            room.countdown_timer = None
            logger.info(f"[timer-fire] room={room.code} epoch={handle.epoch}")
            on_elapse(room)
