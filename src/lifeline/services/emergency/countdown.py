"""
SOS Countdown Controller

Runs the cancellable grace period before an SOS escalates:
- Idle -> Armed -> Activated | Cancelled
- One tick per interval, activation when the remaining count reaches zero
- Exactly one terminal callback per run
"""

import asyncio
import logging
from typing import Callable, Optional

from lifeline.models.emergency import CountdownPhase, CountdownState
from .errors import CountdownError


class CountdownController:
    """Cancellable countdown that gates irreversible escalation"""

    def __init__(
        self,
        tick_interval: float = 1.0,
        on_tick: Optional[Callable[[int], None]] = None,
        on_activated: Optional[Callable[[], None]] = None,
        on_cancelled: Optional[Callable[[], None]] = None
    ):
        self.logger = logging.getLogger(__name__)
        self.tick_interval = tick_interval
        self.on_tick = on_tick
        self.on_activated = on_activated
        self.on_cancelled = on_cancelled

        self.phase = CountdownPhase.IDLE
        self._state = CountdownState()
        self._task: Optional[asyncio.Task] = None
        self._result: Optional[asyncio.Future] = None

    @property
    def state(self) -> CountdownState:
        """Snapshot of the countdown state"""
        return CountdownState(remaining=self._state.remaining, armed=self._state.armed)

    @property
    def armed(self) -> bool:
        return self.phase == CountdownPhase.ARMED

    def arm(self, duration_seconds: int) -> None:
        """
        Start a fresh countdown

        Args:
            duration_seconds: Number of ticks before activation

        Raises:
            CountdownError: if already armed or the duration is negative
        """
        if self.phase == CountdownPhase.ARMED:
            raise CountdownError("Countdown is already armed")
        if duration_seconds < 0:
            raise CountdownError(f"Invalid countdown duration: {duration_seconds}")

        loop = asyncio.get_running_loop()
        self.phase = CountdownPhase.ARMED
        self._state = CountdownState(remaining=int(duration_seconds), armed=True)
        self._result = loop.create_future()
        self._task = loop.create_task(self._run())

        self.logger.info(f"Countdown armed for {duration_seconds}s")

    def cancel(self) -> bool:
        """
        Cancel an armed countdown

        Returns:
            True if this call cancelled the countdown, False if it was not armed
        """
        if self.phase != CountdownPhase.ARMED:
            return False

        # State flips before the tick task can resume, so a pending tick is a no-op
        self._finish(CountdownPhase.CANCELLED)
        if self._task and not self._task.done():
            self._task.cancel()

        self.logger.info(f"Countdown cancelled with {self._state.remaining}s remaining")
        self._notify(self.on_cancelled)
        return True

    async def wait(self) -> CountdownPhase:
        """Wait for the current run to reach a terminal phase"""
        if self._result is None:
            raise CountdownError("Countdown was never armed")
        return await asyncio.shield(self._result)

    async def _run(self):
        """Tick loop for one armed run"""
        try:
            while self._state.remaining > 0:
                await asyncio.sleep(self.tick_interval)
                if self.phase != CountdownPhase.ARMED:
                    return

                self._state.remaining -= 1
                if self._state.remaining > 0:
                    self._notify(self.on_tick, self._state.remaining)

            if self.phase != CountdownPhase.ARMED:
                return

            self._finish(CountdownPhase.ACTIVATED)
            self.logger.warning("Countdown reached zero, SOS activated")
            self._notify(self.on_activated)
        except asyncio.CancelledError:
            pass

    def _finish(self, phase: CountdownPhase):
        """Record the single terminal transition for this run"""
        self.phase = phase
        self._state.armed = False
        if phase == CountdownPhase.ACTIVATED:
            self._state.remaining = 0
        if self._result and not self._result.done():
            self._result.set_result(phase)

    def _notify(self, callback: Optional[Callable], *args):
        if callback is None:
            return
        try:
            callback(*args)
        except Exception as e:
            self.logger.error(f"Error in countdown callback: {e}")
