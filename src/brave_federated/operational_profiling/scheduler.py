"""Two-timer slot scheduler.

The training-step timer is a re-armable one-shot: when it fires, an
upload attempt is made.  The slot-start timer repeats twice per slot and
re-arms the training-step timer each time, so attempts land part-way
into a slot window rather than on its boundaries.

Both timers are handles on the running asyncio loop, so every callback
runs serially on the loop thread.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from enum import Enum

from brave_federated.logging import get_logger
from brave_federated.operational_profiling.errors import SchedulerError

log = get_logger("brave_federated.operational_profiling.scheduler")


class OneShotTimer:
    """Fires *callback* once, *delay* seconds after ``start()`` or ``reset()``.

    ``reset()`` restarts the countdown whether or not the timer has
    already fired, so one instance can be re-armed indefinitely.
    """

    def __init__(
        self,
        delay: float,
        callback: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._delay = delay
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def delay(self) -> float:
        return self._delay

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        self.stop()
        loop = self._loop or asyncio.get_running_loop()
        self._handle = loop.call_later(self._delay, self._fire)

    def reset(self) -> None:
        self.start()

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        self._handle = None
        self._callback()


class RepeatingTimer:
    """Fires *callback* every *period* seconds until stopped."""

    def __init__(
        self,
        period: float,
        callback: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        if period <= 0:
            raise ValueError("period must be positive")
        self._period = period
        self._callback = callback
        self._loop = loop
        self._handle: asyncio.TimerHandle | None = None

    @property
    def period(self) -> float:
        return self._period

    @property
    def is_running(self) -> bool:
        return self._handle is not None

    def start(self) -> None:
        self.stop()
        self._schedule(self._loop or asyncio.get_running_loop())

    def stop(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _schedule(self, loop: asyncio.AbstractEventLoop) -> None:
        self._handle = loop.call_later(self._period, self._fire, loop)

    def _fire(self, loop: asyncio.AbstractEventLoop) -> None:
        # Re-arm first so the callback may stop the timer
        self._schedule(loop)
        self._callback()


class SchedulerState(Enum):
    """Lifecycle of a SlotScheduler."""

    STOPPED = "stopped"
    RUNNING = "running"
    CLOSED = "closed"


class SlotScheduler:
    """Decides *when* an upload attempt is made.

    Typical flow:
    1. ``start()`` arms both timers
    2. every slot-start fire re-arms the training-step timer
    3. every training-step fire calls *on_training_step*
    4. ``stop()`` disarms both; ``close()`` disarms and forbids restart
    """

    def __init__(
        self,
        training_step_delay: float,
        slot_timer_period: float,
        on_training_step: Callable[[], None],
        loop: asyncio.AbstractEventLoop | None = None,
    ) -> None:
        self._on_training_step = on_training_step
        self._training_step_timer = OneShotTimer(
            training_step_delay, self._on_training_step_timer_fired, loop
        )
        self._slot_start_timer = RepeatingTimer(
            slot_timer_period, self._on_slot_start_timer_fired, loop
        )
        self._state = SchedulerState.STOPPED

    @property
    def state(self) -> SchedulerState:
        return self._state

    @property
    def is_running(self) -> bool:
        return self._state is SchedulerState.RUNNING

    @property
    def training_step_timer(self) -> OneShotTimer:
        return self._training_step_timer

    @property
    def slot_start_timer(self) -> RepeatingTimer:
        return self._slot_start_timer

    def check_can_start(self) -> None:
        """Raise SchedulerError unless ``start()`` would be valid now."""
        if self._state is SchedulerState.CLOSED:
            raise SchedulerError("scheduler started after close()")
        if self._state is SchedulerState.RUNNING:
            raise SchedulerError("scheduler already running; call stop() first")

    def start(self) -> None:
        self.check_can_start()
        self._training_step_timer.start()
        self._slot_start_timer.start()
        self._state = SchedulerState.RUNNING
        log.debug(
            "slot_scheduler_started",
            training_step_delay=self._training_step_timer.delay,
            slot_timer_period=self._slot_start_timer.period,
        )

    def stop(self) -> None:
        """Disarm both timers.  Safe to call in any state."""
        self._training_step_timer.stop()
        self._slot_start_timer.stop()
        if self._state is SchedulerState.RUNNING:
            self._state = SchedulerState.STOPPED
            log.debug("slot_scheduler_stopped")

    def close(self) -> None:
        self.stop()
        self._state = SchedulerState.CLOSED

    def _on_slot_start_timer_fired(self) -> None:
        self._training_step_timer.reset()

    def _on_training_step_timer_fired(self) -> None:
        self._on_training_step()
