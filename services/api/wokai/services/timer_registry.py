"""Countdown timers for a cook session.

One registry per session. Each running timer owns an asyncio task that wakes
on absolute one-second deadlines of the loop's monotonic clock, so sleep
overshoot never accumulates and a late wake-up catches up by evaluating every
missed second. ``tick()`` performs the same evaluation for all timers at once
and is what manual-clock callers (and tests) drive.
"""

import asyncio
import logging
import math
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from ..core.listeners import Listeners, Subscription
from ..schemas import TimerView

logger = logging.getLogger("wokai.timers")


class InvalidTimerDuration(ValueError):
    pass


@dataclass
class Timer:
    id: str
    label: str
    duration: int
    remaining: int
    is_active: bool = True
    is_paused: bool = False

    def view(self) -> TimerView:
        return TimerView(
            id=self.id,
            label=self.label,
            duration=self.duration,
            remaining=self.remaining,
            is_active=self.is_active,
            is_paused=self.is_paused,
        )


class TimerRegistry:
    def __init__(self, *, tick_seconds: float = 1.0, auto_tick: bool = True):
        self.tick_seconds = tick_seconds
        self.auto_tick = auto_tick
        self._timers: dict[str, Timer] = {}
        self._tasks: dict[str, asyncio.Task] = {}
        self._updates: Listeners[list[TimerView]] = Listeners("timers.update")
        self._completions: Listeners[TimerView] = Listeners("timers.complete")

    # --- Subscriptions ---

    def on_update(self, listener: Callable[[list[TimerView]], None]) -> Subscription:
        return self._updates.subscribe(listener)

    def on_complete(self, listener: Callable[[TimerView], None]) -> Subscription:
        return self._completions.subscribe(listener)

    # --- Queries ---

    def get(self, timer_id: str) -> Optional[TimerView]:
        timer = self._timers.get(timer_id)
        return timer.view() if timer else None

    def list_timers(self) -> list[TimerView]:
        return [t.view() for t in self._timers.values()]

    def __contains__(self, timer_id: str) -> bool:
        return timer_id in self._timers

    # --- Commands ---

    def create(self, label: str, minutes: float) -> str:
        """Start a new countdown and return its id.

        Raises:
            InvalidTimerDuration: if ``minutes`` is not a finite positive
                number or rounds to zero seconds. No timer is created. The
                message is a clause that can be read back to the user.
        """
        if not math.isfinite(minutes):
            raise InvalidTimerDuration("the duration must be a finite number of minutes")
        if minutes <= 0:
            raise InvalidTimerDuration("the duration must be more than zero")
        seconds = minutes * 60
        if not math.isfinite(seconds):
            raise InvalidTimerDuration("the duration is too long")
        duration = int(round(seconds))
        if duration <= 0:
            raise InvalidTimerDuration("the duration must be at least one second")

        timer_id = f"timer-{uuid.uuid4().hex}"
        self._timers[timer_id] = Timer(id=timer_id, label=label, duration=duration, remaining=duration)
        logger.info(f"Created timer {timer_id} '{label}' for {duration}s")

        self._start_ticking(timer_id)
        self._notify_update()
        return timer_id

    def pause(self, timer_id: str) -> None:
        timer = self._timers.get(timer_id)
        if not timer or not timer.is_active or timer.is_paused:
            return
        timer.is_paused = True
        self._stop_ticking(timer_id)
        self._notify_update()

    def resume(self, timer_id: str) -> None:
        timer = self._timers.get(timer_id)
        if not timer or not timer.is_active or not timer.is_paused:
            return
        timer.is_paused = False
        # Fresh deadline anchor: a full tick elapses before the next decrement
        self._start_ticking(timer_id)
        self._notify_update()

    def cancel(self, timer_id: str) -> None:
        timer = self._timers.pop(timer_id, None)
        if not timer:
            return
        timer.is_active = False
        self._stop_ticking(timer_id)
        logger.info(f"Cancelled timer {timer_id} with {timer.remaining}s left")
        self._notify_update()

    def tick(self) -> None:
        """Evaluate one second for every active, unpaused timer."""
        for timer_id in list(self._timers):
            self._evaluate(timer_id)
        self._notify_update()

    def cleanup(self) -> None:
        for task in self._tasks.values():
            task.cancel()
        self._tasks.clear()
        self._timers.clear()
        self._updates.clear()
        self._completions.clear()

    # --- Internals ---

    def _evaluate(self, timer_id: str) -> bool:
        # Re-check presence and state: a cancel may have landed since the wake-up
        timer = self._timers.get(timer_id)
        if timer is None or not timer.is_active or timer.is_paused:
            return False

        timer.remaining = max(0, timer.remaining - 1)
        if timer.remaining == 0:
            timer.is_active = False
            self._stop_ticking(timer_id)
            logger.info(f"Timer {timer_id} '{timer.label}' finished")
            self._completions.emit(timer.view())
        return True

    def _start_ticking(self, timer_id: str) -> None:
        if not self.auto_tick:
            return
        loop = asyncio.get_running_loop()
        self._tasks[timer_id] = loop.create_task(self._run(timer_id), name=f"wokai-{timer_id}")

    def _stop_ticking(self, timer_id: str) -> None:
        task = self._tasks.pop(timer_id, None)
        if task is None:
            return
        try:
            current = asyncio.current_task()
        except RuntimeError:
            current = None
        # The task finishing its own timer just returns after this evaluation
        if task is not current:
            task.cancel()

    async def _run(self, timer_id: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self.tick_seconds
        while True:
            await asyncio.sleep(max(0.0, deadline - loop.time()))
            deadline += self.tick_seconds
            if self._tasks.get(timer_id) is not asyncio.current_task():
                return
            if not self._evaluate(timer_id):
                return
            self._notify_update()
            if timer_id not in self._tasks:
                return

    def _notify_update(self) -> None:
        self._updates.emit(self.list_timers())
