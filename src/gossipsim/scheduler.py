"""
Logical-time event scheduler.

Callbacks fire in non-decreasing logical-time order; events scheduled for
the same instant fire in insertion order. Waiting is modelled by
scheduling a future event, never by blocking.
"""

import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, List, Optional, Union

logger = logging.getLogger(__name__)

Interval = Union[float, Callable[[], float]]


class CancellationToken:
    """Checked by the scheduler before an event fires."""

    def __init__(self) -> None:
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


@dataclass(order=True)
class ScheduledEvent:
    """A callback queued for a logical time"""

    time: float
    sequence: int
    callback: Callable[[], None] = field(compare=False)
    token: Optional[CancellationToken] = field(default=None, compare=False)

    @property
    def cancelled(self) -> bool:
        return self.token is not None and self.token.cancelled


class RepeatingTask:
    """A callback that reschedules itself after every firing.

    The interval is either a fixed delay or a zero-argument callable that
    draws the next delay. Cancelling the token stops the task: an already
    queued firing is skipped by the scheduler, and a firing that cancels
    the token does not reschedule.
    """

    def __init__(
        self,
        scheduler: "EventScheduler",
        callback: Callable[[], None],
        interval: Interval,
        token: Optional[CancellationToken] = None,
    ):
        self.scheduler = scheduler
        self.callback = callback
        self.interval = interval
        self.token = token or CancellationToken()
        self.fire_count = 0

    @property
    def cancelled(self) -> bool:
        return self.token.cancelled

    def next_delay(self) -> float:
        if callable(self.interval):
            return self.interval()
        return self.interval

    def start(self, initial_delay: Optional[float] = None) -> None:
        delay = self.next_delay() if initial_delay is None else initial_delay
        self.scheduler.schedule_after(delay, self._fire, token=self.token)

    def cancel(self) -> None:
        self.token.cancel()

    def _fire(self) -> None:
        self.fire_count += 1
        self.callback()
        if not self.token.cancelled:
            self.scheduler.schedule_after(self.next_delay(), self._fire, token=self.token)


class EventScheduler:
    """Single-threaded discrete-event loop over a logical clock."""

    def __init__(self, start_time: float = 0.0):
        self._now = start_time
        self._queue: List[ScheduledEvent] = []
        self._sequence = itertools.count()
        self.events_fired = 0
        self.events_skipped = 0
        self.events_discarded = 0

    def now(self) -> float:
        """Current logical time"""
        return self._now

    @property
    def pending(self) -> int:
        return len(self._queue)

    def schedule_at(
        self,
        time: float,
        callback: Callable[[], None],
        token: Optional[CancellationToken] = None,
    ) -> ScheduledEvent:
        """Queue a callback for an absolute logical time."""
        if time < self._now:
            raise ValueError(
                f"Cannot schedule at {time} before current time {self._now}"
            )

        event = ScheduledEvent(
            time=time, sequence=next(self._sequence), callback=callback, token=token
        )
        heapq.heappush(self._queue, event)
        return event

    def schedule_after(
        self,
        delay: float,
        callback: Callable[[], None],
        token: Optional[CancellationToken] = None,
    ) -> ScheduledEvent:
        """Queue a callback ``delay`` logical-time units from now."""
        if delay < 0:
            raise ValueError(f"Delay must be non-negative, got {delay}")
        return self.schedule_at(self._now + delay, callback, token=token)

    def schedule_repeating(
        self,
        callback: Callable[[], None],
        interval: Interval,
        initial_delay: Optional[float] = None,
        token: Optional[CancellationToken] = None,
    ) -> RepeatingTask:
        """Register a repeating task and queue its first firing."""
        task = RepeatingTask(self, callback, interval, token=token)
        task.start(initial_delay)
        return task

    def run_until(self, horizon: float, discard_remaining: bool = True) -> None:
        """Fire every event before ``horizon``, then halt.

        Events at or beyond the horizon are discarded unless
        ``discard_remaining`` is False, and the clock is left at the
        horizon.
        """
        if horizon < self._now:
            raise ValueError(f"Horizon {horizon} is before current time {self._now}")

        while self._queue and self._queue[0].time < horizon:
            event = heapq.heappop(self._queue)
            self._now = event.time

            if event.cancelled:
                self.events_skipped += 1
                continue

            self.events_fired += 1
            event.callback()

        self._now = horizon
        if not discard_remaining:
            return

        if self._queue:
            logger.debug(f"Discarding {len(self._queue)} events beyond t={horizon}")
        self.events_discarded += len(self._queue)
        self._queue.clear()

    def clear(self) -> None:
        """Drop every queued event without firing it."""
        self._queue.clear()
