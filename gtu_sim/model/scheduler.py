from __future__ import annotations

import heapq
import itertools
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .errors import ProgrammingError
from .vehicles import TIME_EPSILON


@dataclass(order=True)
class SimEvent:
    time: float
    seq: int
    gtu_id: Optional[int] = field(default=None, compare=False)
    action: Callable[[float], None] = field(default=lambda t: None, compare=False)
    cancelled: bool = field(default=False, compare=False)


class EventScheduler:
    """
    Discrete-event scheduler.

    Keeps at most one pending re-evaluation per GTU: scheduling a new
    event for a GTU cancels the previous one. Events at the same time run
    in the order they were scheduled. Cancelled events stay in the heap
    and are skipped when popped.
    """

    def __init__(self, start_time: float = 0.0) -> None:
        self.time = start_time
        self.executed = 0
        self._queue: List[SimEvent] = []
        self._pending: Dict[int, SimEvent] = {}
        self._seq = itertools.count()

    # ------------------------ PUBLIC API ------------------------

    def schedule(
        self,
        time: float,
        action: Callable[[float], None],
        gtu_id: Optional[int] = None,
    ) -> SimEvent:
        """
        :param time: absolute simulated time, not before the current time
        :param action: called with the event time
        :param gtu_id: owner; replaces that GTU's pending event
        """
        if time < self.time - TIME_EPSILON:
            raise ProgrammingError(f"Cannot schedule at t={time}, the clock is at {self.time}")
        time = max(time, self.time)

        if gtu_id is not None:
            self.cancel(gtu_id)

        event = SimEvent(time=time, seq=next(self._seq), gtu_id=gtu_id, action=action)
        heapq.heappush(self._queue, event)
        if gtu_id is not None:
            self._pending[gtu_id] = event
        return event

    def cancel(self, gtu_id: int) -> bool:
        """Cancel the pending event of a GTU. Returns False when there was none."""
        event = self._pending.pop(gtu_id, None)
        if event is None:
            return False
        event.cancelled = True
        return True

    def pending(self, gtu_id: int) -> Optional[SimEvent]:
        return self._pending.get(gtu_id)

    def next_time(self) -> Optional[float]:
        self._drop_cancelled()
        return self._queue[0].time if self._queue else None

    def step(self) -> bool:
        """Run the next event. Returns False when the queue is empty."""
        self._drop_cancelled()
        if not self._queue:
            return False

        event = heapq.heappop(self._queue)
        if event.gtu_id is not None and self._pending.get(event.gtu_id) is event:
            del self._pending[event.gtu_id]

        self.time = event.time
        self.executed += 1
        event.action(event.time)
        return True

    def run_until(self, end_time: float) -> None:
        """Run all events up to and including end_time, then move the clock there."""
        while True:
            t = self.next_time()
            if t is None or t > end_time:
                break
            self.step()
        self.time = max(self.time, end_time)

    def __len__(self) -> int:
        return sum(1 for e in self._queue if not e.cancelled)

    def _drop_cancelled(self) -> None:
        while self._queue and self._queue[0].cancelled:
            heapq.heappop(self._queue)
