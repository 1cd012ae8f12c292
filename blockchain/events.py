"""
Simulation Events and Scheduler.

Two event kinds drive a validator:
- BlockReceived: a block reached the validator (block 0 is the start signal).
- VdfFinished: one of the validator's VDFs completed.

The scheduler is a min-heap ordered by time. Events scheduled for the same
tick pop in insertion order, which keeps runs reproducible.
"""
import heapq
import itertools
from decimal import Decimal
from typing import List, NamedTuple, Optional, Tuple, Union


class BlockReceived(NamedTuple):
    block_id: int


class VdfFinished(NamedTuple):
    input_block_id: int
    output_block_height: int
    weight: Decimal


Event = Union[BlockReceived, VdfFinished]


class TimedEvent(NamedTuple):
    time: int
    validator_id: int
    event: Event


class EventScheduler:
    def __init__(self):
        self._heap: List[Tuple[int, int, TimedEvent]] = []
        self._sequence = itertools.count()

    def __len__(self):
        return len(self._heap)

    def __bool__(self):
        return bool(self._heap)

    def push(self, time: int, validator_id: int, event: Event) -> TimedEvent:
        """Schedules `event` for `validator_id` at tick `time`."""
        if time < 0:
            raise ValueError(f"Event time must be non-negative, got {time}")
        timed = TimedEvent(time, validator_id, event)
        heapq.heappush(self._heap, (time, next(self._sequence), timed))
        return timed

    def pop(self) -> Optional[TimedEvent]:
        """Removes and returns the earliest event, or None when empty."""
        if not self._heap:
            return None
        return heapq.heappop(self._heap)[2]

    def peek_time(self) -> Optional[int]:
        if not self._heap:
            return None
        return self._heap[0][0]

    def pending(self) -> List[TimedEvent]:
        """Pending events in pop order (does not consume them)."""
        return [entry[2] for entry in sorted(self._heap)]
