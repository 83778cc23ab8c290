"""Per-tick event buckets filled during streaming, drained at finalize."""

from __future__ import annotations

import numbers
from dataclasses import dataclass, field
from typing import Dict, List

from demo_events import Event


@dataclass
class TickBucket:
    tick: int
    events: List[Event] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {"tick": self.tick, "events": [e.to_dict() for e in self.events]}


class TickAggregator:
    """Collects events keyed by tick; arrival order is kept within a tick."""

    def __init__(self):
        self._buckets: Dict[int, TickBucket] = {}
        self._frozen = False

    def add(self, tick: int, event: Event) -> None:
        if self._frozen:
            raise RuntimeError("TickAggregator is frozen; finalize already started")
        if isinstance(tick, bool) or not isinstance(tick, numbers.Integral) or tick < 0:
            raise ValueError(f"Tick must be a non-negative integer, got {tick!r}")

        tick = int(tick)
        bucket = self._buckets.get(tick)
        if bucket is None:
            bucket = TickBucket(tick=tick)
            self._buckets[tick] = bucket
        bucket.events.append(event)

    def freeze(self) -> None:
        self._frozen = True

    @property
    def frozen(self) -> bool:
        return self._frozen

    def buckets(self) -> List[TickBucket]:
        return sorted(self._buckets.values(), key=lambda b: b.tick)

    def event_count(self) -> int:
        return sum(len(b.events) for b in self._buckets.values())

    def __len__(self) -> int:
        return len(self._buckets)
