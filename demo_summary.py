"""
demo_summary.py - Final capture summary and JSON output

Drains the tick buckets into a tick-ascending list, attaches the demo
metadata and writes the whole document as indented JSON.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, TextIO

from errors import ConfigError, OutputError
from tick_aggregator import TickAggregator, TickBucket


@dataclass
class CaptureSummary:
    map_name: str
    tick_rate: int
    duration: float
    total_ticks: int
    ticks: List[TickBucket] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "map_name": self.map_name,
            "tick_rate": self.tick_rate,
            "duration": self.duration,
            "total_ticks": self.total_ticks,
            "ticks": [b.to_dict() for b in self.ticks],
        }

    def event_count(self) -> int:
        return sum(len(b.events) for b in self.ticks)


def finalize(map_name: str, tick_rate: int, total_ticks: int, aggregator: TickAggregator) -> CaptureSummary:
    if not tick_rate or tick_rate <= 0:
        raise ConfigError(f"Tick rate must be positive, got {tick_rate!r}")

    aggregator.freeze()
    buckets = aggregator.buckets()

    return CaptureSummary(
        map_name=map_name,
        tick_rate=int(tick_rate),
        duration=float(total_ticks) / float(tick_rate),
        total_ticks=int(total_ticks),
        ticks=buckets,
    )


def render_summary(summary: CaptureSummary) -> str:
    return json.dumps(summary.to_dict(), indent=2, ensure_ascii=False) + "\n"


def write_summary(summary: CaptureSummary, sink: TextIO) -> None:
    # Render fully before touching the sink so a bad payload never leaves half a file.
    text = render_summary(summary)
    try:
        sink.write(text)
        sink.flush()
    except OSError as e:
        raise OutputError(f"Failed to write JSON output: {e}") from e


def default_out_path(demo_path) -> Path:
    return Path(demo_path).with_suffix(".json")
