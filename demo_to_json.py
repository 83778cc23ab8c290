#!/usr/bin/env python3
"""
demo_to_json.py - Convert a CS2 demo into a tick-indexed JSON event log

Reads a .dem with demoparser2 and writes <demo>.json next to it, listing
kills, round boundaries, warmup changes and, for the target player only,
shots, damage and per-tick movement.

Usage:
    python demo_to_json.py <demo_file_path>

    # Different player (substring, case-insensitive)
    TARGET_PLAYER=Remag python demo_to_json.py match.dem
"""

from __future__ import annotations

import logging
import os
import sys
from pathlib import Path
from typing import Optional

from config import Config, load_config, setup_logging
from demo_events import FrameDone, Kill, PlayerHurt, RoundEnd, RoundStart, WarmupChanged, WeaponFire
from demo_source import DemoSource
from demo_summary import CaptureSummary, default_out_path, finalize, write_summary
from errors import ConfigError, ConversionError, OutputError
from event_formatter import EventFormatter
from position_tracker import PositionTracker
from tick_aggregator import TickAggregator

log = logging.getLogger("demo2json")


# =========================
# Pipeline
# =========================

class DemoConverter:
    """One conversion run: open -> streaming -> finalize, never re-entered."""

    def __init__(self, source, formatter: EventFormatter, aggregator: TickAggregator):
        self.source = source
        self.formatter = formatter
        self.aggregator = aggregator
        self.phase = "open"
        self._register_handlers()

    def _register_handlers(self) -> None:
        src = self.source
        fmt = self.formatter

        src.on(Kill, lambda e: self._add(fmt.kill(src.current_tick, e)))
        src.on(RoundStart, lambda e: self._add(fmt.round_start(src.current_tick, e, src)))
        src.on(WarmupChanged, lambda e: self._add(fmt.warmup(src.current_tick, e)))
        src.on(RoundEnd, lambda e: self._add(fmt.round_end(src.current_tick, e, src)))
        src.on(WeaponFire, lambda e: self._add(fmt.weapon_fire(src.current_tick, e)))
        src.on(PlayerHurt, lambda e: self._add(fmt.player_hurt(src.current_tick, e)))
        src.on(FrameDone, lambda e: self._add_all(fmt.frame(src.current_tick, src.playing())))

    def _add(self, event) -> None:
        if event is None:
            return
        self.aggregator.add(event.tick, event)

    def _add_all(self, events) -> None:
        for event in events:
            self.aggregator.add(event.tick, event)

    def run(self) -> CaptureSummary:
        if self.phase != "open":
            raise RuntimeError(f"Converter already ran (phase={self.phase})")

        map_name = self.source.map_name()
        log.info(f"Map: {map_name}")

        self.phase = "streaming"
        self.source.parse_to_end()
        log.info(f"Parsed to tick {self.source.total_ticks}, {self.aggregator.event_count()} events collected")

        self.phase = "finalize"
        summary = finalize(map_name, self.source.tick_rate, self.source.total_ticks, self.aggregator)
        self.formatter.tracker.reset()
        return summary


def check_output_writable(out_path: Path) -> None:
    parent = out_path.parent if str(out_path.parent) else Path(".")
    if not parent.is_dir():
        raise ConfigError(f"Output directory does not exist: {parent}")
    if out_path.exists():
        if out_path.is_dir():
            raise ConfigError(f"Output path is a directory: {out_path}")
        if not os.access(out_path, os.W_OK):
            raise ConfigError(f"Output file is not writable: {out_path}")
    elif not os.access(parent, os.W_OK):
        raise ConfigError(f"Output directory is not writable: {parent}")


def convert(demo_path, out_path=None, config: Optional[Config] = None, parser_factory=None) -> CaptureSummary:
    config = config or Config()
    out = Path(out_path) if out_path else default_out_path(demo_path)
    check_output_writable(out)

    formatter = EventFormatter(config.target_player, PositionTracker())
    aggregator = TickAggregator()

    source_kwargs = {"tick_rate": config.tick_rate}
    if parser_factory is not None:
        source_kwargs["parser_factory"] = parser_factory

    log.info(f"Converting {demo_path} (target player: {config.target_player})")
    with DemoSource(demo_path, **source_kwargs) as src:
        summary = DemoConverter(src, formatter, aggregator).run()

    try:
        with out.open("w", encoding="utf-8") as f:
            write_summary(summary, f)
    except OSError as e:
        raise OutputError(f"Failed to write {out}: {e}") from e

    return summary


# =========================
# CLI
# =========================

def main(argv=None) -> int:
    argv = sys.argv[1:] if argv is None else argv
    if len(argv) < 1:
        print("Usage: python demo_to_json.py <demo_file_path>")
        return 1

    demo_path = argv[0]

    try:
        config = load_config()
    except ConfigError as e:
        setup_logging()
        log.error(f"Configuration error: {e}")
        return 1

    setup_logging(config.debug)
    log.debug(f"Config: {config.to_dict()}")
    out_path = default_out_path(demo_path)

    try:
        summary = convert(demo_path, out_path, config)
    except ConversionError as e:
        log.error(f"Conversion failed: {e}")
        return 1

    log.info(f"Demo data written to: {out_path}")
    log.info(f"Map: {summary.map_name}, Ticks: {len(summary.ticks)}, Events: {summary.event_count()}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
