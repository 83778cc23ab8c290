"""
demo_source.py - demoparser2 wrapped as a chronological event source

demoparser2 answers queries with whole DataFrames (one per game event, one
for per-tick player props). DemoSource merges those tables into a single
tick-ordered stream and calls the registered handler for each occurrence,
exposing the game state of the current tick while it does so.

Usage:
    with DemoSource("match.dem") as src:
        src.on(Kill, lambda e: print(src.current_tick, e.weapon))
        src.parse_to_end()
"""

from __future__ import annotations

import logging
import math
import os
from collections import defaultdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from demoparser2 import DemoParser  # type: ignore

from config import DEFAULT_TICKRATE
from demo_events import (
    TEAM_CT,
    TEAM_T,
    FrameDone,
    Kill,
    PlayerHurt,
    PlayerState,
    Position,
    RoundEnd,
    RoundStart,
    WarmupChanged,
    WeaponFire,
)
from errors import ConfigError, DemoParseError

log = logging.getLogger("demo2json")


# Player props attached to every game event (as user_* / attacker_* columns)
EVENT_PLAYER_PROPS = ["X", "Y", "Z", "team_num", "last_place_name", "inventory"]

# Per-tick props: player state plus game rules replicated on every row
TICK_PROPS = [
    "X", "Y", "Z",
    "team_num",
    "last_place_name",
    "inventory",
    "health",
    "armor_value",
    "has_helmet",
    "balance",
    "team_rounds_total",
    "total_rounds_played",
    "is_warmup_period",
]

# Dispatch order for occurrences sharing a tick; FrameDone always goes last.
EVENT_ORDER = ["round_end", "round_start", "player_death", "weapon_fire", "player_hurt"]

T_ALIASES = {"T", "2", "TEAM_T", "TERRORIST", "TERRORISTS"}
CT_ALIASES = {"CT", "3", "TEAM_CT", "COUNTERTERRORIST", "COUNTERTERRORISTS", "COUNTER_TERRORIST"}


# =========================
# Normalization helpers
# =========================

def unwrap_events(ret) -> dict[str, pd.DataFrame]:
    """
    demoparser2 returns parse_events() as [(name, df), ...]; some versions
    hand back a dict. This normalizes to dict[name] = df.
    """
    out: dict[str, pd.DataFrame] = {}
    if isinstance(ret, dict):
        for k, v in ret.items():
            out[str(k)] = v if isinstance(v, pd.DataFrame) else pd.DataFrame(v)
        return out
    if isinstance(ret, (list, tuple)):
        for item in ret:
            if isinstance(item, (list, tuple)) and len(item) >= 2:
                name = str(item[0])
                df = item[1]
                out[name] = df if isinstance(df, pd.DataFrame) else pd.DataFrame(df)
        return out
    return out


def unwrap_ticks(ret) -> pd.DataFrame:
    if isinstance(ret, pd.DataFrame):
        return ret
    if isinstance(ret, dict):
        for v in ret.values():
            if isinstance(v, pd.DataFrame):
                return v
        return pd.DataFrame(ret)
    if isinstance(ret, (list, tuple)) and len(ret) > 0:
        item = ret[0]
        if isinstance(item, (list, tuple)) and len(item) >= 2 and isinstance(item[1], pd.DataFrame):
            return item[1]
    raise DemoParseError(f"Unexpected parse_ticks return type: {type(ret)}")


def clean_value(v):
    """numpy scalars -> python, NaN/NA -> None; lists are left alone."""
    if v is None:
        return None
    if isinstance(v, np.ndarray):
        return v.tolist()
    if isinstance(v, (list, tuple)):
        return list(v)
    if v is pd.NA or v is pd.NaT:
        return None
    if isinstance(v, np.generic):
        v = v.item()
    if isinstance(v, float) and math.isnan(v):
        return None
    return v


def df_records(df: Optional[pd.DataFrame]) -> List[Dict[str, Any]]:
    if df is None or df.empty:
        return []
    return [
        {k: clean_value(v) for k, v in rec.items()}
        for rec in df.to_dict(orient="records")
    ]


def parse_winner(raw) -> Optional[int]:
    if raw is None:
        return None
    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)
    s = str(raw).strip().upper()
    if s in T_ALIASES:
        return TEAM_T
    if s in CT_ALIASES:
        return TEAM_CT
    return None


def _as_int(v, default: int = 0) -> int:
    if v is None:
        return default
    try:
        return int(v)
    except (TypeError, ValueError):
        return default


def _as_float(v) -> float:
    if v is None:
        return 0.0
    try:
        return float(v)
    except (TypeError, ValueError):
        return 0.0


def player_from_record(rec: Dict[str, Any], prefix: str = "") -> Optional[PlayerState]:
    """Build a PlayerState from <prefix>name, <prefix>X, ... columns.

    Returns None when the player is missing (world damage, disconnects).
    """
    name = rec.get(f"{prefix}name")
    if name is None or name == "":
        return None

    inventory = rec.get(f"{prefix}inventory") or []
    if not isinstance(inventory, list):
        inventory = [inventory]

    team_num = rec.get(f"{prefix}team_num")
    rounds = rec.get(f"{prefix}team_rounds_total")

    return PlayerState(
        name=str(name),
        steamid=_as_int(rec.get(f"{prefix}steamid"), default=0) or None,
        team_num=_as_int(team_num) if team_num is not None else None,
        position=Position(
            x=_as_float(rec.get(f"{prefix}X")),
            y=_as_float(rec.get(f"{prefix}Y")),
            z=_as_float(rec.get(f"{prefix}Z")),
        ),
        place=str(rec.get(f"{prefix}last_place_name") or ""),
        inventory=[str(w) for w in inventory if w],
        health=_as_int(rec.get(f"{prefix}health")),
        armor=_as_int(rec.get(f"{prefix}armor_value")),
        has_helmet=bool(rec.get(f"{prefix}has_helmet") or False),
        money=_as_int(rec.get(f"{prefix}balance")),
        team_rounds_total=_as_int(rounds) if rounds is not None else None,
    )


# =========================
# Occurrence builders
# =========================

def _kill(rec):
    return Kill(
        killer=player_from_record(rec, "attacker_"),
        victim=player_from_record(rec, "user_"),
        weapon=rec.get("weapon") or "",
    )


def _round_start(rec):
    return RoundStart(
        time_limit=_as_int(rec.get("timelimit")),
        objective=str(rec.get("objective") or ""),
    )


def _round_end(rec):
    reason = rec.get("reason")
    if isinstance(reason, float) and reason.is_integer():
        reason = int(reason)
    return RoundEnd(
        winner=parse_winner(rec.get("winner")),
        reason="" if reason is None else str(reason),
    )


def _weapon_fire(rec):
    return WeaponFire(
        shooter=player_from_record(rec, "user_"),
        weapon=rec.get("weapon") or "",
    )


def _player_hurt(rec):
    return PlayerHurt(
        attacker=player_from_record(rec, "attacker_"),
        player=player_from_record(rec, "user_"),
        weapon=rec.get("weapon") or "",
        health=_as_int(rec.get("health")),
        armor=_as_int(rec.get("armor")),
        health_damage=_as_int(rec.get("dmg_health")),
        armor_damage=_as_int(rec.get("dmg_armor")),
        hit_group=rec.get("hitgroup"),
    )


OCCURRENCE_BUILDERS: Dict[str, Callable[[Dict[str, Any]], Any]] = {
    "round_end": _round_end,
    "round_start": _round_start,
    "player_death": _kill,
    "weapon_fire": _weapon_fire,
    "player_hurt": _player_hurt,
}


# =========================
# Frame table
# =========================

class FrameTable:
    """Per-tick player rows, stored column-wise and split by tick."""

    def __init__(self, df: Optional[pd.DataFrame]):
        if df is None or df.empty or "tick" not in df.columns:
            self.ticks: List[int] = []
            self._columns: Dict[str, list] = {}
            self._bounds: List[Tuple[int, int]] = []
            return

        df = df.sort_values("tick", kind="stable").reset_index(drop=True)
        tick_arr = pd.to_numeric(df["tick"], errors="coerce").to_numpy()
        as_float = tick_arr.astype(float)
        keep = as_float >= 0  # NaN compares False
        if not keep.all():
            log.debug(f"Dropping {int((~keep).sum())} frame rows without a valid tick")
            df = df[keep].reset_index(drop=True)
            tick_arr = tick_arr[keep]
        tick_arr = tick_arr.astype(np.int64)

        starts = np.concatenate(([0], np.flatnonzero(np.diff(tick_arr)) + 1))
        ends = np.append(starts[1:], len(tick_arr))

        self.ticks = [int(tick_arr[s]) for s in starts]
        self._bounds = list(zip(starts.tolist(), ends.tolist()))
        self._columns = {c: df[c].tolist() for c in df.columns if c != "tick"}

    def __len__(self) -> int:
        return len(self.ticks)

    def rows(self, index: int) -> List[Dict[str, Any]]:
        start, end = self._bounds[index]
        return [
            {c: clean_value(col[i]) for c, col in self._columns.items()}
            for i in range(start, end)
        ]


# =========================
# Demo source
# =========================

class DemoSource:
    """Runs a demo through demoparser2 and replays it as ordered callbacks."""

    def __init__(self, demo_path, tick_rate: int = DEFAULT_TICKRATE, parser_factory=DemoParser):
        self.demo_path = Path(demo_path)
        self.tick_rate = tick_rate
        self._parser_factory = parser_factory
        self._parser = None
        self._handlers: Dict[type, List[Callable]] = defaultdict(list)

        self.current_tick = 0
        self.total_ticks = 0
        self._frame: List[PlayerState] = []
        self._rules: Dict[str, Any] = {}
        self._is_warmup = False
        self._finished = False

    # --- lifecycle ---

    def open(self) -> "DemoSource":
        p = self.demo_path
        if not p.exists():
            raise ConfigError(f"Demo file not found: {p}")
        if not p.is_file():
            raise ConfigError(f"Demo path is not a file: {p}")
        if not os.access(p, os.R_OK):
            raise ConfigError(f"Demo file is not readable: {p}")

        try:
            self._parser = self._parser_factory(str(p))
        except Exception as e:
            raise DemoParseError(f"Could not open demo {p.name}: {e}") from e
        return self

    def close(self) -> None:
        self._parser = None
        self._frame = []
        self._rules = {}

    def __enter__(self) -> "DemoSource":
        return self.open()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # --- metadata ---

    def map_name(self) -> str:
        parser = self._require_parser()
        try:
            hdr = parser.parse_header()
        except Exception as e:
            raise DemoParseError(f"Failed to read demo header: {e}") from e

        if isinstance(hdr, dict):
            for k in ("map_name", "map"):
                v = hdr.get(k)
                if isinstance(v, str) and v.strip():
                    return v.strip()
        return "Unknown"

    # --- handler registration ---

    def on(self, kind: type, handler: Callable) -> None:
        self._handlers[kind].append(handler)

    # --- game state accessors (valid during parse_to_end) ---

    def participants(self) -> List[PlayerState]:
        return list(self._frame)

    def playing(self) -> List[PlayerState]:
        return [p for p in self._frame if p.is_playing]

    def total_rounds_played(self) -> int:
        return _as_int(self._rules.get("total_rounds_played"))

    def team_score(self, side: str) -> int:
        team = TEAM_T if side == "T" else TEAM_CT
        for p in self._frame:
            if p.team_num == team and p.team_rounds_total is not None:
                return p.team_rounds_total
        return 0

    # --- run ---

    def parse_to_end(self) -> None:
        if self._finished:
            raise RuntimeError("DemoSource already ran to completion")

        events = self._load_events()
        frames = self._load_frames()

        by_tick: Dict[int, List[Tuple[int, int, Any]]] = defaultdict(list)
        for name, records in events.items():
            order = EVENT_ORDER.index(name)
            build = OCCURRENCE_BUILDERS[name]
            for seq, rec in enumerate(records):
                tick = rec.get("tick")
                if tick is None:
                    log.debug(f"Skipping {name} row without tick")
                    continue
                if int(tick) < 0:
                    log.debug(f"Skipping {name} row with negative tick {tick}")
                    continue
                by_tick[int(tick)].append((order, seq, build(rec)))

        frame_index = {t: i for i, t in enumerate(frames.ticks)}
        all_ticks = sorted(set(by_tick) | set(frame_index))

        log.info(
            f"Streaming {sum(len(v) for v in by_tick.values())} events "
            f"over {len(frames)} frames"
        )

        for tick in all_ticks:
            self.current_tick = tick
            self.total_ticks = max(self.total_ticks, tick)

            idx = frame_index.get(tick)
            if idx is not None:
                rows = frames.rows(idx)
                self._frame = [p for p in (player_from_record(r) for r in rows) if p is not None]
                self._rules = rows[0] if rows else {}

                warmup = bool(self._rules.get("is_warmup_period") or False)
                if warmup != self._is_warmup:
                    self._is_warmup = warmup
                    self._dispatch(WarmupChanged(is_warmup=warmup))

            for _, _, occ in sorted(by_tick.get(tick, []), key=lambda item: (item[0], item[1])):
                self._dispatch(occ)

            if idx is not None:
                self._dispatch(FrameDone())

        self._finished = True

    def _dispatch(self, occ) -> None:
        for handler in self._handlers.get(type(occ), ()):
            handler(occ)

    def _require_parser(self):
        if self._parser is None:
            raise RuntimeError("DemoSource is not open")
        return self._parser

    def _load_events(self) -> Dict[str, List[Dict[str, Any]]]:
        parser = self._require_parser()
        try:
            available = set(parser.list_game_events())
            wanted = [n for n in EVENT_ORDER if n in available]
            if not wanted:
                log.warning("Demo contains none of the tracked game events")
                return {}
            ev = unwrap_events(parser.parse_events(wanted, player=EVENT_PLAYER_PROPS))
        except DemoParseError:
            raise
        except Exception as e:
            raise DemoParseError(f"Failed to parse game events: {e}") from e

        out: Dict[str, List[Dict[str, Any]]] = {}
        for name in wanted:
            out[name] = df_records(ev.get(name))
            log.debug(f"{name}: {len(out[name])} rows")
        return out

    def _load_frames(self) -> FrameTable:
        parser = self._require_parser()
        try:
            df = unwrap_ticks(parser.parse_ticks(TICK_PROPS))
        except DemoParseError:
            raise
        except Exception as e:
            raise DemoParseError(f"Failed to parse tick data: {e}") from e
        return FrameTable(df)
