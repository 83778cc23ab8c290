"""Test the demoparser2-backed event source."""

import math

import numpy as np
import pandas as pd
import pytest

from demo_events import (
    TEAM_CT,
    TEAM_T,
    FrameDone,
    Kill,
    PlayerHurt,
    RoundEnd,
    RoundStart,
    WarmupChanged,
    WeaponFire,
)
from demo_source import DemoSource, clean_value, parse_winner, unwrap_events
from errors import ConfigError, DemoParseError
from fake_parser import factory, player_row


@pytest.fixture
def demo_file(tmp_path):
    p = tmp_path / "match.dem"
    p.write_bytes(b"PBDEMS2\x00")
    return p


def record_all(src):
    seen = []
    for kind in (Kill, RoundStart, RoundEnd, WarmupChanged, WeaponFire, PlayerHurt, FrameDone):
        src.on(kind, lambda e, src=src: seen.append((src.current_tick, type(e).__name__, e)))
    return seen


class TestHelpers:

    def test_unwrap_events_list_and_dict(self):
        df = pd.DataFrame({"tick": [1]})
        assert list(unwrap_events([("weapon_fire", df)])) == ["weapon_fire"]
        assert list(unwrap_events({"player_death": df})) == ["player_death"]
        assert unwrap_events(None) == {}

    def test_clean_value(self):
        assert clean_value(np.int64(5)) == 5
        assert type(clean_value(np.int64(5))) is int
        assert clean_value(float("nan")) is None
        assert clean_value(np.float64("nan")) is None
        assert clean_value(pd.NA) is None
        assert clean_value(np.array(["Knife"])) == ["Knife"]

    @pytest.mark.parametrize("raw,expected", [
        ("T", TEAM_T), (2, TEAM_T), ("CT", TEAM_CT), ("3", TEAM_CT),
        ("TERRORIST", TEAM_T), (None, None), ("spectator", None),
        (2.0, TEAM_T), (3.0, TEAM_CT), (np.float64(3.0), TEAM_CT),
    ])
    def test_parse_winner(self, raw, expected):
        assert parse_winner(raw) == expected


class TestOpen:

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            DemoSource(tmp_path / "nope.dem", parser_factory=factory()).open()

    def test_directory_is_rejected(self, tmp_path):
        with pytest.raises(ConfigError):
            DemoSource(tmp_path, parser_factory=factory()).open()

    def test_parser_construction_failure(self, demo_file):
        def boom(path):
            raise ValueError("not a demo")

        with pytest.raises(DemoParseError):
            DemoSource(demo_file, parser_factory=boom).open()

    def test_map_name(self, demo_file):
        with DemoSource(demo_file, parser_factory=factory(header={"map_name": "de_anubis"})) as src:
            assert src.map_name() == "de_anubis"

    def test_map_name_fallback(self, demo_file):
        with DemoSource(demo_file, parser_factory=factory(header={})) as src:
            assert src.map_name() == "Unknown"


class TestParseToEnd:

    def test_chronological_dispatch(self, demo_file):
        events = {
            "player_death": pd.DataFrame([
                {"tick": 100, "weapon": "ak47", "attacker_name": "alice", "attacker_team_num": 2,
                 "attacker_X": 1.0, "attacker_Y": 2.0, "attacker_Z": 3.0,
                 "user_name": "bob", "user_team_num": 3, "user_X": 4.0, "user_Y": 5.0, "user_Z": 6.0},
            ]),
            "round_start": pd.DataFrame([{"tick": 50, "timelimit": 115, "objective": "BOMB TARGET"}]),
            "round_end": pd.DataFrame([{"tick": 100, "winner": "T", "reason": "t_killed"}]),
        }
        ticks = pd.DataFrame([
            player_row(100, "alice", 2),
            player_row(100, "bob", 3),
            player_row(50, "alice", 2),
        ])

        with DemoSource(demo_file, parser_factory=factory(events=events, ticks=ticks)) as src:
            seen = record_all(src)
            src.parse_to_end()

            assert [(t, name) for t, name, _ in seen] == [
                (50, "RoundStart"),
                (50, "FrameDone"),
                (100, "RoundEnd"),
                (100, "Kill"),
                (100, "FrameDone"),
            ]
            assert src.total_ticks == 100

        kill = seen[3][2]
        assert kill.killer.name == "alice"
        assert kill.killer.side == "T"
        assert kill.victim.position.z == 6.0
        assert seen[2][2].winner == TEAM_T

    def test_same_kind_keeps_row_order(self, demo_file):
        events = {
            "weapon_fire": pd.DataFrame([
                {"tick": 10, "weapon": "first", "user_name": "a"},
                {"tick": 10, "weapon": "second", "user_name": "a"},
            ]),
        }
        with DemoSource(demo_file, parser_factory=factory(events=events)) as src:
            seen = record_all(src)
            src.parse_to_end()
        assert [e.weapon for _, _, e in seen] == ["first", "second"]

    def test_missing_players_become_none(self, demo_file):
        events = {
            "player_hurt": pd.DataFrame([
                {"tick": 7, "weapon": "inferno", "attacker_name": None, "user_name": "bob",
                 "health": 80.0, "armor": float("nan"), "dmg_health": 20, "dmg_armor": 0, "hitgroup": "generic"},
            ]),
        }
        with DemoSource(demo_file, parser_factory=factory(events=events)) as src:
            seen = record_all(src)
            src.parse_to_end()

        hurt = seen[0][2]
        assert hurt.attacker is None
        assert hurt.player.name == "bob"
        assert hurt.health == 80
        assert hurt.armor == 0

    def test_warmup_edges(self, demo_file):
        ticks = pd.DataFrame([
            player_row(1, "a", 2, is_warmup_period=True),
            player_row(2, "a", 2, is_warmup_period=True),
            player_row(3, "a", 2, is_warmup_period=False),
            player_row(4, "a", 2, is_warmup_period=False),
        ])
        with DemoSource(demo_file, parser_factory=factory(ticks=ticks)) as src:
            seen = record_all(src)
            src.parse_to_end()

        warmups = [(t, e.is_warmup) for t, name, e in seen if name == "WarmupChanged"]
        assert warmups == [(1, True), (3, False)]
        # warmup change precedes the frame of the same tick
        assert [name for t, name, _ in seen if t == 1] == ["WarmupChanged", "FrameDone"]

    def test_game_state_accessors(self, demo_file):
        ticks = pd.DataFrame([
            player_row(20, "alice", 2, team_rounds_total=4, total_rounds_played=7),
            player_row(20, "bob", 3, team_rounds_total=3, total_rounds_played=7),
            player_row(20, "watcher", 1, team_rounds_total=0, total_rounds_played=7),
        ])
        snapshots = []
        with DemoSource(demo_file, parser_factory=factory(ticks=ticks)) as src:
            src.on(FrameDone, lambda e: snapshots.append((
                [p.name for p in src.participants()],
                [p.name for p in src.playing()],
                src.total_rounds_played(),
                src.team_score("T"),
                src.team_score("CT"),
            )))
            src.parse_to_end()

        assert snapshots == [(["alice", "bob", "watcher"], ["alice", "bob"], 7, 4, 3)]

    def test_frame_player_fields(self, demo_file):
        ticks = pd.DataFrame([player_row(5, "alice", 2, x=1.5, balance=2500, inventory=["Knife"])])
        frames = []
        with DemoSource(demo_file, parser_factory=factory(ticks=ticks)) as src:
            src.on(FrameDone, lambda e: frames.append(src.playing()[0]))
            src.parse_to_end()

        alice = frames[0]
        assert alice.position.x == 1.5
        assert alice.money == 2500
        assert alice.inventory == ["Knife"]
        assert alice.has_helmet is True
        assert alice.place == "BombsiteA"

    def test_winner_column_with_missing_value(self, demo_file):
        events = {
            "round_end": pd.DataFrame([
                {"tick": 30, "winner": None, "reason": 10},
                {"tick": 40, "winner": 2, "reason": 9},
            ]),
        }
        with DemoSource(demo_file, parser_factory=factory(events=events)) as src:
            seen = record_all(src)
            src.parse_to_end()

        assert [e.winner for _, _, e in seen] == [None, TEAM_T]
        assert [e.reason for _, _, e in seen] == ["10", "9"]

    def test_negative_ticks_are_skipped(self, demo_file):
        events = {
            "round_start": pd.DataFrame([
                {"tick": -1, "timelimit": 60, "objective": "BOMB TARGET"},
                {"tick": 8, "timelimit": 115, "objective": "BOMB TARGET"},
            ]),
        }
        ticks = pd.DataFrame([
            player_row(-5, "alice", 2),
            player_row(8, "alice", 2),
        ])
        with DemoSource(demo_file, parser_factory=factory(events=events, ticks=ticks)) as src:
            seen = record_all(src)
            src.parse_to_end()

        assert [(t, name) for t, name, _ in seen] == [(8, "RoundStart"), (8, "FrameDone")]

    def test_parser_failure_is_wrapped(self, demo_file):
        with DemoSource(demo_file, parser_factory=factory(fail_on="parse_ticks")) as src:
            with pytest.raises(DemoParseError):
                src.parse_to_end()

    def test_cannot_run_twice(self, demo_file):
        with DemoSource(demo_file, parser_factory=factory()) as src:
            src.parse_to_end()
            with pytest.raises(RuntimeError):
                src.parse_to_end()
