"""
event_formatter.py - Turn demo occurrences into output events

Handles the target-player filtering (shots, damage and frame state are only
kept when the target is involved), the "?" sentinels for missing players and
the fixed display names used for weapons and hit groups.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from demo_events import (
    SIDE_UNKNOWN,
    DamageEvent,
    Kill,
    KillEvent,
    PlayerFrameEvent,
    PlayerHurt,
    PlayerState,
    Position,
    RoundEnd,
    RoundEndEvent,
    RoundStart,
    RoundStartEvent,
    ShotEvent,
    WarmupChanged,
    WarmupEvent,
    WeaponFire,
    team_side,
)
from position_tracker import PositionTracker


# =========================
# Display names
# =========================

WEAPON_NAMES = {
    # pistols
    "glock": "Glock-18",
    "hkp2000": "P2000",
    "usp_silencer": "USP-S",
    "p250": "P250",
    "elite": "Dual Berettas",
    "fiveseven": "Five-SeveN",
    "tec9": "Tec-9",
    "cz75a": "CZ75 Auto",
    "deagle": "Desert Eagle",
    "revolver": "R8 Revolver",
    # smgs
    "mac10": "MAC-10",
    "mp9": "MP9",
    "mp7": "MP7",
    "mp5sd": "MP5-SD",
    "ump45": "UMP-45",
    "p90": "P90",
    "bizon": "PP-Bizon",
    # heavy
    "nova": "Nova",
    "xm1014": "XM1014",
    "sawedoff": "Sawed-Off",
    "mag7": "MAG-7",
    "m249": "M249",
    "negev": "Negev",
    # rifles
    "galilar": "Galil AR",
    "famas": "FAMAS",
    "ak47": "AK-47",
    "m4a1": "M4A4",
    "m4a1_silencer": "M4A1",
    "sg556": "SG 553",
    "aug": "AUG",
    "ssg08": "SSG 08",
    "awp": "AWP",
    "g3sg1": "G3SG1",
    "scar20": "SCAR-20",
    # equipment
    "knife": "Knife",
    "knife_t": "Knife",
    "bayonet": "Knife",
    "taser": "Zeus x27",
    "c4": "C4",
    "planted_c4": "C4",
    "hegrenade": "HE Grenade",
    "flashbang": "Flashbang",
    "smokegrenade": "Smoke Grenade",
    "molotov": "Molotov",
    "incgrenade": "Incendiary Grenade",
    "inferno": "Incendiary Grenade",
    "decoy": "Decoy Grenade",
    "world": "World",
}

HIT_GROUP_NAMES = {
    0: "Generic",
    1: "Head",
    2: "Chest",
    3: "Stomach",
    4: "Left Arm",
    5: "Right Arm",
    6: "Left Leg",
    7: "Right Leg",
    8: "Neck",
    10: "Gear",
}

_HIT_GROUP_BY_KEY = {name.replace(" ", "").lower(): name for name in HIT_GROUP_NAMES.values()}

UNKNOWN_WEAPON = "Unknown"


def weapon_name(raw) -> str:
    if raw is None:
        return UNKNOWN_WEAPON
    s = str(raw).strip()
    if not s:
        return UNKNOWN_WEAPON
    key = s.lower()
    if key.startswith("weapon_"):
        key = key[len("weapon_"):]
    if key.startswith("knife"):
        return "Knife"
    return WEAPON_NAMES.get(key, s)


def hit_group_name(raw) -> str:
    if raw is None:
        return HIT_GROUP_NAMES[0]
    if isinstance(raw, (int, float)) and not isinstance(raw, bool):
        return HIT_GROUP_NAMES.get(int(raw), f"HitGroup {int(raw)}")

    s = str(raw).strip()
    if s.isdigit():
        return hit_group_name(int(s))
    key = s.replace("_", "").replace(" ", "").lower()
    return _HIT_GROUP_BY_KEY.get(key, s.replace("_", " ").title())


# =========================
# Player helpers
# =========================

def is_target_player(player: Optional[PlayerState], target: str) -> bool:
    if player is None:
        return False
    return target.lower() in (player.name or "").lower()


def player_side_name(player: Optional[PlayerState]) -> Tuple[str, str]:
    if player is None:
        return SIDE_UNKNOWN, SIDE_UNKNOWN
    return player.side, player.name


def player_position(player: Optional[PlayerState]) -> Position:
    if player is None:
        return Position()
    return player.position


def player_place(player: Optional[PlayerState]) -> str:
    if player is None:
        return ""
    return player.place or ""


def format_inventory(player: Optional[PlayerState]) -> str:
    if player is None or not player.inventory:
        return "[]"
    names = [weapon_name(w) for w in player.inventory if w]
    return "[" + ", ".join(names) + "]"


def _int(value, default: int = 0) -> int:
    if value is None:
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


# =========================
# Formatter
# =========================

class EventFormatter:
    """Builds events from occurrences for one conversion run.

    `state` arguments are the demo source's game-state accessors
    (playing(), total_rounds_played(), team_score()).
    """

    def __init__(self, target_name: str, tracker: Optional[PositionTracker] = None):
        self.target_name = target_name
        self.tracker = tracker if tracker is not None else PositionTracker()

    def is_target(self, player: Optional[PlayerState]) -> bool:
        return is_target_player(player, self.target_name)

    def kill(self, tick: int, e: Kill) -> KillEvent:
        killer_side, killer_name = player_side_name(e.killer)
        victim_side, victim_name = player_side_name(e.victim)
        return KillEvent(
            tick=tick,
            killer_side=killer_side,
            killer_name=killer_name,
            victim_side=victim_side,
            victim_name=victim_name,
            weapon=weapon_name(e.weapon),
            killer_pos=player_position(e.killer),
            victim_pos=player_position(e.victim),
        )

    def round_start(self, tick: int, e: RoundStart, state) -> RoundStartEvent:
        return RoundStartEvent(
            tick=tick,
            round=state.total_rounds_played() + 1,
            time_limit=_int(e.time_limit),
            objective=e.objective or "",
        )

    def round_end(self, tick: int, e: RoundEnd, state) -> RoundEndEvent:
        winner = team_side(e.winner)
        if winner == SIDE_UNKNOWN:
            winner = "none"

        target_team = ""
        target_won = False
        for player in state.playing():
            if self.is_target(player):
                target_team = player.side
                target_won = player.team_num == e.winner
                break

        return RoundEndEvent(
            tick=tick,
            round=state.total_rounds_played(),
            winner=winner,
            reason=str(e.reason),
            target_team=target_team,
            result="won" if target_won else "lost",
            score_t=state.team_score("T"),
            score_ct=state.team_score("CT"),
        )

    def warmup(self, tick: int, e: WarmupChanged) -> WarmupEvent:
        return WarmupEvent(tick=tick, is_warmup=bool(e.is_warmup))

    def weapon_fire(self, tick: int, e: WeaponFire) -> Optional[ShotEvent]:
        if not self.is_target(e.shooter):
            return None

        side, name = player_side_name(e.shooter)
        return ShotEvent(
            tick=tick,
            side=side,
            name=name,
            weapon=weapon_name(e.weapon),
            position=player_position(e.shooter),
            location=player_place(e.shooter),
            inventory=format_inventory(e.shooter),
        )

    def player_hurt(self, tick: int, e: PlayerHurt) -> Optional[DamageEvent]:
        if not (self.is_target(e.attacker) or self.is_target(e.player)):
            return None

        att_side, att_name = player_side_name(e.attacker)
        vic_side, vic_name = player_side_name(e.player)
        return DamageEvent(
            tick=tick,
            attacker_side=att_side,
            attacker_name=att_name,
            victim_side=vic_side,
            victim_name=vic_name,
            weapon=weapon_name(e.weapon),
            attacker_pos=player_position(e.attacker),
            victim_pos=player_position(e.player),
            location=player_place(e.player),
            health=_int(e.health),
            armor=_int(e.armor),
            hp_damage=_int(e.health_damage),
            armor_damage=_int(e.armor_damage),
            hit_group=hit_group_name(e.hit_group),
        )

    def frame(self, tick: int, players: Iterable[PlayerState]) -> List[PlayerFrameEvent]:
        out: List[PlayerFrameEvent] = []
        for player in players:
            if not self.is_target(player):
                continue

            side, name = player_side_name(player)
            pos = player.position
            action = self.tracker.observe(
                self.tracker.player_key(side, name), pos.x, pos.y, pos.z
            )

            out.append(PlayerFrameEvent(
                tick=tick,
                action=action,
                side=side,
                name=name,
                position=pos,
                location=player_place(player),
                inventory=format_inventory(player),
                health=_int(player.health),
                armor=_int(player.armor),
                helmet=1 if player.has_helmet else 0,
                money=_int(player.money),
            ))
        return out
