"""
demo_events.py - Occurrence payloads and output events

Occurrences are what the demo source hands to handlers (one dataclass per
game event kind). Events are what ends up in the JSON: every kind carries a
typed field set, renders its own `data` mapping and a tag-style `raw_line`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


TEAM_T = 2
TEAM_CT = 3

SIDE_UNKNOWN = "?"


def team_side(team_num) -> str:
    if team_num == TEAM_T:
        return "T"
    if team_num == TEAM_CT:
        return "CT"
    return SIDE_UNKNOWN


@dataclass(frozen=True)
class Position:
    x: float = 0.0
    y: float = 0.0
    z: float = 0.0

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y, "z": self.z}

    def fmt(self) -> str:
        return f"({self.x:.1f},{self.y:.1f},{self.z:.1f})"


@dataclass(frozen=True)
class PlayerState:
    """Snapshot of one player as seen by the demo source at a given tick."""
    name: str
    steamid: Optional[int] = None
    team_num: Optional[int] = None
    position: Position = field(default_factory=Position)
    place: str = ""
    inventory: List[str] = field(default_factory=list)
    health: int = 0
    armor: int = 0
    has_helmet: bool = False
    money: int = 0
    team_rounds_total: Optional[int] = None

    @property
    def side(self) -> str:
        return team_side(self.team_num)

    @property
    def is_playing(self) -> bool:
        return self.team_num in (TEAM_T, TEAM_CT)


# =========================
# Occurrences (input side)
# =========================

@dataclass(frozen=True)
class Kill:
    killer: Optional[PlayerState]
    victim: Optional[PlayerState]
    weapon: str


@dataclass(frozen=True)
class RoundStart:
    time_limit: int
    objective: str


@dataclass(frozen=True)
class RoundEnd:
    winner: Optional[int]  # TEAM_T / TEAM_CT, None when nobody won
    reason: str


@dataclass(frozen=True)
class WarmupChanged:
    is_warmup: bool


@dataclass(frozen=True)
class WeaponFire:
    shooter: Optional[PlayerState]
    weapon: str


@dataclass(frozen=True)
class PlayerHurt:
    attacker: Optional[PlayerState]
    player: Optional[PlayerState]
    weapon: str
    health: int
    armor: int
    health_damage: int
    armor_damage: int
    hit_group: Any


@dataclass(frozen=True)
class FrameDone:
    pass


# =========================
# Events (output side)
# =========================

@dataclass(frozen=True)
class Event:
    tick: int

    kind = "event"

    def data(self) -> Dict[str, Any]:
        raise NotImplementedError

    def raw_line(self) -> str:
        raise NotImplementedError

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.kind, "data": self.data(), "raw_line": self.raw_line()}


@dataclass(frozen=True)
class KillEvent(Event):
    killer_side: str
    killer_name: str
    victim_side: str
    victim_name: str
    weapon: str
    killer_pos: Position
    victim_pos: Position

    kind = "kill"

    def data(self) -> Dict[str, Any]:
        return {
            "killer_side": self.killer_side,
            "killer_name": self.killer_name,
            "victim_side": self.victim_side,
            "victim_name": self.victim_name,
            "weapon": self.weapon,
            "killer_pos": self.killer_pos.to_dict(),
            "victim_pos": self.victim_pos.to_dict(),
        }

    def raw_line(self) -> str:
        return (
            f"<kill><tick>{self.tick}</tick>"
            f"<killer><side>{self.killer_side}</side><name>{self.killer_name}</name>"
            f"<weapon>{self.weapon}</weapon><pos>{self.killer_pos.fmt()}</pos></killer>"
            f"<victim><side>{self.victim_side}</side><name>{self.victim_name}</name>"
            f"<pos>{self.victim_pos.fmt()}</pos></victim></kill>"
        )


@dataclass(frozen=True)
class RoundStartEvent(Event):
    round: int
    time_limit: int
    objective: str

    kind = "round_start"

    def data(self) -> Dict[str, Any]:
        return {
            "round": self.round,
            "time_limit": self.time_limit,
            "objective": self.objective,
        }

    def raw_line(self) -> str:
        return (
            f"<round_start><tick>{self.tick}</tick><round>{self.round}</round>"
            f"<timeLimit>{self.time_limit}</timeLimit>"
            f"<objective>{self.objective}</objective></round_start>"
        )


@dataclass(frozen=True)
class RoundEndEvent(Event):
    round: int
    winner: str
    reason: str
    target_team: str
    result: str
    score_t: int
    score_ct: int

    kind = "round_end"

    def data(self) -> Dict[str, Any]:
        return {
            "round": self.round,
            "winner": self.winner,
            "reason": self.reason,
            "target_team": self.target_team,
            "result": self.result,
            "score_t": self.score_t,
            "score_ct": self.score_ct,
        }

    def raw_line(self) -> str:
        return (
            f"<round_end><tick>{self.tick}</tick><round>{self.round}</round>"
            f"<winner>{self.winner}</winner><reason>{self.reason}</reason>"
            f"<targetTeam>{self.target_team}</targetTeam><result>{self.result}</result>"
            f"<scoreT>{self.score_t}</scoreT><scoreCT>{self.score_ct}</scoreCT></round_end>"
        )


@dataclass(frozen=True)
class WarmupEvent(Event):
    is_warmup: bool

    @property
    def kind(self) -> str:
        return "warmup_start" if self.is_warmup else "warmup_end"

    def data(self) -> Dict[str, Any]:
        return {"is_warmup": self.is_warmup}

    def raw_line(self) -> str:
        return f"<{self.kind}><tick>{self.tick}</tick></{self.kind}>"


@dataclass(frozen=True)
class ShotEvent(Event):
    side: str
    name: str
    weapon: str
    position: Position
    location: str
    inventory: str

    kind = "shot"

    def data(self) -> Dict[str, Any]:
        return {
            "side": self.side,
            "name": self.name,
            "weapon": self.weapon,
            "position": self.position.to_dict(),
            "location": self.location,
            "inventory": self.inventory,
        }

    def raw_line(self) -> str:
        return (
            f"<shot><tick>{self.tick}</tick><side>{self.side}</side><name>{self.name}</name>"
            f"<weapon>{self.weapon}</weapon><pos>{self.position.fmt()}</pos>"
            f"<location>{self.location}</location><inv>{self.inventory}</inv></shot>"
        )


@dataclass(frozen=True)
class DamageEvent(Event):
    attacker_side: str
    attacker_name: str
    victim_side: str
    victim_name: str
    weapon: str
    attacker_pos: Position
    victim_pos: Position
    location: str
    health: int
    armor: int
    hp_damage: int
    armor_damage: int
    hit_group: str

    kind = "damage"

    def data(self) -> Dict[str, Any]:
        return {
            "attacker_side": self.attacker_side,
            "attacker_name": self.attacker_name,
            "victim_side": self.victim_side,
            "victim_name": self.victim_name,
            "weapon": self.weapon,
            "attacker_pos": self.attacker_pos.to_dict(),
            "victim_pos": self.victim_pos.to_dict(),
            "location": self.location,
            "health": self.health,
            "armor": self.armor,
            "hp_damage": self.hp_damage,
            "armor_damage": self.armor_damage,
            "hit_group": self.hit_group,
        }

    def raw_line(self) -> str:
        return (
            f"<damage><tick>{self.tick}</tick>"
            f"<attacker><side>{self.attacker_side}</side><name>{self.attacker_name}</name>"
            f"<weapon>{self.weapon}</weapon><pos>{self.attacker_pos.fmt()}</pos></attacker>"
            f"<victim><side>{self.victim_side}</side><name>{self.victim_name}</name>"
            f"<pos>{self.victim_pos.fmt()}</pos><location>{self.location}</location>"
            f"<hp>{self.health}</hp><armor>{self.armor}</armor>"
            f"<hpDamage>{self.hp_damage}</hpDamage><armorDamage>{self.armor_damage}</armorDamage>"
            f"<hitgroup>{self.hit_group}</hitgroup></victim></damage>"
        )


@dataclass(frozen=True)
class PlayerFrameEvent(Event):
    action: str  # "move" or "stand"
    side: str
    name: str
    position: Position
    location: str
    inventory: str
    health: int
    armor: int
    helmet: int
    money: int

    @property
    def kind(self) -> str:
        return self.action

    def data(self) -> Dict[str, Any]:
        return {
            "side": self.side,
            "name": self.name,
            "position": self.position.to_dict(),
            "location": self.location,
            "inventory": self.inventory,
            "health": self.health,
            "armor": self.armor,
            "helmet": self.helmet,
            "money": self.money,
        }

    def raw_line(self) -> str:
        return (
            f"<{self.action}><tick>{self.tick}</tick>"
            f"<player><side>{self.side}</side><name>{self.name}</name>"
            f"<pos>{self.position.fmt()}</pos><location>{self.location}</location>"
            f"<inv>{self.inventory}</inv><health>{self.health}</health>"
            f"<armor>{self.armor}</armor><helmet>{self.helmet}</helmet>"
            f"<money>{self.money}</money></player></{self.action}>"
        )
