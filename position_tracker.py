"""Last-known player positions, used to tell moving frames from standing ones."""

from __future__ import annotations

from typing import Dict, Tuple


MOVE = "move"
STAND = "stand"


class PositionTracker:
    def __init__(self):
        self._positions: Dict[str, Tuple[float, float, float]] = {}

    @staticmethod
    def player_key(side: str, name: str) -> str:
        return f"{side}_{name}"

    def observe(self, player_key: str, x: float, y: float, z: float) -> str:
        """Record a position and classify it against the previous one.

        First sighting of a key counts as a move. Comparison is exact on
        all three axes.
        """
        current = (x, y, z)
        previous = self._positions.get(player_key)
        self._positions[player_key] = current

        if previous is not None and previous == current:
            return STAND
        return MOVE

    def reset(self) -> None:
        self._positions.clear()

    def __len__(self) -> int:
        return len(self._positions)
