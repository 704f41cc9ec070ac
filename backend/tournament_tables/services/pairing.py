"""
Allocation inputs: pairings for the round being generated and the tables
they can be seated at.

A Pairing is built fresh for every generation run from the currently known
scores. It is never persisted as such; what gets stored is the decision the
engine makes for it.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Optional


@dataclass(frozen=True)
class PlayerSnapshot:
    """Competitor fields copied onto a decision."""

    player_id: str
    name: str
    score: int

    def to_dict(self) -> Dict[str, Any]:
        return {"player_id": self.player_id, "name": self.name, "score": self.score}


@dataclass(frozen=True)
class Pairing:
    """One matchup for the round, or a single player with a bye.

    A bye has neither player2_id nor player2_name; supplying only one of them
    is rejected. Scores may be None when unknown and are read as 0 for seated
    players. A bye carries no player-2 scores.
    """

    player1_id: str
    player1_name: str
    player1_score: Optional[int] = 0
    player2_id: Optional[str] = None
    player2_name: Optional[str] = None
    player2_score: Optional[int] = None
    suggested_table: Optional[int] = None
    player1_total_score: Optional[int] = 0
    player2_total_score: Optional[int] = None

    def __post_init__(self) -> None:
        if (self.player2_id is None) != (self.player2_name is None):
            raise ValueError(
                f"Pairing for {self.player1_id} has a partial opponent; "
                "player2 id and name must both be set or both be None"
            )

        # Frozen: normalize through object.__setattr__
        object.__setattr__(self, "player1_score", self.player1_score or 0)
        object.__setattr__(self, "player1_total_score", self.player1_total_score or 0)
        if self.player2_id is None:
            object.__setattr__(self, "player2_score", None)
            object.__setattr__(self, "player2_total_score", None)
        else:
            object.__setattr__(self, "player2_score", self.player2_score or 0)
            object.__setattr__(self, "player2_total_score", self.player2_total_score or 0)

    @classmethod
    def bye(cls, player_id: str, name: str, score: int = 0, total_score: int = 0) -> "Pairing":
        return cls(
            player1_id=player_id,
            player1_name=name,
            player1_score=score,
            player1_total_score=total_score,
        )

    @property
    def is_bye(self) -> bool:
        return self.player2_id is None

    @property
    def combined_total_score(self) -> int:
        """Tournament-to-date score of both players (player 1 only for a bye)."""
        if self.is_bye:
            return self.player1_total_score or 0
        return (self.player1_total_score or 0) + (self.player2_total_score or 0)

    @property
    def min_player_id(self) -> str:
        """Lexicographically smaller player id, used as a deterministic tie-break."""
        if self.is_bye:
            return self.player1_id
        return min(self.player1_id, self.player2_id)

    @property
    def player_ids(self) -> tuple:
        if self.is_bye:
            return (self.player1_id,)
        return (self.player1_id, self.player2_id)

    def player1_snapshot(self) -> PlayerSnapshot:
        return PlayerSnapshot(self.player1_id, self.player1_name, self.player1_score)

    def player2_snapshot(self) -> Optional[PlayerSnapshot]:
        if self.is_bye:
            return None
        return PlayerSnapshot(self.player2_id, self.player2_name, self.player2_score)

    def describe(self) -> str:
        if self.is_bye:
            return f"{self.player1_name} (bye)"
        return f"{self.player1_name} vs {self.player2_name}"


@dataclass(frozen=True)
class TableInfo:
    """A candidate table for the round."""

    table_number: int
    terrain_type_id: Optional[int] = None
    terrain_type_name: Optional[str] = None
