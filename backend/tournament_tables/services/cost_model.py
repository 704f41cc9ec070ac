"""
Cost model for seating one pairing at one table.

Three tiers in strict priority. Weights are spaced at least 10x apart so a
lower tier can never outweigh a higher one (for fewer than 10000 tables):

    P1  table reuse    100000 per player who already sat at this table
    P2  terrain reuse   10000 per player who already played this terrain
    P3  table number        1 per table number (lower tables are cheaper)

Pure: no side effects, no storage access beyond the HistoryProvider it is
given. Callable on its own for what-if scoring.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from tournament_tables.services.allocation_types import (
    CONFLICT_TABLE_REUSE,
    CONFLICT_TERRAIN_REUSE,
    Conflict,
)
from tournament_tables.services.pairing import Pairing, TableInfo
from tournament_tables.services.tournament_history import HistoryProvider

COST_TABLE_REUSE = 100000
COST_TERRAIN_REUSE = 10000
COST_TABLE_NUMBER = 1

# Reason phrasing
TABLE_REUSE_PHRASE = "previously played on table"
TERRAIN_REUSE_PHRASE = "previously experienced"


@dataclass(frozen=True)
class CostResult:
    total_cost: int
    table_reuse: int
    terrain_reuse: int
    table_number: int
    reasons: Tuple[str, ...]
    # (player_id, conflict type, reason) for each reuse reason in `reasons`
    attributed: Tuple[Tuple[str, str, str], ...] = ()

    @property
    def breakdown(self) -> Dict[str, int]:
        return {
            "table_reuse": self.table_reuse,
            "terrain_reuse": self.terrain_reuse,
            "table_number": self.table_number,
        }

    @property
    def has_table_reuse(self) -> bool:
        return self.table_reuse > 0


def table_reuse_reason(player_name: str, table_number: int) -> str:
    return f"{player_name} {TABLE_REUSE_PHRASE} {table_number}"


def terrain_reuse_reason(player_name: str, terrain_name: Optional[str], terrain_type_id: int) -> str:
    return f"{player_name} {TERRAIN_REUSE_PHRASE} {terrain_name or f'terrain #{terrain_type_id}'}"


def _players(pairing: Pairing) -> List[Tuple[str, str]]:
    players = [(pairing.player1_id, pairing.player1_name)]
    if not pairing.is_bye:
        players.append((pairing.player2_id, pairing.player2_name))
    return players


def calculate_cost(pairing: Pairing, table: TableInfo, history: HistoryProvider) -> CostResult:
    """Weighted penalty for seating ``pairing`` at ``table``."""
    table_reuse_cost = 0
    terrain_reuse_cost = 0
    reasons: List[str] = []
    attributed: List[Tuple[str, str, str]] = []

    # P1: table reuse
    for player_id, name in _players(pairing):
        if history.has_player_used_table(player_id, table.table_number):
            table_reuse_cost += COST_TABLE_REUSE
            reason = table_reuse_reason(name, table.table_number)
            reasons.append(reason)
            attributed.append((player_id, CONFLICT_TABLE_REUSE, reason))

    # P2: terrain reuse, only for tables with a terrain type
    if table.terrain_type_id is not None:
        for player_id, name in _players(pairing):
            if history.has_player_experienced_terrain(player_id, table.terrain_type_id):
                terrain_reuse_cost += COST_TERRAIN_REUSE
                reason = terrain_reuse_reason(name, table.terrain_type_name, table.terrain_type_id)
                reasons.append(reason)
                attributed.append((player_id, CONFLICT_TERRAIN_REUSE, reason))

    # P3: table number
    table_number_cost = table.table_number * COST_TABLE_NUMBER
    if table_number_cost:
        reasons.append(f"Table number {table.table_number} adds {table_number_cost}")

    return CostResult(
        total_cost=table_reuse_cost + terrain_reuse_cost + table_number_cost,
        table_reuse=table_reuse_cost,
        terrain_reuse=terrain_reuse_cost,
        table_number=table_number_cost,
        reasons=tuple(reasons),
        attributed=tuple(attributed),
    )


def detect_conflicts(cost: CostResult) -> List[Conflict]:
    """TABLE_REUSE / TERRAIN_REUSE conflicts for every reuse reason in ``cost``.

    Informational only; they never block a decision.
    """
    return [Conflict(conflict_type, reason, player_id) for player_id, conflict_type, reason in cost.attributed]
