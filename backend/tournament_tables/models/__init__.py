from tournament_tables.models.allocation import Allocation
from tournament_tables.models.allocation_audit import AllocationAuditEntry
from tournament_tables.models.game_table import GameTable
from tournament_tables.models.player import Player
from tournament_tables.models.round import Round
from tournament_tables.models.terrain_type import TerrainType
from tournament_tables.models.tournament import Tournament

__all__ = [
    "Tournament",
    "TerrainType",
    "GameTable",
    "Player",
    "Round",
    "Allocation",
    "AllocationAuditEntry",
]
