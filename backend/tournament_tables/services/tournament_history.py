"""
Tournament history: which tables and terrain types a player has already used.

A provider is scoped to ONE tournament and ONE round being generated. It only
ever looks at rounds strictly before that round, and it memoizes per player
for its own lifetime. Create a new provider for every generation run or edit;
never share one across tournaments or rounds.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, FrozenSet, Iterable, List, Optional

from sqlalchemy import or_
from sqlalchemy.orm import aliased
from sqlmodel import Session, select

from tournament_tables.models.allocation import Allocation
from tournament_tables.models.game_table import GameTable
from tournament_tables.models.player import Player
from tournament_tables.models.round import Round

logger = logging.getLogger(__name__)

_EMPTY: FrozenSet = frozenset()


class HistoryProvider:
    """Cached per-player history lookups for one tournament/round."""

    def __init__(self, tournament_id: int, current_round: int):
        self.tournament_id = tournament_id
        self.current_round = current_round
        self._table_cache: Dict[str, FrozenSet[int]] = {}
        self._terrain_cache: Dict[str, FrozenSet[int]] = {}

    def used_tables(self, player_id: str) -> FrozenSet[int]:
        """Table numbers this player sat at in earlier rounds."""
        key = str(player_id)
        if key not in self._table_cache:
            self._table_cache[key] = self._load(key, self._query_tables)
        return self._table_cache[key]

    def used_terrains(self, player_id: str) -> FrozenSet[int]:
        """Terrain type ids this player played on in earlier rounds."""
        key = str(player_id)
        if key not in self._terrain_cache:
            self._terrain_cache[key] = self._load(key, self._query_terrains)
        return self._terrain_cache[key]

    def has_player_used_table(self, player_id: str, table_number: int) -> bool:
        return table_number in self.used_tables(player_id)

    def has_player_experienced_terrain(self, player_id: str, terrain_type_id: Optional[int]) -> bool:
        if terrain_type_id is None:
            return False
        return terrain_type_id in self.used_terrains(player_id)

    def clear_cache(self) -> None:
        self._table_cache.clear()
        self._terrain_cache.clear()

    def _load(self, player_id: str, query) -> FrozenSet[int]:
        # Round 1 (or earlier) has no history: never touch storage
        if self.current_round <= 1:
            return _EMPTY
        return frozenset(query(player_id))

    def _query_tables(self, player_id: str) -> Iterable[int]:
        """Table numbers from earlier rounds. Subclasses must override."""
        raise NotImplementedError

    def _query_terrains(self, player_id: str) -> Iterable[int]:
        """Terrain type ids from earlier rounds. Subclasses must override."""
        raise NotImplementedError


class DatabaseHistory(HistoryProvider):
    """History derived from persisted allocations of earlier rounds.

    Players are matched on Player.external_id, the same identifier pairings
    carry, so a provider built here can be handed straight to the engine.
    """

    def __init__(self, session: Session, tournament_id: int, current_round: int):
        super().__init__(tournament_id, current_round)
        self.session = session

    def _history_query(self, column, player_id: str):
        p1 = aliased(Player)
        p2 = aliased(Player)
        return (
            select(column)
            .select_from(Allocation)
            .join(Round, Allocation.round_id == Round.id)
            .join(GameTable, Allocation.table_id == GameTable.id)
            .join(p1, Allocation.player1_id == p1.id)
            .outerjoin(p2, Allocation.player2_id == p2.id)
            .where(
                Round.tournament_id == self.tournament_id,
                Round.round_number < self.current_round,
                or_(p1.external_id == player_id, p2.external_id == player_id),
            )
        )

    def _query_tables(self, player_id: str) -> Iterable[int]:
        rows = self.session.exec(self._history_query(GameTable.table_number, player_id)).all()
        logger.debug(
            "Table history for player %s before round %d: %s", player_id, self.current_round, sorted(set(rows))
        )
        return rows

    def _query_terrains(self, player_id: str) -> Iterable[int]:
        query = self._history_query(GameTable.terrain_type_id, player_id).where(
            GameTable.terrain_type_id.is_not(None)
        )
        return self.session.exec(query.distinct()).all()


@dataclass(frozen=True)
class HistoryEntry:
    """One past seating of one player."""

    player_id: str
    round_number: int
    table_number: int
    terrain_type_id: Optional[int] = None


class InMemoryHistory(HistoryProvider):
    """History over already-fetched entries (imports, previews, tests)."""

    def __init__(self, tournament_id: int, current_round: int, entries: Iterable[HistoryEntry] = ()):
        super().__init__(tournament_id, current_round)
        self._entries: List[HistoryEntry] = list(entries)

    def _earlier(self, player_id: str) -> List[HistoryEntry]:
        return [e for e in self._entries if e.player_id == player_id and e.round_number < self.current_round]

    def _query_tables(self, player_id: str) -> Iterable[int]:
        return [e.table_number for e in self._earlier(player_id)]

    def _query_terrains(self, player_id: str) -> Iterable[int]:
        return [e.terrain_type_id for e in self._earlier(player_id) if e.terrain_type_id is not None]
