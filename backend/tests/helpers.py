"""Builders shared by the database-backed tests."""

from typing import Dict, List, Optional, Sequence

from sqlmodel import Session

from tournament_tables.models.game_table import GameTable
from tournament_tables.models.terrain_type import TerrainType
from tournament_tables.models.tournament import Tournament
from tournament_tables.services.pairing import Pairing


def make_tournament(
    session: Session,
    table_count: int,
    terrains: Optional[Dict[int, str]] = None,
    name: str = "Test Tournament",
) -> Tournament:
    """Tournament with tables 1..table_count; ``terrains`` maps table number to terrain name."""
    tournament = Tournament(name=name)
    session.add(tournament)
    session.flush()

    terrain_ids: Dict[str, int] = {}
    for terrain_name in sorted(set((terrains or {}).values())):
        terrain = TerrainType(name=terrain_name)
        session.add(terrain)
        session.flush()
        terrain_ids[terrain_name] = terrain.id

    for number in range(1, table_count + 1):
        terrain_name = (terrains or {}).get(number)
        session.add(
            GameTable(
                tournament_id=tournament.id,
                table_number=number,
                terrain_type_id=terrain_ids.get(terrain_name) if terrain_name else None,
            )
        )
    session.commit()
    session.refresh(tournament)
    return tournament


def pair(
    a: str,
    b: Optional[str],
    suggested: Optional[int] = None,
    total_a: int = 0,
    total_b: int = 0,
) -> Pairing:
    """Pairing of players ``a`` and ``b`` (names are the ids upper-cased); ``b=None`` is a bye."""
    if b is None:
        return Pairing.bye(a, a.upper(), total_score=total_a)
    return Pairing(
        player1_id=a,
        player1_name=a.upper(),
        player1_score=0,
        player2_id=b,
        player2_name=b.upper(),
        player2_score=0,
        suggested_table=suggested,
        player1_total_score=total_a,
        player2_total_score=total_b,
    )


def pairings_payload(pairings: Sequence[Pairing]) -> List[dict]:
    return [
        {
            "player1_id": p.player1_id,
            "player1_name": p.player1_name,
            "player1_score": p.player1_score,
            "player1_total_score": p.player1_total_score,
            "player2_id": p.player2_id,
            "player2_name": p.player2_name,
            "player2_score": p.player2_score,
            "player2_total_score": p.player2_total_score,
            "suggested_table": p.suggested_table,
        }
        for p in pairings
    ]
