"""
Allocation Generation: run the engine for a persisted round

Loads tables and history for the tournament, builds (or reconstructs) the
pairings, calls AllocationEngine, then replaces the round's allocations in a
single transaction. Each new allocation also gets an append-only
AllocationAuditEntry.

Two entry modes:
- Fresh pairings supplied by the caller (ingest): players are upserted by
  external id with their latest name and tournament score.
- No pairings (regenerate): pairings are rebuilt from the allocations
  already stored for the round, keeping their suggested table numbers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

from sqlmodel import Session, select

from tournament_tables.models.allocation import Allocation
from tournament_tables.models.allocation_audit import AllocationAuditEntry
from tournament_tables.models.game_table import GameTable
from tournament_tables.models.player import Player
from tournament_tables.models.round import Round
from tournament_tables.models.terrain_type import TerrainType
from tournament_tables.models.tournament import Tournament
from tournament_tables.services.allocation_engine import AllocationEngine, AllocationError
from tournament_tables.services.allocation_types import AllocationResult
from tournament_tables.services.pairing import Pairing, TableInfo
from tournament_tables.services.tournament_history import DatabaseHistory

logger = logging.getLogger(__name__)

AUDIT_ACTION_GENERATE = "GENERATE"


class AllocationGenerationError(Exception):
    """Base exception for generation errors"""

    pass


class AllocationGenerationValidationError(AllocationGenerationError):
    """Request cannot be generated as given"""

    pass


@dataclass
class GenerationOutcome:
    round_id: int
    round_number: int
    result: AllocationResult
    allocation_ids: List[int] = field(default_factory=list)


def require_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise AllocationGenerationValidationError(f"Tournament {tournament_id} not found")
    return tournament


def load_tables(session: Session, tournament_id: int) -> List[TableInfo]:
    """Tournament tables as engine input, sorted by table number."""
    tables = session.exec(
        select(GameTable).where(GameTable.tournament_id == tournament_id).order_by(GameTable.table_number)
    ).all()
    terrain_names = {t.id: t.name for t in session.exec(select(TerrainType)).all()}
    return [
        TableInfo(
            table_number=t.table_number,
            terrain_type_id=t.terrain_type_id,
            terrain_type_name=terrain_names.get(t.terrain_type_id),
        )
        for t in tables
    ]


def find_round(session: Session, tournament_id: int, round_number: int) -> Optional[Round]:
    return session.exec(
        select(Round).where(Round.tournament_id == tournament_id, Round.round_number == round_number)
    ).first()


def get_or_create_round(session: Session, tournament_id: int, round_number: int) -> Round:
    if round_number < 1:
        raise AllocationGenerationValidationError(f"Round number must be >= 1, got {round_number}")

    existing = find_round(session, tournament_id, round_number)
    if existing:
        return existing

    round_ = Round(tournament_id=tournament_id, round_number=round_number)
    session.add(round_)
    session.flush()
    return round_


def validate_pairings(pairings: Sequence[Pairing]) -> None:
    """Each player may appear in at most one pairing per round."""
    seen: Dict[str, int] = {}
    for index, pairing in enumerate(pairings):
        for player_id in pairing.player_ids:
            if player_id in seen:
                raise AllocationGenerationValidationError(
                    f"Player {player_id} appears in pairing {seen[player_id] + 1} and pairing {index + 1}"
                )
            seen[player_id] = index
        if not pairing.is_bye and pairing.player1_id == pairing.player2_id:
            raise AllocationGenerationValidationError(f"Player {pairing.player1_id} is paired with themselves")


def upsert_players(session: Session, tournament_id: int, pairings: Sequence[Pairing]) -> Dict[str, Player]:
    """Create or refresh Player rows for every competitor in ``pairings``."""
    existing = {
        p.external_id: p
        for p in session.exec(select(Player).where(Player.tournament_id == tournament_id)).all()
    }

    def _upsert(external_id: str, name: str, total_score: int) -> None:
        player = existing.get(external_id)
        if player is None:
            player = Player(tournament_id=tournament_id, external_id=external_id, name=name)
            existing[external_id] = player
        player.name = name
        player.total_score = total_score or 0
        session.add(player)

    for pairing in pairings:
        _upsert(pairing.player1_id, pairing.player1_name, pairing.player1_total_score)
        if not pairing.is_bye:
            _upsert(pairing.player2_id, pairing.player2_name, pairing.player2_total_score)

    session.flush()
    return existing


def reconstruct_pairings(session: Session, round_: Round) -> List[Pairing]:
    """Rebuild the round's pairings from its stored allocations."""
    allocations = session.exec(
        select(Allocation).where(Allocation.round_id == round_.id).order_by(Allocation.id)
    ).all()

    pairings: List[Pairing] = []
    for allocation in allocations:
        player1 = session.get(Player, allocation.player1_id)
        if player1 is None:
            logger.warning("Allocation %s references missing player %s, skipped", allocation.id, allocation.player1_id)
            continue

        if allocation.player2_id is None:
            pairings.append(
                Pairing.bye(player1.external_id, player1.name, allocation.player1_score, player1.total_score)
            )
            continue

        player2 = session.get(Player, allocation.player2_id)
        if player2 is None:
            logger.warning("Allocation %s references missing player %s, skipped", allocation.id, allocation.player2_id)
            continue

        pairings.append(
            Pairing(
                player1_id=player1.external_id,
                player1_name=player1.name,
                player1_score=allocation.player1_score,
                player2_id=player2.external_id,
                player2_name=player2.name,
                player2_score=allocation.player2_score,
                suggested_table=allocation.suggested_table_number,
                player1_total_score=player1.total_score,
                player2_total_score=player2.total_score,
            )
        )
    return pairings


def generate_round(
    session: Session,
    tournament_id: int,
    round_number: int,
    pairings: Optional[Sequence[Pairing]] = None,
    engine: Optional[AllocationEngine] = None,
) -> GenerationOutcome:
    """
    Generate and persist the allocations for one round.

    Replaces any allocations the round already has. Commits once; on any
    failure the transaction is rolled back and the error re-raised, so the
    previously stored round is left untouched.
    """
    engine = engine or AllocationEngine()

    try:
        require_tournament(session, tournament_id)
        round_ = get_or_create_round(session, tournament_id, round_number)

        if pairings is None:
            pairings = reconstruct_pairings(session, round_)
            players = {
                p.external_id: p
                for p in session.exec(select(Player).where(Player.tournament_id == tournament_id)).all()
            }
        else:
            validate_pairings(pairings)
            players = upsert_players(session, tournament_id, pairings)

        if not pairings:
            raise AllocationGenerationValidationError(f"Round {round_number} has no pairings to allocate")

        tables = load_tables(session, tournament_id)
        history = DatabaseHistory(session, tournament_id, round_number)
        result = engine.generate(pairings, tables, round_number, history)

        table_ids = {
            t.table_number: t.id
            for t in session.exec(select(GameTable).where(GameTable.tournament_id == tournament_id)).all()
        }

        # Clear first; the (round_id, table_id) constraint would reject the new rows otherwise
        for existing in session.exec(select(Allocation).where(Allocation.round_id == round_.id)).all():
            session.delete(existing)
        session.flush()

        new_allocations: List[Allocation] = []
        for decision in result.allocations:
            player1 = players.get(decision.player1.player_id)
            player2 = players.get(decision.player2.player_id) if decision.player2 else None
            if player1 is None or (decision.player2 is not None and player2 is None):
                raise AllocationGenerationError(f"Unknown player in decision for {decision.player1.name}")

            allocation = Allocation(
                round_id=round_.id,
                table_id=table_ids.get(decision.table_number) if decision.table_number is not None else None,
                player1_id=player1.id,
                player2_id=player2.id if player2 else None,
                player1_score=decision.player1.score or 0,
                player2_score=(decision.player2.score or 0) if decision.player2 else 0,
                suggested_table_number=decision.suggested_table,
                allocation_reason=decision.audit.to_dict(),
            )
            session.add(allocation)
            new_allocations.append(allocation)
        session.flush()

        for allocation in new_allocations:
            session.add(
                AllocationAuditEntry(
                    allocation_id=allocation.id,
                    round_id=round_.id,
                    action=AUDIT_ACTION_GENERATE,
                    reason=allocation.allocation_reason,
                )
            )

        session.commit()
    except (AllocationGenerationValidationError, AllocationError):
        session.rollback()
        raise
    except Exception:
        session.rollback()
        logger.exception("Allocation generation for tournament %s round %s rolled back", tournament_id, round_number)
        raise

    return GenerationOutcome(
        round_id=round_.id,
        round_number=round_number,
        result=result,
        allocation_ids=[a.id for a in new_allocations],
    )


def list_round_allocations(session: Session, tournament_id: int, round_number: int) -> List[Allocation]:
    """Stored allocations for a round: seated by table number, then unseated/byes."""
    round_ = find_round(session, tournament_id, round_number)
    if round_ is None:
        return []

    allocations = session.exec(select(Allocation).where(Allocation.round_id == round_.id)).all()
    table_numbers = {
        t.id: t.table_number
        for t in session.exec(select(GameTable).where(GameTable.tournament_id == tournament_id)).all()
    }

    def _key(allocation: Allocation):
        number = table_numbers.get(allocation.table_id)
        return (number is None, number or 0, allocation.id)

    return sorted(allocations, key=_key)
