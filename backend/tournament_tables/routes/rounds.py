from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session, select

from tournament_tables.database import get_session
from tournament_tables.models.allocation import Allocation
from tournament_tables.models.tournament import Tournament
from tournament_tables.routes.allocations import AllocationItem, allocation_to_item
from tournament_tables.services.allocation_engine import AllocationError
from tournament_tables.services.allocation_generation import (
    AllocationGenerationValidationError,
    find_round,
    generate_round,
    list_round_allocations,
)
from tournament_tables.services.pairing import Pairing
from tournament_tables.services.table_collisions import TableCollisionDetector

router = APIRouter()


class PairingIn(BaseModel):
    player1_id: str
    player1_name: str
    player1_score: Optional[int] = 0
    player1_total_score: Optional[int] = 0
    player2_id: Optional[str] = None
    player2_name: Optional[str] = None
    player2_score: Optional[int] = None
    player2_total_score: Optional[int] = None
    suggested_table: Optional[int] = None


class GenerateRequest(BaseModel):
    pairings: List[PairingIn]


class GenerateResponse(BaseModel):
    round_id: int
    round_number: int
    summary: str
    conflicts: List[Dict[str, Any]]
    allocations: List[AllocationItem]


class CollisionItem(BaseModel):
    table_id: int
    table_number: Optional[int]
    allocation_ids: List[int]


class CollisionReport(BaseModel):
    round_id: Optional[int]
    has_collisions: bool
    collision_count: int
    collisions: List[CollisionItem]


def _require_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _to_pairings(items: List[PairingIn]) -> List[Pairing]:
    pairings = []
    for index, item in enumerate(items):
        try:
            pairings.append(Pairing(**item.model_dump()))
        except ValueError as e:
            raise HTTPException(status_code=400, detail=f"Pairing {index + 1}: {e}")
    return pairings


@router.post("/tournaments/{tournament_id}/rounds/{round_number}/generate", response_model=GenerateResponse)
def generate_round_allocations(
    tournament_id: int,
    round_number: int,
    payload: Optional[GenerateRequest] = Body(default=None),
    session: Session = Depends(get_session),
):
    """
    Generate table allocations for a round.

    With a body, the supplied pairings replace the round. Without one the
    round is regenerated from the pairings already stored for it.
    """
    _require_tournament(session, tournament_id)
    pairings = _to_pairings(payload.pairings) if payload is not None else None

    try:
        outcome = generate_round(session, tournament_id, round_number, pairings)
    except (AllocationGenerationValidationError, AllocationError) as e:
        raise HTTPException(status_code=400, detail=str(e))

    allocations = [allocation_to_item(session, session.get(Allocation, i)) for i in outcome.allocation_ids]
    allocations.sort(key=lambda a: (a.table_number is None, a.table_number or 0, a.id))
    return GenerateResponse(
        round_id=outcome.round_id,
        round_number=outcome.round_number,
        summary=outcome.result.summary,
        conflicts=[c.to_dict() for c in outcome.result.conflicts],
        allocations=allocations,
    )


@router.get("/tournaments/{tournament_id}/rounds/{round_number}/allocations", response_model=List[AllocationItem])
def get_round_allocations(tournament_id: int, round_number: int, session: Session = Depends(get_session)):
    """Stored allocations of a round, seated ones first by table number"""
    _require_tournament(session, tournament_id)
    return [allocation_to_item(session, a) for a in list_round_allocations(session, tournament_id, round_number)]


@router.get("/tournaments/{tournament_id}/rounds/{round_number}/collisions", response_model=CollisionReport)
def get_round_collisions(tournament_id: int, round_number: int, session: Session = Depends(get_session)):
    """Tables assigned to more than one allocation in the round"""
    round_ = _require_round(session, tournament_id, round_number)

    collisions = TableCollisionDetector(session).get_collisions(round_.id)
    return CollisionReport(
        round_id=round_.id,
        has_collisions=bool(collisions),
        collision_count=len(collisions),
        collisions=[CollisionItem(**c.to_dict()) for c in collisions],
    )


class RoundResponse(BaseModel):
    round_id: int
    round_number: int
    is_published: bool
    allocation_count: int
    message: Optional[str] = None


def _round_response(session: Session, round_, message: Optional[str] = None) -> RoundResponse:
    allocations = session.exec(select(Allocation.id).where(Allocation.round_id == round_.id)).all()
    return RoundResponse(
        round_id=round_.id,
        round_number=round_.round_number,
        is_published=round_.is_published,
        allocation_count=len(allocations),
        message=message,
    )


def _require_round(session: Session, tournament_id: int, round_number: int):
    _require_tournament(session, tournament_id)
    round_ = find_round(session, tournament_id, round_number)
    if round_ is None:
        raise HTTPException(status_code=404, detail="Round not found")
    return round_


@router.get("/tournaments/{tournament_id}/rounds/{round_number}", response_model=RoundResponse)
def get_round(tournament_id: int, round_number: int, session: Session = Depends(get_session)):
    """Round status: publication flag and allocation count"""
    return _round_response(session, _require_round(session, tournament_id, round_number))


@router.post("/tournaments/{tournament_id}/rounds/{round_number}/publish", response_model=RoundResponse)
def publish_round(tournament_id: int, round_number: int, session: Session = Depends(get_session)):
    """Make a round's allocations public. Publishing twice is a no-op."""
    round_ = _require_round(session, tournament_id, round_number)
    round_.is_published = True
    session.add(round_)
    session.commit()
    session.refresh(round_)
    return _round_response(session, round_, f"Round {round_number} allocations are now public")
