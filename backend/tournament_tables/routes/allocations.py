from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlmodel import Session

from tournament_tables.database import get_session
from tournament_tables.models.allocation import Allocation
from tournament_tables.models.game_table import GameTable
from tournament_tables.models.player import Player
from tournament_tables.models.terrain_type import TerrainType
from tournament_tables.services.allocation_edit import (
    AllocationEditService,
    AllocationEditValidationError,
    AllocationNotFoundError,
    ConcurrentEditError,
    TableOccupiedError,
)

router = APIRouter()


class AllocationPlayerItem(BaseModel):
    id: str
    name: str
    score: int


class AllocationItem(BaseModel):
    id: int
    round_id: int
    table_number: Optional[int]
    terrain_type_name: Optional[str]
    player1: AllocationPlayerItem
    player2: Optional[AllocationPlayerItem]
    suggested_table_number: Optional[int]
    is_bye: bool
    revision: int
    conflicts: List[Dict[str, Any]] = []
    reason: Optional[Dict[str, Any]] = None


class ReassignRequest(BaseModel):
    table_number: int
    expected_revision: Optional[int] = None


class SwapRequest(BaseModel):
    allocation_id_1: int
    allocation_id_2: int


class AdjustmentResponse(BaseModel):
    success: bool
    allocations: List[AllocationItem]
    conflicts: List[Dict[str, Any]] = []


def allocation_to_item(session: Session, allocation: Allocation) -> AllocationItem:
    table = session.get(GameTable, allocation.table_id) if allocation.table_id else None
    terrain = session.get(TerrainType, table.terrain_type_id) if table and table.terrain_type_id else None

    player1 = session.get(Player, allocation.player1_id)
    player2 = session.get(Player, allocation.player2_id) if allocation.player2_id else None

    return AllocationItem(
        id=allocation.id,
        round_id=allocation.round_id,
        table_number=table.table_number if table else None,
        terrain_type_name=terrain.name if terrain else None,
        player1=AllocationPlayerItem(id=player1.external_id, name=player1.name, score=allocation.player1_score),
        player2=(
            AllocationPlayerItem(id=player2.external_id, name=player2.name, score=allocation.player2_score)
            if player2
            else None
        ),
        suggested_table_number=allocation.suggested_table_number,
        is_bye=allocation.is_bye,
        revision=allocation.revision,
        conflicts=allocation.get_conflicts(),
        reason=allocation.allocation_reason,
    )


def _raise_for_edit_error(e: Exception):
    if isinstance(e, AllocationNotFoundError):
        raise HTTPException(status_code=404, detail=str(e))
    if isinstance(e, TableOccupiedError):
        raise HTTPException(
            status_code=409,
            detail={"message": str(e), "occupant_allocation_id": e.occupant_allocation_id},
        )
    if isinstance(e, ConcurrentEditError):
        raise HTTPException(status_code=409, detail=str(e))
    raise HTTPException(status_code=400, detail=str(e))


def _adjustment_response(session: Session, result) -> AdjustmentResponse:
    items = [allocation_to_item(session, session.get(Allocation, a.allocation_id)) for a in result.allocations]
    return AdjustmentResponse(
        success=result.success,
        allocations=items,
        conflicts=[c.to_dict() for c in result.conflicts],
    )


@router.patch("/allocations/{allocation_id}", response_model=AdjustmentResponse)
def reassign_allocation(allocation_id: int, payload: ReassignRequest, session: Session = Depends(get_session)):
    """Move an allocation to another table in the same round"""
    service = AllocationEditService(session)
    try:
        result = service.reassign(allocation_id, payload.table_number, payload.expected_revision)
    except (AllocationEditValidationError, TableOccupiedError, ConcurrentEditError) as e:
        _raise_for_edit_error(e)
    return _adjustment_response(session, result)


@router.post("/allocations/swap", response_model=AdjustmentResponse)
def swap_allocations(payload: SwapRequest, session: Session = Depends(get_session)):
    """Exchange the tables of two allocations in the same round"""
    service = AllocationEditService(session)
    try:
        result = service.swap(payload.allocation_id_1, payload.allocation_id_2)
    except (AllocationEditValidationError, TableOccupiedError, ConcurrentEditError) as e:
        _raise_for_edit_error(e)
    return _adjustment_response(session, result)
