from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tournament_tables.database import get_session
from tournament_tables.models.game_table import GameTable
from tournament_tables.models.terrain_type import TerrainType
from tournament_tables.models.tournament import Tournament

router = APIRouter()


class TournamentCreate(BaseModel):
    name: str
    table_count: int
    bcp_event_id: Optional[str] = None
    # terrain_type_ids[i] is the terrain of table i + 1; shorter lists leave the rest unset
    terrain_type_ids: Optional[List[Optional[int]]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("table_count")
    @classmethod
    def validate_table_count(cls, v):
        if v < 1:
            raise ValueError("table_count must be >= 1")
        return v

    @model_validator(mode="after")
    def validate_terrain_length(self):
        if self.terrain_type_ids and len(self.terrain_type_ids) > self.table_count:
            raise ValueError("terrain_type_ids has more entries than table_count")
        return self


class TournamentResponse(BaseModel):
    id: int
    name: str
    bcp_event_id: Optional[str]
    table_count: int
    created_at: datetime
    updated_at: datetime


class TableResponse(BaseModel):
    id: int
    table_number: int
    terrain_type_id: Optional[int]
    terrain_type_name: Optional[str]


class TableUpdate(BaseModel):
    terrain_type_id: Optional[int] = None


class TerrainTypeCreate(BaseModel):
    name: str
    description: Optional[str] = None
    sort_order: int = 0

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()


class TerrainTypeResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    description: Optional[str]
    sort_order: int


def _require_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _require_terrain(session: Session, terrain_type_id: Optional[int]) -> None:
    if terrain_type_id is not None and not session.get(TerrainType, terrain_type_id):
        raise HTTPException(status_code=400, detail=f"Terrain type {terrain_type_id} not found")


def _tournament_response(session: Session, tournament: Tournament) -> TournamentResponse:
    tables = session.exec(select(GameTable).where(GameTable.tournament_id == tournament.id)).all()
    return TournamentResponse(
        id=tournament.id,
        name=tournament.name,
        bcp_event_id=tournament.bcp_event_id,
        table_count=len(tables),
        created_at=tournament.created_at,
        updated_at=tournament.updated_at,
    )


def _table_response(session: Session, table: GameTable) -> TableResponse:
    terrain = session.get(TerrainType, table.terrain_type_id) if table.terrain_type_id else None
    return TableResponse(
        id=table.id,
        table_number=table.table_number,
        terrain_type_id=table.terrain_type_id,
        terrain_type_name=terrain.name if terrain else None,
    )


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(payload: TournamentCreate, session: Session = Depends(get_session)):
    """Create a tournament with tables numbered 1..table_count"""
    terrain_ids = payload.terrain_type_ids or []
    for terrain_type_id in terrain_ids:
        _require_terrain(session, terrain_type_id)

    tournament = Tournament(name=payload.name, bcp_event_id=payload.bcp_event_id)
    session.add(tournament)
    session.flush()

    for number in range(1, payload.table_count + 1):
        terrain_type_id = terrain_ids[number - 1] if number <= len(terrain_ids) else None
        session.add(GameTable(tournament_id=tournament.id, table_number=number, terrain_type_id=terrain_type_id))

    session.commit()
    session.refresh(tournament)
    return _tournament_response(session, tournament)


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    tournament = _require_tournament(session, tournament_id)
    return _tournament_response(session, tournament)


@router.get("/tournaments/{tournament_id}/tables", response_model=List[TableResponse])
def list_tables(tournament_id: int, session: Session = Depends(get_session)):
    """List a tournament's tables ordered by table number"""
    _require_tournament(session, tournament_id)
    tables = session.exec(
        select(GameTable).where(GameTable.tournament_id == tournament_id).order_by(GameTable.table_number)
    ).all()
    return [_table_response(session, t) for t in tables]


@router.patch("/tournaments/{tournament_id}/tables/{table_number}", response_model=TableResponse)
def update_table(
    tournament_id: int,
    table_number: int,
    payload: TableUpdate,
    session: Session = Depends(get_session),
):
    """Set or clear the terrain of one table"""
    _require_tournament(session, tournament_id)
    table = session.exec(
        select(GameTable).where(GameTable.tournament_id == tournament_id, GameTable.table_number == table_number)
    ).first()
    if not table:
        raise HTTPException(status_code=404, detail="Table not found")

    _require_terrain(session, payload.terrain_type_id)
    table.terrain_type_id = payload.terrain_type_id
    session.add(table)
    session.commit()
    session.refresh(table)
    return _table_response(session, table)


@router.get("/terrain-types", response_model=List[TerrainTypeResponse])
def list_terrain_types(session: Session = Depends(get_session)):
    """List terrain types in display order"""
    return session.exec(select(TerrainType).order_by(TerrainType.sort_order, TerrainType.name)).all()


@router.post("/terrain-types", response_model=TerrainTypeResponse, status_code=201)
def create_terrain_type(payload: TerrainTypeCreate, session: Session = Depends(get_session)):
    """Create a terrain type; names are unique"""
    terrain = TerrainType(**payload.model_dump())
    session.add(terrain)
    try:
        session.commit()
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"Terrain type '{payload.name}' already exists")
    session.refresh(terrain)
    return terrain
