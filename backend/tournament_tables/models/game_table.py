from typing import TYPE_CHECKING, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_tables.models.terrain_type import TerrainType
    from tournament_tables.models.tournament import Tournament


class GameTable(SQLModel, table=True):
    """A physical table. Numbers are unique per tournament and stable across rounds."""

    __tablename__ = "gametable"
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "table_number", name="uq_gametable_tournament_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    table_number: int
    terrain_type_id: Optional[int] = Field(default=None, foreign_key="terraintype.id")

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="tables")
    terrain_type: Optional["TerrainType"] = Relationship()
