from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_tables.models.allocation import Allocation
    from tournament_tables.models.tournament import Tournament


class Round(SQLModel, table=True):
    __table_args__ = (
        SAUniqueConstraint("tournament_id", "round_number", name="uq_round_tournament_number"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    round_number: int
    is_published: bool = Field(default=False)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    tournament: "Tournament" = Relationship(back_populates="rounds")
    allocations: List["Allocation"] = Relationship(back_populates="round")
