from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, Optional

from sqlalchemy import JSON, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_tables.models.game_table import GameTable
    from tournament_tables.models.round import Round


class Allocation(SQLModel, table=True):
    """Persisted table assignment for one pairing in one round.

    table_id is NULL for byes and for pairings that could not be seated.
    NULLs never collide under the (round_id, table_id) constraint, so the
    one-table-per-round invariant is enforced by the database for seated
    allocations only.
    """

    __table_args__ = (
        SAUniqueConstraint("round_id", "table_id", name="uq_allocation_round_table"),
    )

    id: Optional[int] = Field(default=None, primary_key=True)
    round_id: int = Field(foreign_key="round.id", index=True)
    table_id: Optional[int] = Field(default=None, foreign_key="gametable.id")
    player1_id: int = Field(foreign_key="player.id")
    player2_id: Optional[int] = Field(default=None, foreign_key="player.id")
    player1_score: int = Field(default=0)
    player2_score: int = Field(default=0)
    suggested_table_number: Optional[int] = Field(default=None)  # from the pairing source
    allocation_reason: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))

    # Bumped on every write; edits compare-and-swap on it
    revision: int = Field(default=1)
    updated_at: datetime = Field(default_factory=datetime.utcnow)

    # Relationships
    round: "Round" = Relationship(back_populates="allocations")
    table: Optional["GameTable"] = Relationship()

    @property
    def is_bye(self) -> bool:
        return self.player2_id is None

    def get_conflicts(self) -> list:
        if not self.allocation_reason:
            return []
        return list(self.allocation_reason.get("conflicts", []))
