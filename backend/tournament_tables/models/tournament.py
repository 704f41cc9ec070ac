from datetime import datetime
from typing import TYPE_CHECKING, List, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from tournament_tables.models.game_table import GameTable
    from tournament_tables.models.player import Player
    from tournament_tables.models.round import Round


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    bcp_event_id: Optional[str] = Field(default=None, index=True)  # external pairing source event
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    tables: List["GameTable"] = Relationship(back_populates="tournament")
    players: List["Player"] = Relationship(back_populates="tournament")
    rounds: List["Round"] = Relationship(back_populates="tournament")
