"""
Table Collision Detector

A collision is one table assigned to more than one allocation in the same
round. The (round_id, table_id) unique constraint prevents this for rows
written through this package; the detector lets operators verify it on a
database that may have been edited by hand or migrated from elsewhere.
Byes and unseated allocations (table_id NULL) never collide.
"""

import logging
from collections import defaultdict
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Tuple

from sqlmodel import Session, select

from tournament_tables.models.allocation import Allocation
from tournament_tables.models.game_table import GameTable

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TableCollision:
    table_id: int
    table_number: Optional[int]
    allocation_ids: Tuple[int, ...]

    def to_dict(self):
        return {
            "table_id": self.table_id,
            "table_number": self.table_number,
            "allocation_ids": list(self.allocation_ids),
        }


def group_collisions(rows: Iterable[Tuple[int, Optional[int], Optional[int]]]) -> List[TableCollision]:
    """
    Group ``(allocation_id, table_id, table_number)`` rows into collisions.

    Result is sorted by table number (unknown numbers last), then table id.
    """
    by_table: Dict[int, List[int]] = defaultdict(list)
    numbers: Dict[int, Optional[int]] = {}
    for allocation_id, table_id, table_number in rows:
        if table_id is None:
            continue
        by_table[table_id].append(allocation_id)
        numbers[table_id] = table_number

    collisions = [
        TableCollision(table_id, numbers[table_id], tuple(sorted(ids)))
        for table_id, ids in by_table.items()
        if len(ids) > 1
    ]
    collisions.sort(key=lambda c: (c.table_number is None, c.table_number or 0, c.table_id))
    return collisions


class TableCollisionDetector:
    def __init__(self, session: Session):
        self.session = session

    def _rows(self, round_id: int):
        return self.session.exec(
            select(Allocation.id, Allocation.table_id, GameTable.table_number)
            .select_from(Allocation)
            .outerjoin(GameTable, Allocation.table_id == GameTable.id)
            .where(Allocation.round_id == round_id, Allocation.table_id.is_not(None))
        ).all()

    def get_collisions(self, round_id: int) -> List[TableCollision]:
        collisions = group_collisions(self._rows(round_id))
        if collisions:
            logger.warning("Round %s has %d table collision(s)", round_id, len(collisions))
        return collisions

    def has_collisions(self, round_id: int) -> bool:
        return bool(self.get_collisions(round_id))

    def collision_count(self, round_id: int) -> int:
        return len(self.get_collisions(round_id))

    def has_table_collision(self, round_id: int, table_id: int) -> bool:
        ids = self.session.exec(
            select(Allocation.id).where(Allocation.round_id == round_id, Allocation.table_id == table_id)
        ).all()
        return len(ids) > 1
