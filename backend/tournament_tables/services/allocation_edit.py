"""
Manual Allocation Editor: reassign or swap tables after generation

Hard invariants enforced here:

1. **Same tournament**: the target table must belong to the round's tournament
2. **One table per round**: no two allocations of a round share a table
3. **Same round swaps**: both sides of a swap must be in the same round
4. **Seated only**: byes and unseated pairings cannot be moved or swapped

Reuse conflicts (TABLE_REUSE / TERRAIN_REUSE) are recomputed from history
and reported, never blocking.

Every write is a read-check-write inside one transaction. Each row carries a
revision that the UPDATE compares and bumps, and the database holds a unique
(round_id, table_id) constraint, so two concurrent edits cannot both land
and leave a duplicate table behind. The loser gets ConcurrentEditError or
TableOccupiedError and nothing is written.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Dict, List, Optional, Tuple

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from tournament_tables.models.allocation import Allocation
from tournament_tables.models.allocation_audit import AllocationAuditEntry
from tournament_tables.models.game_table import GameTable
from tournament_tables.models.player import Player
from tournament_tables.models.round import Round
from tournament_tables.models.terrain_type import TerrainType
from tournament_tables.services.allocation_types import (
    CONFLICT_TABLE_REUSE,
    CONFLICT_TERRAIN_REUSE,
    AdjustedAllocation,
    AdjustmentResult,
    AuditRecord,
    Conflict,
)
from tournament_tables.services.cost_model import (
    COST_TABLE_REUSE,
    COST_TERRAIN_REUSE,
    table_reuse_reason,
    terrain_reuse_reason,
)
from tournament_tables.services.tournament_history import DatabaseHistory, HistoryProvider

logger = logging.getLogger(__name__)

AUDIT_ACTION_REASSIGN = "REASSIGN"
AUDIT_ACTION_SWAP = "SWAP"


class AllocationEditError(Exception):
    """Base exception for manual allocation edits"""

    pass


class AllocationEditValidationError(AllocationEditError):
    """Edit rejected by validation"""

    pass


class AllocationNotFoundError(AllocationEditValidationError):
    """Allocation, round or table does not exist"""

    pass


class TableOccupiedError(AllocationEditError):
    """Target table is already used by another allocation in the round"""

    def __init__(self, message: str, occupant_allocation_id: Optional[int] = None):
        super().__init__(message)
        self.occupant_allocation_id = occupant_allocation_id


class ConcurrentEditError(AllocationEditError):
    """The allocation changed since it was read"""

    pass


class AllocationEditService:
    """Reassign and swap on an already-generated round."""

    def __init__(self, session: Session):
        self.session = session

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def reassign(
        self,
        allocation_id: int,
        new_table_number: int,
        expected_revision: Optional[int] = None,
    ) -> AdjustmentResult:
        """
        Move one allocation to ``new_table_number``.

        Raises:
            AllocationNotFoundError: allocation or its round missing
            AllocationEditValidationError: table outside tournament, bye allocation
            TableOccupiedError: another allocation of the round holds the table
            ConcurrentEditError: revision mismatch
        """
        session = self.session
        try:
            allocation = self._require_allocation(allocation_id)
            round_ = self._require_round(allocation.round_id)

            if allocation.is_bye:
                raise AllocationEditValidationError("Bye allocations cannot be assigned a table")

            table = session.exec(
                select(GameTable).where(
                    GameTable.tournament_id == round_.tournament_id,
                    GameTable.table_number == new_table_number,
                )
            ).first()
            if table is None:
                raise AllocationEditValidationError(f"Table {new_table_number} does not belong to this tournament")

            occupant = session.exec(
                select(Allocation).where(
                    Allocation.round_id == round_.id,
                    Allocation.table_id == table.id,
                    Allocation.id != allocation.id,
                )
            ).first()
            if occupant is not None:
                raise TableOccupiedError(
                    f"Table {new_table_number} is already assigned in this round", occupant.id
                )

            self._check_revision(allocation, expected_revision)

            old_number = self._table_number(allocation.table_id)
            history = DatabaseHistory(session, round_.tournament_id, round_.round_number)
            conflicts = self.calculate_conflicts(allocation, table, history)
            audit = self._edit_audit(
                allocation,
                round_,
                table,
                conflicts,
                f"Manual reassignment from table {old_number if old_number is not None else '-'} "
                f"to table {table.table_number}",
            )

            self._write(allocation.id, allocation.revision, table.id, audit)
            self._append_audit(allocation.id, round_.id, AUDIT_ACTION_REASSIGN, audit)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise TableOccupiedError(f"Table {new_table_number} was taken by a concurrent edit") from e
        except AllocationEditError:
            session.rollback()
            raise
        except Exception:
            session.rollback()
            logger.exception("Reassign of allocation %s rolled back", allocation_id)
            raise

        logger.info(
            "Allocation %s reassigned to table %d with %d conflict(s)", allocation_id, new_table_number, len(conflicts)
        )
        return AdjustmentResult(
            success=True,
            allocations=[AdjustedAllocation(allocation_id, new_table_number, conflicts)],
        )

    def swap(
        self,
        allocation_id_1: int,
        allocation_id_2: int,
        expected_revisions: Optional[Tuple[int, int]] = None,
    ) -> AdjustmentResult:
        """
        Exchange the tables of two allocations in the same round, atomically.

        Raises:
            AllocationEditValidationError: self-swap, different rounds, unseated side
            AllocationNotFoundError: either allocation missing
            ConcurrentEditError: either side changed since it was read
        """
        if allocation_id_1 == allocation_id_2:
            raise AllocationEditValidationError("Cannot swap an allocation with itself")

        session = self.session
        try:
            first = self._require_allocation(allocation_id_1)
            second = self._require_allocation(allocation_id_2)

            if first.round_id != second.round_id:
                raise AllocationEditValidationError("Both allocations must be in the same round")
            if first.table_id is None or second.table_id is None:
                raise AllocationEditValidationError("Both allocations must be seated at a table to swap")

            round_ = self._require_round(first.round_id)
            if expected_revisions is not None:
                self._check_revision(first, expected_revisions[0])
                self._check_revision(second, expected_revisions[1])

            table_1 = session.get(GameTable, first.table_id)
            table_2 = session.get(GameTable, second.table_id)

            history = DatabaseHistory(session, round_.tournament_id, round_.round_number)
            conflicts_1 = self.calculate_conflicts(first, table_2, history)
            conflicts_2 = self.calculate_conflicts(second, table_1, history)

            audit_1 = self._edit_audit(
                first, round_, table_2, conflicts_1,
                f"Swapped with allocation {second.id}: table {table_1.table_number} -> {table_2.table_number}",
            )
            audit_2 = self._edit_audit(
                second, round_, table_1, conflicts_2,
                f"Swapped with allocation {first.id}: table {table_2.table_number} -> {table_1.table_number}",
            )

            # Park the first side so the (round_id, table_id) constraint holds at every step
            self._write(first.id, first.revision, None, None, bump=False)
            self._write(second.id, second.revision, table_1.id, audit_2)
            self._write(first.id, first.revision, table_2.id, audit_1)

            self._append_audit(first.id, round_.id, AUDIT_ACTION_SWAP, audit_1)
            self._append_audit(second.id, round_.id, AUDIT_ACTION_SWAP, audit_2)
            session.commit()
        except IntegrityError as e:
            session.rollback()
            raise ConcurrentEditError("Swap collided with a concurrent edit") from e
        except AllocationEditError:
            session.rollback()
            raise
        except Exception:
            session.rollback()
            logger.exception("Swap of allocations %s and %s rolled back", allocation_id_1, allocation_id_2)
            raise

        logger.info(
            "Swapped allocations %s (now table %d) and %s (now table %d)",
            allocation_id_1,
            table_2.table_number,
            allocation_id_2,
            table_1.table_number,
        )
        return AdjustmentResult(
            success=True,
            allocations=[
                AdjustedAllocation(allocation_id_1, table_2.table_number, conflicts_1),
                AdjustedAllocation(allocation_id_2, table_1.table_number, conflicts_2),
            ],
        )

    # ------------------------------------------------------------------
    # Conflict recomputation
    # ------------------------------------------------------------------

    def calculate_conflicts(
        self,
        allocation: Allocation,
        table: GameTable,
        history: HistoryProvider,
    ) -> List[Conflict]:
        """Table/terrain reuse for both players of ``allocation`` at ``table``."""
        players = [self.session.get(Player, allocation.player1_id)]
        if allocation.player2_id is not None:
            players.append(self.session.get(Player, allocation.player2_id))
        players = [p for p in players if p is not None]

        conflicts: List[Conflict] = []
        for player in players:
            if history.has_player_used_table(player.external_id, table.table_number):
                conflicts.append(
                    Conflict(CONFLICT_TABLE_REUSE, table_reuse_reason(player.name, table.table_number), player.external_id)
                )

        if table.terrain_type_id is not None:
            terrain = self.session.get(TerrainType, table.terrain_type_id)
            for player in players:
                if history.has_player_experienced_terrain(player.external_id, table.terrain_type_id):
                    conflicts.append(
                        Conflict(
                            CONFLICT_TERRAIN_REUSE,
                            terrain_reuse_reason(player.name, terrain.name if terrain else None, table.terrain_type_id),
                            player.external_id,
                        )
                    )
        return conflicts

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _require_allocation(self, allocation_id: int) -> Allocation:
        allocation = self.session.get(Allocation, allocation_id)
        if allocation is None:
            raise AllocationNotFoundError(f"Allocation {allocation_id} not found")
        return allocation

    def _require_round(self, round_id: int) -> Round:
        round_ = self.session.get(Round, round_id)
        if round_ is None:
            raise AllocationNotFoundError(f"Round {round_id} not found")
        return round_

    def _table_number(self, table_id: Optional[int]) -> Optional[int]:
        if table_id is None:
            return None
        table = self.session.get(GameTable, table_id)
        return table.table_number if table else None

    @staticmethod
    def _check_revision(allocation: Allocation, expected_revision: Optional[int]) -> None:
        if expected_revision is not None and allocation.revision != expected_revision:
            raise ConcurrentEditError(
                f"Allocation {allocation.id} is at revision {allocation.revision}, expected {expected_revision}"
            )

    @staticmethod
    def _edit_audit(
        allocation: Allocation,
        round_: Round,
        table: GameTable,
        conflicts: List[Conflict],
        summary: str,
    ) -> AuditRecord:
        table_reuse = sum(COST_TABLE_REUSE for c in conflicts if c.type == CONFLICT_TABLE_REUSE)
        terrain_reuse = sum(COST_TERRAIN_REUSE for c in conflicts if c.type == CONFLICT_TERRAIN_REUSE)
        bcp_mismatch = int(
            allocation.suggested_table_number is not None
            and allocation.suggested_table_number != table.table_number
        )
        breakdown: Dict[str, int] = {
            "table_reuse": table_reuse,
            "terrain_reuse": terrain_reuse,
            "bcp_mismatch": bcp_mismatch,
        }
        return AuditRecord.create(
            total_cost=table_reuse + terrain_reuse + bcp_mismatch,
            cost_breakdown=breakdown,
            reasons=[summary] + [c.message for c in conflicts],
            is_round1=round_.round_number == 1,
            conflicts=conflicts,
        )

    def _write(
        self,
        allocation_id: int,
        revision: int,
        table_id: Optional[int],
        audit: Optional[AuditRecord],
        bump: bool = True,
    ) -> None:
        """Compare-and-swap on revision; raises ConcurrentEditError if the row moved."""
        values = {"table_id": table_id, "updated_at": datetime.utcnow()}
        if audit is not None:
            values["allocation_reason"] = audit.to_dict()
        if bump:
            values["revision"] = revision + 1

        result = self.session.exec(
            update(Allocation)
            .where(Allocation.id == allocation_id, Allocation.revision == revision)
            .values(**values)
        )
        if result.rowcount != 1:
            raise ConcurrentEditError(f"Allocation {allocation_id} was modified concurrently")

    def _append_audit(self, allocation_id: int, round_id: int, action: str, audit: AuditRecord) -> None:
        self.session.add(
            AllocationAuditEntry(
                allocation_id=allocation_id,
                round_id=round_id,
                action=action,
                reason=audit.to_dict(),
            )
        )
