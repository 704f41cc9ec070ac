"""
Allocation Engine: assign pairings to tables for one round

Two modes, chosen only by round number:

Round 1 (pass-through):
- Use the table the pairing source suggested
- Missing, unknown or already-claimed suggestions fall back to the lowest
  unclaimed table
- Out of tables -> NO_TABLE_AVAILABLE conflict, pairing left unseated

Round 2+ (greedy):
- Stable sort: combined tournament score DESC, min player id ASC, input position ASC
- Each pairing takes the cheapest unclaimed table (see cost_model)
- Exact-cost ties go to the suggested table, else the lowest table number
- Reuse conflicts are reported, never blocking

Byes never get a table and are appended after all regular pairings in
their input order.

Not a global optimizer: pairings are processed once, in priority order,
without backtracking. Same inputs -> same outputs regardless of the order
pairings or tables are supplied in.
"""

from __future__ import annotations

import logging
from typing import Dict, List, Optional, Sequence, Set, Tuple

from tournament_tables.services.allocation_types import (
    CONFLICT_NO_TABLE_AVAILABLE,
    CONFLICT_TABLE_REUSE,
    CONFLICT_TERRAIN_REUSE,
    AllocationDecision,
    AllocationResult,
    AuditRecord,
    Conflict,
    utc_now,
)
from tournament_tables.services.cost_model import CostResult, calculate_cost, detect_conflicts
from tournament_tables.services.pairing import Pairing, TableInfo
from tournament_tables.services.tournament_history import HistoryProvider

logger = logging.getLogger(__name__)

BYE_REASON = "Bye - no opponent this round"


class AllocationError(Exception):
    """Base exception for allocation engine errors"""

    pass


class AllocationInputError(AllocationError):
    """Tables or pairings are malformed"""

    pass


class AllocationCapacityError(AllocationError):
    """More pairings left to seat than tables left to give them"""

    pass


def get_pairing_sort_key(indexed: Tuple[int, Pairing]) -> Tuple:
    """
    Deterministic priority key for greedy mode.

    Order: combined total score (desc) -> min player id (asc) -> input position

    The input position only matters when two pairings share both the score
    and the min player id, which cannot happen for well-formed input.
    """
    index, pairing = indexed
    return (-pairing.combined_total_score, pairing.min_player_id, index)


def sort_pairings(pairings: Sequence[Pairing]) -> List[Pairing]:
    """Regular pairings in the order they get to pick tables."""
    return [p for _, p in sorted(enumerate(pairings), key=get_pairing_sort_key)]


def _zero_breakdown() -> Dict[str, int]:
    return {"table_reuse": 0, "terrain_reuse": 0, "table_number": 0}


def build_summary(conflicts: Sequence[Conflict]) -> str:
    """One-line operator summary for a greedy run."""
    table_reuse_count = sum(1 for c in conflicts if c.type == CONFLICT_TABLE_REUSE)
    terrain_reuse_count = sum(1 for c in conflicts if c.type == CONFLICT_TERRAIN_REUSE)

    if table_reuse_count == 0 and terrain_reuse_count == 0:
        return "All allocations optimal - no constraint violations."

    parts = []
    if table_reuse_count:
        parts.append(f"{table_reuse_count} table reuse conflict(s)")
    if terrain_reuse_count:
        parts.append(f"{terrain_reuse_count} terrain reuse conflict(s)")
    return "Best effort allocation with " + ", ".join(parts) + "."


class AllocationEngine:
    """Generates the table allocations for a round. Holds no state between calls."""

    def generate(
        self,
        pairings: Sequence[Pairing],
        tables: Sequence[TableInfo],
        round_number: int,
        history: HistoryProvider,
    ) -> AllocationResult:
        """
        Allocate every pairing of ``round_number``.

        Args:
            pairings: Pairings for the round, byes included
            tables: Every table of the tournament
            round_number: Round being generated (1-based)
            history: Provider scoped to this tournament and round

        Returns:
            AllocationResult with one decision per pairing (byes last)

        Raises:
            AllocationInputError: duplicate table numbers
            AllocationCapacityError: greedy mode ran out of tables
        """
        sorted_tables = self._sorted_tables(tables)

        regular = [p for p in pairings if not p.is_bye]
        byes = [p for p in pairings if p.is_bye]
        is_round1 = round_number <= 1

        logger.info(
            "Generating round %d: %d pairing(s), %d bye(s), %d table(s), mode=%s",
            round_number,
            len(regular),
            len(byes),
            len(sorted_tables),
            "pass-through" if is_round1 else "greedy",
        )

        if is_round1:
            result = self._generate_round1(regular, sorted_tables)
        else:
            result = self._generate_greedy(regular, sorted_tables, history)

        for bye in byes:
            result.allocations.append(self._bye_decision(bye, is_round1))

        logger.info("Round %d allocation: %s", round_number, result.summary)
        return result

    # ------------------------------------------------------------------
    # Round 1
    # ------------------------------------------------------------------

    def _generate_round1(self, pairings: Sequence[Pairing], tables: List[TableInfo]) -> AllocationResult:
        by_number = {t.table_number: t for t in tables}
        claimed: Set[int] = set()
        timestamp = utc_now()
        allocations: List[AllocationDecision] = []
        conflicts: List[Conflict] = []

        for pairing in pairings:
            table_number = pairing.suggested_table
            reason = "Round 1 - using the suggested table assignment"
            pairing_conflicts: List[Conflict] = []

            needs_reassignment = True
            if table_number is None:
                reason = "Round 1 - suggested table missing, assigned next available"
            elif table_number not in by_number:
                reason = f"Round 1 - suggested table {table_number} not in tournament tables, assigned next available"
            elif table_number in claimed:
                reason = f"Round 1 - suggested table {table_number} already assigned, assigned next available"
            else:
                needs_reassignment = False

            if needs_reassignment:
                table_number = next((t.table_number for t in tables if t.table_number not in claimed), None)
                if table_number is None:
                    conflict = Conflict(
                        CONFLICT_NO_TABLE_AVAILABLE,
                        f"No available tables for pairing {pairing.describe()}",
                        pairing.player1_id,
                    )
                    pairing_conflicts.append(conflict)
                    conflicts.append(conflict)
                    reason = "Round 1 - no table available"
                    logger.warning("Round 1: no table left for %s", pairing.describe())
                else:
                    logger.warning("Round 1: %s -> table %d (%s)", pairing.describe(), table_number, reason)

            if table_number is not None:
                claimed.add(table_number)

            table = by_number.get(table_number) if table_number is not None else None
            allocations.append(
                AllocationDecision(
                    table_number=table_number,
                    terrain_type=table.terrain_type_name if table else None,
                    player1=pairing.player1_snapshot(),
                    player2=pairing.player2_snapshot(),
                    suggested_table=pairing.suggested_table,
                    audit=AuditRecord.create(
                        timestamp=timestamp,
                        total_cost=0,
                        cost_breakdown=_zero_breakdown(),
                        reasons=[reason],
                        is_round1=True,
                        conflicts=pairing_conflicts,
                    ),
                )
            )

        if conflicts:
            summary = f"Round 1 allocations generated with {len(conflicts)} conflict(s)."
        else:
            summary = "Round 1 allocations use the suggested table assignments."
        return AllocationResult(allocations=allocations, conflicts=conflicts, summary=summary)

    # ------------------------------------------------------------------
    # Round 2+
    # ------------------------------------------------------------------

    def _generate_greedy(
        self,
        pairings: Sequence[Pairing],
        tables: List[TableInfo],
        history: HistoryProvider,
    ) -> AllocationResult:
        ordered = sort_pairings(pairings)
        claimed: Set[int] = set()
        allocations: List[AllocationDecision] = []
        conflicts: List[Conflict] = []

        for position, pairing in enumerate(ordered):
            remaining_pairings = len(ordered) - position
            remaining_tables = len(tables) - len(claimed)
            if remaining_pairings > remaining_tables:
                raise AllocationCapacityError(
                    f"{remaining_pairings} pairing(s) left to seat but only {remaining_tables} table(s) unclaimed"
                )

            decision = self._allocate_pairing(pairing, tables, claimed, history)
            claimed.add(decision.table_number)
            allocations.append(decision)
            conflicts.extend(decision.conflicts)

        return AllocationResult(allocations=allocations, conflicts=conflicts, summary=build_summary(conflicts))

    def _allocate_pairing(
        self,
        pairing: Pairing,
        tables: List[TableInfo],
        claimed: Set[int],
        history: HistoryProvider,
    ) -> AllocationDecision:
        best_table: Optional[TableInfo] = None
        best_cost: Optional[CostResult] = None
        alternatives: Dict[int, int] = {}

        # tables are sorted ascending, so a plain "<" keeps the lowest number on ties
        for table in tables:
            if table.table_number in claimed:
                continue

            cost = calculate_cost(pairing, table, history)
            alternatives[table.table_number] = cost.total_cost

            if (
                best_cost is None
                or cost.total_cost < best_cost.total_cost
                or (cost.total_cost == best_cost.total_cost and table.table_number == pairing.suggested_table)
            ):
                best_table, best_cost = table, cost

        if best_table is None:
            raise AllocationCapacityError(f"No unclaimed table left for {pairing.describe()}")

        del alternatives[best_table.table_number]
        pairing_conflicts = detect_conflicts(best_cost)

        logger.debug(
            "%s -> table %d (cost %d, %d alternative(s))",
            pairing.describe(),
            best_table.table_number,
            best_cost.total_cost,
            len(alternatives),
        )

        return AllocationDecision(
            table_number=best_table.table_number,
            terrain_type=best_table.terrain_type_name,
            player1=pairing.player1_snapshot(),
            player2=pairing.player2_snapshot(),
            suggested_table=pairing.suggested_table,
            audit=AuditRecord.create(
                total_cost=best_cost.total_cost,
                cost_breakdown=best_cost.breakdown,
                reasons=list(best_cost.reasons),
                alternatives=alternatives,
                is_round1=False,
                conflicts=pairing_conflicts,
            ),
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _sorted_tables(tables: Sequence[TableInfo]) -> List[TableInfo]:
        numbers = [t.table_number for t in tables]
        if len(numbers) != len(set(numbers)):
            raise AllocationInputError("Duplicate table numbers detected")
        return sorted(tables, key=lambda t: t.table_number)

    @staticmethod
    def _bye_decision(pairing: Pairing, is_round1: bool) -> AllocationDecision:
        return AllocationDecision(
            table_number=None,
            terrain_type=None,
            player1=pairing.player1_snapshot(),
            player2=None,
            suggested_table=None,
            audit=AuditRecord.create(
                total_cost=0,
                cost_breakdown=_zero_breakdown(),
                reasons=[BYE_REASON],
                is_round1=is_round1,
                is_bye=True,
            ),
        )
