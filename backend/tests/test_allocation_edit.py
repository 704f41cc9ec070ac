"""
Tests for manual reassign and swap

1. The one-table-per-round invariant holds after every edit
2. Rejected edits leave the round untouched
3. Each write gets a fresh audit record and an audit log entry
4. Stale revisions are refused
"""

from collections import Counter

import pytest
from sqlmodel import Session, select

from tests.helpers import make_tournament, pair
from tournament_tables.models.allocation import Allocation
from tournament_tables.models.allocation_audit import AllocationAuditEntry
from tournament_tables.models.game_table import GameTable
from tournament_tables.models.player import Player
from tournament_tables.services.allocation_edit import (
    AllocationEditService,
    AllocationEditValidationError,
    AllocationNotFoundError,
    ConcurrentEditError,
    TableOccupiedError,
)
from tournament_tables.services.allocation_generation import generate_round, list_round_allocations
from tournament_tables.services.allocation_types import CONFLICT_TABLE_REUSE


def by_player1(session: Session, tournament_id: int, round_number: int):
    return {
        session.get(Player, a.player1_id).external_id: a
        for a in list_round_allocations(session, tournament_id, round_number)
    }


def table_number(session: Session, allocation_id: int):
    allocation = session.get(Allocation, allocation_id)
    session.refresh(allocation)
    if allocation.table_id is None:
        return None
    return session.get(GameTable, allocation.table_id).table_number


@pytest.fixture
def round_one(session: Session):
    """4 tables (4 = Volkus); round 1: a/b on 1, c/d on 2, e has a bye"""
    tournament = make_tournament(session, 4, terrains={4: "Volkus"})
    generate_round(session, tournament.id, 1, [pair("a", "b", 1), pair("c", "d", 2), pair("e", None)])
    allocations = by_player1(session, tournament.id, 1)
    return {"tournament_id": tournament.id, **{k: v.id for k, v in allocations.items()}}


# ============================================================================
# Reassign
# ============================================================================


def test_reassign_to_free_table(session: Session, round_one):
    service = AllocationEditService(session)

    result = service.reassign(round_one["a"], 3)

    assert result.success
    assert [(a.allocation_id, a.table_number) for a in result.allocations] == [(round_one["a"], 3)]
    assert table_number(session, round_one["a"]) == 3

    allocation = session.get(Allocation, round_one["a"])
    assert allocation.revision == 2
    reason = allocation.allocation_reason
    assert reason["reasons"][0] == "Manual reassignment from table 1 to table 3"
    assert reason["cost_breakdown"] == {"table_reuse": 0, "terrain_reuse": 0, "bcp_mismatch": 1}
    assert reason["is_round1"] is True

    entries = session.exec(
        select(AllocationAuditEntry).where(AllocationAuditEntry.allocation_id == round_one["a"])
    ).all()
    assert [e.action for e in entries] == ["GENERATE", "REASSIGN"]


def test_reassign_to_occupied_table_is_rejected(session: Session, round_one):
    service = AllocationEditService(session)

    with pytest.raises(TableOccupiedError) as exc_info:
        service.reassign(round_one["a"], 2)

    assert exc_info.value.occupant_allocation_id == round_one["c"]
    assert table_number(session, round_one["a"]) == 1
    assert session.get(Allocation, round_one["a"]).revision == 1


def test_reassign_to_unknown_table_is_rejected(session: Session, round_one):
    with pytest.raises(AllocationEditValidationError):
        AllocationEditService(session).reassign(round_one["a"], 99)


def test_reassign_bye_is_rejected(session: Session, round_one):
    with pytest.raises(AllocationEditValidationError):
        AllocationEditService(session).reassign(round_one["e"], 3)

    assert table_number(session, round_one["e"]) is None


def test_reassign_missing_allocation(session: Session, round_one):
    with pytest.raises(AllocationNotFoundError):
        AllocationEditService(session).reassign(9999, 3)


def test_reassign_with_stale_revision_is_refused(session: Session, round_one):
    service = AllocationEditService(session)
    service.reassign(round_one["a"], 3, expected_revision=1)

    with pytest.raises(ConcurrentEditError):
        service.reassign(round_one["a"], 4, expected_revision=1)

    assert table_number(session, round_one["a"]) == 3


def test_reassign_reports_reuse_conflicts(session: Session, round_one):
    tournament_id = round_one["tournament_id"]
    generate_round(
        session,
        tournament_id,
        2,
        [pair("a", "c", total_a=3, total_b=3), pair("b", "d")],
    )
    round_two = by_player1(session, tournament_id, 2)
    assert table_number(session, round_two["a"].id) == 3

    result = AllocationEditService(session).reassign(round_two["a"].id, 1)

    conflicts = result.conflicts
    assert [(c.type, c.player_id, c.message) for c in conflicts] == [
        (CONFLICT_TABLE_REUSE, "a", "A previously played on table 1")
    ]
    reason = session.get(Allocation, round_two["a"].id).allocation_reason
    assert reason["cost_breakdown"] == {"table_reuse": 100000, "terrain_reuse": 0, "bcp_mismatch": 0}
    assert reason["is_round1"] is False


# ============================================================================
# Swap
# ============================================================================


def test_swap_exchanges_tables(session: Session, round_one):
    before = Counter(
        a.table_id for a in session.exec(select(Allocation)).all() if a.table_id is not None
    )

    result = AllocationEditService(session).swap(round_one["a"], round_one["c"])

    assert result.success
    assert {a.allocation_id: a.table_number for a in result.allocations} == {
        round_one["a"]: 2,
        round_one["c"]: 1,
    }
    assert table_number(session, round_one["a"]) == 2
    assert table_number(session, round_one["c"]) == 1

    session.expire_all()
    after = Counter(
        a.table_id for a in session.exec(select(Allocation)).all() if a.table_id is not None
    )
    assert before == after

    a = session.get(Allocation, round_one["a"])
    assert a.revision == 2
    assert a.allocation_reason["reasons"][0] == f"Swapped with allocation {round_one['c']}: table 1 -> 2"

    actions = session.exec(select(AllocationAuditEntry.action)).all()
    assert actions.count("SWAP") == 2


def test_swap_with_itself_is_rejected(session: Session, round_one):
    with pytest.raises(AllocationEditValidationError):
        AllocationEditService(session).swap(round_one["a"], round_one["a"])


def test_swap_with_bye_is_rejected(session: Session, round_one):
    with pytest.raises(AllocationEditValidationError):
        AllocationEditService(session).swap(round_one["a"], round_one["e"])

    assert table_number(session, round_one["a"]) == 1


def test_swap_across_rounds_is_rejected(session: Session, round_one):
    tournament_id = round_one["tournament_id"]
    generate_round(session, tournament_id, 2, [pair("a", "c"), pair("b", "d")])
    round_two = by_player1(session, tournament_id, 2)

    with pytest.raises(AllocationEditValidationError):
        AllocationEditService(session).swap(round_one["a"], round_two["b"].id)


def test_swap_with_stale_revision_is_refused(session: Session, round_one):
    service = AllocationEditService(session)

    with pytest.raises(ConcurrentEditError):
        service.swap(round_one["a"], round_one["c"], expected_revisions=(1, 7))

    assert table_number(session, round_one["a"]) == 1
    assert table_number(session, round_one["c"]) == 2
