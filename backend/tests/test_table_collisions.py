"""Tests for table collision detection"""

from sqlmodel import Session, select

from tests.helpers import make_tournament, pair
from tournament_tables.models.allocation import Allocation
from tournament_tables.services.allocation_generation import generate_round
from tournament_tables.services.table_collisions import TableCollisionDetector, group_collisions


def test_group_collisions_finds_shared_tables():
    rows = [
        (1, 10, 1),
        (2, 11, 2),
        (3, 10, 1),
        (4, 12, 3),
        (5, 12, 3),
        (6, 12, 3),
        (7, None, None),
        (8, None, None),
    ]

    collisions = group_collisions(rows)

    assert [c.to_dict() for c in collisions] == [
        {"table_id": 10, "table_number": 1, "allocation_ids": [1, 3]},
        {"table_id": 12, "table_number": 3, "allocation_ids": [4, 5, 6]},
    ]


def test_group_collisions_ignores_unseated():
    assert group_collisions([(1, None, None), (2, None, None)]) == []


def test_generated_round_has_no_collisions(session: Session):
    tournament = make_tournament(session, 3)
    outcome = generate_round(session, tournament.id, 1, [pair("a", "b", 1), pair("c", "d", 1), pair("e", None)])

    detector = TableCollisionDetector(session)

    assert detector.has_collisions(outcome.round_id) is False
    assert detector.collision_count(outcome.round_id) == 0
    assert detector.get_collisions(outcome.round_id) == []

    seated = session.exec(
        select(Allocation).where(Allocation.round_id == outcome.round_id, Allocation.table_id.is_not(None))
    ).first()
    assert detector.has_table_collision(outcome.round_id, seated.table_id) is False
