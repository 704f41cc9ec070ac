#!/usr/bin/env python3
"""Check that the allocation schema exists and no round has a doubly-used table"""

import sys

from sqlalchemy import inspect
from sqlmodel import Session, select

from tournament_tables.database import engine
from tournament_tables.models.round import Round
from tournament_tables.services.table_collisions import TableCollisionDetector

REQUIRED_TABLES = ["tournament", "terraintype", "gametable", "player", "round", "allocation", "allocationauditentry"]


def check_tables() -> bool:
    existing_tables = inspect(engine).get_table_names()

    print(f"Database: {engine.url}")
    missing = [t for t in REQUIRED_TABLES if t not in existing_tables]
    for table in REQUIRED_TABLES:
        print(f"{'ok' if table not in missing else 'MISSING':8} {table}")

    if missing:
        print("Run migrations with: alembic upgrade head")
        return False
    return True


def check_collisions() -> bool:
    clean = True
    with Session(engine) as session:
        detector = TableCollisionDetector(session)
        for round_ in session.exec(select(Round).order_by(Round.tournament_id, Round.round_number)).all():
            for collision in detector.get_collisions(round_.id):
                clean = False
                print(
                    f"Tournament {round_.tournament_id} round {round_.round_number}: "
                    f"table {collision.table_number} used by allocations {list(collision.allocation_ids)}"
                )
    return clean


if __name__ == "__main__":
    success = check_tables() and check_collisions()
    sys.exit(0 if success else 1)
