"""Initial schema: tournaments, tables, terrain types, players, rounds, allocations

Revision ID: 001_initial
Revises:
Create Date: 2026-10-16 00:00:00.000000

"""

import sqlalchemy as sa

from alembic import op

# revision identifiers, used by Alembic.
revision = "001_initial"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tournament",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("bcp_event_id", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_tournament_bcp_event_id", "tournament", ["bcp_event_id"])

    op.create_table(
        "terraintype",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("description", sa.String(), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )

    op.create_table(
        "gametable",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("table_number", sa.Integer(), nullable=False),
        sa.Column("terrain_type_id", sa.Integer(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.ForeignKeyConstraint(["terrain_type_id"], ["terraintype.id"]),
        sa.UniqueConstraint("tournament_id", "table_number", name="uq_gametable_tournament_number"),
    )
    op.create_index("ix_gametable_tournament_id", "gametable", ["tournament_id"])

    op.create_table(
        "player",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("external_id", sa.String(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("total_score", sa.Integer(), nullable=False, server_default="0"),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.UniqueConstraint("tournament_id", "external_id", name="uq_player_tournament_external"),
    )
    op.create_index("ix_player_tournament_id", "player", ["tournament_id"])

    op.create_table(
        "round",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("tournament_id", sa.Integer(), nullable=False),
        sa.Column("round_number", sa.Integer(), nullable=False),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["tournament_id"], ["tournament.id"]),
        sa.UniqueConstraint("tournament_id", "round_number", name="uq_round_tournament_number"),
    )
    op.create_index("ix_round_tournament_id", "round", ["tournament_id"])

    op.create_table(
        "allocation",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("table_id", sa.Integer(), nullable=True),
        sa.Column("player1_id", sa.Integer(), nullable=False),
        sa.Column("player2_id", sa.Integer(), nullable=True),
        sa.Column("player1_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("player2_score", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("suggested_table_number", sa.Integer(), nullable=True),
        sa.Column("allocation_reason", sa.JSON(), nullable=True),
        sa.Column("revision", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.ForeignKeyConstraint(["round_id"], ["round.id"]),
        sa.ForeignKeyConstraint(["table_id"], ["gametable.id"]),
        sa.ForeignKeyConstraint(["player1_id"], ["player.id"]),
        sa.ForeignKeyConstraint(["player2_id"], ["player.id"]),
        sa.UniqueConstraint("round_id", "table_id", name="uq_allocation_round_table"),
    )
    op.create_index("ix_allocation_round_id", "allocation", ["round_id"])

    # No foreign keys: audit rows outlive regenerated allocations
    op.create_table(
        "allocationauditentry",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("allocation_id", sa.Integer(), nullable=False),
        sa.Column("round_id", sa.Integer(), nullable=False),
        sa.Column("action", sa.String(), nullable=False),
        sa.Column("recorded_at", sa.DateTime(), nullable=False),
        sa.Column("reason", sa.JSON(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_allocationauditentry_allocation_id", "allocationauditentry", ["allocation_id"])
    op.create_index("ix_allocationauditentry_round_id", "allocationauditentry", ["round_id"])


def downgrade() -> None:
    op.drop_table("allocationauditentry")
    op.drop_table("allocation")
    op.drop_table("round")
    op.drop_table("player")
    op.drop_table("gametable")
    op.drop_table("terraintype")
    op.drop_table("tournament")
