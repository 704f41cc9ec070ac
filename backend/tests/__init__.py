# Force SQLModel table registration at test discovery time
# This ensures all models are registered before any test database creation
from tournament_tables.models.allocation import Allocation  # noqa: F401
from tournament_tables.models.allocation_audit import AllocationAuditEntry  # noqa: F401
from tournament_tables.models.game_table import GameTable  # noqa: F401
from tournament_tables.models.player import Player  # noqa: F401
from tournament_tables.models.round import Round  # noqa: F401
from tournament_tables.models.terrain_type import TerrainType  # noqa: F401
from tournament_tables.models.tournament import Tournament  # noqa: F401
