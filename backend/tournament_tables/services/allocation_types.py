"""
Allocation output types shared by the engine, the edit service and the routes.

AuditRecord is a plain immutable value. It is turned into JSON only at the
storage boundary (Allocation.allocation_reason / AllocationAuditEntry.reason).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from tournament_tables.services.pairing import PlayerSnapshot

# Conflict type codes
CONFLICT_TABLE_REUSE = "TABLE_REUSE"
CONFLICT_TERRAIN_REUSE = "TERRAIN_REUSE"
CONFLICT_NO_TABLE_AVAILABLE = "NO_TABLE_AVAILABLE"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class Conflict:
    """A soft, reported violation. The message names the player and the table or terrain."""

    type: str
    message: str
    player_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": self.type, "message": self.message}
        if self.player_id is not None:
            data["player_id"] = self.player_id
        return data


@dataclass(frozen=True)
class AuditRecord:
    """Rationale for one decision. A fresh record is produced for every write."""

    timestamp: datetime
    total_cost: int
    cost_breakdown: Tuple[Tuple[str, int], ...]
    reasons: Tuple[str, ...] = ()
    alternatives_considered: Tuple[Tuple[int, int], ...] = ()
    is_round1: bool = False
    is_bye: bool = False
    conflicts: Tuple[Conflict, ...] = ()

    @classmethod
    def create(
        cls,
        *,
        total_cost: int,
        cost_breakdown: Dict[str, int],
        reasons: List[str],
        alternatives: Optional[Dict[int, int]] = None,
        is_round1: bool = False,
        is_bye: bool = False,
        conflicts: Optional[List[Conflict]] = None,
        timestamp: Optional[datetime] = None,
    ) -> "AuditRecord":
        return cls(
            timestamp=timestamp or utc_now(),
            total_cost=total_cost,
            cost_breakdown=tuple(cost_breakdown.items()),
            reasons=tuple(reasons),
            alternatives_considered=tuple(sorted((alternatives or {}).items())),
            is_round1=is_round1,
            is_bye=is_bye,
            conflicts=tuple(conflicts or ()),
        )

    @property
    def breakdown(self) -> Dict[str, int]:
        return dict(self.cost_breakdown)

    @property
    def alternatives(self) -> Dict[int, int]:
        return dict(self.alternatives_considered)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp.isoformat(),
            "total_cost": self.total_cost,
            "cost_breakdown": self.breakdown,
            "reasons": list(self.reasons),
            # JSON object keys are strings
            "alternatives_considered": {str(k): v for k, v in self.alternatives_considered},
            "is_round1": self.is_round1,
            "is_bye": self.is_bye,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


@dataclass(frozen=True)
class AllocationDecision:
    """Engine output for one pairing."""

    table_number: Optional[int]
    terrain_type: Optional[str]
    player1: PlayerSnapshot
    player2: Optional[PlayerSnapshot]
    audit: AuditRecord
    suggested_table: Optional[int] = None

    @property
    def is_bye(self) -> bool:
        return self.audit.is_bye

    @property
    def conflicts(self) -> Tuple[Conflict, ...]:
        return self.audit.conflicts

    def to_dict(self) -> Dict[str, Any]:
        return {
            "table_number": self.table_number,
            "terrain_type": self.terrain_type,
            "player1": self.player1.to_dict(),
            "player2": self.player2.to_dict() if self.player2 else None,
            "suggested_table": self.suggested_table,
            "reason": self.audit.to_dict(),
        }


@dataclass
class AllocationResult:
    """Everything one generation run produces."""

    allocations: List[AllocationDecision]
    conflicts: List[Conflict]
    summary: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allocations": [a.to_dict() for a in self.allocations],
            "conflicts": [c.to_dict() for c in self.conflicts],
            "summary": self.summary,
        }


@dataclass
class AdjustedAllocation:
    allocation_id: int
    table_number: int
    conflicts: List[Conflict] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "allocation_id": self.allocation_id,
            "table_number": self.table_number,
            "conflicts": [c.to_dict() for c in self.conflicts],
        }


@dataclass
class AdjustmentResult:
    """Outcome of a manual reassign or swap."""

    success: bool
    allocations: List[AdjustedAllocation] = field(default_factory=list)

    @property
    def conflicts(self) -> List[Conflict]:
        return [c for a in self.allocations for c in a.conflicts]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "success": self.success,
            "allocations": [a.to_dict() for a in self.allocations],
        }
