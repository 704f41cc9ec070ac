from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import JSON
from sqlmodel import Column, Field, SQLModel


class AllocationAuditEntry(SQLModel, table=True):
    """Append-only audit history. Rows are inserted, never updated.

    allocation_id is not a foreign key: entries outlive the allocations a
    regenerate deletes.
    """

    __tablename__ = "allocationauditentry"

    id: Optional[int] = Field(default=None, primary_key=True)
    allocation_id: int = Field(index=True)
    round_id: int = Field(index=True)
    action: str  # "GENERATE" | "REASSIGN" | "SWAP"
    recorded_at: datetime = Field(default_factory=datetime.utcnow)
    reason: Dict[str, Any] = Field(sa_column=Column(JSON, nullable=False))
