"""Reconciliation response schemas."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import ReconciliationKind, ReconciliationTrigger


class DuplicateSweepResult(BaseModel):
    groups_found: int = Field(..., ge=0)
    reset: int = Field(..., ge=0)


class RepairResult(BaseModel):
    examined: int = Field(..., ge=0)
    repaired: int = Field(..., ge=0)


class ReconciliationRunRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    kind: ReconciliationKind
    trigger: ReconciliationTrigger
    examined: int
    repaired: int
    started_at: datetime
    finished_at: Optional[datetime]
