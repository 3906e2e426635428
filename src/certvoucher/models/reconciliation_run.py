"""Audit record for reconciliation runs."""

import enum

from sqlalchemy import CheckConstraint, Column, DateTime, Enum as SAEnum, Integer

from ..core.database import Base
from ..utils.datetime import utcnow
from .voucher_request import enum_values


class ReconciliationKind(str, enum.Enum):
    """Which repair a run performed."""

    DUPLICATES = "duplicates"
    COMPLETED_STATUS = "completed_status"
    CODE_SYNC = "code_sync"
    CERTIFICATION_CLEANUP = "certification_cleanup"


class ReconciliationTrigger(str, enum.Enum):
    MANUAL = "manual"
    SCHEDULED = "scheduled"


class ReconciliationRun(Base):
    """Append-only log of repairs applied to the voucher tables."""

    __tablename__ = "reconciliation_runs"
    __table_args__ = (
        CheckConstraint("examined >= 0", name="reconciliation_runs_examined_positive"),
        CheckConstraint("repaired >= 0", name="reconciliation_runs_repaired_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    kind = Column(SAEnum(ReconciliationKind, name="reconciliation_kind", values_callable=enum_values), nullable=False)
    trigger = Column(
        SAEnum(ReconciliationTrigger, name="reconciliation_trigger", values_callable=enum_values),
        nullable=False,
        default=ReconciliationTrigger.MANUAL,
    )
    examined = Column(Integer, nullable=False, default=0)
    repaired = Column(Integer, nullable=False, default=0)
    started_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    finished_at = Column(DateTime(timezone=True))
