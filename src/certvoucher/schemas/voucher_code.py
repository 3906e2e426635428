"""Pydantic schemas for the voucher code pool."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import VoucherCodeStatus


class VoucherCodeRead(BaseModel):
    """Represents a pooled voucher code."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    voucher_code: str
    certification_exam: str
    status: VoucherCodeStatus
    candidate_first_name: Optional[str]
    candidate_last_name: Optional[str]
    candidate_email: Optional[str]
    partner_email: Optional[str]
    partner_name: Optional[str]
    partner_company: Optional[str]
    customer_company: Optional[str]
    country: Optional[str]
    issue_date: Optional[datetime]
    redemption_date: Optional[datetime]
    certified_date: Optional[datetime]
    created_at: datetime


class VoucherCodeImport(BaseModel):
    """Rows parsed from a spreadsheet, keyed by header."""

    rows: List[Dict[str, Any]]


class VoucherCodeImportResult(BaseModel):
    inserted_count: int = Field(..., ge=0)


class ExamAvailability(BaseModel):
    """Pool counts for one certification exam."""

    certification_exam: str
    available: int = 0
    issued: int = 0
    redeemed: int = 0
    completed: int = 0
    total: int = 0
