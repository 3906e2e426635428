"""Pydantic schemas for voucher request workflows."""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from ..models import CertificationOutcome, CustomerType, RequestStatus


class PartnerInfo(BaseModel):
    """Partner identity as resolved by the identity provider."""

    user_id: str
    email: str
    name: Optional[str] = None
    company: Optional[str] = None


class CustomerInfo(BaseModel):
    """Company-level details shared by every candidate of a submission."""

    company: str
    country: str
    customer_type: CustomerType
    sfdc_opportunity_id: Optional[str] = None
    completed_learning_paths: Optional[str] = Field(
        None, description="'Yes' or 'No'; required to be 'Yes' for new customers."
    )


class CandidateInfo(BaseModel):
    """One exam candidate."""

    first_name: str
    last_name: str
    email: str
    certification_exam: str


class VoucherRequestCreate(BaseModel):
    """Incoming submission for one or two candidates."""

    partner: PartnerInfo
    customer: CustomerInfo
    candidates: List[CandidateInfo] = Field(..., min_length=1, max_length=2)


class VoucherRequestSubmitted(BaseModel):
    ids: List[int]


class VoucherRequestRead(BaseModel):
    """Represents a voucher request record."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    partner_user_id: str
    partner_email: str
    partner_name: Optional[str]
    partner_company: Optional[str]
    customer_company: str
    country: str
    customer_type: CustomerType
    sfdc_opportunity_id: Optional[str]
    completed_learning_paths: Optional[str]
    candidate_first_name: str
    candidate_last_name: str
    customer_email: str
    certification_exam: str
    customer_number: int
    status: RequestStatus
    rejection_reason: Optional[str]
    voucher_code: Optional[str]
    issue_date: Optional[datetime]
    redemption_status: bool
    redemption_date: Optional[datetime]
    certification_achieved: CertificationOutcome
    certified_date: Optional[datetime]
    request_date: datetime


class RejectPayload(BaseModel):
    reason: str


class IssueCodePayload(BaseModel):
    """Optional overrides; anything omitted is taken from the request record."""

    certification_exam: Optional[str] = None
    partner: Optional[PartnerInfo] = None
    candidate: Optional[CandidateInfo] = None


class RedemptionPayload(BaseModel):
    redemption_date: Optional[datetime] = None


class CertificationPayload(BaseModel):
    achieved: bool = True
    certified_date: Optional[datetime] = None


class TransitionReceipt(BaseModel):
    """Response returned after a workflow transition."""

    request: VoucherRequestRead
    warnings: List[str] = Field(default_factory=list)


class IssueCodeReceipt(BaseModel):
    voucher_code: str
    request: VoucherRequestRead
