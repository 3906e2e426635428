"""Voucher request ledger model."""

import enum

from sqlalchemy import Boolean, CheckConstraint, Column, DateTime, Enum as SAEnum, Integer, String

from ..core.database import VoucherBase
from ..utils.datetime import utcnow


def enum_values(enum_cls: type[enum.Enum]) -> list[str]:
    """Persist enum members by value rather than by name."""
    return [member.value for member in enum_cls]


class RequestStatus(str, enum.Enum):
    """Workflow states of a voucher request."""

    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"
    PROCESSED = "processed"


class CustomerType(str, enum.Enum):
    """Whether the customer already runs the product."""

    NEW = "New"
    EXISTING = "Existing"


class CertificationOutcome(str, enum.Enum):
    """Certification result recorded after the exam was taken."""

    UNDECIDED = "undecided"
    ACHIEVED = "achieved"
    NOT_ACHIEVED = "not_achieved"


class VoucherRequest(VoucherBase):
    """One candidate/certification pairing submitted by a partner."""

    __tablename__ = "nx_voucher_requests"
    __table_args__ = (
        CheckConstraint("customer_number IN (1, 2)", name="nx_voucher_requests_customer_number"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)

    partner_user_id = Column(String, nullable=False)
    partner_email = Column(String, nullable=False, index=True)
    partner_name = Column(String)
    partner_company = Column(String)

    customer_company = Column(String, nullable=False)
    country = Column(String, nullable=False)
    customer_type = Column(
        SAEnum(CustomerType, name="customer_type", values_callable=enum_values),
        nullable=False,
    )
    sfdc_opportunity_id = Column(String)
    completed_learning_paths = Column(String)

    candidate_first_name = Column(String, nullable=False)
    candidate_last_name = Column(String, nullable=False)
    customer_email = Column(String, nullable=False, index=True)
    certification_exam = Column(String, nullable=False)
    customer_number = Column(Integer, nullable=False, default=1)

    status = Column(
        SAEnum(RequestStatus, name="voucher_request_status", values_callable=enum_values),
        nullable=False,
        default=RequestStatus.PENDING,
        index=True,
    )
    rejection_reason = Column(String(64))
    voucher_code = Column(String)
    issue_date = Column(DateTime(timezone=True))
    redemption_status = Column(Boolean, nullable=False, default=False)
    redemption_date = Column(DateTime(timezone=True))
    certification_achieved = Column(
        SAEnum(CertificationOutcome, name="certification_outcome", values_callable=enum_values),
        nullable=False,
        default=CertificationOutcome.UNDECIDED,
    )
    certified_date = Column(DateTime(timezone=True))

    request_date = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    @property
    def is_completed(self) -> bool:
        return self.certified_date is not None
