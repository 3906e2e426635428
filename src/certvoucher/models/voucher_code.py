"""Voucher code pool model."""

import enum

from sqlalchemy import Column, DateTime, Enum as SAEnum, Integer, String

from ..core.database import VoucherBase
from ..utils.datetime import utcnow
from .voucher_request import enum_values


class VoucherCodeStatus(str, enum.Enum):
    """Assignment state of an imported code."""

    AVAILABLE = "available"
    ISSUED = "issued"
    REDEEMED = "redeemed"
    COMPLETED = "completed"


ASSIGNMENT_FIELDS = (
    "candidate_first_name",
    "candidate_last_name",
    "candidate_email",
    "partner_email",
    "partner_name",
    "partner_company",
    "customer_company",
    "country",
    "issue_date",
    "redemption_date",
    "certified_date",
)


class VoucherCode(VoucherBase):
    """Externally issued exam voucher, assigned to at most one candidate."""

    __tablename__ = "voucher_codes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    voucher_code = Column(String, nullable=False, unique=True)
    certification_exam = Column(String, nullable=False, index=True)
    status = Column(
        SAEnum(VoucherCodeStatus, name="voucher_code_status", values_callable=enum_values),
        nullable=False,
        default=VoucherCodeStatus.AVAILABLE,
        index=True,
    )

    candidate_first_name = Column(String)
    candidate_last_name = Column(String)
    candidate_email = Column(String, index=True)
    partner_email = Column(String)
    partner_name = Column(String)
    partner_company = Column(String)
    customer_company = Column(String)
    country = Column(String)
    issue_date = Column(DateTime(timezone=True))
    redemption_date = Column(DateTime(timezone=True))
    certified_date = Column(DateTime(timezone=True))

    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)
