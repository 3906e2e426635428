"""Voucher request workflow: submission and state transitions.

Every transition is a conditional update that restates its precondition
against the persisted row, so a stale client replay matches nothing and
raises ``NotEligibleError`` without writing.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional, Sequence

from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..errors import BackingStoreError, NotEligibleError, ValidationError
from ..models import CertificationOutcome, CustomerType, RequestStatus, VoucherCodeStatus, VoucherRequest
from ..repositories import VoucherCodeRepository, VoucherRequestRepository
from ..schemas import CandidateInfo, CustomerInfo, PartnerInfo
from ..utils.datetime import as_utc

logger = logging.getLogger(__name__)

MAX_CANDIDATES_PER_SUBMISSION = 2


def _require(value: Optional[str], label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise ValidationError(f"{label} is required")
    return cleaned


def _validate_submission(customer: CustomerInfo, candidates: Sequence[CandidateInfo]) -> None:
    _require(customer.company, "Customer company name")
    _require(customer.country, "Country")
    if customer.customer_type == CustomerType.NEW and (customer.completed_learning_paths or "").strip() != "Yes":
        raise ValidationError(
            "New customers must complete the learning paths before certification vouchers can be requested."
        )

    if not candidates:
        raise ValidationError("At least one candidate is required")
    if len(candidates) > MAX_CANDIDATES_PER_SUBMISSION:
        raise ValidationError(f"At most {MAX_CANDIDATES_PER_SUBMISSION} candidates can be submitted together")

    for position, candidate in enumerate(candidates, start=1):
        _require(candidate.first_name, f"Candidate {position} first name")
        _require(candidate.last_name, f"Candidate {position} last name")
        email = _require(candidate.email, f"Candidate {position} email")
        if "@" not in email:
            raise ValidationError(f"Candidate {position} email is not a valid email address")
        _require(candidate.certification_exam, f"Candidate {position} certification exam")


def submit_voucher_request(
    session: Session,
    *,
    partner: PartnerInfo,
    customer: CustomerInfo,
    candidates: Sequence[CandidateInfo],
) -> list[int]:
    """Create one pending ledger record per candidate and return their ids."""

    _validate_submission(customer, candidates)

    records = [
        VoucherRequest(
            partner_user_id=partner.user_id,
            partner_email=partner.email,
            partner_name=partner.name or partner.email,
            partner_company=partner.company or "",
            customer_company=customer.company.strip(),
            country=customer.country.strip(),
            customer_type=customer.customer_type,
            sfdc_opportunity_id=customer.sfdc_opportunity_id,
            completed_learning_paths=customer.completed_learning_paths,
            candidate_first_name=candidate.first_name.strip(),
            candidate_last_name=candidate.last_name.strip(),
            customer_email=candidate.email.strip(),
            certification_exam=candidate.certification_exam.strip(),
            customer_number=position,
            status=RequestStatus.PENDING,
        )
        for position, candidate in enumerate(candidates, start=1)
    ]

    requests = VoucherRequestRepository(session)
    requests.add_many(records)
    requests.commit()

    ids = [record.id for record in records]
    logger.info("voucher request(s) %s submitted by %s", ids, partner.email)
    return ids


def get_request(session: Session, request_id: int) -> VoucherRequest:
    record = VoucherRequestRepository(session).get(request_id)
    if record is None:
        raise NotEligibleError(f"Voucher request {request_id} not found")
    return record


def list_requests(
    session: Session,
    *,
    status: Optional[RequestStatus] = None,
    partner_email: Optional[str] = None,
    limit: int = 100,
    offset: int = 0,
) -> list[VoucherRequest]:
    """Return requests newest first; an access-denied store yields an empty list."""

    return VoucherRequestRepository(session).find(
        status=status,
        partner_email=partner_email,
        limit=limit,
        offset=offset,
    )


def approve_request(session: Session, request_id: int) -> VoucherRequest:
    requests = VoucherRequestRepository(session)
    record = requests.transition(
        request_id,
        conditions=[VoucherRequest.status == RequestStatus.PENDING],
        values={"status": RequestStatus.APPROVED},
    )
    if record is None:
        raise NotEligibleError(f"Voucher request {request_id} not found or not pending")
    requests.commit()
    logger.info("voucher request %s approved", request_id)
    return record


def reject_request(session: Session, request_id: int, reason: Optional[str]) -> VoucherRequest:
    """Reject a pending request with a short, non-empty reason."""

    if not isinstance(reason, str) or not reason.strip():
        raise ValidationError("Rejection reason is required")
    max_length = get_settings().rejection_reason_max_length
    if len(reason) > max_length:
        raise ValidationError(f"Rejection reason must be {max_length} characters or less")

    requests = VoucherRequestRepository(session)
    record = requests.transition(
        request_id,
        conditions=[VoucherRequest.status == RequestStatus.PENDING],
        values={"status": RequestStatus.REJECTED, "rejection_reason": reason.strip()},
    )
    if record is None:
        raise NotEligibleError(f"Voucher request {request_id} not found or not pending")
    requests.commit()
    logger.info("voucher request %s rejected: %s", request_id, record.rejection_reason)
    return record


def _advance_code(
    session: Session,
    record: VoucherRequest,
    *,
    from_status: VoucherCodeStatus,
    to_status: VoucherCodeStatus,
    **values,
) -> list[str]:
    """Mirror a committed ledger transition onto the pool row.

    Best effort: failures are logged and returned as warnings, the ledger
    change stays committed.
    """

    codes = VoucherCodeRepository(session)
    try:
        updated = codes.advance(
            candidate_email=record.customer_email,
            certification_exam=record.certification_exam,
            from_status=from_status,
            to_status=to_status,
            voucher_code=record.voucher_code,
            **values,
        )
        codes.commit()
    except BackingStoreError as exc:
        logger.error(
            "voucher request %s: failed to move code %s to %s: %s",
            record.id,
            record.voucher_code,
            to_status.value,
            exc.detail,
        )
        return [f"Voucher code {record.voucher_code} could not be marked {to_status.value}"]

    if updated == 0:
        logger.warning(
            "voucher request %s: no %s code %s for %s / %s",
            record.id,
            from_status.value,
            record.voucher_code,
            record.customer_email,
            record.certification_exam,
        )
        return [f"No {from_status.value} voucher code found to mark {to_status.value}"]
    return []


def record_redemption(
    session: Session,
    request_id: int,
    redemption_date: Optional[datetime] = None,
) -> tuple[VoucherRequest, list[str]]:
    """Flag a processed request as redeemed and mirror it onto its code."""

    redeemed_at = as_utc(redemption_date)
    requests = VoucherRequestRepository(session)
    record = requests.transition(
        request_id,
        conditions=[
            VoucherRequest.status == RequestStatus.PROCESSED,
            VoucherRequest.voucher_code.is_not(None),
        ],
        values={"redemption_status": True, "redemption_date": redeemed_at},
    )
    if record is None:
        raise NotEligibleError(f"Voucher request {request_id} not found or voucher code not in processed status")
    requests.commit()
    logger.info("voucher request %s redeemed", request_id)

    warnings = _advance_code(
        session,
        record,
        from_status=VoucherCodeStatus.ISSUED,
        to_status=VoucherCodeStatus.REDEEMED,
        redemption_date=redeemed_at,
    )
    return record, warnings


def mark_certification(
    session: Session,
    request_id: int,
    achieved: bool,
    certified_date: Optional[datetime] = None,
) -> tuple[VoucherRequest, list[str]]:
    """Record the exam outcome of a redeemed request.

    Both outcomes complete the pool row.
    """

    certified_at = as_utc(certified_date)
    outcome = CertificationOutcome.ACHIEVED if achieved else CertificationOutcome.NOT_ACHIEVED
    requests = VoucherRequestRepository(session)
    record = requests.transition(
        request_id,
        conditions=[
            VoucherRequest.status == RequestStatus.PROCESSED,
            VoucherRequest.redemption_status.is_(True),
        ],
        values={"certification_achieved": outcome, "certified_date": certified_at},
    )
    if record is None:
        raise NotEligibleError(f"Voucher request {request_id} not found or not redeemed")
    requests.commit()
    logger.info("voucher request %s certification recorded: %s", request_id, outcome.value)

    warnings = _advance_code(
        session,
        record,
        from_status=VoucherCodeStatus.REDEEMED,
        to_status=VoucherCodeStatus.COMPLETED,
        certified_date=certified_at,
    )
    return record, warnings
