"""Voucher code allocation for approved requests."""

from __future__ import annotations

import logging
from typing import Optional

from sqlalchemy.orm import Session

from ..core.config import get_settings
from ..errors import AlreadyIssued, BackingStoreError, NoAvailableCode, NotEligibleError, PartialFailureError, ValidationError
from ..models import RequestStatus, VoucherCode, VoucherRequest
from ..repositories import VoucherCodeRepository, VoucherRequestRepository
from ..schemas import CandidateInfo, PartnerInfo

logger = logging.getLogger(__name__)


def _ensure_issuable(record: Optional[VoucherRequest], request_id: int, certification_exam: str) -> VoucherRequest:
    if record is None:
        raise NotEligibleError(f"Voucher request {request_id} not found")
    if record.status == RequestStatus.PROCESSED or record.voucher_code or record.issue_date:
        raise AlreadyIssued(request_id)
    if record.status != RequestStatus.APPROVED:
        raise NotEligibleError(f"Voucher request {request_id} is {record.status.value}, not approved")
    if record.certification_exam != certification_exam:
        raise ValidationError(
            f"Voucher request {request_id} is for {record.certification_exam}, not {certification_exam}"
        )
    return record


def issue_voucher_code(
    session: Session,
    *,
    request_id: int,
    certification_exam: str,
    partner: PartnerInfo,
    candidate: CandidateInfo,
) -> tuple[VoucherCode, VoucherRequest]:
    """Reserve the oldest available code for the exam and link it to the request.

    A candidate holds at most one unreleased code per exam. The pool
    reservation and the ledger link commit separately. When the link
    loses a race the code is handed back to the pool; when the link fails in
    the store the code stays reserved and ``PartialFailureError`` names it.
    """

    if not (certification_exam or "").strip():
        raise ValidationError("Certification exam is required")

    requests = VoucherRequestRepository(session)
    codes = VoucherCodeRepository(session)

    record = _ensure_issuable(requests.get(request_id, fail_open=False), request_id, certification_exam)

    held = codes.held_by_candidate(candidate.email, certification_exam)
    if held:
        logger.warning(
            "request %s: %s already holds %s for %s", request_id, candidate.email, held[0].voucher_code, certification_exam
        )
        raise AlreadyIssued(
            request_id,
            f"Candidate {candidate.email} already holds voucher code {held[0].voucher_code} for {certification_exam}",
        )

    assignment = {
        "candidate_first_name": candidate.first_name,
        "candidate_last_name": candidate.last_name,
        "candidate_email": candidate.email,
        "partner_email": partner.email,
        "partner_name": partner.name,
        "partner_company": partner.company,
        "customer_company": record.customer_company,
        "country": record.country,
    }
    code = codes.claim_available(
        certification_exam,
        assignment,
        attempts=get_settings().allocation_claim_attempts,
    )
    if code is None:
        session.rollback()
        logger.warning("no available voucher codes for %s (request %s)", certification_exam, request_id)
        raise NoAvailableCode(certification_exam)
    codes.commit()
    logger.info("voucher code %s reserved for request %s", code.voucher_code, request_id)

    try:
        linked = requests.transition(
            request_id,
            conditions=[
                VoucherRequest.status == RequestStatus.APPROVED,
                VoucherRequest.voucher_code.is_(None),
            ],
            values={
                "status": RequestStatus.PROCESSED,
                "voucher_code": code.voucher_code,
                "issue_date": code.issue_date,
            },
        )
        if linked is not None:
            requests.commit()
    except BackingStoreError as exc:
        logger.error(
            "voucher code %s reserved but request %s was not updated: %s",
            code.voucher_code,
            request_id,
            exc.detail,
        )
        raise PartialFailureError(
            f"Voucher code {code.voucher_code} assigned but failed to update request {request_id}",
            voucher_code=code.voucher_code,
        ) from exc

    if linked is None:
        # another issuance linked this request first; hand the code back
        logger.warning("request %s was issued concurrently, releasing %s", request_id, code.voucher_code)
        try:
            codes.reset_assignment(code.id)
            codes.commit()
        except BackingStoreError as exc:
            raise PartialFailureError(
                f"Voucher code {code.voucher_code} is reserved but not linked to any request",
                voucher_code=code.voucher_code,
            ) from exc
        raise AlreadyIssued(request_id)

    logger.info("voucher code %s issued for request %s", code.voucher_code, request_id)
    return code, linked


def reset_voucher_code_assignment(session: Session, code_id: int) -> VoucherCode:
    """Return a code to the pool regardless of its current state.

    Processed requests still pointing at the code are detached from it in the
    same commit.
    """

    codes = VoucherCodeRepository(session)
    code = codes.reset_assignment(code_id)
    if code is None:
        raise NotEligibleError(f"Voucher code {code_id} not found")
    unlinked = VoucherRequestRepository(session).unlink_code(code.voucher_code)
    codes.commit()
    logger.info("voucher code %s (%s) reset to available", code.voucher_code, code_id)
    if unlinked:
        logger.warning("voucher code %s detached from %s request(s)", code.voucher_code, unlinked)
    return code
