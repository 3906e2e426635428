"""Endpoints for the voucher request workflow."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...errors import VoucherRuleViolation
from ...models import RequestStatus
from ...schemas import (
    CandidateInfo,
    CertificationPayload,
    IssueCodePayload,
    IssueCodeReceipt,
    PartnerInfo,
    RedemptionPayload,
    RejectPayload,
    TransitionReceipt,
    VoucherRequestCreate,
    VoucherRequestRead,
    VoucherRequestSubmitted,
)
from ...services import allocation_service, workflow_service

router = APIRouter(tags=["voucher-requests"])


def _fail(db: Session, exc: VoucherRuleViolation) -> HTTPException:
    db.rollback()
    return HTTPException(status_code=exc.status_code, detail=exc.detail)


@router.post(
    "/voucher-requests",
    response_model=VoucherRequestSubmitted,
    status_code=status.HTTP_201_CREATED,
    summary="Submit a voucher request",
    responses={
        201: {
            "description": "One pending request per candidate",
            "content": {"application/json": {"example": {"ids": [41, 42]}}},
        },
        400: {"description": "Invalid submission"},
    },
)
def submit_voucher_request(
    payload: VoucherRequestCreate,
    db: Session = Depends(get_db),
) -> VoucherRequestSubmitted:
    """Submit one or two candidates for certification vouchers.

    Example request body::

        {
            "partner": {"user_id": "u-17", "email": "pat@partner.example", "name": "Pat Lee"},
            "customer": {
                "company": "Acme Corp",
                "country": "DE",
                "customer_type": "New",
                "completed_learning_paths": "Yes"
            },
            "candidates": [
                {
                    "first_name": "Ana",
                    "last_name": "Diaz",
                    "email": "ana@acme.example",
                    "certification_exam": "Admin"
                }
            ]
        }
    """

    try:
        ids = workflow_service.submit_voucher_request(
            db,
            partner=payload.partner,
            customer=payload.customer,
            candidates=payload.candidates,
        )
        return VoucherRequestSubmitted(ids=ids)
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc


@router.get(
    "/voucher-requests",
    response_model=List[VoucherRequestRead],
    summary="List voucher requests",
)
def list_voucher_requests(
    status_filter: Optional[RequestStatus] = Query(None, alias="status"),
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[VoucherRequestRead]:
    """Admin view of all requests, newest first."""

    try:
        records = workflow_service.list_requests(db, status=status_filter, limit=limit, offset=offset)
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return [VoucherRequestRead.model_validate(record) for record in records]


@router.get(
    "/partners/{partner_email}/voucher-requests",
    response_model=List[VoucherRequestRead],
    summary="List a partner's voucher requests",
)
def list_partner_requests(
    partner_email: str,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
) -> List[VoucherRequestRead]:
    try:
        records = workflow_service.list_requests(db, partner_email=partner_email, limit=limit, offset=offset)
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return [VoucherRequestRead.model_validate(record) for record in records]


@router.get(
    "/voucher-requests/{request_id}",
    response_model=VoucherRequestRead,
    summary="Fetch a voucher request",
    responses={404: {"description": "Voucher request not found"}},
)
def get_voucher_request(request_id: int, db: Session = Depends(get_db)) -> VoucherRequestRead:
    try:
        record = workflow_service.get_request(db, request_id)
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return VoucherRequestRead.model_validate(record)


@router.put(
    "/voucher-requests/{request_id}/approve",
    response_model=VoucherRequestRead,
    summary="Approve a pending request",
    responses={404: {"description": "Not found or not pending"}},
)
def approve_voucher_request(request_id: int, db: Session = Depends(get_db)) -> VoucherRequestRead:
    try:
        record = workflow_service.approve_request(db, request_id)
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return VoucherRequestRead.model_validate(record)


@router.put(
    "/voucher-requests/{request_id}/reject",
    response_model=VoucherRequestRead,
    summary="Reject a pending request",
    responses={
        400: {"description": "Reason missing or too long"},
        404: {"description": "Not found or not pending"},
    },
)
def reject_voucher_request(
    request_id: int,
    payload: RejectPayload,
    db: Session = Depends(get_db),
) -> VoucherRequestRead:
    """Reject with a short reason.

    Example request body::

        {"reason": "Opportunity ID missing"}
    """

    try:
        record = workflow_service.reject_request(db, request_id, payload.reason)
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return VoucherRequestRead.model_validate(record)


@router.post(
    "/voucher-requests/{request_id}/issue-code",
    response_model=IssueCodeReceipt,
    summary="Issue a voucher code",
    responses={
        200: {
            "description": "Code reserved and linked to the request",
            "content": {
                "application/json": {
                    "example": {"voucher_code": "ADM-0001", "request": {"id": 41, "status": "processed"}}
                }
            },
        },
        404: {"description": "Request not approved, or no code available for the exam"},
        409: {"description": "A code was already issued for this request"},
        500: {"description": "Code reserved but the request could not be updated"},
    },
)
def issue_voucher_code(
    request_id: int,
    payload: Optional[IssueCodePayload] = Body(None),
    db: Session = Depends(get_db),
) -> IssueCodeReceipt:
    """Allocate the oldest available code for the request's exam.

    The body is optional; omitted fields default to the values stored on the
    request.
    """

    payload = payload or IssueCodePayload()
    try:
        record = workflow_service.get_request(db, request_id)
        partner = payload.partner or PartnerInfo(
            user_id=record.partner_user_id,
            email=record.partner_email,
            name=record.partner_name,
            company=record.partner_company,
        )
        candidate = payload.candidate or CandidateInfo(
            first_name=record.candidate_first_name,
            last_name=record.candidate_last_name,
            email=record.customer_email,
            certification_exam=record.certification_exam,
        )
        code, linked = allocation_service.issue_voucher_code(
            db,
            request_id=request_id,
            certification_exam=payload.certification_exam or record.certification_exam,
            partner=partner,
            candidate=candidate,
        )
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return IssueCodeReceipt(voucher_code=code.voucher_code, request=VoucherRequestRead.model_validate(linked))


@router.put(
    "/voucher-requests/{request_id}/record-redemption",
    response_model=TransitionReceipt,
    summary="Record that the voucher was redeemed",
    responses={404: {"description": "Not found or no code issued"}},
)
def record_redemption(
    request_id: int,
    payload: Optional[RedemptionPayload] = Body(None),
    db: Session = Depends(get_db),
) -> TransitionReceipt:
    payload = payload or RedemptionPayload()
    try:
        record, warnings = workflow_service.record_redemption(db, request_id, payload.redemption_date)
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return TransitionReceipt(request=VoucherRequestRead.model_validate(record), warnings=warnings)


@router.put(
    "/voucher-requests/{request_id}/mark-certification",
    response_model=TransitionReceipt,
    summary="Record the certification outcome",
    responses={404: {"description": "Not found or not redeemed"}},
)
def mark_certification(
    request_id: int,
    payload: Optional[CertificationPayload] = Body(None),
    db: Session = Depends(get_db),
) -> TransitionReceipt:
    """Mark the exam as passed (default) or failed.

    Example request body::

        {"achieved": false}
    """

    payload = payload or CertificationPayload()
    try:
        record, warnings = workflow_service.mark_certification(
            db,
            request_id,
            payload.achieved,
            payload.certified_date,
        )
    except VoucherRuleViolation as exc:
        raise _fail(db, exc) from exc
    return TransitionReceipt(request=VoucherRequestRead.model_validate(record), warnings=warnings)
