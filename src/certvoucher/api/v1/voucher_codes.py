"""Endpoints for the voucher code pool."""

from __future__ import annotations

from typing import List, Optional

from fastapi import APIRouter, Depends, File, HTTPException, Query, UploadFile, status
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...errors import VoucherRuleViolation
from ...models import VoucherCodeStatus
from ...schemas import ExamAvailability, VoucherCodeImport, VoucherCodeImportResult, VoucherCodeRead
from ...services import allocation_service, pool_service
from ...utils.spreadsheet import read_rows

router = APIRouter(prefix="/voucher-codes", tags=["voucher-codes"])


@router.get(
    "",
    response_model=List[VoucherCodeRead],
    summary="List pooled voucher codes",
)
def list_voucher_codes(
    certification_exam: Optional[str] = Query(None),
    status_filter: Optional[VoucherCodeStatus] = Query(None, alias="status"),
    db: Session = Depends(get_db),
) -> List[VoucherCodeRead]:
    try:
        codes = pool_service.list_voucher_codes(db, certification_exam=certification_exam, status=status_filter)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return [VoucherCodeRead.model_validate(code) for code in codes]


@router.get(
    "/availability",
    response_model=List[ExamAvailability],
    summary="Pool counts per exam",
    responses={
        200: {
            "description": "Counts by status for every exam in the pool",
            "content": {
                "application/json": {
                    "example": [
                        {
                            "certification_exam": "Admin",
                            "available": 12,
                            "issued": 3,
                            "redeemed": 1,
                            "completed": 4,
                            "total": 20
                        }
                    ]
                }
            },
        }
    },
)
def voucher_code_availability(db: Session = Depends(get_db)) -> List[ExamAvailability]:
    try:
        summary = pool_service.availability_by_exam(db)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return [ExamAvailability(**entry) for entry in summary]


@router.post(
    "/import",
    response_model=VoucherCodeImportResult,
    status_code=status.HTTP_201_CREATED,
    summary="Import voucher codes from parsed rows",
    responses={400: {"description": "Missing columns, no valid rows, or codes already imported"}},
)
def import_voucher_codes(
    payload: VoucherCodeImport,
    db: Session = Depends(get_db),
) -> VoucherCodeImportResult:
    """Insert codes as available.

    Example request body::

        {
            "rows": [
                {"Certification Exam": "Admin", "Voucher code": "ADM-0001"},
                {"Certification Exam": "Admin", "Voucher code": "ADM-0002"}
            ]
        }
    """

    try:
        result = pool_service.import_voucher_codes(db, payload.rows)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return VoucherCodeImportResult(**result)


@router.post(
    "/upload",
    response_model=VoucherCodeImportResult,
    status_code=status.HTTP_201_CREATED,
    summary="Import voucher codes from an .xlsx workbook",
    responses={400: {"description": "Unreadable workbook, missing columns or no valid rows"}},
)
async def upload_voucher_codes(
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
) -> VoucherCodeImportResult:
    """Read the first worksheet; its header row must name both required columns."""

    content = await file.read()
    try:
        columns, rows = read_rows(content)
        result = pool_service.import_voucher_codes(db, rows, columns=columns)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return VoucherCodeImportResult(**result)


@router.put(
    "/{code_id}/reset",
    response_model=VoucherCodeRead,
    summary="Return a voucher code to the pool",
    responses={404: {"description": "Voucher code not found"}},
)
def reset_voucher_code(code_id: int, db: Session = Depends(get_db)) -> VoucherCodeRead:
    try:
        code = allocation_service.reset_voucher_code_assignment(db, code_id)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return VoucherCodeRead.model_validate(code)
