"""Manually triggered reconciliation endpoints."""

from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...errors import VoucherRuleViolation
from ...schemas import DuplicateSweepResult, ReconciliationRunRead, RepairResult
from ...services import reconciliation_service

router = APIRouter(prefix="/maintenance", tags=["maintenance"])


@router.post(
    "/reconcile-duplicates",
    response_model=DuplicateSweepResult,
    summary="Reset duplicate voucher assignments",
    responses={
        200: {
            "description": "Sweep completed",
            "content": {"application/json": {"example": {"groups_found": 1, "reset": 2}}},
        }
    },
)
def reconcile_duplicates(db: Session = Depends(get_db)) -> DuplicateSweepResult:
    """Keep the earliest issued code per candidate and exam, release the rest."""

    try:
        result = reconciliation_service.reconcile_duplicate_assignments(db)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return DuplicateSweepResult(**result)


@router.post("/repair-completed", response_model=RepairResult, summary="Complete certified redeemed codes")
def repair_completed(db: Session = Depends(get_db)) -> RepairResult:
    try:
        result = reconciliation_service.repair_completed_statuses(db)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return RepairResult(**result)


@router.post("/sync-codes", response_model=RepairResult, summary="Back-fill codes on processed requests")
def sync_codes(db: Session = Depends(get_db)) -> RepairResult:
    try:
        result = reconciliation_service.sync_request_codes(db)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return RepairResult(examined=result["examined"], repaired=result["synced"])


@router.post(
    "/cleanup-certifications",
    response_model=RepairResult,
    summary="Clear outcomes on requests that were never issued",
)
def cleanup_certifications(db: Session = Depends(get_db)) -> RepairResult:
    try:
        result = reconciliation_service.clear_premature_certifications(db)
    except VoucherRuleViolation as exc:
        db.rollback()
        raise HTTPException(status_code=exc.status_code, detail=exc.detail) from exc
    return RepairResult(**result)


@router.get("/runs", response_model=List[ReconciliationRunRead], summary="Recent reconciliation runs")
def list_runs(
    limit: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
) -> List[ReconciliationRunRead]:
    return [ReconciliationRunRead.model_validate(run) for run in reconciliation_service.list_runs(db, limit=limit)]
