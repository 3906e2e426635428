"""Voucher code pool: bulk import and read views."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Sequence

from sqlalchemy.orm import Session

from ..errors import MissingColumns, ValidationError
from ..models import VoucherCode, VoucherCodeStatus
from ..repositories import VoucherCodeRepository

logger = logging.getLogger(__name__)

EXAM_COLUMN = "Certification Exam"
CODE_COLUMN = "Voucher code"
REQUIRED_COLUMNS = (EXAM_COLUMN, CODE_COLUMN)


def _cell(row: Mapping[str, Any], column: str) -> str:
    value = row.get(column)
    return "" if value is None else str(value).strip()


def _clean_rows(
    rows: Sequence[Mapping[str, Any]],
    columns: Optional[Sequence[str]] = None,
) -> list[tuple[str, str]]:
    if columns is None:
        header = list(rows[0]) if rows else []
        empty = not rows
    else:
        header = list(columns)
        empty = not header
    if empty:
        raise ValidationError("Voucher code file is empty")

    missing = [column for column in REQUIRED_COLUMNS if column not in header]
    if missing:
        raise MissingColumns(missing)

    cleaned: list[tuple[str, str]] = []
    seen: set[str] = set()
    for row in rows:
        code, exam = _cell(row, CODE_COLUMN), _cell(row, EXAM_COLUMN)
        if not code or not exam:
            continue
        if code in seen:
            logger.info("skipping repeated voucher code %s in import batch", code)
            continue
        seen.add(code)
        cleaned.append((code, exam))

    if not cleaned:
        raise ValidationError("No valid voucher codes found in the file")
    return cleaned


def import_voucher_codes(
    session: Session,
    rows: Sequence[Mapping[str, Any]],
    *,
    columns: Optional[Sequence[str]] = None,
) -> dict[str, int]:
    """Insert each valid row as an available code, preserving row order.

    The header (``columns`` when given, else the keys of the first row) must
    carry both required columns; rows with a blank exam or code are dropped.
    """

    cleaned = _clean_rows(rows, columns)

    codes = VoucherCodeRepository(session)
    existing = codes.existing_codes([code for code, _ in cleaned])
    if existing:
        raise ValidationError(f"Voucher codes already imported: {', '.join(sorted(existing))}")

    inserted = codes.add_many(
        VoucherCode(voucher_code=code, certification_exam=exam, status=VoucherCodeStatus.AVAILABLE)
        for code, exam in cleaned
    )
    codes.commit()

    logger.info("imported %s voucher codes (%s rows received)", len(inserted), len(rows))
    return {"inserted_count": len(inserted)}


def list_voucher_codes(
    session: Session,
    *,
    certification_exam: Optional[str] = None,
    status: Optional[VoucherCodeStatus] = None,
) -> list[VoucherCode]:
    return VoucherCodeRepository(session).find(certification_exam=certification_exam, status=status)


def availability_by_exam(session: Session) -> list[dict[str, Any]]:
    """Count pool rows per exam and status."""

    summary: dict[str, dict[str, Any]] = {}
    for exam, status, count in VoucherCodeRepository(session).status_counts():
        entry = summary.setdefault(
            exam,
            {"certification_exam": exam, **{member.value: 0 for member in VoucherCodeStatus}, "total": 0},
        )
        entry[VoucherCodeStatus(status).value] += count
        entry["total"] += count
    return [summary[exam] for exam in sorted(summary)]
