"""Data access for the voucher code pool."""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional

from sqlalchemy import func, select, update

from ..errors import BackingStoreError
from ..models import ASSIGNMENT_FIELDS, VoucherCode, VoucherCodeStatus
from ..utils.datetime import utcnow
from .base import Repository

logger = logging.getLogger(__name__)


class VoucherCodeRepository(Repository):
    """Typed access to ``voucher_codes``."""

    table_name = VoucherCode.__tablename__

    def add_many(self, codes: Iterable[VoucherCode]) -> list[VoucherCode]:
        records = list(codes)
        # one flush per row keeps ids in input order
        for record in records:
            self.session.add(record)
            self._flush()
        return records

    def get(self, code_id: int, *, fail_open: bool = True) -> Optional[VoucherCode]:
        stmt = select(VoucherCode).where(VoucherCode.id == code_id)
        return self._read_one(stmt, fail_open=fail_open)

    def existing_codes(self, voucher_codes: list[str]) -> set[str]:
        if not voucher_codes:
            return set()
        stmt = select(VoucherCode.voucher_code).where(VoucherCode.voucher_code.in_(voucher_codes))
        return set(self._read_all(stmt, fail_open=False))

    def find(
        self,
        *,
        certification_exam: Optional[str] = None,
        status: Optional[VoucherCodeStatus] = None,
    ) -> list[VoucherCode]:
        stmt = select(VoucherCode).order_by(VoucherCode.id.asc())
        if certification_exam:
            stmt = stmt.where(VoucherCode.certification_exam == certification_exam)
        if status is not None:
            stmt = stmt.where(VoucherCode.status == status)
        return self._read_all(stmt)

    def claim_available(
        self,
        certification_exam: str,
        assignment: dict[str, Any],
        *,
        attempts: int = 3,
    ) -> Optional[VoucherCode]:
        """Atomically move the oldest available code for an exam to ``issued``.

        Each attempt picks the lowest-id candidate and updates it only if it is
        still ``available``. Losing that compare-and-swap to another writer
        moves on to the next candidate. Returns ``None`` when the exam has no
        available code. Store errors, permission refusals included, propagate.
        """

        for attempt in range(1, attempts + 1):
            candidate_stmt = (
                select(VoucherCode.id)
                .where(
                    VoucherCode.certification_exam == certification_exam,
                    VoucherCode.status == VoucherCodeStatus.AVAILABLE,
                )
                .order_by(VoucherCode.id.asc())
                .limit(1)
                .with_for_update(skip_locked=True)
            )
            candidate_id = self._read_one(candidate_stmt, fail_open=False)
            if candidate_id is None:
                return None

            now = utcnow()
            claim_stmt = (
                update(VoucherCode)
                .where(VoucherCode.id == candidate_id, VoucherCode.status == VoucherCodeStatus.AVAILABLE)
                .values(status=VoucherCodeStatus.ISSUED, issue_date=now, updated_at=now, **assignment)
            )
            if self._write(claim_stmt) == 1:
                return self.get(candidate_id, fail_open=False)
            logger.info(
                "voucher code %s for %s claimed concurrently (attempt %s/%s)",
                candidate_id,
                certification_exam,
                attempt,
                attempts,
            )

        raise BackingStoreError(
            f"Could not claim a voucher code for {certification_exam} after {attempts} attempts",
            status_code=503,
        )

    def reset_assignment(
        self,
        code_id: int,
        *,
        expected_status: Optional[VoucherCodeStatus] = None,
    ) -> Optional[VoucherCode]:
        """Return a code to the pool, clearing every assignment attribute."""

        stmt = update(VoucherCode).where(VoucherCode.id == code_id)
        if expected_status is not None:
            stmt = stmt.where(VoucherCode.status == expected_status)
        stmt = stmt.values(
            status=VoucherCodeStatus.AVAILABLE,
            updated_at=utcnow(),
            **{field: None for field in ASSIGNMENT_FIELDS},
        )
        if self._write(stmt) == 0:
            return None
        return self.get(code_id, fail_open=False)

    def advance(
        self,
        *,
        candidate_email: str,
        certification_exam: str,
        from_status: VoucherCodeStatus,
        to_status: VoucherCodeStatus,
        voucher_code: Optional[str] = None,
        **values: Any,
    ) -> int:
        """Move the candidate's code for an exam from one status to the next."""

        stmt = update(VoucherCode).where(
            VoucherCode.candidate_email == candidate_email,
            VoucherCode.certification_exam == certification_exam,
            VoucherCode.status == from_status,
        )
        if voucher_code:
            stmt = stmt.where(VoucherCode.voucher_code == voucher_code)
        return self._write(stmt.values(status=to_status, updated_at=utcnow(), **values))

    def issued_with_candidate(self) -> list[VoucherCode]:
        stmt = (
            select(VoucherCode)
            .where(VoucherCode.status == VoucherCodeStatus.ISSUED, VoucherCode.candidate_email.is_not(None))
            .order_by(VoucherCode.created_at.asc(), VoucherCode.id.asc())
        )
        return self._read_all(stmt)

    def issued_for_candidate(
        self,
        *,
        first_name: str,
        last_name: str,
        email: str,
        certification_exam: str,
    ) -> list[VoucherCode]:
        stmt = (
            select(VoucherCode)
            .where(
                VoucherCode.candidate_first_name == first_name,
                VoucherCode.candidate_last_name == last_name,
                VoucherCode.candidate_email == email,
                VoucherCode.certification_exam == certification_exam,
                VoucherCode.status == VoucherCodeStatus.ISSUED,
            )
            .order_by(VoucherCode.id.asc())
        )
        return self._read_all(stmt)

    def held_by_candidate(self, email: str, certification_exam: str) -> list[VoucherCode]:
        """Codes currently assigned to a candidate for an exam, in any non-available state."""

        stmt = (
            select(VoucherCode)
            .where(
                func.lower(func.trim(VoucherCode.candidate_email)) == email.strip().lower(),
                VoucherCode.certification_exam == certification_exam,
                VoucherCode.status != VoucherCodeStatus.AVAILABLE,
            )
            .order_by(VoucherCode.id.asc())
        )
        return self._read_all(stmt, fail_open=False)

    def complete_certified_redeemed(self) -> int:
        stmt = (
            update(VoucherCode)
            .where(VoucherCode.certified_date.is_not(None), VoucherCode.status == VoucherCodeStatus.REDEEMED)
            .values(status=VoucherCodeStatus.COMPLETED, updated_at=utcnow())
        )
        return self._write(stmt)

    def status_counts(self) -> list[tuple[str, VoucherCodeStatus, int]]:
        stmt = (
            select(VoucherCode.certification_exam, VoucherCode.status, func.count(VoucherCode.id))
            .group_by(VoucherCode.certification_exam, VoucherCode.status)
            .order_by(VoucherCode.certification_exam)
        )
        return [tuple(row) for row in self._read_rows(stmt)]
