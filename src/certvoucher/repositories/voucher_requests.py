"""Data access for the voucher request ledger."""

from __future__ import annotations

from typing import Any, Iterable, Optional, Sequence

from sqlalchemy import select, update

from ..models import CertificationOutcome, RequestStatus, VoucherRequest
from ..utils.datetime import utcnow
from .base import Repository


class VoucherRequestRepository(Repository):
    """Typed access to ``nx_voucher_requests``."""

    table_name = VoucherRequest.__tablename__

    def add_many(self, requests: Iterable[VoucherRequest]) -> list[VoucherRequest]:
        records = list(requests)
        self.session.add_all(records)
        self._flush()
        return records

    def get(self, request_id: int, *, fail_open: bool = True) -> Optional[VoucherRequest]:
        stmt = select(VoucherRequest).where(VoucherRequest.id == request_id)
        return self._read_one(stmt, fail_open=fail_open)

    def find(
        self,
        *,
        status: Optional[RequestStatus] = None,
        partner_email: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[VoucherRequest]:
        stmt = select(VoucherRequest).order_by(VoucherRequest.request_date.desc(), VoucherRequest.id.desc())
        if status is not None:
            stmt = stmt.where(VoucherRequest.status == status)
        if partner_email:
            stmt = stmt.where(VoucherRequest.partner_email == partner_email)
        return self._read_all(stmt.offset(offset).limit(limit))

    def transition(
        self,
        request_id: int,
        *,
        conditions: Sequence[Any],
        values: dict[str, Any],
    ) -> Optional[VoucherRequest]:
        """Apply ``values`` only if the persisted row still meets ``conditions``.

        Returns the refreshed record, or ``None`` when no row matched.
        """

        stmt = (
            update(VoucherRequest)
            .where(VoucherRequest.id == request_id, *conditions)
            .values(updated_at=utcnow(), **values)
        )
        if self._write(stmt) == 0:
            return None
        return self.get(request_id, fail_open=False)

    def processed_without_code(self) -> list[VoucherRequest]:
        stmt = (
            select(VoucherRequest)
            .where(VoucherRequest.status == RequestStatus.PROCESSED, VoucherRequest.voucher_code.is_(None))
            .order_by(VoucherRequest.id)
        )
        return self._read_all(stmt)

    def holding_code(self, voucher_code: str) -> list[VoucherRequest]:
        stmt = select(VoucherRequest).where(VoucherRequest.voucher_code == voucher_code).order_by(VoucherRequest.id)
        return self._read_all(stmt, fail_open=False)

    def unlink_code(self, voucher_code: str) -> int:
        """Detach a released code from the processed requests still pointing at it."""

        stmt = (
            update(VoucherRequest)
            .where(VoucherRequest.voucher_code == voucher_code, VoucherRequest.status == RequestStatus.PROCESSED)
            .values(voucher_code=None, updated_at=utcnow())
        )
        return self._write(stmt)

    def clear_premature_certifications(self) -> int:
        stmt = (
            update(VoucherRequest)
            .where(
                VoucherRequest.status.in_(
                    [RequestStatus.PENDING, RequestStatus.APPROVED, RequestStatus.REJECTED]
                ),
                VoucherRequest.certification_achieved != CertificationOutcome.UNDECIDED,
            )
            .values(
                certification_achieved=CertificationOutcome.UNDECIDED,
                certified_date=None,
                updated_at=utcnow(),
            )
        )
        return self._write(stmt)
