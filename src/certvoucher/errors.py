"""Exceptions raised by the voucher services.

Routes translate any :class:`VoucherRuleViolation` into an ``HTTPException``
using its ``status_code`` and ``detail``.
"""

from __future__ import annotations


class VoucherRuleViolation(Exception):
    """Raised when a voucher workflow rule is violated."""

    status_code = 400

    def __init__(self, detail: str, status_code: int | None = None) -> None:
        super().__init__(detail)
        self.detail = detail
        if status_code is not None:
            self.status_code = status_code


class ValidationError(VoucherRuleViolation):
    """Input has the wrong shape; raised before any store access."""


class MissingColumns(ValidationError):
    """An import batch lacks a required header."""

    def __init__(self, missing: list[str]) -> None:
        super().__init__(f"Missing required columns: {', '.join(missing)}")
        self.missing = missing


class NotEligibleError(VoucherRuleViolation):
    """Record not found, or its persisted state does not allow the transition."""

    status_code = 404


class AlreadyIssued(VoucherRuleViolation):
    status_code = 409

    def __init__(self, request_id: int, detail: str | None = None) -> None:
        super().__init__(detail or f"Voucher code has already been issued for request {request_id}")
        self.request_id = request_id


class NoAvailableCode(VoucherRuleViolation):
    status_code = 404

    def __init__(self, certification_exam: str) -> None:
        super().__init__(f"No available voucher codes found for {certification_exam}")
        self.certification_exam = certification_exam


class BackingStoreError(VoucherRuleViolation):
    """A backing store failed in a way that is not downgraded to an empty read."""

    status_code = 500


class PartialFailureError(VoucherRuleViolation):
    """A step committed but a later step of the same operation failed."""

    status_code = 500

    def __init__(self, detail: str, *, voucher_code: str | None = None) -> None:
        super().__init__(detail)
        self.voucher_code = voucher_code
