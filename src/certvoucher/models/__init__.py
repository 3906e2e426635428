"""SQLAlchemy models for the voucher service."""

from .reconciliation_run import ReconciliationKind, ReconciliationRun, ReconciliationTrigger
from .voucher_code import ASSIGNMENT_FIELDS, VoucherCode, VoucherCodeStatus
from .voucher_request import CertificationOutcome, CustomerType, RequestStatus, VoucherRequest

__all__ = [
    "ASSIGNMENT_FIELDS",
    "CertificationOutcome",
    "CustomerType",
    "ReconciliationKind",
    "ReconciliationRun",
    "ReconciliationTrigger",
    "RequestStatus",
    "VoucherCode",
    "VoucherCodeStatus",
    "VoucherRequest",
]
