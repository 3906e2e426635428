"""Repositories for the voucher tables."""

from .base import Repository, is_permission_error
from .voucher_codes import VoucherCodeRepository
from .voucher_requests import VoucherRequestRepository

__all__ = [
    "Repository",
    "VoucherCodeRepository",
    "VoucherRequestRepository",
    "is_permission_error",
]
