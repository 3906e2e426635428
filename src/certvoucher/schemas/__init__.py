"""Public schema exports."""

from .maintenance import DuplicateSweepResult, ReconciliationRunRead, RepairResult
from .voucher_code import ExamAvailability, VoucherCodeImport, VoucherCodeImportResult, VoucherCodeRead
from .voucher_request import (
	CandidateInfo,
	CertificationPayload,
	CustomerInfo,
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

__all__ = [
	"CandidateInfo",
	"CertificationPayload",
	"CustomerInfo",
	"DuplicateSweepResult",
	"ExamAvailability",
	"IssueCodePayload",
	"IssueCodeReceipt",
	"PartnerInfo",
	"ReconciliationRunRead",
	"RedemptionPayload",
	"RejectPayload",
	"RepairResult",
	"TransitionReceipt",
	"VoucherCodeImport",
	"VoucherCodeImportResult",
	"VoucherCodeRead",
	"VoucherRequestCreate",
	"VoucherRequestRead",
	"VoucherRequestSubmitted",
]
