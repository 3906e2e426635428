import pytest
from sqlalchemy import update

from certvoucher.errors import BackingStoreError, NotEligibleError, ValidationError
from certvoucher.models import CertificationOutcome, CustomerType, RequestStatus, VoucherCode, VoucherCodeStatus
from certvoucher.repositories import VoucherCodeRepository
from certvoucher.schemas import CustomerInfo
from certvoucher.services import allocation_service, workflow_service


def _issue(db, request_id, partner, make_candidate):
    return allocation_service.issue_voucher_code(
        db,
        request_id=request_id,
        certification_exam="Admin",
        partner=partner,
        candidate=make_candidate(),
    )


def test_submission_creates_one_pending_record_per_candidate(db, partner, customer, make_candidate):
    ids = workflow_service.submit_voucher_request(
        db,
        partner=partner,
        customer=customer,
        candidates=[make_candidate(), make_candidate(first_name="Ben", email="ben@acme.example")],
    )

    assert len(ids) == 2
    first, second = (workflow_service.get_request(db, request_id) for request_id in ids)
    assert first.status == RequestStatus.PENDING
    assert (first.customer_number, second.customer_number) == (1, 2)
    assert second.customer_email == "ben@acme.example"
    assert first.certification_achieved == CertificationOutcome.UNDECIDED
    assert first.redemption_status is False
    assert first.voucher_code is None


def test_new_customer_must_have_completed_learning_paths(db, partner, make_candidate):
    customer = CustomerInfo(company="Acme", country="DE", customer_type=CustomerType.NEW, completed_learning_paths="No")

    with pytest.raises(ValidationError):
        workflow_service.submit_voucher_request(db, partner=partner, customer=customer, candidates=[make_candidate()])

    assert workflow_service.list_requests(db) == []


def test_submission_rejects_invalid_candidate_email(db, partner, customer, make_candidate):
    with pytest.raises(ValidationError, match="email"):
        workflow_service.submit_voucher_request(
            db,
            partner=partner,
            customer=customer,
            candidates=[make_candidate(email="not-an-email")],
        )


def test_submission_rejects_more_than_two_candidates(db, partner, customer, make_candidate):
    with pytest.raises(ValidationError):
        workflow_service.submit_voucher_request(
            db,
            partner=partner,
            customer=customer,
            candidates=[make_candidate(), make_candidate(), make_candidate()],
        )


def test_approve_only_from_pending(db, submit):
    request_id = submit()

    approved = workflow_service.approve_request(db, request_id)
    assert approved.status == RequestStatus.APPROVED

    with pytest.raises(NotEligibleError):
        workflow_service.approve_request(db, request_id)


def test_approve_unknown_request(db):
    with pytest.raises(NotEligibleError):
        workflow_service.approve_request(db, 999)


def test_reject_stores_trimmed_reason(db, submit):
    request_id = submit()

    record = workflow_service.reject_request(db, request_id, "  Opportunity missing ")

    assert record.status == RequestStatus.REJECTED
    assert record.rejection_reason == "Opportunity missing"


@pytest.mark.parametrize("reason", ["", "   ", None, "x" * 37])
def test_reject_reason_is_validated_before_store_access(db, submit, reason):
    request_id = submit()

    with pytest.raises(ValidationError):
        workflow_service.reject_request(db, request_id, reason)

    assert workflow_service.get_request(db, request_id).status == RequestStatus.PENDING


def test_reject_accepts_reason_at_length_limit(db, submit):
    request_id = submit()

    record = workflow_service.reject_request(db, request_id, "x" * 36)

    assert record.rejection_reason == "x" * 36


def test_rejected_request_cannot_be_approved(db, submit):
    request_id = submit()
    workflow_service.reject_request(db, request_id, "duplicate")

    with pytest.raises(NotEligibleError):
        workflow_service.approve_request(db, request_id)


def test_redemption_requires_issued_code(db, submit):
    request_id = submit()
    workflow_service.approve_request(db, request_id)

    with pytest.raises(NotEligibleError):
        workflow_service.record_redemption(db, request_id)

    record = workflow_service.get_request(db, request_id)
    assert record.redemption_status is False


def test_certification_requires_redemption(db, submit, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1")
    request_id = submit()
    workflow_service.approve_request(db, request_id)
    _issue(db, request_id, partner, make_candidate)

    with pytest.raises(NotEligibleError):
        workflow_service.mark_certification(db, request_id, True)


def test_redemption_and_certification_mirror_onto_code(db, submit, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1")
    request_id = submit()
    workflow_service.approve_request(db, request_id)
    code, _ = _issue(db, request_id, partner, make_candidate)

    record, warnings = workflow_service.record_redemption(db, request_id)
    assert warnings == []
    assert record.redemption_status is True
    assert record.redemption_date is not None
    assert db.get(VoucherCode, code.id, populate_existing=True).status == VoucherCodeStatus.REDEEMED

    record, warnings = workflow_service.mark_certification(db, request_id, False)
    assert warnings == []
    assert record.certification_achieved == CertificationOutcome.NOT_ACHIEVED
    assert record.is_completed
    pooled = db.get(VoucherCode, code.id, populate_existing=True)
    assert pooled.status == VoucherCodeStatus.COMPLETED
    assert pooled.certified_date is not None


def test_missing_mirror_row_is_reported_as_warning(db, submit, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1")
    request_id = submit()
    workflow_service.approve_request(db, request_id)
    code, _ = _issue(db, request_id, partner, make_candidate)
    db.execute(update(VoucherCode).where(VoucherCode.id == code.id).values(status=VoucherCodeStatus.COMPLETED))
    db.commit()

    record, warnings = workflow_service.record_redemption(db, request_id)

    assert record.redemption_status is True
    assert len(warnings) == 1
    assert "issued" in warnings[0]


def test_mirror_store_failure_keeps_the_transition(db, submit, stock_codes, partner, make_candidate, monkeypatch):
    stock_codes("Admin", "ADM-1")
    request_id = submit()
    workflow_service.approve_request(db, request_id)
    code, _ = _issue(db, request_id, partner, make_candidate)

    def unreachable_pool(self, **kwargs):
        raise BackingStoreError("Failed to write voucher_codes: connection reset")

    monkeypatch.setattr(VoucherCodeRepository, "advance", unreachable_pool)

    record, warnings = workflow_service.record_redemption(db, request_id)

    assert warnings == ["Voucher code ADM-1 could not be marked redeemed"]
    assert record.redemption_status is True
    stored = workflow_service.get_request(db, request_id)
    assert stored.redemption_status is True
    assert stored.redemption_date is not None
    assert db.get(VoucherCode, code.id, populate_existing=True).status == VoucherCodeStatus.ISSUED


def test_list_requests_filters_by_partner_and_status(db, submit, make_candidate):
    first = submit()
    second = submit(make_candidate(email="zoe@acme.example"))
    workflow_service.approve_request(db, second)

    approved = workflow_service.list_requests(db, status=RequestStatus.APPROVED)
    assert [record.id for record in approved] == [second]

    mine = workflow_service.list_requests(db, partner_email="pat@partner.example")
    assert {record.id for record in mine} == {first, second}
    assert workflow_service.list_requests(db, partner_email="other@partner.example") == []
