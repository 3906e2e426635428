import pytest

from certvoucher.errors import AlreadyIssued, NoAvailableCode, NotEligibleError, PartialFailureError, ValidationError
from certvoucher.errors import BackingStoreError
from certvoucher.models import RequestStatus, VoucherCodeStatus
from certvoucher.repositories import VoucherCodeRepository, VoucherRequestRepository
from certvoucher.services import allocation_service, pool_service, workflow_service


@pytest.fixture
def approved(db, submit):
    def _approved(candidate=None):
        request_id = submit(candidate)
        workflow_service.approve_request(db, request_id)
        return request_id

    return _approved


def _issue(db, request_id, partner, candidate, exam="Admin"):
    return allocation_service.issue_voucher_code(
        db,
        request_id=request_id,
        certification_exam=exam,
        partner=partner,
        candidate=candidate,
    )


def test_issues_lowest_id_available_code(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1", "ADM-2")
    stock_codes("Dev", "DEV-1")
    request_id = approved()

    code, record = _issue(db, request_id, partner, make_candidate())

    assert code.voucher_code == "ADM-1"
    assert code.status == VoucherCodeStatus.ISSUED
    assert code.candidate_email == "ana@acme.example"
    assert code.partner_email == partner.email
    assert code.customer_company == "Acme Corp"
    assert code.issue_date is not None
    assert record.status == RequestStatus.PROCESSED
    assert record.voucher_code == "ADM-1"
    assert record.issue_date is not None


def test_codes_are_issued_in_import_order(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-B", "ADM-A")
    first = approved()
    second = approved(make_candidate(first_name="Ben", email="ben@acme.example"))

    code_one, _ = _issue(db, first, partner, make_candidate())
    code_two, _ = _issue(db, second, partner, make_candidate(first_name="Ben", email="ben@acme.example"))

    assert [code_one.voucher_code, code_two.voucher_code] == ["ADM-B", "ADM-A"]


def test_exhausted_pool_raises_no_available_code(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Dev", "DEV-1")
    request_id = approved()

    with pytest.raises(NoAvailableCode, match="Admin"):
        _issue(db, request_id, partner, make_candidate())

    record = workflow_service.get_request(db, request_id)
    assert record.status == RequestStatus.APPROVED
    assert record.voucher_code is None


def test_second_issuance_is_rejected_without_consuming_a_code(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1", "ADM-2")
    request_id = approved()
    _issue(db, request_id, partner, make_candidate())

    with pytest.raises(AlreadyIssued):
        _issue(db, request_id, partner, make_candidate())

    available = pool_service.list_voucher_codes(db, status=VoucherCodeStatus.AVAILABLE)
    assert [code.voucher_code for code in available] == ["ADM-2"]


def test_pending_request_is_not_eligible(db, submit, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1")
    request_id = submit()

    with pytest.raises(NotEligibleError):
        _issue(db, request_id, partner, make_candidate())


def test_exam_must_match_request(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Dev", "DEV-1")
    request_id = approved()

    with pytest.raises(ValidationError):
        _issue(db, request_id, partner, make_candidate(), exam="Dev")

    assert pool_service.list_voucher_codes(db, status=VoucherCodeStatus.AVAILABLE)[0].voucher_code == "DEV-1"


def test_lost_link_race_releases_the_code(db, approved, stock_codes, partner, make_candidate, monkeypatch):
    stock_codes("Admin", "ADM-1")
    request_id = approved()
    monkeypatch.setattr(VoucherRequestRepository, "transition", lambda self, *args, **kwargs: None)

    with pytest.raises(AlreadyIssued):
        _issue(db, request_id, partner, make_candidate())

    code = pool_service.list_voucher_codes(db)[0]
    assert code.status == VoucherCodeStatus.AVAILABLE
    assert code.candidate_email is None
    assert code.issue_date is None


def test_failed_link_reports_partial_failure(db, approved, stock_codes, partner, make_candidate, monkeypatch):
    stock_codes("Admin", "ADM-1")
    request_id = approved()

    def broken_transition(self, *args, **kwargs):
        raise BackingStoreError("Failed to write nx_voucher_requests: connection reset")

    monkeypatch.setattr(VoucherRequestRepository, "transition", broken_transition)

    with pytest.raises(PartialFailureError) as excinfo:
        _issue(db, request_id, partner, make_candidate())

    assert excinfo.value.voucher_code == "ADM-1"
    assert excinfo.value.status_code == 500
    assert pool_service.list_voucher_codes(db)[0].status == VoucherCodeStatus.ISSUED


def test_claim_retries_when_candidate_is_taken(db, stock_codes, monkeypatch):
    stock_codes("Admin", "ADM-1", "ADM-2")
    codes = VoucherCodeRepository(db)
    real_write = VoucherCodeRepository._write
    calls = {"count": 0}

    def contended_write(self, stmt):
        calls["count"] += 1
        if calls["count"] == 1:
            return 0
        return real_write(self, stmt)

    monkeypatch.setattr(VoucherCodeRepository, "_write", contended_write)

    claimed = codes.claim_available("Admin", {"candidate_email": "ana@acme.example"})

    assert claimed is not None
    assert claimed.status == VoucherCodeStatus.ISSUED
    assert calls["count"] == 2


def test_claim_gives_up_after_configured_attempts(db, stock_codes, monkeypatch):
    stock_codes("Admin", "ADM-1")
    monkeypatch.setattr(VoucherCodeRepository, "_write", lambda self, stmt: 0)

    with pytest.raises(BackingStoreError) as excinfo:
        VoucherCodeRepository(db).claim_available("Admin", {}, attempts=2)

    assert excinfo.value.status_code == 503


def test_reset_returns_code_to_pool(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1")
    request_id = approved()
    code, _ = _issue(db, request_id, partner, make_candidate())

    reset = allocation_service.reset_voucher_code_assignment(db, code.id)

    assert reset.status == VoucherCodeStatus.AVAILABLE
    assert reset.candidate_email is None
    assert reset.partner_email is None
    assert reset.issue_date is None

    record = workflow_service.get_request(db, request_id)
    assert record.status == RequestStatus.PROCESSED
    assert record.voucher_code is None


def test_reset_unknown_code(db):
    with pytest.raises(NotEligibleError):
        allocation_service.reset_voucher_code_assignment(db, 404)


def test_candidate_holding_a_code_is_refused_another(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1", "ADM-2")
    _issue(db, approved(), partner, make_candidate())
    again = make_candidate(email=" ANA@acme.example")
    second = approved(again)

    with pytest.raises(AlreadyIssued, match="already holds voucher code ADM-1"):
        _issue(db, second, partner, again)

    assert workflow_service.get_request(db, second).status == RequestStatus.APPROVED
    available = pool_service.list_voucher_codes(db, status=VoucherCodeStatus.AVAILABLE)
    assert [code.voucher_code for code in available] == ["ADM-2"]


def test_released_code_frees_the_candidate(db, approved, stock_codes, partner, make_candidate):
    stock_codes("Admin", "ADM-1", "ADM-2")
    first = approved()
    code, _ = _issue(db, first, partner, make_candidate())
    allocation_service.reset_voucher_code_assignment(db, code.id)

    reissued, record = _issue(db, approved(), partner, make_candidate())

    assert reissued.voucher_code == "ADM-1"
    assert record.status == RequestStatus.PROCESSED
    assert workflow_service.get_request(db, first).voucher_code is None
