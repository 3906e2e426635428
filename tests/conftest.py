import os

os.environ["CERTVOUCHER_DATABASE_URL"] = "sqlite://"
os.environ["CERTVOUCHER_VOUCHER_DATABASE_URL"] = "sqlite://"
os.environ["CERTVOUCHER_RECONCILE_SCHEDULE_ENABLED"] = "false"

import pytest
from fastapi.testclient import TestClient

from certvoucher.core.database import Base, SessionLocal, VoucherBase, engine, get_db, voucher_engine
from certvoucher.main import create_app
from certvoucher.schemas import CandidateInfo, CustomerInfo, PartnerInfo
from certvoucher.services import pool_service, workflow_service


@pytest.fixture(autouse=True)
def database():
    Base.metadata.create_all(bind=engine)
    VoucherBase.metadata.create_all(bind=voucher_engine)
    yield
    VoucherBase.metadata.drop_all(bind=voucher_engine)
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(database):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(database):
    app = create_app()

    def override_get_db():
        session = SessionLocal()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def partner():
    return PartnerInfo(user_id="u-17", email="pat@partner.example", name="Pat Lee", company="Partner GmbH")


@pytest.fixture
def customer():
    return CustomerInfo(
        company="Acme Corp",
        country="DE",
        customer_type="Existing",
        sfdc_opportunity_id="006XYZ",
    )


@pytest.fixture
def make_candidate():
    def _make(first_name="Ana", last_name="Diaz", email="ana@acme.example", exam="Admin"):
        return CandidateInfo(first_name=first_name, last_name=last_name, email=email, certification_exam=exam)

    return _make


@pytest.fixture
def submit(db, partner, customer, make_candidate):
    """Submit one candidate and return the new request id."""

    def _submit(candidate=None):
        ids = workflow_service.submit_voucher_request(
            db,
            partner=partner,
            customer=customer,
            candidates=[candidate or make_candidate()],
        )
        return ids[0]

    return _submit


@pytest.fixture
def stock_codes(db):
    def _stock(exam, *codes):
        rows = [{"Certification Exam": exam, "Voucher code": code} for code in codes]
        return pool_service.import_voucher_codes(db, rows)

    return _stock
