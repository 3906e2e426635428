"""Compensating repairs over the voucher request and voucher code tables."""

from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from ..errors import BackingStoreError
from ..models import (
    ReconciliationKind,
    ReconciliationRun,
    ReconciliationTrigger,
    RequestStatus,
    VoucherCode,
    VoucherCodeStatus,
    VoucherRequest,
)
from ..repositories import VoucherCodeRepository, VoucherRequestRepository
from ..utils.datetime import utcnow

logger = logging.getLogger(__name__)


def _record_run(
    session: Session,
    *,
    kind: ReconciliationKind,
    trigger: ReconciliationTrigger,
    started_at: datetime,
    examined: int,
    repaired: int,
) -> None:
    session.add(
        ReconciliationRun(
            kind=kind,
            trigger=trigger,
            examined=examined,
            repaired=repaired,
            started_at=started_at,
            finished_at=utcnow(),
        )
    )
    session.commit()


def reconcile_duplicate_assignments(
    session: Session,
    *,
    trigger: ReconciliationTrigger = ReconciliationTrigger.MANUAL,
) -> dict[str, int]:
    """Reset all but the earliest issued code per (candidate email, exam).

    A released code is also detached from any processed request still
    pointing at it, so it cannot end up linked to two requests once it is
    issued again. Returns ``{"groups_found": ..., "reset": ...}``.
    """

    started_at = utcnow()
    codes = VoucherCodeRepository(session)
    requests = VoucherRequestRepository(session)

    groups: dict[tuple[str, str], list[VoucherCode]] = defaultdict(list)
    for code in codes.issued_with_candidate():
        groups[(code.candidate_email.strip().lower(), code.certification_exam)].append(code)

    duplicate_groups = {key: members for key, members in groups.items() if len(members) > 1}
    if duplicate_groups:
        logger.warning("found %s duplicate voucher assignment groups", len(duplicate_groups))

    reset = 0
    for (email, exam), members in duplicate_groups.items():
        members.sort(key=lambda code: (code.created_at, code.id))
        keeper = members[0]
        for duplicate in members[1:]:
            try:
                released = codes.reset_assignment(duplicate.id, expected_status=VoucherCodeStatus.ISSUED)
                unlinked = requests.unlink_code(duplicate.voucher_code) if released is not None else 0
                codes.commit()
            except BackingStoreError as exc:
                logger.error("failed to reset duplicate voucher %s: %s", duplicate.voucher_code, exc.detail)
                continue
            if released is not None:
                reset += 1
                logger.info(
                    "reset duplicate voucher %s for %s / %s (kept %s)",
                    duplicate.voucher_code,
                    email,
                    exam,
                    keeper.voucher_code,
                )
                if unlinked:
                    logger.warning(
                        "voucher %s detached from %s request(s); they need a new code",
                        duplicate.voucher_code,
                        unlinked,
                    )

    _record_run(
        session,
        kind=ReconciliationKind.DUPLICATES,
        trigger=trigger,
        started_at=started_at,
        examined=sum(len(members) for members in groups.values()),
        repaired=reset,
    )
    logger.info("duplicate sweep completed: %s groups, %s codes reset", len(duplicate_groups), reset)
    return {"groups_found": len(duplicate_groups), "reset": reset}


def repair_completed_statuses(session: Session) -> dict[str, int]:
    """Complete redeemed codes that already carry a certification date."""

    started_at = utcnow()
    codes = VoucherCodeRepository(session)
    repaired = codes.complete_certified_redeemed()
    codes.commit()

    _record_run(
        session,
        kind=ReconciliationKind.COMPLETED_STATUS,
        trigger=ReconciliationTrigger.MANUAL,
        started_at=started_at,
        examined=repaired,
        repaired=repaired,
    )
    logger.info("marked %s voucher codes completed", repaired)
    return {"examined": repaired, "repaired": repaired}


def sync_request_codes(session: Session) -> dict[str, int]:
    """Back-fill ``voucher_code`` on processed requests from their issued code.

    A code already linked to another request is never linked twice.
    """

    started_at = utcnow()
    requests = VoucherRequestRepository(session)
    codes = VoucherCodeRepository(session)

    pending = requests.processed_without_code()
    synced = 0
    for record in pending:
        matches = codes.issued_for_candidate(
            first_name=record.candidate_first_name,
            last_name=record.candidate_last_name,
            email=record.customer_email,
            certification_exam=record.certification_exam,
        )
        if len(matches) != 1:
            logger.info("request %s: %s issued codes match, skipping", record.id, len(matches))
            continue

        code = matches[0]
        holders = requests.holding_code(code.voucher_code)
        if holders:
            logger.info(
                "request %s: code %s is already linked to request %s, skipping",
                record.id,
                code.voucher_code,
                holders[0].id,
            )
            continue

        updated = requests.transition(
            record.id,
            conditions=[
                VoucherRequest.status == RequestStatus.PROCESSED,
                VoucherRequest.voucher_code.is_(None),
            ],
            values={"voucher_code": code.voucher_code, "issue_date": record.issue_date or code.issue_date},
        )
        if updated is None:
            continue
        requests.commit()
        synced += 1
        logger.info("synced voucher code %s onto request %s", code.voucher_code, record.id)

    _record_run(
        session,
        kind=ReconciliationKind.CODE_SYNC,
        trigger=ReconciliationTrigger.MANUAL,
        started_at=started_at,
        examined=len(pending),
        repaired=synced,
    )
    return {"examined": len(pending), "synced": synced}


def clear_premature_certifications(session: Session) -> dict[str, int]:
    """Reset certification outcomes on requests that never reached issuance."""

    started_at = utcnow()
    requests = VoucherRequestRepository(session)
    cleared = requests.clear_premature_certifications()
    requests.commit()

    _record_run(
        session,
        kind=ReconciliationKind.CERTIFICATION_CLEANUP,
        trigger=ReconciliationTrigger.MANUAL,
        started_at=started_at,
        examined=cleared,
        repaired=cleared,
    )
    logger.info("cleared certification outcome on %s requests", cleared)
    return {"examined": cleared, "repaired": cleared}


def list_runs(session: Session, *, limit: int = 50) -> list[ReconciliationRun]:
    stmt = select(ReconciliationRun).order_by(ReconciliationRun.id.desc()).limit(limit)
    return list(session.execute(stmt).scalars().all())
