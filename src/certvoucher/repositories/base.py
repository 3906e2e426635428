"""Shared plumbing for the voucher table repositories."""

from __future__ import annotations

import logging
from typing import Any

from sqlalchemy.exc import DBAPIError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..errors import BackingStoreError

logger = logging.getLogger(__name__)

# SQLSTATE insufficient_privilege
_PERMISSION_SQLSTATE = "42501"
_PERMISSION_MARKERS = ("permission denied", "row-level security", "insufficient privilege")


def is_permission_error(exc: BaseException) -> bool:
    """Return True when a store error looks like an access-control refusal."""

    if isinstance(exc, DBAPIError) and exc.orig is not None:
        if getattr(exc.orig, "pgcode", None) == _PERMISSION_SQLSTATE:
            return True
        message = str(exc.orig).lower()
    else:
        message = str(exc).lower()
    return any(marker in message for marker in _PERMISSION_MARKERS)


class Repository:
    """Base class holding the session and the store error policy.

    Reads over voucher tables fail open on permission errors and return an
    empty result, unless they feed a write (``fail_open=False``). Every other
    failure is raised as ``BackingStoreError``.
    """

    table_name: str = ""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _read_rows(self, stmt: Any, *, fail_open: bool = True) -> list:
        try:
            # conditional UPDATEs bypass the identity map, so reads always refresh
            return list(self.session.execute(stmt.execution_options(populate_existing=True)).all())
        except DBAPIError as exc:
            self.session.rollback()
            if fail_open and is_permission_error(exc):
                logger.warning("permission error reading %s, returning no rows: %s", self.table_name, exc.orig)
                return []
            raise BackingStoreError(f"Failed to read {self.table_name}: {exc.orig}") from exc

    def _read_all(self, stmt: Any, *, fail_open: bool = True) -> list:
        return [row[0] for row in self._read_rows(stmt, fail_open=fail_open)]

    def _read_one(self, stmt: Any, *, fail_open: bool = True) -> Any:
        rows = self._read_all(stmt, fail_open=fail_open)
        return rows[0] if rows else None

    def _write(self, stmt: Any) -> int:
        try:
            result = self.session.execute(stmt.execution_options(synchronize_session=False))
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise BackingStoreError(f"Failed to write {self.table_name}: {exc}") from exc
        return result.rowcount

    def _flush(self) -> None:
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise BackingStoreError(f"Failed to write {self.table_name}: {exc}") from exc

    def commit(self) -> None:
        try:
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise BackingStoreError(f"Failed to commit {self.table_name}: {exc}") from exc

    def delete(self, record_id: int) -> None:
        raise BackingStoreError(
            f"DELETE is not supported for {self.table_name} (record {record_id})",
            status_code=405,
        )
