"""
Permission grants and the prompts that produce them.

Requesting a permission never blocks: it records a pending request that a
person later grants or denies (admin endpoints or the CLI). Callers that
want to know the outcome wait on the request explicitly and then retry.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum

from sqlalchemy.orm import Session, sessionmaker

from .db import PermissionGrant, PermissionRequestRow, SessionLocal, utcnow

logger = logging.getLogger(__name__)

# Interval between store polls while waiting on a request resolved elsewhere
WAIT_POLL_INTERVAL = 0.5


class PermissionStatus(StrEnum):
    PENDING = "pending"
    GRANTED = "granted"
    DENIED = "denied"


class PermissionRequestNotFound(LookupError):
    pass


class PermissionRequestAlreadyResolved(ValueError):
    pass


@dataclass(frozen=True)
class PermissionRequest:
    id: int
    permission: str
    request_code: int
    status: PermissionStatus
    created_at: datetime
    resolved_at: datetime | None = None

    @classmethod
    def from_row(cls, row: PermissionRequestRow) -> PermissionRequest:
        return cls(
            id=row.id,
            permission=row.permission,
            request_code=row.request_code,
            status=PermissionStatus(row.status),
            created_at=row.created_at,
            resolved_at=row.resolved_at,
        )


class PermissionBroker:
    def __init__(self, session_factory: sessionmaker[Session] = SessionLocal) -> None:
        self._session_factory = session_factory
        self._lock = threading.Lock()
        # request id -> event set when that request is resolved in this process
        self._events: dict[int, threading.Event] = {}
        # request id -> number of threads currently waiting on it
        self._waiters: dict[int, int] = {}

    def check(self, permission: str) -> bool:
        with self._session_factory() as db:
            grant = db.get(PermissionGrant, permission)
            return bool(grant and grant.granted)

    def request(self, permission: str, request_code: int) -> PermissionRequest:
        """
        Record a prompt for `permission` and return immediately.

        If a prompt for the same permission is still pending, that one is
        returned instead of stacking another.
        """
        with self._session_factory() as db:
            row = (
                db.query(PermissionRequestRow)
                .filter(
                    PermissionRequestRow.permission == permission,
                    PermissionRequestRow.status == PermissionStatus.PENDING.value,
                )
                .order_by(PermissionRequestRow.id.desc())
                .first()
            )
            if row is None:
                row = PermissionRequestRow(
                    permission=permission,
                    request_code=request_code,
                    status=PermissionStatus.PENDING.value,
                )
                db.add(row)
                db.commit()
                db.refresh(row)
                logger.info(
                    "Requested %s (request #%d, code %d)", permission, row.id, request_code
                )
            return PermissionRequest.from_row(row)

    def get_request(self, request_id: int) -> PermissionRequest:
        with self._session_factory() as db:
            row = db.get(PermissionRequestRow, request_id)
            if row is None:
                raise PermissionRequestNotFound(f"No permission request #{request_id}")
            return PermissionRequest.from_row(row)

    def list_requests(self, limit: int = 50) -> list[PermissionRequest]:
        with self._session_factory() as db:
            rows = (
                db.query(PermissionRequestRow)
                .order_by(PermissionRequestRow.id.desc())
                .limit(limit)
                .all()
            )
            return [PermissionRequest.from_row(r) for r in rows]

    def resolve(self, request_id: int, granted: bool) -> PermissionRequest:
        """Apply the user's answer to a pending request and update the grant."""
        status = PermissionStatus.GRANTED if granted else PermissionStatus.DENIED
        with self._session_factory() as db:
            row = db.get(PermissionRequestRow, request_id)
            if row is None:
                raise PermissionRequestNotFound(f"No permission request #{request_id}")
            if row.status != PermissionStatus.PENDING.value:
                raise PermissionRequestAlreadyResolved(
                    f"Permission request #{request_id} is already {row.status}"
                )

            row.status = status.value
            row.resolved_at = utcnow()
            self._set_grant(db, row.permission, granted)
            db.commit()
            db.refresh(row)
            result = PermissionRequest.from_row(row)

        logger.info("Permission request #%d %s", request_id, status.value)
        with self._lock:
            event = self._events.get(request_id)
        if event is not None:
            event.set()
        return result

    def revoke(self, permission: str) -> None:
        with self._session_factory() as db:
            self._set_grant(db, permission, False)
            db.commit()
        logger.info("Revoked %s", permission)

    def wait(self, request_id: int, timeout: float) -> PermissionStatus:
        """
        Block until the request is resolved or `timeout` seconds pass.

        Returns PENDING on timeout. Resolutions made by this broker wake the
        waiter at once; ones made by another process are seen on the next poll.
        """
        event = self._add_waiter(request_id)
        deadline = time.monotonic() + max(timeout, 0.0)
        try:
            while True:
                status = self.get_request(request_id).status
                if status != PermissionStatus.PENDING:
                    return status
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    return PermissionStatus.PENDING
                event.wait(min(remaining, WAIT_POLL_INTERVAL))
        finally:
            self._remove_waiter(request_id)

    def _add_waiter(self, request_id: int) -> threading.Event:
        with self._lock:
            self._waiters[request_id] = self._waiters.get(request_id, 0) + 1
            return self._events.setdefault(request_id, threading.Event())

    def _remove_waiter(self, request_id: int) -> None:
        with self._lock:
            remaining = self._waiters.get(request_id, 0) - 1
            if remaining > 0:
                self._waiters[request_id] = remaining
            else:
                self._waiters.pop(request_id, None)
                self._events.pop(request_id, None)

    @staticmethod
    def _set_grant(db: Session, permission: str, granted: bool) -> None:
        grant = db.get(PermissionGrant, permission)
        if grant is None:
            db.add(PermissionGrant(permission=permission, granted=granted))
        else:
            grant.granted = granted
