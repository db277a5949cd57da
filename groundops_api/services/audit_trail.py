# groundops_api/services/audit_trail.py
from __future__ import annotations

import copy
import json
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from functools import wraps
from typing import Any, Dict, Optional

from groundops_api.extensions import db
from groundops_api.models.audit_log import AuditLog

log = logging.getLogger(__name__)

MODES = ("background", "inline")


@dataclass(frozen=True)
class Mutation:
    """What an audited operation hands back: the result plus its before/after snapshots."""
    entity_id: int
    before: Optional[Dict[str, Any]]
    after: Optional[Dict[str, Any]]
    result: Any = None
    action: Optional[str] = None  # overrides the decorator's default action


@dataclass(frozen=True)
class RequestOrigin:
    source_address: Optional[str] = None
    client_agent: Optional[str] = None


def snapshot(values: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Detached, JSON-ready copy of an entity dump."""
    if values is None:
        return None

    def _plain(v):
        if isinstance(v, (datetime, date)):
            return v.isoformat()
        if isinstance(v, Decimal):
            return float(v)
        return str(v)

    return json.loads(json.dumps(copy.deepcopy(values), default=_plain))


class AuditTrail:
    """
    Best-effort, append-only audit sink.

    record() never raises: a failed write is logged and dropped, the business
    mutation that triggered it already committed and stays committed.

    mode="background" hands the write to a small thread pool so the caller's
    response does not wait on it; mode="inline" writes on the calling thread
    (tests, CLI).
    """

    def __init__(self, app=None, *, clock=None, mode: str = "background", workers: int = 2):
        if mode not in MODES:
            raise ValueError(f"audit mode must be one of {MODES}")
        self.clock = clock
        self.mode = mode
        self._app = app
        self._pool = ThreadPoolExecutor(max_workers=workers, thread_name_prefix="audit") \
            if mode == "background" else None

    def record(
        self,
        actor_user_id: int,
        action: str,
        entity_type: str,
        entity_id: int,
        old_values: Optional[Dict[str, Any]] = None,
        new_values: Optional[Dict[str, Any]] = None,
        source_address: Optional[str] = None,
        client_agent: Optional[str] = None,
    ) -> None:
        try:
            row = {
                "user_id": actor_user_id,
                "action": action,
                "entity_type": entity_type,
                "entity_id": entity_id,
                "old_values": snapshot(old_values),
                "new_values": snapshot(new_values),
                "source_address": source_address,
                "client_agent": client_agent,
                "created_at": self.clock.now() if self.clock else datetime.utcnow(),
            }
            if self._pool is not None:
                self._pool.submit(self._write_in_context, row)
            else:
                self._write_safely(row)
        except Exception:
            log.exception("audit dispatch failed: %s %s#%s", action, entity_type, entity_id)

    # ---- writers ----

    def _write_in_context(self, row: Dict[str, Any]) -> None:
        # fresh app context -> fresh scoped session, torn down on exit
        with self._app.app_context():
            self._write_safely(row)

    def _write_safely(self, row: Dict[str, Any]) -> None:
        try:
            self._write(row)
        except Exception:
            db.session.rollback()
            log.exception(
                "audit write failed: %s %s#%s (actor=%s)",
                row.get("action"), row.get("entity_type"), row.get("entity_id"), row.get("user_id"),
            )

    def _write(self, row: Dict[str, Any]) -> None:
        db.session.add(AuditLog(**row))
        db.session.commit()

    def shutdown(self, wait: bool = True) -> None:
        if self._pool is not None:
            self._pool.shutdown(wait=wait)

    # ---- read side ----

    @staticmethod
    def query(filters: Dict[str, Any] | None = None):
        """Filtered, newest-first query over audit rows (no paging applied)."""
        f = filters or {}
        q = AuditLog.query
        if f.get("user_id") is not None:
            q = q.filter(AuditLog.user_id == f["user_id"])
        if f.get("action"):
            q = q.filter(AuditLog.action == f["action"])
        if f.get("entity_type"):
            q = q.filter(AuditLog.entity_type == f["entity_type"])
        if f.get("entity_id") is not None:
            q = q.filter(AuditLog.entity_id == f["entity_id"])
        if f.get("start_date"):
            q = q.filter(AuditLog.created_at >= datetime.combine(f["start_date"], datetime.min.time()))
        if f.get("end_date"):
            q = q.filter(AuditLog.created_at <= datetime.combine(f["end_date"], datetime.max.time()))
        return q.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())


def audited(entity_type: str, action: str | None = None):
    """
    Wrap a mutating service method so every successful call emits exactly one
    audit entry. The method must return a Mutation and take keyword-only
    ``actor`` (user id) and optional ``origin`` (RequestOrigin); the caller
    gets Mutation.result back.
    """
    def outer(fn):
        @wraps(fn)
        def inner(self, *args, actor: int, origin: RequestOrigin | None = None, **kwargs):
            change: Mutation = fn(self, *args, actor=actor, origin=origin, **kwargs)
            origin = origin or RequestOrigin()
            self.audit.record(
                actor_user_id=actor,
                action=change.action or action,
                entity_type=entity_type,
                entity_id=change.entity_id,
                old_values=change.before,
                new_values=change.after,
                source_address=origin.source_address,
                client_agent=origin.client_agent,
            )
            return change.result
        return inner
    return outer
