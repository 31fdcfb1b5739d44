"""
auth/audit.py -- Append-only audit trail for security-relevant actions.

The recorder writes one audit_logs row per call. Whether a failed write should
fail the primary operation is a deployment policy, not a code path choice:

  strict=False (default) -- best-effort. The failure is logged with its
      traceback and log() returns None; login, registration and password
      change still succeed.
  strict=True  -- compliance mode. The failure is raised as StorageError and
      the caller's operation fails with it.

Layer rule: no imports from api/.
"""

from __future__ import annotations

import logging

from sqlalchemy.exc import SQLAlchemyError

from auth.errors import StorageError
from auth.models import AuditEntry, AuditRecord
from auth.store import UserStore

logger = logging.getLogger("cra.audit")


class AuditRecorder:
    def __init__(self, store: UserStore, *, strict: bool = False) -> None:
        self._store = store
        self.strict = strict

    def log(self, entry: AuditEntry) -> int | None:
        """Persist entry. Returns the new record id, or None if a best-effort write failed."""
        try:
            record_id = self._store.insert_audit(entry)
        except SQLAlchemyError as exc:
            if self.strict:
                raise StorageError("Audit record could not be written.") from exc
            logger.exception(
                "Audit write failed (action=%s entity=%s:%s user=%s)",
                entry.action,
                entry.entity_type,
                entry.entity_id,
                entry.user_id,
            )
            return None
        logger.info(
            "audit %s %s:%s by user=%s ip=%s",
            entry.action,
            entry.entity_type,
            entry.entity_id,
            entry.user_id,
            entry.ip_address or "-",
        )
        return record_id

    def list_for_entity(self, entity_type: str, entity_id: int) -> list[AuditRecord]:
        """Audit history of one entity, oldest first. Read side for reporting."""
        return self._store.list_audit(entity_type=entity_type, entity_id=entity_id)
