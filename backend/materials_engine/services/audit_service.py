"""
Audit Log Service

Append-only record of every inventory and reservation mutation. Rows are
written inside a SAVEPOINT of the caller's transaction: a failed audit
write is logged and dropped without undoing the mutation it describes.
The engine never reads the audit log to make decisions.
"""
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.logging_config import get_logger
from materials_engine.models.audit_log import AuditLog

logger = get_logger(__name__)

# Action names
MATERIAL_RESERVED = "MATERIAL_RESERVED"
MATERIAL_RESERVATION_RELEASED = "MATERIAL_RESERVATION_RELEASED"
MATERIAL_CONSUMED = "MATERIAL_CONSUMED"
STOCK_RECEIVED = "STOCK_RECEIVED"
STOCK_ADJUSTED = "STOCK_ADJUSTED"
ALLOCATION_COUNTER_RECONCILED = "ALLOCATION_COUNTER_RECONCILED"


def _jsonable(value: Any) -> Any:
    if isinstance(value, Decimal):
        return format(value.normalize(), "f")
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


@dataclass
class AuditSummary:
    """Counts per action over a time window plus the most recent entries"""
    total: int
    by_action: Dict[str, int] = field(default_factory=dict)
    recent: List[AuditLog] = field(default_factory=list)


class AuditLogService:
    """Writes and queries audit_logs rows."""

    def __init__(self, db: Session):
        self.db = db

    def record(
        self,
        actor: str,
        action: str,
        entity_type: str,
        entity_id: Any,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None,
        reference_id: Optional[str] = None,
        additional_data: Optional[Dict[str, Any]] = None,
    ) -> Optional[AuditLog]:
        """
        Append one audit row. Returns None when auditing is disabled or the
        write failed.
        """
        if not get_settings().AUDIT_ENABLED:
            return None

        entry = AuditLog(
            actor=actor,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            old_value=_jsonable(old_value),
            new_value=_jsonable(new_value),
            reference_id=reference_id,
            additional_data=_jsonable(additional_data),
            timestamp=datetime.utcnow(),
        )
        try:
            with self.db.begin_nested():
                self.db.add(entry)
                self.db.flush()
        except SQLAlchemyError as e:
            # Audit is best effort; the primary mutation stands
            logger.error(
                "Failed to write audit log entry",
                extra={
                    "action": action,
                    "entity_type": entity_type,
                    "entity_id": str(entity_id),
                    "error": str(e),
                },
                exc_info=True,
            )
            return None
        return entry

    # =========================================================================
    # Queries
    # =========================================================================

    def _windowed(self, query, start_date: Optional[datetime], end_date: Optional[datetime]):
        if start_date:
            query = query.filter(AuditLog.timestamp >= start_date)
        if end_date:
            query = query.filter(AuditLog.timestamp <= end_date)
        return query

    def entity_trail(
        self,
        entity_type: str,
        entity_id: Any,
        limit: int = 50,
        offset: int = 0,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[AuditLog]:
        """History of one entity, newest first."""
        query = self.db.query(AuditLog).filter(
            AuditLog.entity_type == entity_type,
            AuditLog.entity_id == str(entity_id),
        )
        query = self._windowed(query, start_date, end_date)
        return (
            query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def actor_activity(
        self,
        actor: str,
        action: Optional[str] = None,
        limit: int = 50,
        offset: int = 0,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> List[AuditLog]:
        """Everything one actor did, optionally filtered to one action, newest first."""
        query = self.db.query(AuditLog).filter(AuditLog.actor == actor)
        if action:
            query = query.filter(AuditLog.action == action)
        query = self._windowed(query, start_date, end_date)
        return (
            query.order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    def summary(
        self,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ) -> AuditSummary:
        counts = self._windowed(
            self.db.query(AuditLog.action, func.count(AuditLog.id)),
            start_date,
            end_date,
        ).group_by(AuditLog.action).all()
        by_action = {action: count for action, count in counts}

        recent = (
            self._windowed(self.db.query(AuditLog), start_date, end_date)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(10)
            .all()
        )
        return AuditSummary(total=sum(by_action.values()), by_action=by_action, recent=recent)
