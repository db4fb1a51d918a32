"""
Audit log model

Append-only: once a row is flushed the ORM refuses to update or delete it.
"""
from sqlalchemy import Column, Integer, String, DateTime, JSON, event
from datetime import datetime

from materials_engine.db.base import Base


class AuditLog(Base):
    """One recorded mutation: who did what to which entity, before and after."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    actor = Column(String(100), nullable=False, index=True)
    action = Column(String(100), nullable=False, index=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(50), nullable=False)

    old_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    reference_id = Column(String(100), nullable=True)
    additional_data = Column(JSON, nullable=True)

    timestamp = Column(DateTime, default=datetime.utcnow, nullable=False, index=True)

    def __repr__(self):
        return f"<AuditLog {self.action} {self.entity_type}:{self.entity_id} by {self.actor}>"


@event.listens_for(AuditLog, "before_update")
def _refuse_update(mapper, connection, target):
    raise ValueError(f"Audit log rows are immutable (id={target.id})")


@event.listens_for(AuditLog, "before_delete")
def _refuse_delete(mapper, connection, target):
    raise ValueError(f"Audit log rows cannot be deleted (id={target.id})")
