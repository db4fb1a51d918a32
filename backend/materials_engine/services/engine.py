"""
Material Requirements Engine

Single entry point over the explosion, reservation, consumption and status
services. Every operation returns an EngineResult instead of raising, so
callers branch on result.error_kind (Busy is retryable, Configuration needs
an operator, the rest are the caller's input).
"""
from dataclasses import dataclass
from typing import Callable, Generic, List, Optional, TypeVar

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from materials_engine.exceptions import DatabaseError, ErrorKind, MaterialsEngineException
from materials_engine.logging_config import get_logger
from materials_engine.models.reservation import MaterialConsumption, MaterialReservation
from materials_engine.services.bom_explosion import BOMExplosionResult, BOMExplosionService
from materials_engine.services.consumption_service import ConsumptionLine, ConsumptionProcessor
from materials_engine.services.material_status import (
    WorkOrderMaterialStatus,
    WorkOrderMaterialStatusService,
)
from materials_engine.services.reservation_service import ReservationLine, ReservationManager

logger = get_logger(__name__)

T = TypeVar("T")


@dataclass
class EngineResult(Generic[T]):
    """Outcome of an engine operation: a value, or a typed error."""

    ok: bool
    value: Optional[T] = None
    error: Optional[MaterialsEngineException] = None

    @classmethod
    def success(cls, value: T) -> "EngineResult[T]":
        return cls(ok=True, value=value)

    @classmethod
    def failure(cls, error: MaterialsEngineException) -> "EngineResult[T]":
        return cls(ok=False, error=error)

    @property
    def error_kind(self) -> Optional[ErrorKind]:
        return self.error.error_kind if self.error else None

    @property
    def retryable(self) -> bool:
        return bool(self.error and self.error.retryable)

    def unwrap(self) -> T:
        """Return the value, or raise the carried error."""
        if not self.ok:
            raise self.error
        return self.value


class MaterialRequirementsEngine:
    """Result-returning facade for one database session."""

    def __init__(self, db: Session):
        self.db = db
        self.explosion = BOMExplosionService(db)
        self.reservations = ReservationManager(db)
        self.consumption = ConsumptionProcessor(db)
        self.status = WorkOrderMaterialStatusService(db)

    def _run(self, operation: str, fn: Callable[[], T]) -> EngineResult[T]:
        try:
            return EngineResult.success(fn())
        except MaterialsEngineException as e:
            logger.info(
                f"{operation} failed: {e.message}",
                extra={"operation": operation, "error_code": e.error_code, "error_kind": e.error_kind.value},
            )
            return EngineResult.failure(e)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"{operation} failed with database error", exc_info=True)
            return EngineResult.failure(DatabaseError(f"Database error during {operation}: {e}"))

    def explode_bom(self, work_order_id: int) -> EngineResult[BOMExplosionResult]:
        return self._run("explode_bom", lambda: self.explosion.explode(work_order_id))

    def reserve_materials(
        self,
        work_order_id: int,
        lines: List[ReservationLine],
        created_by: Optional[str] = None,
    ) -> EngineResult[List[MaterialReservation]]:
        return self._run(
            "reserve_materials",
            lambda: self.reservations.reserve(work_order_id, lines, created_by=created_by),
        )

    def release_reservations(
        self,
        work_order_id: int,
        released_by: Optional[str] = None,
    ) -> EngineResult[List[MaterialReservation]]:
        return self._run(
            "release_reservations",
            lambda: self.reservations.release(work_order_id, released_by=released_by),
        )

    def consume_materials(
        self,
        work_order_id: int,
        lines: List[ConsumptionLine],
        created_by: Optional[str] = None,
    ) -> EngineResult[List[MaterialConsumption]]:
        return self._run(
            "consume_materials",
            lambda: self.consumption.consume(work_order_id, lines, created_by=created_by),
        )

    def material_status(self, work_order_id: int) -> EngineResult[WorkOrderMaterialStatus]:
        return self._run("material_status", lambda: self.status.status(work_order_id))
