"""
Material reservation and consumption models
"""
from decimal import Decimal
from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, CheckConstraint
from sqlalchemy.orm import relationship

from materials_engine.db.base import Base


class MaterialReservation(Base):
    """
    A claim by a work order on a quantity of a material.

    quantity is what was originally reserved and never changes after insert.
    Consumption and release are tracked in their own columns so the
    remaining claim is always quantity - consumed - released.
    """
    __tablename__ = "material_reservations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_material_reservations_quantity_positive"),
        CheckConstraint("consumed_quantity >= 0", name="ck_material_reservations_consumed_non_negative"),
        CheckConstraint("released_quantity >= 0", name="ck_material_reservations_released_non_negative"),
        CheckConstraint(
            "consumed_quantity + released_quantity <= quantity",
            name="ck_material_reservations_within_quantity",
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey('work_orders.id'), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey('materials.id'), nullable=False, index=True)

    quantity = Column(Numeric(18, 4), nullable=False)
    consumed_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    released_quantity = Column(Numeric(18, 4), default=0, nullable=False)

    # RESERVED, PARTIALLY_CONSUMED, CONSUMED, RELEASED
    status = Column(String(30), default='RESERVED', nullable=False, index=True)
    priority = Column(String(20), default='NORMAL', nullable=False)

    created_by = Column(String(100), nullable=False)
    reserved_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    released_at = Column(DateTime, nullable=True)
    released_by = Column(String(100), nullable=True)

    # Relationships
    work_order = relationship("WorkOrder", back_populates="reservations")
    material = relationship("Material")
    consumptions = relationship("MaterialConsumption", back_populates="reservation")

    @property
    def remaining_quantity(self) -> Decimal:
        return (
            Decimal(self.quantity or 0)
            - Decimal(self.consumed_quantity or 0)
            - Decimal(self.released_quantity or 0)
        )

    def __repr__(self):
        return f"<MaterialReservation wo={self.work_order_id} material={self.material_id} {self.status}>"


class MaterialConsumption(Base):
    """Append-only record of material actually used by a work order"""
    __tablename__ = "material_consumptions"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_material_consumptions_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey('work_orders.id'), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey('materials.id'), nullable=False, index=True)
    reservation_id = Column(Integer, ForeignKey('material_reservations.id'), nullable=False, index=True)

    quantity = Column(Numeric(18, 4), nullable=False)

    consumed_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by = Column(String(100), nullable=False)

    # Relationships
    work_order = relationship("WorkOrder", back_populates="consumptions")
    material = relationship("Material")
    reservation = relationship("MaterialReservation", back_populates="consumptions")

    def __repr__(self):
        return f"<MaterialConsumption wo={self.work_order_id} material={self.material_id} x {self.quantity}>"
