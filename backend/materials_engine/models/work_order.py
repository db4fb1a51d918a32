"""
Work Order models

Work orders are owned by the production module. The engine only reads
(work_order_id, product_id, quantity) and writes reservation and
consumption records keyed by work_order_id.
"""
from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey, Text, CheckConstraint
from sqlalchemy.orm import relationship
from datetime import datetime

from materials_engine.db.base import Base


class WorkOrder(Base):
    """
    Production order for one or more products.

    Lifecycle: created → materials_reserved → materials_consumed → closed
    """
    __tablename__ = "work_orders"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    status = Column(String(50), default='created', nullable=False, index=True)
    notes = Column(Text, nullable=True)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
    created_by = Column(String(100), nullable=True)

    # Relationships
    lines = relationship(
        "WorkOrderLine",
        back_populates="work_order",
        cascade="all, delete-orphan",
        order_by="WorkOrderLine.id",
    )
    reservations = relationship(
        "MaterialReservation",
        back_populates="work_order",
        order_by="MaterialReservation.id",
    )
    consumptions = relationship(
        "MaterialConsumption",
        back_populates="work_order",
        order_by="MaterialConsumption.id",
    )

    def __repr__(self):
        return f"<WorkOrder {self.code}: {self.status}>"


class WorkOrderLine(Base):
    """One product and quantity to build within a work order"""
    __tablename__ = "work_order_lines"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_work_order_lines_quantity_positive"),
    )

    id = Column(Integer, primary_key=True, index=True)
    work_order_id = Column(Integer, ForeignKey('work_orders.id', ondelete='CASCADE'), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey('products.id'), nullable=True, index=True)
    quantity = Column(Numeric(18, 4), nullable=False)

    # Relationships
    work_order = relationship("WorkOrder", back_populates="lines")
    product = relationship("Product")

    def __repr__(self):
        return f"<WorkOrderLine wo={self.work_order_id} product={self.product_id} x {self.quantity}>"
