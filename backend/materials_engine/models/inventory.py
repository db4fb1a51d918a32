"""
Inventory models
"""
from sqlalchemy import (
    Column, Integer, String, Numeric, DateTime, ForeignKey, Text, Boolean,
    CheckConstraint, UniqueConstraint,
)
from sqlalchemy.orm import relationship
from datetime import datetime

from materials_engine.db.base import Base


class InventoryLocation(Base):
    """Inventory Location model - matches inventory_locations table"""
    __tablename__ = "inventory_locations"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    code = Column(String(50), unique=True, nullable=False)
    type = Column(String(50), nullable=True)  # warehouse, shelf, bin, etc.
    active = Column(Boolean, default=True, nullable=False)

    # Inventory in this location
    inventory_items = relationship("Inventory", back_populates="location")

    def __repr__(self):
        return f"<InventoryLocation {self.code}: {self.name}>"


class Inventory(Base):
    """
    Stock of one material at one location.

    allocated_quantity is the running total of active reservation
    remaining quantities for the material, kept on the default-location row.
    lock_version is bumped whenever the row is locked for a stock decision.
    """
    __tablename__ = "inventory"
    __table_args__ = (
        UniqueConstraint("material_id", "location_id", name="uq_inventory_material_location"),
        CheckConstraint("on_hand_quantity >= 0", name="ck_inventory_on_hand_non_negative"),
        CheckConstraint("allocated_quantity >= 0", name="ck_inventory_allocated_non_negative"),
    )

    id = Column(Integer, primary_key=True, index=True)

    # References
    material_id = Column(Integer, ForeignKey('materials.id'), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey('inventory_locations.id'), nullable=False)

    # Quantities
    on_hand_quantity = Column(Numeric(18, 4), default=0, nullable=False)
    allocated_quantity = Column(Numeric(18, 4), default=0, nullable=False)

    lock_version = Column(Integer, default=0, nullable=False)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    # Relationships
    material = relationship("Material", back_populates="inventory_items")
    location = relationship("InventoryLocation", back_populates="inventory_items")

    def __repr__(self):
        return f"<Inventory material={self.material_id} location={self.location_id}: {self.on_hand_quantity}>"


class InventoryTransaction(Base):
    """Inventory Transaction model - matches inventory_transactions table"""
    __tablename__ = "inventory_transactions"

    id = Column(Integer, primary_key=True, index=True)

    # References
    material_id = Column(Integer, ForeignKey('materials.id'), nullable=False, index=True)
    location_id = Column(Integer, ForeignKey('inventory_locations.id'), nullable=True)

    # Transaction details
    transaction_type = Column(String(50), nullable=False)
    # receipt, consumption, adjustment

    reference_type = Column(String(50), nullable=True)
    # work_order, purchase_order, adjustment

    reference_id = Column(Integer, nullable=True)

    # Signed: negative for stock leaving the location
    quantity = Column(Numeric(18, 4), nullable=False)

    notes = Column(Text, nullable=True)

    # Metadata
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    created_by = Column(String(100), nullable=True)

    # Relationships
    location = relationship("InventoryLocation")
    material = relationship("Material")

    def __repr__(self):
        return f"<InventoryTransaction {self.transaction_type}: {self.quantity}>"
