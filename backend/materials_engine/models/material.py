"""
Material and Product models - reference data for BOM explosion
"""
from sqlalchemy import Column, Integer, String, DateTime, Boolean, Text, ForeignKey
from sqlalchemy.orm import relationship
from datetime import datetime

from materials_engine.db.base import Base


class Material(Base):
    """
    A stocked material (raw material, purchased part, or a built sub-assembly).

    Immutable reference data: identity plus unit of measure.
    """
    __tablename__ = "materials"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    unit = Column(String(20), default='EA', nullable=False)
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    inventory_items = relationship("Inventory", back_populates="material")
    # Set when this material is built in-house from its own BOM
    produced_by = relationship("Product", back_populates="output_material", uselist=False)

    def __repr__(self):
        return f"<Material {self.code}: {self.name}>"


class Product(Base):
    """
    A buildable item. Its BOM lines say which materials one unit consumes.

    When material_id is set the product is a sub-assembly: BOM lines
    elsewhere that call for that material are expanded through this
    product's own BOM.
    """
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(50), unique=True, nullable=False, index=True)
    name = Column(String(255), nullable=False)
    unit = Column(String(20), default='EA', nullable=False)
    material_id = Column(
        Integer, ForeignKey('materials.id'), nullable=True, unique=True, index=True
    )
    active = Column(Boolean, default=True, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    output_material = relationship("Material", back_populates="produced_by")
    bom_lines = relationship(
        "BOMLine",
        back_populates="product",
        cascade="all, delete-orphan",
        order_by="BOMLine.sequence",
    )

    def __repr__(self):
        return f"<Product {self.code}: {self.name}>"
