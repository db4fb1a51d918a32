"""
Bill of Materials model

One BOMLine is one edge of the explosion graph: building one unit of
`product` consumes `quantity_per_unit` of `material`.
"""
from sqlalchemy import Column, Integer, String, Numeric, ForeignKey, Text, CheckConstraint, UniqueConstraint
from sqlalchemy.orm import relationship

from materials_engine.db.base import Base


class BOMLine(Base):
    """BOM line - matches bom_lines table"""
    __tablename__ = "bom_lines"
    __table_args__ = (
        CheckConstraint("quantity_per_unit > 0", name="ck_bom_lines_quantity_positive"),
        UniqueConstraint("product_id", "material_id", name="uq_bom_lines_product_material"),
    )

    id = Column(Integer, primary_key=True, index=True)
    product_id = Column(Integer, ForeignKey('products.id', ondelete='CASCADE'), nullable=False, index=True)
    material_id = Column(Integer, ForeignKey('materials.id'), nullable=False, index=True)

    quantity_per_unit = Column(Numeric(18, 4), nullable=False)
    unit = Column(String(20), default='EA', nullable=False)
    sequence = Column(Integer, default=1, nullable=False)
    notes = Column(Text, nullable=True)

    # Relationships
    product = relationship("Product", back_populates="bom_lines")
    material = relationship("Material")

    def __repr__(self):
        return f"<BOMLine product={self.product_id} material={self.material_id} x {self.quantity_per_unit}>"
