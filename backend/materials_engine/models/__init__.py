"""
SQLAlchemy models
"""
from materials_engine.models.material import Material, Product
from materials_engine.models.bom import BOMLine
from materials_engine.models.work_order import WorkOrder, WorkOrderLine
from materials_engine.models.inventory import InventoryLocation, Inventory, InventoryTransaction
from materials_engine.models.reservation import MaterialReservation, MaterialConsumption
from materials_engine.models.audit_log import AuditLog

__all__ = [
    "Material",
    "Product",
    "BOMLine",
    "WorkOrder",
    "WorkOrderLine",
    "InventoryLocation",
    "Inventory",
    "InventoryTransaction",
    "MaterialReservation",
    "MaterialConsumption",
    "AuditLog",
]
