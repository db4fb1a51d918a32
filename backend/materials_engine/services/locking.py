"""
Inventory row locking and transaction scope

Every stock decision (reserve, release, consume, receive, adjust) runs as:

    with transactional(db):
        rows = lock_material_rows(db, material_ids)
        ... re-read availability, check, write ...

lock_material_rows bumps lock_version on the inventory rows of every
material involved before anything is read. On PostgreSQL that UPDATE plus
SELECT ... FOR UPDATE holds row locks; on SQLite the UPDATE takes the
database write lock. Either way a competing writer waits until commit or
rollback, then sees the committed result. Materials are always locked in
ascending id order so two requests over the same materials cannot deadlock.
"""
from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List

from sqlalchemy import select, text, update
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.exceptions import LockTimeoutError, NotFoundError
from materials_engine.logging_config import get_logger
from materials_engine.models.inventory import Inventory, InventoryLocation
from materials_engine.models.material import Material

logger = get_logger(__name__)


@contextmanager
def transactional(db: Session) -> Iterator[Session]:
    """Commit on success, roll back every write of the block on any error."""
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise


def get_or_create_default_location(db: Session) -> InventoryLocation:
    """Default stocking location (settings.DEFAULT_LOCATION_CODE), created on first use."""
    code = get_settings().DEFAULT_LOCATION_CODE
    location = db.query(InventoryLocation).filter(InventoryLocation.code == code).first()
    if not location:
        location = InventoryLocation(name="Main Warehouse", code=code, type="warehouse", active=True)
        db.add(location)
        db.flush()
        logger.info("Created default inventory location", extra={"location_code": code})
    return location


def lock_material_rows(db: Session, material_ids: Iterable[int]) -> Dict[int, List[Inventory]]:
    """
    Lock the inventory rows of the given materials for the current transaction.

    Every locked material is guaranteed a row at the default location.
    Returns {material_id: [Inventory rows, default location first]}.

    Raises:
        NotFoundError: a material id does not exist
        LockTimeoutError: the lock could not be acquired within LOCK_TIMEOUT_MS
    """
    ids = sorted(set(material_ids))
    if not ids:
        return {}

    settings = get_settings()
    try:
        if db.get_bind().dialect.name == "postgresql":
            db.execute(text(f"SET LOCAL lock_timeout = '{int(settings.LOCK_TIMEOUT_MS)}ms'"))

        db.execute(
            update(Inventory)
            .where(Inventory.material_id.in_(ids))
            .values(lock_version=Inventory.lock_version + 1)
            .execution_options(synchronize_session=False)
        )

        found = {
            m.id for m in db.query(Material.id).filter(Material.id.in_(ids)).all()
        }
        for material_id in ids:
            if material_id not in found:
                raise NotFoundError("Material", material_id)

        location = get_or_create_default_location(db)
        existing = {
            row.material_id
            for row in db.query(Inventory.material_id)
            .filter(Inventory.material_id.in_(ids), Inventory.location_id == location.id)
            .all()
        }
        for material_id in ids:
            if material_id not in existing:
                db.add(Inventory(
                    material_id=material_id,
                    location_id=location.id,
                    on_hand_quantity=0,
                    allocated_quantity=0,
                    lock_version=1,
                ))
        db.flush()

        rows = db.execute(
            select(Inventory)
            .where(Inventory.material_id.in_(ids))
            .order_by(Inventory.material_id, Inventory.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalars().all()
    except (OperationalError, IntegrityError) as e:
        # Lock wait exceeded, "database is locked", or a concurrent
        # creation of the same default-location row
        db.rollback()
        logger.warning(
            "Could not lock inventory rows",
            extra={"material_ids": ids, "error": str(e.orig) if e.orig else str(e)},
        )
        raise LockTimeoutError(ids, timeout_ms=settings.LOCK_TIMEOUT_MS) from e

    locked: Dict[int, List[Inventory]] = {material_id: [] for material_id in ids}
    for row in rows:
        locked[row.material_id].append(row)
    for material_rows in locked.values():
        material_rows.sort(key=lambda r: (r.location_id != location.id, r.id))
    return locked
