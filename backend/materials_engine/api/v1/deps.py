"""
API Dependencies
"""
from typing import Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from materials_engine.core.settings import get_settings
from materials_engine.db.session import get_db
from materials_engine.services.engine import MaterialRequirementsEngine


def get_engine(db: Session = Depends(get_db)) -> MaterialRequirementsEngine:
    """Engine bound to the request's database session."""
    return MaterialRequirementsEngine(db)


def get_actor(x_actor: Optional[str] = Header(None, max_length=100)) -> str:
    """
    Who is making the request: the X-Actor header, else settings.DEFAULT_ACTOR.

    A created_by field in the request body takes precedence over this.
    """
    return x_actor or get_settings().DEFAULT_ACTOR
