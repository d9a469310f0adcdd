from typing import Any, Dict

from fastapi import APIRouter, Depends
from sqlmodel import Session

from officedesk.api import deps
from officedesk.core.cache import DashboardCache
from officedesk.db.session import get_db
from officedesk.models.user import User
from officedesk.services.dashboard import get_dashboard

router = APIRouter()


@router.get("")
def read_dashboard(
    db: Session = Depends(get_db),
    current_user: User = Depends(deps.get_current_user),
    cache: DashboardCache = Depends(deps.get_cache),
) -> Dict[str, Any]:
    """Role-specific task aggregates, cached per user."""
    return get_dashboard(db, current_user, cache)
