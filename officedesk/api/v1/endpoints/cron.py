"""
Scheduled Job Endpoints

Called by an external scheduler with `Authorization: Bearer <CRON_SECRET>`.
The endpoints are disabled while CRON_SECRET is unset.
"""
import secrets
from typing import Optional

from fastapi import APIRouter, Depends, Header
from sqlmodel import Session

from officedesk.core.config import settings
from officedesk.core.errors import AuthenticationError, NotFoundError
from officedesk.db.session import get_db
from officedesk.services.client_history import remove_expired_guest_clients

router = APIRouter()


def verify_cron_secret(authorization: Optional[str] = Header(default=None)) -> None:
    if not settings.CRON_SECRET:
        raise NotFoundError("Not found")
    expected = f"Bearer {settings.CRON_SECRET}"
    if not authorization or not secrets.compare_digest(authorization, expected):
        raise AuthenticationError("Unauthorized")


@router.get("/expired-clients", dependencies=[Depends(verify_cron_secret)])
def expired_clients(db: Session = Depends(get_db)):
    results = remove_expired_guest_clients(db)
    return {
        "message": f"Deleted {len(results)} expired guest clients",
        "deleted_count": len(results),
        "results": results,
    }
