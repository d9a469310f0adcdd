from fastapi import APIRouter, Depends
from sqlmodel import Session, text

from officedesk.db.session import get_db

router = APIRouter()


@router.get("")
def health_check(db: Session = Depends(get_db)):
    db.exec(text("SELECT 1"))
    return {"status": "ok"}
