"""
Client Endpoints Module

All staff can list and view clients and their history; only administrators
can create, update or delete them, or add to their history.
"""
from typing import Any, List

from fastapi import APIRouter, Depends
from sqlmodel import Session, select, col

from officedesk.api import deps
from officedesk.core.errors import NotFoundError, ValidationError
from officedesk.core.permissions import Action
from officedesk.db.session import get_db
from officedesk.models.base import utcnow
from officedesk.models.client import Client, ClientHistory, ClientHistoryType
from officedesk.models.user import User
from officedesk.schemas.client import (
    ClientCreate,
    ClientHistoryCreate,
    ClientHistoryPin,
    ClientHistoryRead,
    ClientRead,
    ClientUpdate,
)
from officedesk.services.activity import log_activity
from officedesk.services.client_history import (
    detach_client,
    list_general_entries,
    list_task_entries,
    remove_expired_guest_clients,
)

router = APIRouter()

can_view = deps.PermissionChecker(Action.VIEW_CLIENT)
can_modify = deps.PermissionChecker(Action.MODIFY_CLIENT)


def _get_client_or_404(db: Session, client_id: str) -> Client:
    client = db.get(Client, client_id)
    if not client:
        raise NotFoundError("Client not found")
    return client


@router.get("", response_model=List[ClientRead])
def list_clients(
    skip: int = 0,
    limit: int = 100,
    is_guest: bool = None,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    statement = select(Client)
    if is_guest is not None:
        statement = statement.where(Client.is_guest == is_guest)
    statement = statement.order_by(col(Client.contact_person)).offset(skip).limit(limit)
    return db.exec(statement).all()


@router.post("/expired/cleanup")
def cleanup_expired_guests(
    db: Session = Depends(get_db),
    current_user: User = Depends(can_modify),
):
    """Remove guest clients whose access has expired."""
    results = remove_expired_guest_clients(db)
    return {
        "message": f"Deleted {len(results)} expired guest clients",
        "deleted_count": len(results),
        "results": results,
    }


@router.get("/{client_id}", response_model=ClientRead)
def read_client(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
):
    return _get_client_or_404(db, client_id)


@router.post("", response_model=ClientRead, status_code=201)
def create_client(
    client_in: ClientCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_modify),
):
    """Guest clients must carry an access expiry date."""
    if client_in.is_guest and client_in.access_expiry is None:
        raise ValidationError("Guest clients require an access expiry date")

    client = Client(**client_in.model_dump(), created_by_id=current_user.id)
    db.add(client)
    db.commit()
    db.refresh(client)

    log_activity(db, "client", "created", client.contact_person, current_user.id, {"clientId": client.id})
    return client


@router.patch("/{client_id}", response_model=ClientRead)
def update_client(
    client_id: str,
    client_update: ClientUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_modify),
):
    client = _get_client_or_404(db, client_id)

    for key, value in client_update.model_dump(exclude_unset=True).items():
        setattr(client, key, value)
    client.updated_at = utcnow()

    db.add(client)
    db.commit()
    db.refresh(client)

    log_activity(db, "client", "updated", client.contact_person, current_user.id, {"clientId": client.id})
    return client


@router.delete("/{client_id}")
def delete_client(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_modify),
):
    """Delete a client with its history. Its tasks are kept and lose the client link."""
    client = _get_client_or_404(db, client_id)
    name = client.contact_person

    detach_client(db, client.id)
    db.delete(client)
    db.commit()

    log_activity(db, "client", "deleted", name, current_user.id, {"clientId": client_id})
    return {"status": "success", "detail": "Client deleted"}


def _history_read(db: Session, entry: ClientHistory) -> ClientHistoryRead:
    author = db.get(User, entry.created_by_id)
    return ClientHistoryRead(
        **entry.model_dump(),
        created_by_name=author.name if author else None,
    )


def _get_entry_or_404(db: Session, client_id: str, entry_id: str) -> ClientHistory:
    entry = db.get(ClientHistory, entry_id)
    if not entry or entry.client_id != client_id:
        raise NotFoundError("History entry not found")
    return entry


@router.get("/{client_id}/history", response_model=List[ClientHistoryRead])
def read_client_history(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
) -> Any:
    _get_client_or_404(db, client_id)
    return [_history_read(db, entry) for entry in list_general_entries(db, client_id)]


@router.post("/{client_id}/history", response_model=ClientHistoryRead, status_code=201)
def add_client_history(
    client_id: str,
    entry_in: ClientHistoryCreate,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_modify),
) -> Any:
    client = _get_client_or_404(db, client_id)
    entry = ClientHistory(
        client_id=client.id,
        type=ClientHistoryType.GENERAL,
        content=entry_in.description.strip(),
        created_by_id=current_user.id,
    )
    db.add(entry)
    db.commit()
    db.refresh(entry)

    log_activity(db, "client", "history_added", client.contact_person, current_user.id,
                 {"clientId": client.id, "entryId": entry.id})
    return _history_read(db, entry)


@router.patch("/{client_id}/history/{entry_id}", response_model=ClientHistoryRead)
def pin_client_history(
    client_id: str,
    entry_id: str,
    pin_in: ClientHistoryPin,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_modify),
) -> Any:
    entry = _get_entry_or_404(db, client_id, entry_id)
    entry.pinned = pin_in.pinned
    db.add(entry)
    db.commit()
    db.refresh(entry)
    return _history_read(db, entry)


@router.delete("/{client_id}/history/{entry_id}")
def delete_client_history(
    client_id: str,
    entry_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_modify),
) -> Any:
    entry = _get_entry_or_404(db, client_id, entry_id)
    db.delete(entry)
    db.commit()
    return {"status": "success", "detail": "History entry deleted"}


@router.get("/{client_id}/task-history", response_model=List[ClientHistoryRead])
def read_client_task_history(
    client_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(can_view),
) -> Any:
    """Snapshots of the client's tasks whose billing was approved."""
    _get_client_or_404(db, client_id)
    return [_history_read(db, entry) for entry in list_task_entries(db, client_id)]
