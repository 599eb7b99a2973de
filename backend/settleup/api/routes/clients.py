from uuid import UUID

from fastapi import APIRouter, Depends, Query, status
from sqlmodel import Session

from settleup.api.deps import get_current_active_user, get_db, get_dispatcher
from settleup.models.client import ClientStatus
from settleup.models.user import User
from settleup.schemas.client import (
    ClientCreate,
    ClientEmailSearch,
    ClientEnvelope,
    ClientList,
    ClientRead,
    ClientRespond,
    ClientUpdate,
)
from settleup.schemas.common import Envelope
from settleup.schemas.user import UserSummary
from settleup.services.client import ClientService
from settleup.services.notification import NotificationDispatcher

router = APIRouter(prefix="/clients", tags=["clients"])


def _service(session: Session, dispatcher: NotificationDispatcher | None = None) -> ClientService:
    return ClientService(session, dispatcher)


@router.post("", response_model=ClientEnvelope, status_code=status.HTTP_201_CREATED)
def create_client(
    payload: ClientCreate,
    session: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> ClientEnvelope:
    client = _service(session, dispatcher).create_client(current_user, payload)
    message = (
        "Client request sent successfully"
        if client.status == ClientStatus.PENDING.value
        else "Client added successfully"
    )
    return ClientEnvelope(message=message, client=ClientRead.model_validate(client))


@router.get("", response_model=ClientList)
def list_clients(
    status_filter: ClientStatus | None = Query(default=None, alias="status"),
    search: str | None = Query(default=None),
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ClientList:
    clients = _service(session).list_clients(current_user.id, status=status_filter, search=search)
    return ClientList(clients=[ClientRead.model_validate(item) for item in clients])


@router.get("/search/email", response_model=ClientEmailSearch)
def search_clients_by_email(
    email: str | None = Query(default=None),
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ClientEmailSearch:
    clients, users = _service(session).search_by_email(current_user.id, email)
    return ClientEmailSearch(
        clients=[ClientRead.model_validate(item) for item in clients],
        potential_users=[UserSummary.model_validate(item) for item in users],
    )


@router.get("/{client_id}", response_model=ClientEnvelope)
def get_client(
    client_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ClientEnvelope:
    client = _service(session).get_client(current_user.id, client_id)
    return ClientEnvelope(client=ClientRead.model_validate(client))


@router.post("/{client_id}/respond", response_model=ClientEnvelope)
def respond_to_client_request(
    client_id: UUID,
    payload: ClientRespond,
    session: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_active_user),
) -> ClientEnvelope:
    client = _service(session, dispatcher).respond(client_id, current_user, payload.accept)
    message = "Client request accepted successfully" if payload.accept else "Client request rejected"
    return ClientEnvelope(message=message, client=ClientRead.model_validate(client))


@router.put("/{client_id}", response_model=ClientEnvelope)
def update_client(
    client_id: UUID,
    payload: ClientUpdate,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> ClientEnvelope:
    client = _service(session).update_client(current_user.id, client_id, payload)
    return ClientEnvelope(message="Client updated successfully", client=ClientRead.model_validate(client))


@router.delete("/{client_id}", response_model=Envelope)
def delete_client(
    client_id: UUID,
    session: Session = Depends(get_db),
    current_user: User = Depends(get_current_active_user),
) -> Envelope:
    _service(session).delete_client(current_user.id, client_id)
    return Envelope(message="Client deleted successfully")
