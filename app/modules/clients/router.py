from fastapi import APIRouter, Query, Path, status
from typing import Optional
from uuid import UUID

from app.dependencies.dbDependecies import db_dependency
from app.dependencies.userDependencies import any_role_dependency, staff_dependency
from app.modules.documents.dependencies import documents_dependency
from app.modules.clients.service import ClientService
from app.modules.clients.schemas import ClientCreate, ClientUpdate, ClientOut, ClientList

router = APIRouter(
    prefix="/clients",
    tags=["Clients"],
    responses={404: {"description": "Not found"}}
)


@router.post("", response_model=ClientOut, status_code=status.HTTP_201_CREATED)
def create_client(client_data: ClientCreate, db: db_dependency, auth_context: staff_dependency):
    return ClientService(db).create_client(client_data)


@router.get("", response_model=ClientList)
def list_clients(
    db: db_dependency,
    auth_context: any_role_dependency,
    limit: int = Query(100, ge=1, le=500),
    offset: int = Query(0, ge=0),
    search: Optional[str] = Query(None, description="Match on name or email")
):
    return ClientService(db).list_clients(limit, offset, search)


@router.get("/{client_id}", response_model=ClientOut)
def get_client(db: db_dependency, auth_context: any_role_dependency, client_id: UUID = Path(...)):
    return ClientService(db).get_client(client_id)


@router.put("/{client_id}", response_model=ClientOut)
def update_client(
    client_data: ClientUpdate,
    db: db_dependency,
    documents: documents_dependency,
    auth_context: staff_dependency,
    client_id: UUID = Path(...)
):
    """Update only the fields present in the body. Cached documents of the client's invoices are dropped."""
    return ClientService(db, documents).update_client(client_id, client_data)


@router.delete("/{client_id}")
def delete_client(db: db_dependency, auth_context: staff_dependency, client_id: UUID = Path(...)):
    """
    Delete a client.

    Refused with 409 while any invoice references the client.
    """
    return ClientService(db).delete_client(client_id)
