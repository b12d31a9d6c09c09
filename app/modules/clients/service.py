from sqlalchemy import func, or_
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from typing import Optional
from uuid import UUID
import logging

from app.common.exceptions import ClientInUse, ClientNotFound, DependencyUnavailable
from app.modules.clients.models import Client
from app.modules.clients.schemas import ClientCreate, ClientUpdate, ClientList
from app.modules.invoices.models import Invoice

logger = logging.getLogger(__name__)


class ClientService:
    """
    Client CRUD.

    Invoice documents print the client block, so ``documents`` (the
    document service) drops the cached files of every invoice of a client
    whose details change.
    """

    def __init__(self, db: Session, documents=None):
        self.db = db
        self.documents = documents

    def create_client(self, client_data: ClientCreate) -> Client:
        try:
            client = Client(**client_data.model_dump())
            self.db.add(client)
            self.db.commit()
            self.db.refresh(client)
            logger.info(f"Client created: {client.id} ({client.name})")
            return client
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error creating client: {e}")
            raise DependencyUnavailable("Could not store the client")

    def list_clients(self, limit: int = 100, offset: int = 0, search: Optional[str] = None) -> ClientList:
        query = self.db.query(Client)
        if search:
            pattern = f"%{search}%"
            query = query.filter(or_(Client.name.ilike(pattern), Client.email.ilike(pattern)))

        total = query.count()
        clients = query.order_by(Client.name).offset(offset).limit(limit).all()
        return ClientList(clients=clients, total=total, limit=limit, offset=offset)

    def get_client(self, client_id: UUID) -> Client:
        client = self.db.query(Client).filter(Client.id == client_id).first()
        if not client:
            raise ClientNotFound(client_id)
        return client

    def update_client(self, client_id: UUID, client_data: ClientUpdate) -> Client:
        client = self.get_client(client_id)
        try:
            for field, value in client_data.model_dump(exclude_unset=True).items():
                setattr(client, field, value)
            self.db.commit()
            self.db.refresh(client)
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error updating client {client_id}: {e}")
            raise DependencyUnavailable("Could not update the client")

        self._invalidate_documents(client_id)
        return client

    def _invalidate_documents(self, client_id: UUID):
        if self.documents is None:
            return
        numbers = self.db.query(Invoice.number).filter(Invoice.client_id == client_id).all()
        for (number,) in numbers:
            self.documents.invalidate(number)
        if numbers:
            logger.info(f"Dropped {len(numbers)} cached document(s) of client {client_id}")

    def delete_client(self, client_id: UUID) -> dict:
        """
        Delete a client that no invoice references.

        Invoices keep a required reference to their client, so deleting a
        billed client is refused instead of orphaning its invoices.
        """
        client = self.get_client(client_id)
        invoice_count = self.db.query(func.count(Invoice.id)).filter(
            Invoice.client_id == client_id
        ).scalar()
        if invoice_count:
            raise ClientInUse(client_id, invoice_count)

        try:
            self.db.delete(client)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            logger.error(f"Error deleting client {client_id}: {e}")
            raise DependencyUnavailable("Could not delete the client")

        logger.info(f"Client deleted: {client_id}")
        return {"message": "Client deleted successfully"}
