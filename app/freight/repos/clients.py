from sqlalchemy import func, or_, select

from app.freight.db.models import Client, ClientContact


CLIENT_SORT_FIELDS = {
    "created_at": Client.created_at,
    "updated_at": Client.updated_at,
    "company_name": Client.company_name,
    "last_name": Client.last_name,
    "email": Client.email,
    "status": Client.status,
}


class ClientRepository:
    def __init__(self, db):
        self.db = db

    def get_by_id(self, client_id, tenant_id, *, for_update: bool = False):
        stmt = select(Client).where(
            Client.id == client_id,
            Client.tenant_id == tenant_id,
            Client.deleted_at.is_(None),
        )
        if for_update:
            stmt = stmt.with_for_update()
        return self.db.execute(stmt).scalars().first()

    def get_many_any_state(self, client_ids, tenant_id):
        stmt = select(Client).where(Client.id.in_(client_ids), Client.tenant_id == tenant_id)
        return {client.id: client for client in self.db.execute(stmt).scalars().all()}

    def find_conflict(self, tenant_id, *, email: str | None, siret: str | None, exclude_id=None):
        clauses = []
        if email:
            clauses.append(func.lower(Client.email) == email.lower())
        if siret:
            clauses.append(Client.siret == siret)
        if not clauses:
            return None
        stmt = select(Client).where(Client.tenant_id == tenant_id, or_(*clauses))
        if exclude_id is not None:
            stmt = stmt.where(Client.id != exclude_id)
        return self.db.execute(stmt).scalars().first()

    def add(self, client: Client) -> Client:
        self.db.add(client)
        self.db.flush()
        return client

    def list_by_tenant(
        self,
        tenant_id,
        *,
        client_type: str | None = None,
        status: str | None = None,
        search: str | None = None,
        sort_by: str = "created_at",
        sort_order: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ):
        conditions = [Client.tenant_id == tenant_id, Client.deleted_at.is_(None)]
        if client_type:
            conditions.append(Client.client_type == client_type)
        if status:
            conditions.append(Client.status == status)
        if search and search.strip():
            pattern = f"%{search.strip()}%"
            conditions.append(
                or_(
                    Client.first_name.ilike(pattern),
                    Client.last_name.ilike(pattern),
                    Client.company_name.ilike(pattern),
                    Client.email.ilike(pattern),
                    Client.siret.ilike(pattern),
                )
            )
        sort_column = CLIENT_SORT_FIELDS.get(sort_by, Client.created_at)
        order = sort_column.asc() if sort_order == "asc" else sort_column.desc()
        stmt = select(Client).where(*conditions).order_by(order, Client.id).offset(offset).limit(limit)
        rows = self.db.execute(stmt).scalars().all()
        total = self.db.execute(select(func.count()).select_from(Client).where(*conditions)).scalar_one()
        return rows, total

    def count_by(self, tenant_id, column_name: str):
        column = getattr(Client, column_name)
        stmt = (
            select(column, func.count())
            .where(Client.tenant_id == tenant_id, Client.deleted_at.is_(None))
            .group_by(column)
        )
        return {key: count for key, count in self.db.execute(stmt).all()}


class ClientContactRepository:
    def __init__(self, db):
        self.db = db

    def list_for_client(self, client_id, tenant_id):
        stmt = (
            select(ClientContact)
            .where(ClientContact.client_id == client_id, ClientContact.tenant_id == tenant_id)
            .order_by(ClientContact.is_primary.desc(), ClientContact.created_at, ClientContact.id)
        )
        return self.db.execute(stmt).scalars().all()

    def get(self, contact_id, client_id, tenant_id):
        stmt = select(ClientContact).where(
            ClientContact.id == contact_id,
            ClientContact.client_id == client_id,
            ClientContact.tenant_id == tenant_id,
        )
        return self.db.execute(stmt).scalars().first()

    def add(self, contact: ClientContact) -> ClientContact:
        self.db.add(contact)
        self.db.flush()
        return contact

    def remove(self, contact: ClientContact) -> None:
        self.db.delete(contact)
        self.db.flush()
