"""Connection repository."""

from typing import Optional, List
from sqlmodel import select
from portal.repository.base import BaseRepository
from .models import Connection, AccessLevel, FullAccessStatus


class ConnectionRepository(BaseRepository[Connection]):

    def __init__(self, session):
        super().__init__(session, Connection)

    async def get_by_pair(self, patient_id: int, provider_id: int) -> Optional[Connection]:
        return await self.find_one(patient_id=patient_id, provider_id=provider_id)

    async def list_connections(
        self,
        patient_id: Optional[int] = None,
        provider_id: Optional[int] = None,
        access_level: Optional[AccessLevel] = None,
        full_access_status: Optional[FullAccessStatus] = None,
    ) -> List[Connection]:
        """Newest first."""
        statement = select(Connection)
        if patient_id is not None:
            statement = statement.where(Connection.patient_id == patient_id)
        if provider_id is not None:
            statement = statement.where(Connection.provider_id == provider_id)
        if access_level is not None:
            statement = statement.where(Connection.access_level == access_level)
        if full_access_status is not None:
            statement = statement.where(Connection.full_access_status == full_access_status)
        statement = statement.order_by(Connection.created_at.desc(), Connection.id.desc())
        result = await self.session.exec(statement)
        return list(result.all())
