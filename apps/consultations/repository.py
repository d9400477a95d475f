"""Consultation repository."""

from datetime import datetime
from typing import Optional, List, Tuple
from sqlmodel import select
from portal.repository.base import BaseRepository
from apps.connections.policy import VisibilityScope
from .models import Consultation, ConsultationStatus


class ConsultationRepository(BaseRepository[Consultation]):

    def __init__(self, session):
        super().__init__(session, Consultation)

    def scoped(self, scope: VisibilityScope):
        statement = select(Consultation)
        if scope.patient_id is not None:
            statement = statement.where(Consultation.patient_id == scope.patient_id)
        if scope.provider_id is not None:
            statement = statement.where(Consultation.provider_id == scope.provider_id)
        if scope.completed_only:
            statement = statement.where(Consultation.status == ConsultationStatus.COMPLETED)
        return statement

    async def search(
        self,
        scope: VisibilityScope,
        status: Optional[ConsultationStatus] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[Consultation], int]:
        """Page of consultations, newest first. Archived rows only when asked for."""
        statement = self.scoped(scope)
        if status is not None:
            statement = statement.where(Consultation.status == status)
        else:
            statement = statement.where(Consultation.status != ConsultationStatus.ARCHIVED)
        if start_date is not None:
            statement = statement.where(Consultation.date >= start_date)
        if end_date is not None:
            statement = statement.where(Consultation.date <= end_date)

        total = await self.count_statement(statement)
        statement = statement.order_by(Consultation.date.desc(), Consultation.id.desc()).limit(limit).offset(offset)
        result = await self.session.exec(statement)
        return list(result.all()), total

    async def count_since(self, scope: VisibilityScope, since: Optional[datetime] = None) -> int:
        statement = self.scoped(scope).where(Consultation.status != ConsultationStatus.ARCHIVED)
        if since is not None:
            statement = statement.where(Consultation.date >= since)
        return await self.count_statement(statement)

    async def recent(self, scope: VisibilityScope, limit: int = 5) -> List[Consultation]:
        statement = (
            self.scoped(scope)
            .where(Consultation.status != ConsultationStatus.ARCHIVED)
            .order_by(Consultation.date.desc(), Consultation.id.desc())
            .limit(limit)
        )
        result = await self.session.exec(statement)
        return list(result.all())
