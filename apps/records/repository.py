"""Medical record repository."""

from datetime import date, datetime, timezone
from typing import Optional, List, Tuple
from sqlalchemy import String, case, cast, func, or_
from sqlmodel import select
from portal.repository.base import BaseRepository
from apps.connections.policy import VisibilityScope
from apps.consultations.models import Consultation, ConsultationStatus
from .models import MedicalRecord, RecordType

SORT_COLUMNS = {
    "date": MedicalRecord.date,
    "created_at": MedicalRecord.created_at,
}

# Vitals statistic -> JSON path of the averaged value
VITALS_AVERAGES = {
    "heart_rate": ("heart_rate", "value"),
    "systolic": ("blood_pressure", "systolic"),
    "diastolic": ("blood_pressure", "diastolic"),
    "temperature": ("body_temperature", "value"),
    "weight": ("weight", "value"),
}


class MedicalRecordRepository(BaseRepository[MedicalRecord]):

    def __init__(self, session):
        super().__init__(session, MedicalRecord)

    def scoped(self, record_type: RecordType, scope: VisibilityScope):
        statement = select(MedicalRecord).where(
            MedicalRecord.record_type == record_type,
            MedicalRecord.is_deleted == False,  # noqa: E712
        )
        if scope.patient_id is not None:
            statement = statement.where(MedicalRecord.patient_id == scope.patient_id)
        if scope.provider_id is not None:
            statement = statement.where(MedicalRecord.provider_id == scope.provider_id)
        if scope.completed_only:
            # Patient-entered records have no consultation and are always visible
            statement = statement.outerjoin(
                Consultation, MedicalRecord.consultation_id == Consultation.id
            ).where(or_(
                MedicalRecord.consultation_id.is_(None),
                Consultation.status == ConsultationStatus.COMPLETED,
            ))
        return statement

    def in_range(
        self,
        record_type: RecordType,
        scope: VisibilityScope,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
    ):
        statement = self.scoped(record_type, scope)
        if start_date is not None:
            statement = statement.where(MedicalRecord.date >= start_date)
        if end_date is not None:
            statement = statement.where(MedicalRecord.date <= end_date)
        return statement

    async def search(
        self,
        record_type: RecordType,
        scope: VisibilityScope,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        search: Optional[str] = None,
        sort_by: str = "date",
        descending: bool = True,
        limit: int = 20,
        offset: int = 0,
    ) -> Tuple[List[MedicalRecord], int]:
        statement = self.in_range(record_type, scope, start_date, end_date)
        if search:
            pattern = f"%{search.strip()}%"
            statement = statement.where(or_(
                cast(MedicalRecord.data, String).ilike(pattern),
                MedicalRecord.notes.ilike(pattern),
            ))

        total = await self.count_statement(statement)
        column = SORT_COLUMNS.get(sort_by, MedicalRecord.date)
        order = column.desc() if descending else column.asc()
        statement = statement.order_by(order, MedicalRecord.id.desc() if descending else MedicalRecord.id.asc())
        statement = statement.limit(limit).offset(offset)
        result = await self.session.exec(statement)
        return list(result.all()), total

    async def statistics(
        self,
        record_type: RecordType,
        scope: VisibilityScope,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None,
        today: Optional[date] = None,
    ) -> dict:
        """Aggregates computed in the database over the visible records."""
        rows = self.in_range(record_type, scope, start_date, end_date).subquery()

        if record_type == RecordType.VITALS:
            averages = [
                func.avg(rows.c.data[path].as_float()).label(key)
                for key, path in VITALS_AVERAGES.items()
            ]
            result = await self.session.exec(select(func.count().label("record_count"), *averages).select_from(rows))
            row = result.one()
            stats = {"record_count": row.record_count}
            for key in VITALS_AVERAGES:
                value = getattr(row, key)
                stats[f"avg_{key}"] = round(float(value), 1) if value is not None else None
            return stats

        if record_type == RecordType.MEDICATIONS:
            today = today or datetime.now(timezone.utc).date()
            end_date_value = rows.c.data["end_date"].as_string()
            active = func.sum(case(
                (or_(end_date_value.is_(None), end_date_value >= today.isoformat()), 1),
                else_=0,
            ))
            result = await self.session.exec(select(func.count().label("total"), active.label("active")).select_from(rows))
            row = result.one()
            active_count = int(row.active or 0)
            return {"active": active_count, "completed": row.total - active_count, "total": row.total}

        result = await self.session.exec(select(func.count()).select_from(rows))
        return {"total": result.one()}

    async def for_consultation(self, consultation_id: int, record_type: Optional[RecordType] = None) -> List[MedicalRecord]:
        statement = select(MedicalRecord).where(
            MedicalRecord.consultation_id == consultation_id,
            MedicalRecord.is_deleted == False,  # noqa: E712
        )
        if record_type is not None:
            statement = statement.where(MedicalRecord.record_type == record_type)
        result = await self.session.exec(statement.order_by(MedicalRecord.date, MedicalRecord.id))
        return list(result.all())
