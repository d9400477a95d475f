"""Medical record API test cases."""
import pytest
from datetime import datetime, timezone
from httpx import AsyncClient
from sqlmodel.ext.asyncio.session import AsyncSession

from apps.identity.models import User
from apps.connections.models import Connection
from apps.consultations.models import Consultation, ConsultationStatus
from apps.records.models import MedicalRecord, RecordType
from apps.records.service import format_vitals

BASE = "/api/v1/records"


async def add_record(
    session: AsyncSession,
    record_type: RecordType,
    patient: User,
    provider: User = None,
    data: dict = None,
    consultation: Consultation = None,
    **fields,
) -> MedicalRecord:
    record = MedicalRecord(
        record_type=record_type,
        patient_id=patient.id,
        provider_id=provider.id if provider else None,
        consultation_id=consultation.id if consultation else None,
        data=data or {},
        created_by_patient=provider is None,
        **fields,
    )
    session.add(record)
    await session.commit()
    await session.refresh(record)
    return record


async def add_consultation(session: AsyncSession, patient: User, provider: User, status: ConsultationStatus) -> Consultation:
    consultation = Consultation(
        patient_id=patient.id,
        provider_id=provider.id,
        specialist_name="Dr. House",
        specialty="Cardiology",
        practice="Clinic",
        reason_for_visit="Checkup",
        status=status,
    )
    session.add(consultation)
    await session.commit()
    await session.refresh(consultation)
    return consultation


def record_ids(response):
    return {r["id"] for r in response.json()["data"]["records"]}


MEDICATION = {
    "name": "Metformin",
    "dosage": {"value": "500", "unit": "mg"},
    "frequency": "twice daily",
    "start_date": "2026-01-01",
}


class TestListRecords:

    @pytest.mark.asyncio
    async def test_patient_sees_own_released_records(self, client: AsyncClient, async_session, as_user, patient, other_patient, provider):
        """Test records tied to a draft consultation stay hidden from the patient."""
        completed = await add_consultation(async_session, patient, provider, ConsultationStatus.COMPLETED)
        draft = await add_consultation(async_session, patient, provider, ConsultationStatus.DRAFT)
        visible = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION, completed)
        hidden = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION, draft)
        own = await add_record(async_session, RecordType.MEDICATIONS, patient, data=MEDICATION)
        await add_record(async_session, RecordType.MEDICATIONS, other_patient, provider, MEDICATION)

        as_user(patient)
        response = await client.get(f"{BASE}/medications")
        assert response.status_code == 200
        assert record_ids(response) == {visible.id, own.id}
        assert response.json()["data"]["pagination"]["total"] == 2

        assert (await client.get(f"{BASE}/medications/{hidden.id}")).status_code == 403
        assert (await client.get(f"{BASE}/medications/{visible.id}")).status_code == 200

    @pytest.mark.asyncio
    async def test_limited_provider_sees_only_authored(self, client: AsyncClient, async_session, as_user, patient, provider, other_provider):
        async_session.add(Connection(patient_id=patient.id, provider_id=provider.id))
        await async_session.commit()
        mine = await add_record(async_session, RecordType.LAB_RESULTS, patient, provider, {"test_name": "CBC"})
        theirs = await add_record(async_session, RecordType.LAB_RESULTS, patient, other_provider, {"test_name": "TSH"})

        as_user(provider)
        response = await client.get(f"{BASE}/lab-results", params={"patient_id": patient.id})
        assert record_ids(response) == {mine.id}
        assert (await client.get(f"{BASE}/lab-results/{theirs.id}")).status_code == 403

    @pytest.mark.asyncio
    async def test_full_provider_sees_everything(self, client: AsyncClient, async_session, as_user, patient, provider, other_provider):
        connection = Connection(patient_id=patient.id, provider_id=provider.id)
        connection.approve_full_access()
        async_session.add(connection)
        await async_session.commit()
        mine = await add_record(async_session, RecordType.LAB_RESULTS, patient, provider, {"test_name": "CBC"})
        theirs = await add_record(async_session, RecordType.LAB_RESULTS, patient, other_provider, {"test_name": "TSH"})
        self_entered = await add_record(async_session, RecordType.LAB_RESULTS, patient, data={"test_name": "Home"})

        as_user(provider)
        response = await client.get(f"{BASE}/lab-results", params={"patient_id": patient.id})
        assert record_ids(response) == {mine.id, theirs.id, self_entered.id}

    @pytest.mark.asyncio
    async def test_search_and_date_range(self, client: AsyncClient, async_session, as_user, patient):
        early = await add_record(
            async_session, RecordType.IMMUNIZATIONS, patient, data={"vaccine_name": "Hepatitis B"},
            date=datetime(2025, 1, 5, tzinfo=timezone.utc),
        )
        late = await add_record(
            async_session, RecordType.IMMUNIZATIONS, patient, data={"vaccine_name": "Influenza"},
            date=datetime(2026, 2, 5, tzinfo=timezone.utc), notes="seasonal shot",
        )

        as_user(patient)
        assert record_ids(await client.get(f"{BASE}/immunizations", params={"search": "hepatitis"})) == {early.id}
        assert record_ids(await client.get(f"{BASE}/immunizations", params={"search": "seasonal"})) == {late.id}
        assert record_ids(await client.get(f"{BASE}/immunizations", params={"start_date": "2026-01-01T00:00:00"})) == {late.id}

        ordered = await client.get(f"{BASE}/immunizations", params={"sort_order": "asc"})
        assert [r["id"] for r in ordered.json()["data"]["records"]] == [early.id, late.id]

    @pytest.mark.asyncio
    async def test_soft_deleted_hidden(self, client: AsyncClient, async_session, as_user, patient):
        await add_record(async_session, RecordType.HOSPITAL_RECORDS, patient, data={}, is_deleted=True)
        as_user(patient)
        assert record_ids(await client.get(f"{BASE}/hospital-records")) == set()

    @pytest.mark.asyncio
    async def test_unknown_type(self, client: AsyncClient, as_user, patient):
        as_user(patient)
        assert (await client.get(f"{BASE}/horoscopes")).status_code == 422

    @pytest.mark.asyncio
    async def test_patient_cannot_filter_other_patient(self, client: AsyncClient, as_user, patient, other_patient):
        as_user(patient)
        assert (await client.get(f"{BASE}/vitals", params={"patient_id": other_patient.id})).status_code == 403


class TestPatientVitals:

    @pytest.mark.asyncio
    async def test_create_and_recent(self, client: AsyncClient, as_user, patient):
        """Test patient-entered vitals come back as display strings."""
        as_user(patient)
        response = await client.post(f"{BASE}/patient/vitals", json={
            "heart_rate": {"value": 72},
            "blood_pressure": {"systolic": 120, "diastolic": 80},
            "weight": {"value": 70.5},
        })
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["created_by_patient"] is True
        assert data["provider_id"] is None
        assert data["heart_rate"] == {"value": 72, "unit": "bpm"}

        recent = (await client.get(f"{BASE}/patient/vitals/recent")).json()["data"]["vitals"]
        assert recent["heart_rate"] == "72 bpm"
        assert recent["blood_pressure"] == "120/80 mmHg"
        assert recent["weight"] == "70.5 kg"
        assert recent["body_temperature"] == "N/A"
        assert recent["bmi"] == "N/A"

    @pytest.mark.asyncio
    async def test_recent_without_vitals(self, client: AsyncClient, as_user, patient):
        as_user(patient)
        assert (await client.get(f"{BASE}/patient/vitals/recent")).json()["data"] == {"vitals": None}

    @pytest.mark.asyncio
    async def test_provider_cannot_add_patient_vitals(self, client: AsyncClient, as_user, provider):
        as_user(provider)
        assert (await client.post(f"{BASE}/patient/vitals", json={})).status_code == 403


class TestModifyRecords:

    @pytest.mark.asyncio
    async def test_author_updates_with_merge(self, client: AsyncClient, async_session, as_user, patient, provider):
        record = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION)
        as_user(provider)
        response = await client.put(f"{BASE}/medications/{record.id}", json={"frequency": "daily", "notes": "reduced"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["frequency"] == "daily"
        assert data["name"] == "Metformin"
        assert data["notes"] == "reduced"

    @pytest.mark.asyncio
    async def test_update_rejects_invalid_payload(self, client: AsyncClient, async_session, as_user, patient, provider):
        record = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION)
        as_user(provider)
        response = await client.put(f"{BASE}/medications/{record.id}", json={"start_date": "not-a-date"})
        assert response.status_code == 422
        assert response.json()["code"] == 422

    @pytest.mark.asyncio
    async def test_non_author_cannot_modify(self, client: AsyncClient, async_session, as_user, patient, provider, other_provider):
        record = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION)
        as_user(other_provider)
        assert (await client.put(f"{BASE}/medications/{record.id}", json={"frequency": "daily"})).status_code == 403
        assert (await client.delete(f"{BASE}/medications/{record.id}")).status_code == 403

    @pytest.mark.asyncio
    async def test_patient_modifies_only_own_entries(self, client: AsyncClient, async_session, as_user, patient, provider):
        authored = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION)
        own = await add_record(async_session, RecordType.MEDICATIONS, patient, data=MEDICATION)
        as_user(patient)
        assert (await client.delete(f"{BASE}/medications/{authored.id}")).status_code == 403
        assert (await client.delete(f"{BASE}/medications/{own.id}")).status_code == 200

    @pytest.mark.asyncio
    async def test_delete_is_soft(self, client: AsyncClient, async_session: AsyncSession, as_user, patient, provider):
        record = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION)
        as_user(provider)
        assert (await client.delete(f"{BASE}/medications/{record.id}")).status_code == 200

        stored = await async_session.get(MedicalRecord, record.id)
        assert stored is not None
        assert stored.is_deleted is True
        assert (await client.get(f"{BASE}/medications/{record.id}")).status_code == 404

    @pytest.mark.asyncio
    async def test_wrong_type_is_not_found(self, client: AsyncClient, async_session, as_user, patient, provider):
        record = await add_record(async_session, RecordType.MEDICATIONS, patient, provider, MEDICATION)
        as_user(provider)
        assert (await client.get(f"{BASE}/vitals/{record.id}")).status_code == 404


class TestStatistics:

    @pytest.mark.asyncio
    async def test_vitals_statistics_endpoint(self, client: AsyncClient, async_session, as_user, patient):
        await add_record(async_session, RecordType.VITALS, patient, data={"heart_rate": {"value": 60}})
        await add_record(async_session, RecordType.VITALS, patient, data={"heart_rate": {"value": 80}, "weight": {"value": 70}})
        as_user(patient)
        stats = (await client.get(f"{BASE}/vitals/statistics")).json()["data"]
        assert stats["record_count"] == 2
        assert stats["avg_heart_rate"] == 70.0
        assert stats["avg_weight"] == 70.0
        assert stats["avg_systolic"] is None

    @pytest.mark.asyncio
    async def test_vitals_statistics_date_range(self, client: AsyncClient, async_session, as_user, patient):
        await add_record(
            async_session, RecordType.VITALS, patient, data={"heart_rate": {"value": 100}},
            date=datetime(2025, 6, 1, tzinfo=timezone.utc),
        )
        await add_record(
            async_session, RecordType.VITALS, patient, data={"heart_rate": {"value": 60}},
            date=datetime(2026, 2, 1, tzinfo=timezone.utc),
        )
        as_user(patient)
        response = await client.get(
            f"{BASE}/vitals/statistics",
            params={"start_date": "2026-01-01T00:00:00", "end_date": "2026-12-31T23:59:59"},
        )
        assert response.status_code == 200
        stats = response.json()["data"]
        assert stats["record_count"] == 1
        assert stats["avg_heart_rate"] == 60.0

    @pytest.mark.asyncio
    async def test_medication_statistics(self, client: AsyncClient, async_session, as_user, patient):
        for end_date in (None, "2999-12-31", "2000-01-01"):
            await add_record(async_session, RecordType.MEDICATIONS, patient, data={"name": "Aspirin", "end_date": end_date})
        as_user(patient)
        stats = (await client.get(f"{BASE}/medications/statistics")).json()["data"]
        assert stats == {"active": 2, "completed": 1, "total": 3}

    @pytest.mark.asyncio
    async def test_other_types_count(self, client: AsyncClient, async_session, as_user, patient):
        await add_record(async_session, RecordType.SURGERY_RECORDS, patient)
        await add_record(async_session, RecordType.SURGERY_RECORDS, patient, is_deleted=True)
        as_user(patient)
        stats = (await client.get(f"{BASE}/surgery-records/statistics")).json()["data"]
        assert stats == {"total": 1}

    def test_format_vitals_none(self):
        assert format_vitals(None) is None
