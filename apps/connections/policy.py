"""
Access policy for consultations and medical records.

Every visibility and mutation decision goes through these functions; services
load the connection between the provider and the patient and pass it in.

    admin     sees everything
    patient   sees own data; consultations only once completed
    provider  sees what they authored; everything for the patient with an
              approved, unexpired full-access connection
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from portal.security import CurrentUser
from portal.exceptions.handler import PermissionDeniedException
from portal.types import as_utc
from .models import Connection, AccessLevel, FullAccessStatus


@dataclass(frozen=True)
class VisibilityScope:
    """Filters a list query must apply. None means unrestricted."""
    patient_id: Optional[int] = None
    provider_id: Optional[int] = None
    completed_only: bool = False


def is_expired(connection: Connection, now: Optional[datetime] = None) -> bool:
    if connection.expires_at is None:
        return False
    now = now or datetime.now(timezone.utc)
    return as_utc(connection.expires_at) <= as_utc(now)


def has_full_access(connection: Optional[Connection], now: Optional[datetime] = None) -> bool:
    if connection is None or is_expired(connection, now):
        return False
    return (
        connection.access_level == AccessLevel.FULL
        and connection.full_access_status == FullAccessStatus.APPROVED
    )


def can_view(
    user: CurrentUser,
    patient_id: int,
    provider_id: Optional[int],
    connection: Optional[Connection] = None,
    released: bool = True,
) -> bool:
    """
    Whether user may view an item owned by patient_id and authored by provider_id.
    released: for patients, whether the item is visible yet (completed consultation,
    or a record whose consultation is completed or that has none).
    """
    if user.is_admin:
        return True
    if user.is_patient:
        return user.id == patient_id and released
    if user.is_provider:
        if provider_id is not None and provider_id == user.id:
            return True
        return (
            connection is not None
            and connection.patient_id == patient_id
            and connection.provider_id == user.id
            and has_full_access(connection)
        )
    return False


def can_modify(
    user: CurrentUser,
    patient_id: int,
    provider_id: Optional[int],
    created_by_patient: bool = False,
) -> bool:
    """Only the authoring provider, or the patient for data they entered themselves."""
    if user.is_provider:
        return provider_id is not None and provider_id == user.id
    if user.is_patient:
        return created_by_patient and user.id == patient_id
    return False


def resolve_scope(
    user: CurrentUser,
    patient_id: Optional[int] = None,
    provider_id: Optional[int] = None,
    connection: Optional[Connection] = None,
) -> VisibilityScope:
    """
    Turn list filters into the scope the user is allowed to see.
    Raises PermissionDeniedException when the filters ask for data the user
    can never see (a patient asking for another patient, a provider asking
    for a patient they have no connection with).
    """
    if user.is_admin:
        return VisibilityScope(patient_id=patient_id, provider_id=provider_id)

    if user.is_patient:
        if patient_id is not None and patient_id != user.id:
            raise PermissionDeniedException()
        return VisibilityScope(patient_id=user.id, provider_id=provider_id, completed_only=True)

    if user.is_provider:
        if patient_id is None:
            return VisibilityScope(provider_id=user.id)
        if connection is None:
            raise PermissionDeniedException("No connection to this patient")
        if has_full_access(connection):
            return VisibilityScope(patient_id=patient_id, provider_id=provider_id)
        return VisibilityScope(patient_id=patient_id, provider_id=user.id)

    raise PermissionDeniedException()
