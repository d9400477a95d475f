"""Connection state machine and access policy (no database)."""
import pytest
from datetime import datetime, timedelta, timezone

from portal.exceptions.handler import PermissionDeniedException
from portal.security import CurrentUser
from apps.connections import policy
from apps.connections.models import Connection, AccessLevel, FullAccessStatus

PATIENT_ID = 10
PROVIDER_ID = 20
OTHER_PROVIDER_ID = 30

patient = CurrentUser(id=PATIENT_ID, email="p@example.com", role="patient")
other_patient = CurrentUser(id=11, email="q@example.com", role="patient")
provider = CurrentUser(id=PROVIDER_ID, email="d@example.com", role="provider")
admin = CurrentUser(id=1, email="a@example.com", role="admin")


def make_connection(**fields) -> Connection:
    return Connection(patient_id=PATIENT_ID, provider_id=PROVIDER_ID, **fields)


def full_connection(**fields) -> Connection:
    connection = make_connection(**fields)
    connection.approve_full_access()
    return connection


class TestConnectionTransitions:
    """Test access_level / full_access_status transitions."""

    def test_defaults(self):
        connection = make_connection()
        assert connection.access_level == AccessLevel.LIMITED
        assert connection.full_access_status == FullAccessStatus.NONE

    @pytest.mark.parametrize("prepare", [
        lambda c: None,
        lambda c: c.approve_full_access(),
        lambda c: c.deny_full_access(),
        lambda c: c.revoke_access(),
    ])
    def test_request_full_access_from_any_state(self, prepare):
        connection = make_connection()
        prepare(connection)
        level_before = connection.access_level
        connection.request_full_access()
        assert connection.full_access_status == FullAccessStatus.PENDING
        assert connection.access_level == level_before

    def test_approve(self):
        connection = make_connection()
        connection.request_full_access()
        connection.approve_full_access()
        assert connection.access_level == AccessLevel.FULL
        assert connection.full_access_status == FullAccessStatus.APPROVED
        assert connection.full_access_status_updated_at is not None

    def test_deny_resets_to_limited(self):
        connection = full_connection()
        connection.deny_full_access()
        assert connection.access_level == AccessLevel.LIMITED
        assert connection.full_access_status == FullAccessStatus.DENIED

    def test_revoke_resets_to_limited(self):
        connection = full_connection()
        connection.revoke_access()
        assert connection.access_level == AccessLevel.LIMITED
        assert connection.full_access_status == FullAccessStatus.NONE

    def test_can_request_full_access(self):
        connection = make_connection()
        assert connection.can_request_full_access
        connection.request_full_access()
        assert not connection.can_request_full_access
        connection.approve_full_access()
        assert not connection.can_request_full_access


class TestHasFullAccess:
    def test_requires_full_and_approved(self):
        assert policy.has_full_access(full_connection())
        assert not policy.has_full_access(make_connection())
        assert not policy.has_full_access(None)

    def test_full_level_without_approval(self):
        connection = make_connection(access_level=AccessLevel.FULL, full_access_status=FullAccessStatus.PENDING)
        assert not policy.has_full_access(connection)

    def test_expired_connection(self):
        past = datetime.now(timezone.utc) - timedelta(days=1)
        assert not policy.has_full_access(full_connection(expires_at=past))

    def test_naive_expiry_is_treated_as_utc(self):
        future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(days=1)
        assert policy.has_full_access(full_connection(expires_at=future))


class TestCanView:
    """Test visibility of one consultation/record."""

    def test_admin_sees_everything(self):
        assert policy.can_view(admin, PATIENT_ID, OTHER_PROVIDER_ID, None, released=False)

    def test_patient_sees_own_released_only(self):
        assert policy.can_view(patient, PATIENT_ID, PROVIDER_ID)
        assert not policy.can_view(patient, PATIENT_ID, PROVIDER_ID, released=False)
        assert not policy.can_view(other_patient, PATIENT_ID, PROVIDER_ID)

    def test_provider_sees_own_authored_without_connection(self):
        assert policy.can_view(provider, PATIENT_ID, PROVIDER_ID, None)

    def test_limited_provider_cannot_see_other_authors(self):
        assert not policy.can_view(provider, PATIENT_ID, OTHER_PROVIDER_ID, make_connection())

    def test_full_provider_sees_other_authors(self):
        assert policy.can_view(provider, PATIENT_ID, OTHER_PROVIDER_ID, full_connection())
        assert policy.can_view(provider, PATIENT_ID, None, full_connection())

    def test_full_connection_for_another_patient_does_not_apply(self):
        connection = full_connection()
        assert not policy.can_view(provider, 99, OTHER_PROVIDER_ID, connection)


class TestCanModify:
    def test_only_authoring_provider(self):
        assert policy.can_modify(provider, PATIENT_ID, PROVIDER_ID)
        assert not policy.can_modify(provider, PATIENT_ID, OTHER_PROVIDER_ID)

    def test_full_access_does_not_grant_mutation(self):
        assert not policy.can_modify(provider, PATIENT_ID, None)

    def test_patient_only_self_entered(self):
        assert policy.can_modify(patient, PATIENT_ID, None, created_by_patient=True)
        assert not policy.can_modify(patient, PATIENT_ID, PROVIDER_ID)
        assert not policy.can_modify(other_patient, PATIENT_ID, None, created_by_patient=True)

    def test_admin_cannot_modify(self):
        assert not policy.can_modify(admin, PATIENT_ID, PROVIDER_ID)


class TestResolveScope:
    def test_admin_unrestricted(self):
        assert policy.resolve_scope(admin) == policy.VisibilityScope()

    def test_patient_forced_to_own_completed(self):
        scope = policy.resolve_scope(patient)
        assert scope == policy.VisibilityScope(patient_id=PATIENT_ID, completed_only=True)

    def test_patient_asking_for_another_patient(self):
        with pytest.raises(PermissionDeniedException):
            policy.resolve_scope(patient, patient_id=99)

    def test_provider_without_patient_filter_sees_own(self):
        assert policy.resolve_scope(provider) == policy.VisibilityScope(provider_id=PROVIDER_ID)

    def test_provider_without_connection(self):
        with pytest.raises(PermissionDeniedException) as exc:
            policy.resolve_scope(provider, patient_id=PATIENT_ID, connection=None)
        assert exc.value.message == "No connection to this patient"

    def test_provider_limited(self):
        scope = policy.resolve_scope(provider, patient_id=PATIENT_ID, connection=make_connection())
        assert scope == policy.VisibilityScope(patient_id=PATIENT_ID, provider_id=PROVIDER_ID)

    def test_provider_full(self):
        scope = policy.resolve_scope(provider, patient_id=PATIENT_ID, connection=full_connection())
        assert scope == policy.VisibilityScope(patient_id=PATIENT_ID)
