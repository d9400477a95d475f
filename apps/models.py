"""
Model registration for migrations: import all models that should be migrated by Alembic here.
When adding/removing apps, add/remove the corresponding imports here; no need to change alembic/env.py.
"""
from apps.identity.models import User
from apps.connections.models import Connection
from apps.consultations.models import Consultation
from apps.records.models import MedicalRecord
from apps.notifications.models import Notification

__all__ = ["User", "Connection", "Consultation", "MedicalRecord", "Notification"]
