from datetime import datetime, timezone
from typing import Optional, List, Tuple
from portal.logging.logger import get_logger
from portal.exceptions.handler import NotFoundException
from portal.security import CurrentUser
from portal.repository.unit_of_work import UnitOfWork
from apps.identity.models import User, UserRole
from apps.identity.repository import UserRepository
from apps.connections.service import display_name
from apps.notifications.service import NotificationService

logger = get_logger("admin_service")


class AdminService:
    def __init__(self, uow: UnitOfWork, current_user: CurrentUser, notifications: Optional[NotificationService] = None):
        self.uow = uow
        self.current_user = current_user
        self.notifications = notifications or NotificationService(uow)

    @property
    def users(self) -> UserRepository:
        return self.uow.get_repository(UserRepository)

    async def list_users(self, role: Optional[UserRole] = None, page: int = 1, limit: int = 20) -> Tuple[List[User], int]:
        items = await self.users.list_users(role=role, limit=limit, offset=(page - 1) * limit)
        return items, await self.users.count_users(role=role)

    async def get_user(self, user_id: int) -> User:
        user = await self.users.get_by_id(user_id)
        if user is None:
            raise NotFoundException("User not found")
        return user

    async def verify_provider(self, provider_id: int) -> User:
        provider = await self.users.get_by_id(provider_id)
        if provider is None or provider.role != UserRole.PROVIDER:
            raise NotFoundException("Provider not found")
        if not provider.is_verified:
            provider.is_verified = True
            provider.updated_at = datetime.now(timezone.utc)
            await self.users.update(provider)
            await self.notifications.queue_email(
                "provider_verified",
                to=provider.email,
                user_id=provider.id,
                provider_name=display_name(provider),
            )
            await self.uow.commit()
            await self.notifications.dispatch()
            logger.info(f"Provider {provider.id} verified by admin {self.current_user.id}")
        return provider
