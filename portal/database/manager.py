from .mysql_driver import MySQLDriver
from .redis_driver import RedisDriver


class DatabaseManager:
    """Process-wide holder of the SQL engine and the Redis client."""

    _instance = None

    def __init__(self, settings):
        self.mysql = MySQLDriver(settings.DATABASE_URL, echo=settings.APP_ENV == "development" and settings.DEBUG)
        self.redis = RedisDriver(settings.REDIS_URL)

    @classmethod
    def get_instance(cls, settings=None):
        if cls._instance is None:
            if settings is None:
                from portal.config import settings as app_settings
                settings = app_settings
            cls._instance = cls(settings)
        return cls._instance

    async def close(self):
        await self.mysql.disconnect()
        await self.redis.disconnect()
