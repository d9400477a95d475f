from abc import ABC, abstractmethod


class BaseDatabaseDriver(ABC):
    """Lifecycle contract shared by the SQL and Redis drivers."""

    @abstractmethod
    async def connect(self):
        ...

    @abstractmethod
    async def disconnect(self):
        ...
