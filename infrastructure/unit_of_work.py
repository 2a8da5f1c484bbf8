"""In-Memory Unit of Work"""
import asyncio
import logging
from typing import List, Optional

from application.side_effects import SideEffectDispatcher
from application.uow import AbstractUnitOfWork
from domain.exceptions import Conflict
from infrastructure.config import settings
from infrastructure.repositories.in_memory_repositories import (
    InMemoryCancellationRequestRepository, InMemoryCatalogRepository,
    InMemoryDatabase, InMemoryExtraConceptRequestRepository,
    InMemoryModificationRequestRepository,
    InMemoryReservationRepository, InMemorySession,
)

logger = logging.getLogger(__name__)


class InMemoryUnitOfWork(AbstractUnitOfWork):
    """One transaction against an ``InMemoryDatabase``"""

    def __init__(
        self,
        database: InMemoryDatabase,
        dispatcher: Optional[SideEffectDispatcher] = None,
        lock_timeout: Optional[float] = None
    ):
        super().__init__(dispatcher)
        self.database = database
        self.lock_timeout = lock_timeout if lock_timeout is not None else settings.LOCK_TIMEOUT_SECONDS
        self._session: Optional[InMemorySession] = None
        self._held: List[asyncio.Lock] = []
        self._held_keys: List[str] = []

    async def _begin(self) -> None:
        self.database.ensure_online()
        self._session = InMemorySession(self.database)
        self.reservations = InMemoryReservationRepository(self._session)
        self.cancellations = InMemoryCancellationRequestRepository(self._session)
        self.extra_requests = InMemoryExtraConceptRequestRepository(self._session)
        self.modifications = InMemoryModificationRequestRepository(self._session)
        self.catalog = InMemoryCatalogRepository(self._session)
        self._held = []
        self._held_keys = []

    async def lock_cabana(self, cabana_id: str) -> None:
        key = f"cabana:{cabana_id}"
        if key in self._held_keys:
            return
        lock = self.database.lock_for(key)
        try:
            await asyncio.wait_for(lock.acquire(), timeout=self.lock_timeout)
        except asyncio.TimeoutError:
            logger.warning(f"Timed out after {self.lock_timeout}s waiting for {key}")
            raise Conflict(cabana_id)
        self._held.append(lock)
        self._held_keys.append(key)

    async def _commit(self) -> None:
        self._session.commit()

    async def _rollback(self) -> None:
        if self._session is not None:
            self._session.discard()

    async def _release(self) -> None:
        while self._held:
            self._held.pop().release()
            self._held_keys.pop()
