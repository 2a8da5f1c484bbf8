"""
Unit of Work Pattern

Groups the reads and writes of one operation into a single transaction and
releases queued side effects only after that transaction commits.

Usage:
    async with uow_factory() as uow:
        reservation = await uow.reservations.find_by_id(reservation_id)
        await uow.lock_cabana(reservation.cabana_id)
        reservation.check_in(actor)
        await uow.reservations.update(reservation)
        uow.emit(Broadcast(...))
        # Transaction commits here
    # Side effects are dispatched after commit
"""
import logging
from abc import ABC, abstractmethod
from typing import Iterable, List, Optional

from application.side_effects import OutboundMessage, SideEffectDispatcher
from domain.repositories import (
    CancellationRequestRepository, CatalogRepository,
    ExtraConceptRequestRepository, ModificationRequestRepository,
    ReservationRepository,
)

logger = logging.getLogger(__name__)


class AbstractUnitOfWork(ABC):
    """Abstract Unit of Work pattern"""

    reservations: ReservationRepository
    cancellations: CancellationRequestRepository
    extra_requests: ExtraConceptRequestRepository
    modifications: ModificationRequestRepository
    catalog: CatalogRepository

    def __init__(self, dispatcher: Optional[SideEffectDispatcher] = None):
        self._dispatcher = dispatcher
        self._messages: List[OutboundMessage] = []
        self._committed = False

    async def __aenter__(self):
        await self._begin()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Commit or roll back, release locks, then publish"""
        try:
            if exc_type is None:
                await self.commit()
            else:
                await self.rollback()
        finally:
            await self._release()
        if self._committed:
            self._publish()

    def emit(self, message: OutboundMessage) -> None:
        """Queue a side effect to run once this transaction has committed"""
        self._messages.append(message)

    async def commit(self) -> None:
        try:
            await self._commit()
        except Exception:
            logger.warning(f"Commit failed, discarding {len(self._messages)} side effects")
            self._messages.clear()
            raise
        logger.debug(f"Committed transaction with {len(self._messages)} side effects")
        self._committed = True

    async def rollback(self) -> None:
        if self._messages:
            logger.warning(f"Rolling back transaction, discarding {len(self._messages)} side effects")
        self._messages.clear()
        await self._rollback()

    def _publish(self) -> None:
        messages = self._messages.copy()
        self._messages.clear()
        if messages and self._dispatcher is not None:
            self._dispatcher.dispatch(messages)

    @abstractmethod
    async def lock_cabana(self, cabana_id: str) -> None:
        """Hold an exclusive lock on the cabana until the transaction ends"""
        pass

    async def lock_cabanas(self, cabana_ids: Iterable[str]) -> None:
        """Lock several cabanas, always in id order so two transactions cannot deadlock"""
        for cabana_id in sorted(set(cabana_ids)):
            await self.lock_cabana(cabana_id)

    @abstractmethod
    async def _begin(self) -> None:
        pass

    @abstractmethod
    async def _commit(self) -> None:
        pass

    @abstractmethod
    async def _rollback(self) -> None:
        pass

    @abstractmethod
    async def _release(self) -> None:
        pass
