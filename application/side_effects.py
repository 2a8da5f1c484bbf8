"""
Side-Effect Dispatcher

Audit records, user notifications and venue broadcasts are queued on the unit
of work while a transition runs and handed over here only after the commit
succeeds. Delivery happens in a background task, each message bounded by a
timeout. A failing or slow sink is logged and skipped; it never reaches the
caller and never touches committed state.
"""
import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional, Set, Union
from uuid import UUID

from pydantic import BaseModel, Field

from domain.enums import AuditAction, BroadcastEvent, Role
from domain.value_objects import utcnow

logger = logging.getLogger(__name__)


# ============================================================================
# OUTBOUND MESSAGES
# ============================================================================

class AuditRecord(BaseModel):
    actor_id: UUID
    action: AuditAction
    entity_type: str
    entity_id: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    occurred_at: datetime = Field(default_factory=utcnow)


class Notification(BaseModel):
    """Addressed to one user, or to every user holding a role"""
    title: str
    message: str
    user_id: Optional[UUID] = None
    role: Optional[Role] = None
    metadata: Dict[str, Any] = {}


class Broadcast(BaseModel):
    event: BroadcastEvent
    payload: Dict[str, Any] = {}


OutboundMessage = Union[AuditRecord, Notification, Broadcast]


# ============================================================================
# COLLABORATOR INTERFACES
# ============================================================================

class AuditSink(ABC):

    @abstractmethod
    async def record(
        self,
        actor_id: UUID,
        action: AuditAction,
        entity_type: str,
        entity_id: str,
        old_value: Optional[Dict[str, Any]] = None,
        new_value: Optional[Dict[str, Any]] = None
    ) -> None:
        pass


class NotificationSink(ABC):

    @abstractmethod
    async def notify(self, user_id: UUID, title: str, message: str,
                     metadata: Optional[Dict[str, Any]] = None) -> None:
        pass

    @abstractmethod
    async def broadcast(self, event_name: str, payload: Dict[str, Any]) -> None:
        pass


class UserDirectory(ABC):

    @abstractmethod
    async def user_ids_with_role(self, role: Role) -> List[UUID]:
        pass


# ============================================================================
# DISPATCHER
# ============================================================================

class SideEffectDispatcher:
    """Delivers committed side effects without ever failing the caller"""

    def __init__(
        self,
        audit_sink: AuditSink,
        notification_sink: NotificationSink,
        user_directory: UserDirectory,
        timeout: float = 2.0
    ):
        self.audit_sink = audit_sink
        self.notification_sink = notification_sink
        self.user_directory = user_directory
        self.timeout = timeout
        self._pending: Set[asyncio.Task] = set()

    def dispatch(self, messages: Iterable[OutboundMessage]) -> None:
        """Schedule delivery and return immediately"""
        messages = list(messages)
        if not messages:
            return
        task = asyncio.get_running_loop().create_task(self._deliver_all(messages))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def drain(self) -> None:
        """Wait until every scheduled delivery has finished"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _deliver_all(self, messages: List[OutboundMessage]) -> None:
        logger.debug(f"Delivering {len(messages)} side effects")
        for message in messages:
            await self._deliver(message)

    async def _deliver(self, message: OutboundMessage) -> None:
        name = message.__class__.__name__
        try:
            await asyncio.wait_for(self._route(message), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning(f"{name} delivery timed out after {self.timeout}s")
        except Exception as e:
            logger.error(f"Error delivering {name}: {e}", exc_info=True)
            # Already committed; a lost side effect is only logged

    async def _route(self, message: OutboundMessage) -> None:
        if isinstance(message, AuditRecord):
            await self.audit_sink.record(
                message.actor_id,
                message.action,
                message.entity_type,
                message.entity_id,
                message.old_value,
                message.new_value
            )
        elif isinstance(message, Notification):
            for user_id in await self._recipients(message):
                await self.notification_sink.notify(
                    user_id, message.title, message.message, message.metadata
                )
        elif isinstance(message, Broadcast):
            await self.notification_sink.broadcast(message.event.value, message.payload)
        else:
            raise TypeError(f"Unsupported side effect: {message!r}")

    async def _recipients(self, message: Notification) -> List[UUID]:
        if message.user_id is not None:
            return [message.user_id]
        if message.role is not None:
            return await self.user_directory.user_ids_with_role(message.role)
        return []
