"""In-memory audit log, notification center and user directory"""
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional
from uuid import UUID

from pydantic import BaseModel, Field

from application.side_effects import AuditSink, NotificationSink, UserDirectory
from domain.enums import AuditAction, Role
from domain.value_objects import utcnow

logger = logging.getLogger(__name__)


class AuditEntry(BaseModel):
    actor_id: UUID
    action: AuditAction
    entity_type: str
    entity_id: str
    old_value: Optional[Dict[str, Any]] = None
    new_value: Optional[Dict[str, Any]] = None
    created_at: datetime = Field(default_factory=utcnow)


class DeliveredNotification(BaseModel):
    user_id: UUID
    title: str
    message: str
    metadata: Dict[str, Any] = {}
    is_read: bool = False
    created_at: datetime = Field(default_factory=utcnow)


class DeliveredBroadcast(BaseModel):
    event: str
    payload: Dict[str, Any] = {}
    created_at: datetime = Field(default_factory=utcnow)


class InMemoryAuditLog(AuditSink):

    def __init__(self):
        self.entries: List[AuditEntry] = []

    async def record(self, actor_id, action, entity_type, entity_id,
                     old_value=None, new_value=None) -> None:
        self.entries.append(AuditEntry(
            actor_id=actor_id,
            action=action,
            entity_type=entity_type,
            entity_id=entity_id,
            old_value=old_value,
            new_value=new_value
        ))
        logger.debug(f"Audit {action.value} {entity_type} {entity_id} by {actor_id}")

    def for_entity(self, entity_id: str) -> List[AuditEntry]:
        return [e for e in self.entries if e.entity_id == entity_id]


class InMemoryNotificationCenter(NotificationSink):
    """Stores notifications per user and keeps every broadcast in order"""

    def __init__(self):
        self.notifications: List[DeliveredNotification] = []
        self.broadcasts: List[DeliveredBroadcast] = []

    async def notify(self, user_id, title, message, metadata=None) -> None:
        self.notifications.append(DeliveredNotification(
            user_id=user_id, title=title, message=message, metadata=metadata or {}
        ))

    async def broadcast(self, event_name, payload) -> None:
        self.broadcasts.append(DeliveredBroadcast(event=event_name, payload=payload))
        logger.debug(f"Broadcast {event_name}")

    def for_user(self, user_id: UUID) -> List[DeliveredNotification]:
        return [n for n in self.notifications if n.user_id == user_id]

    def events(self) -> List[str]:
        return [b.event for b in self.broadcasts]


class InMemoryUserDirectory(UserDirectory):

    def __init__(self, users: Optional[Dict[Role, Iterable[UUID]]] = None):
        self._by_role: Dict[Role, List[UUID]] = {
            role: list(ids) for role, ids in (users or {}).items()
        }

    def add(self, user_id: UUID, role: Role) -> None:
        self._by_role.setdefault(role, []).append(user_id)

    async def user_ids_with_role(self, role: Role) -> List[UUID]:
        return list(self._by_role.get(role, []))
