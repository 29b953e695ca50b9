from typing import Any, Optional
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from app.db.models import AuditLog, User

class AuditService:
    def __init__(self, session: AsyncSession):
        self.session = session

    def record(
        self,
        actor: Optional[User],
        action: str,
        entity: str,
        entity_id: UUID,
        payload: Optional[dict[str, Any]] = None,
        tenant_id: Optional[UUID] = None,
    ) -> AuditLog:
        """Stage an audit entry; it is committed together with the caller's change."""
        entry = AuditLog(
            actor_id=actor.id if actor else None,
            tenant_id=tenant_id if tenant_id is not None else (actor.hospital_id if actor else None),
            action=action,
            entity=entity,
            entity_id=entity_id,
            payload=payload,
        )
        self.session.add(entry)
        return entry
