"""
Журнал действий администраторов.

Запись в audit_log выполняется отдельной задачей asyncio на собственной
сессии уже после коммита основного изменения. Ошибка записи только
логируется и никогда не возвращается в запрос, который её породил.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional, Set
from uuid import UUID

from catalog_shared.models import AuditAction, AuditLog, EntityType

logger = logging.getLogger(__name__)


@dataclass
class RequestMeta:
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


@dataclass
class AuditEntry:
    user_id: UUID
    action: AuditAction
    entity_type: EntityType
    entity_id: Optional[UUID]
    old_data: Optional[Dict[str, Any]] = None
    new_data: Optional[Dict[str, Any]] = None
    meta: RequestMeta = field(default_factory=RequestMeta)


class AuditLogger:
    """Best-effort запись событий в audit_log"""

    def __init__(self, session_factory):
        self._session_factory = session_factory
        self._pending: Set[asyncio.Task] = set()

    def record(self, entry: AuditEntry) -> None:
        """Поставить запись в очередь, не дожидаясь результата"""
        task = asyncio.create_task(self._write(entry))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _write(self, entry: AuditEntry) -> Optional[AuditLog]:
        try:
            async with self._session_factory() as session:
                row = AuditLog(
                    user_id=entry.user_id,
                    action=entry.action.value,
                    entity_type=entry.entity_type.value,
                    entity_id=entry.entity_id,
                    old_data=entry.old_data,
                    new_data=entry.new_data,
                    ip_address=entry.meta.ip_address,
                    user_agent=entry.meta.user_agent,
                )
                session.add(row)
                await session.commit()

            logger.info(
                f"Audit log entry created: {entry.action.value} "
                f"{entry.entity_type.value}:{entry.entity_id} by {entry.user_id}"
            )
            return row
        except Exception as e:
            # Не критично: основное действие уже закоммичено
            logger.error(
                f"Failed to create audit log entry {entry.action.value} "
                f"for {entry.entity_type.value}:{entry.entity_id}: {e}"
            )
            return None

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Дождаться всех запланированных записей (остановка приложения, тесты)"""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
