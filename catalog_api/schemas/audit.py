from datetime import datetime
from typing import Any, Dict, Optional
from uuid import UUID

from .base import BaseSchema


class AuditLogEntryResponse(BaseSchema):
    id: UUID
    user_id: Optional[UUID] = None
    admin_name: Optional[str] = None
    admin_email: Optional[str] = None
    action: str
    entity_type: str
    entity_id: Optional[UUID] = None
    old_data: Optional[Dict[str, Any]] = None
    new_data: Optional[Dict[str, Any]] = None
    summary: str
    created_at: datetime
    # Только при include_metadata=true
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
