from .base import Base
from .user import User
from .establishment import Establishment, EstablishmentMedia
from .review import Review
from .audit_log import AuditLog
from .enums import (
    AuditAction,
    Category,
    City,
    Cuisine,
    EntityType,
    EstablishmentStatus,
    MediaType,
    ModerationAction,
    PriceRange,
    UserRole,
)

__all__ = [
    'Base',
    'User',
    'Establishment',
    'EstablishmentMedia',
    'Review',
    'AuditLog',
    'AuditAction',
    'Category',
    'City',
    'Cuisine',
    'EntityType',
    'EstablishmentStatus',
    'MediaType',
    'ModerationAction',
    'PriceRange',
    'UserRole',
]
