from .base import BaseSchema, TimestampSchema
from .establishment import (
    EstablishmentCreate,
    EstablishmentUpdate,
    EstablishmentResponse,
    EstablishmentDetailResponse,
    MediaItem,
    ModerationRequest,
    SuspendRequest,
    ArchiveRequest,
    PendingEstablishmentResponse,
    CoordinatesUpdate,
    RejectionHistoryItem,
    establishment_detail,
)
from .review import (
    ReviewCreate,
    ReviewUpdate,
    PartnerResponseCreate,
    DeleteReviewRequest,
    ReviewResponse,
    PublicReviewResponse,
    UserReviewResponse,
    AdminReviewResponse,
)
from .audit import AuditLogEntryResponse

__all__ = [
    "BaseSchema", "TimestampSchema",
    "EstablishmentCreate", "EstablishmentUpdate", "EstablishmentResponse",
    "EstablishmentDetailResponse", "MediaItem",
    "ModerationRequest", "SuspendRequest", "ArchiveRequest",
    "PendingEstablishmentResponse", "CoordinatesUpdate", "RejectionHistoryItem", "establishment_detail",
    "ReviewCreate", "ReviewUpdate", "PartnerResponseCreate", "DeleteReviewRequest",
    "ReviewResponse", "PublicReviewResponse", "UserReviewResponse", "AdminReviewResponse",
    "AuditLogEntryResponse",
]
