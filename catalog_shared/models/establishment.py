import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, Float, ForeignKey, Index,
    Integer, Numeric, String, Text, Uuid
)
from sqlalchemy.orm import relationship

from .base import Base, JSONType, TimestampMixin, utcnow
from .enums import EstablishmentStatus, MediaType

_STATUSES = ", ".join(f"'{s.value}'" for s in EstablishmentStatus)
_MEDIA_TYPES = ", ".join(f"'{t.value}'" for t in MediaType)


class Establishment(Base, TimestampMixin):
    """Модель заведения"""
    __tablename__ = "establishments"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    partner_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    name = Column(String(255), nullable=False, index=True)
    description = Column(Text)
    city = Column(String(50), nullable=False, index=True)
    address = Column(String(500), nullable=False)
    latitude = Column(Float, nullable=False)
    longitude = Column(Float, nullable=False)

    phone = Column(String(30))
    email = Column(String(255))
    website = Column(String(500))

    categories = Column(JSONType, default=list, nullable=False)
    cuisines = Column(JSONType, default=list, nullable=False)
    price_range = Column(String(5))
    working_hours = Column(JSONType, nullable=False)
    special_hours = Column(JSONType)
    attributes = Column(JSONType, default=dict)

    # Модерация
    status = Column(String(20), default=EstablishmentStatus.DRAFT.value, nullable=False, index=True)
    moderation_notes = Column(JSONType)
    moderated_by = Column(Uuid, ForeignKey("users.id"), nullable=True)
    moderated_at = Column(DateTime(timezone=True))
    published_at = Column(DateTime(timezone=True))

    # Кэш агрегатов по отзывам, пишется только пересчётом
    average_rating = Column(Numeric(3, 2, asdecimal=False), default=0.0, nullable=False)
    review_count = Column(Integer, default=0, nullable=False)

    # Связи
    partner = relationship("User", back_populates="establishments", foreign_keys=[partner_id])
    media = relationship(
        "EstablishmentMedia",
        back_populates="establishment",
        cascade="all, delete-orphan",
        order_by="EstablishmentMedia.position",
    )
    reviews = relationship("Review", back_populates="establishment", cascade="all, delete-orphan")

    __table_args__ = (
        CheckConstraint(f"status IN ({_STATUSES})", name="establishments_status_check"),
        CheckConstraint("latitude BETWEEN 51.0 AND 56.0", name="establishments_latitude_check"),
        CheckConstraint("longitude BETWEEN 23.0 AND 33.0", name="establishments_longitude_check"),
        Index("idx_establishment_partner_status", "partner_id", "status"),
    )

    def __repr__(self):
        return f"<Establishment(id={self.id}, name={self.name[:30]}, status={self.status})>"


class EstablishmentMedia(Base):
    """Фото интерьера и меню заведения"""
    __tablename__ = "establishment_media"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    establishment_id = Column(
        Uuid, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type = Column(String(20), nullable=False)
    url = Column(Text, nullable=False)
    thumbnail_url = Column(Text)
    position = Column(Integer, default=0, nullable=False)
    is_primary = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, nullable=False)

    establishment = relationship("Establishment", back_populates="media")

    __table_args__ = (
        CheckConstraint(f"type IN ({_MEDIA_TYPES})", name="establishment_media_type_check"),
    )
