import uuid

from sqlalchemy import (
    Boolean, CheckConstraint, Column, DateTime, ForeignKey, Index, Integer,
    Text, UniqueConstraint, Uuid
)
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin


class Review(Base, TimestampMixin):
    """Модель отзыва"""
    __tablename__ = "reviews"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    user_id = Column(Uuid, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    establishment_id = Column(
        Uuid, ForeignKey("establishments.id", ondelete="CASCADE"), nullable=False, index=True
    )
    rating = Column(Integer, nullable=False)  # 1-5
    content = Column(Text, nullable=False)

    # Скрытие и мягкое удаление (строки никогда не удаляются физически)
    is_visible = Column(Boolean, default=True, nullable=False)
    is_deleted = Column(Boolean, default=False, nullable=False)
    is_edited = Column(Boolean, default=False, nullable=False)

    # Ответ партнёра
    partner_response = Column(Text)
    partner_response_at = Column(DateTime(timezone=True))
    partner_responder_id = Column(Uuid, ForeignKey("users.id", ondelete="SET NULL"))

    # Связи
    user = relationship("User", back_populates="reviews", foreign_keys=[user_id])
    establishment = relationship("Establishment", back_populates="reviews")

    __table_args__ = (
        UniqueConstraint("user_id", "establishment_id", name="uq_reviews_user_establishment"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="reviews_rating_check"),
        Index("idx_review_establishment_deleted", "establishment_id", "is_deleted"),
    )

    def __repr__(self):
        return f"<Review(id={self.id}, rating={self.rating}, deleted={self.is_deleted})>"
