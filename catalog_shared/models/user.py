import uuid

from sqlalchemy import Boolean, Column, String, Uuid
from sqlalchemy.orm import relationship

from .base import Base, TimestampMixin
from .enums import UserRole


class User(Base, TimestampMixin):
    """Модель пользователя (записи создаёт сервис авторизации)"""
    __tablename__ = "users"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    email = Column(String(255), unique=True, index=True, nullable=True)
    name = Column(String(255))
    role = Column(String(20), default=UserRole.USER.value, nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False)

    # Связи
    establishments = relationship(
        "Establishment",
        back_populates="partner",
        cascade="all, delete-orphan",
        foreign_keys="Establishment.partner_id",
    )
    reviews = relationship(
        "Review",
        back_populates="user",
        cascade="all, delete-orphan",
        foreign_keys="Review.user_id",
    )

    def __repr__(self):
        return f"<User(id={self.id}, email={self.email}, role={self.role})>"
