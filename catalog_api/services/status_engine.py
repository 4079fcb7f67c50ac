"""
Машина состояний заведения.

Каждый переход - один UPDATE строки с условием на текущий статус.
Движок не пишет в другие таблицы: аудит и пересчёт рейтингов
оркестрируют вызывающие сервисы.
"""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, FrozenSet, Optional

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession

from catalog_shared.models import Establishment, EstablishmentStatus
from catalog_shared.models.base import utcnow

from ..errors import AppError

logger = logging.getLogger(__name__)

_ALL = frozenset(EstablishmentStatus)


class Transition(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    SUSPEND = "suspend"
    UNSUSPEND = "unsuspend"
    ARCHIVE = "archive"


@dataclass(frozen=True)
class TransitionRule:
    sources: FrozenSet[EstablishmentStatus]
    # None: статус восстанавливается из moderation_notes
    target: Optional[EstablishmentStatus]
    error_code: str
    source_hint: str


TRANSITIONS: Dict[Transition, TransitionRule] = {
    Transition.SUBMIT: TransitionRule(
        frozenset({EstablishmentStatus.DRAFT}),
        EstablishmentStatus.PENDING,
        "INVALID_STATUS_FOR_SUBMISSION",
        "Only draft establishments can be submitted.",
    ),
    Transition.APPROVE: TransitionRule(
        frozenset({EstablishmentStatus.PENDING}),
        EstablishmentStatus.ACTIVE,
        "INVALID_STATUS_FOR_MODERATION",
        "Only pending establishments can be moderated.",
    ),
    Transition.REJECT: TransitionRule(
        frozenset({EstablishmentStatus.PENDING}),
        EstablishmentStatus.REJECTED,
        "INVALID_STATUS_FOR_MODERATION",
        "Only pending establishments can be moderated.",
    ),
    Transition.SUSPEND: TransitionRule(
        _ALL - {EstablishmentStatus.SUSPENDED},
        EstablishmentStatus.SUSPENDED,
        "INVALID_STATUS_FOR_SUSPEND",
        "Establishment is already suspended.",
    ),
    Transition.UNSUSPEND: TransitionRule(
        frozenset({EstablishmentStatus.SUSPENDED}),
        None,
        "INVALID_STATUS_FOR_UNSUSPEND",
        "Only suspended establishments can be reactivated.",
    ),
    Transition.ARCHIVE: TransitionRule(
        _ALL - {EstablishmentStatus.ARCHIVED},
        EstablishmentStatus.ARCHIVED,
        "INVALID_STATUS_FOR_ARCHIVE",
        "Establishment is already archived.",
    ),
}

SUSPENDED_FROM_KEY = "suspended_from"


def status_before_suspension(establishment: Establishment) -> EstablishmentStatus:
    """Статус, в который возвращается заведение после снятия блокировки.

    Берётся из moderation_notes; для записей без этой отметки
    активным считается только уже опубликованное заведение.
    """
    stored = (establishment.moderation_notes or {}).get(SUSPENDED_FROM_KEY)
    if stored in {status.value for status in _ALL - {EstablishmentStatus.SUSPENDED}}:
        return EstablishmentStatus(stored)
    if establishment.published_at is not None:
        return EstablishmentStatus.ACTIVE
    return EstablishmentStatus.DRAFT


# Поля, изменение которых отправляет активное заведение на повторную модерацию
MAJOR_FIELDS = frozenset({"name", "categories", "cuisines"})


def changed_major_fields(current: Establishment, updates: Dict[str, Any]) -> set:
    """Основные поля, затронутые обновлением.

    Название считается изменённым только при другом значении,
    категории и кухни - при любой их передаче.
    """
    changed = set()
    for name in MAJOR_FIELDS & updates.keys():
        if name == "name" and updates[name] == current.name:
            continue
        changed.add(name)
    return changed


def status_after_edit(current: EstablishmentStatus, major_changed: bool) -> Optional[EstablishmentStatus]:
    """Статус, который партнёрская правка выставляет тем же UPDATE (None - без изменений)"""
    if current is EstablishmentStatus.ACTIVE:
        return EstablishmentStatus.PENDING if major_changed else None
    if current is EstablishmentStatus.REJECTED:
        # Отклонённое заведение после правки снова можно отправить на модерацию
        return EstablishmentStatus.DRAFT
    if current in (
        EstablishmentStatus.DRAFT,
        EstablishmentStatus.PENDING,
        EstablishmentStatus.SUSPENDED,
        EstablishmentStatus.ARCHIVED,
    ):
        return None
    raise ValueError(f"Unknown establishment status: {current}")


class StatusTransitionEngine:
    """Проверка и применение переходов статуса"""

    def __init__(self, db: AsyncSession):
        self.db = db

    @staticmethod
    def can_apply(transition: Transition, current: EstablishmentStatus) -> bool:
        return current in TRANSITIONS[transition].sources

    @staticmethod
    def ensure_allowed(establishment: Establishment, transition: Transition) -> EstablishmentStatus:
        """Текущий статус, если переход из него разрешён; иначе 400"""
        rule = TRANSITIONS[transition]
        current = EstablishmentStatus(establishment.status)
        if current not in rule.sources:
            raise AppError(
                f"Cannot {transition.value} establishment with status '{current.value}'. {rule.source_hint}",
                400,
                rule.error_code,
            )
        return current

    @staticmethod
    def resolve_target(establishment: Establishment, transition: Transition) -> EstablishmentStatus:
        rule = TRANSITIONS[transition]
        if rule.target is not None:
            return rule.target
        return status_before_suspension(establishment)

    async def apply(
        self,
        establishment: Establishment,
        transition: Transition,
        values: Optional[Dict[str, Any]] = None,
    ) -> Establishment:
        current = self.ensure_allowed(establishment, transition)
        target = self.resolve_target(establishment, transition)

        result = await self.db.execute(
            update(Establishment)
            .where(Establishment.id == establishment.id, Establishment.status == current.value)
            .values(status=target.value, updated_at=utcnow(), **(values or {}))
            .execution_options(synchronize_session=False)
        )

        if result.rowcount == 0:
            raise AppError(
                f"{transition.value.capitalize()} failed, establishment may have been modified concurrently",
                409,
                f"{transition.value.upper()}_CONFLICT",
            )

        await self.db.refresh(establishment)

        logger.info(
            f"Establishment {establishment.id}: {current.value} -> {target.value} ({transition.value})"
        )
        return establishment
