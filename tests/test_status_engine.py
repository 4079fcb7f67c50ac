from datetime import datetime, timezone

import pytest

from catalog_api.errors import AppError
from catalog_api.services.status_engine import (
    MAJOR_FIELDS, TRANSITIONS, StatusTransitionEngine, Transition, changed_major_fields, status_after_edit,
    status_before_suspension,
)
from catalog_shared.models import Establishment, EstablishmentStatus

S = EstablishmentStatus


def test_no_transition_reaches_active_from_draft():
    for transition, rule in TRANSITIONS.items():
        if rule.target is S.ACTIVE:
            assert S.DRAFT not in rule.sources, transition


@pytest.mark.parametrize("transition,source,allowed", [
    (Transition.SUBMIT, S.DRAFT, True),
    (Transition.SUBMIT, S.PENDING, False),
    (Transition.SUBMIT, S.REJECTED, False),
    (Transition.APPROVE, S.PENDING, True),
    (Transition.APPROVE, S.DRAFT, False),
    (Transition.REJECT, S.PENDING, True),
    (Transition.REJECT, S.ACTIVE, False),
    (Transition.SUSPEND, S.ACTIVE, True),
    (Transition.SUSPEND, S.DRAFT, True),
    (Transition.SUSPEND, S.SUSPENDED, False),
    (Transition.UNSUSPEND, S.SUSPENDED, True),
    (Transition.UNSUSPEND, S.ACTIVE, False),
    (Transition.ARCHIVE, S.SUSPENDED, True),
    (Transition.ARCHIVE, S.ARCHIVED, False),
])
def test_can_apply(transition, source, allowed):
    assert StatusTransitionEngine.can_apply(transition, source) is allowed


def test_status_before_suspension():
    published = datetime.now(timezone.utc)
    assert status_before_suspension(Establishment(moderation_notes={"suspended_from": "pending"})) is S.PENDING
    assert status_before_suspension(Establishment(moderation_notes={"suspended_from": "active"})) is S.ACTIVE
    assert status_before_suspension(Establishment(moderation_notes={"suspended_from": "suspended"})) is S.DRAFT
    assert status_before_suspension(Establishment(moderation_notes=None)) is S.DRAFT
    assert status_before_suspension(Establishment(moderation_notes={}, published_at=published)) is S.ACTIVE


def test_status_after_edit():
    assert status_after_edit(S.ACTIVE, True) is S.PENDING
    assert status_after_edit(S.ACTIVE, False) is None
    assert status_after_edit(S.REJECTED, False) is S.DRAFT
    for status in (S.DRAFT, S.PENDING, S.SUSPENDED, S.ARCHIVED):
        assert status_after_edit(status, True) is None


def test_changed_major_fields():
    current = Establishment(name="Васильки", categories=["Ресторан"], cuisines=["Народная"])
    assert MAJOR_FIELDS == {"name", "categories", "cuisines"}
    assert changed_major_fields(current, {"name": "Васильки", "description": "x"}) == set()
    assert changed_major_fields(current, {"name": "Лидо"}) == {"name"}
    assert changed_major_fields(current, {"cuisines": ["Народная"]}) == {"cuisines"}


async def test_apply_illegal_transition_raises(session_factory, partner, create_establishment):
    est = await create_establishment(partner, status="draft")
    async with session_factory() as db:
        stored = await db.get(Establishment, est.id)
        with pytest.raises(AppError) as exc:
            await StatusTransitionEngine(db).apply(stored, Transition.APPROVE)
    assert exc.value.status_code == 400
    assert exc.value.code == "INVALID_STATUS_FOR_MODERATION"


async def test_apply_conflict_when_row_changed(session_factory, partner, create_establishment):
    est = await create_establishment(partner, status="draft")
    async with session_factory() as db:
        stored = await db.get(Establishment, est.id)
        # Кто-то другой уже отправил заведение на модерацию
        async with session_factory() as other:
            other_row = await other.get(Establishment, est.id)
            other_row.status = S.PENDING.value
            await other.commit()

        with pytest.raises(AppError) as exc:
            await StatusTransitionEngine(db).apply(stored, Transition.SUBMIT)
    assert exc.value.status_code == 409
    assert exc.value.code == "SUBMIT_CONFLICT"


async def test_apply_updates_row(session_factory, partner, create_establishment, fetch):
    est = await create_establishment(partner, status="draft")
    async with session_factory() as db:
        stored = await db.get(Establishment, est.id)
        await StatusTransitionEngine(db).apply(stored, Transition.SUBMIT)
        assert stored.status == "pending"
        await db.commit()
    assert (await fetch(Establishment, est.id)).status == "pending"
