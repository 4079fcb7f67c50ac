import uuid

from sqlalchemy import select

from catalog_shared.models import AuditLog, Establishment

from tests.conftest import auth

ADMIN = "/api/v1/admin/establishments"


async def audit_rows(session_factory, **filters):
    async with session_factory() as session:
        query = select(AuditLog)
        for name, value in filters.items():
            query = query.where(getattr(AuditLog, name) == value)
        result = await session.execute(query)
        return result.scalars().all()


async def test_approve_pending_writes_audit_entry(
    client, admin, partner, create_establishment, audit_logger, session_factory, fetch
):
    est = await create_establishment(partner, status="pending")

    r = await client.post(
        f"{ADMIN}/{est.id}/moderate",
        json={"action": "approve"},
        headers={**auth(admin), "User-Agent": "pytest-admin"},
    )
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "active"

    stored = await fetch(Establishment, est.id)
    assert stored.status == "active"
    assert stored.published_at is not None
    assert stored.moderated_by == admin.id

    await audit_logger.drain()
    rows = await audit_rows(session_factory, action="moderate_approve")
    assert len(rows) == 1
    entry = rows[0]
    assert entry.entity_type == "establishment"
    assert entry.entity_id == est.id
    assert entry.user_id == admin.id
    assert entry.old_data == {"status": "pending"}
    assert entry.new_data["status"] == "active"
    assert entry.user_agent == "pytest-admin"


async def test_reject_stores_reason(client, admin, partner, create_establishment, audit_logger, session_factory, fetch):
    est = await create_establishment(partner, status="pending")
    r = await client.post(
        f"{ADMIN}/{est.id}/moderate",
        json={"action": "reject", "reason": "Нет фото меню", "moderation_notes": {"name": "Слишком длинно"}},
        headers=auth(admin),
    )
    assert r.status_code == 200, r.text

    stored = await fetch(Establishment, est.id)
    assert stored.status == "rejected"
    assert stored.published_at is None
    assert stored.moderation_notes == {"name": "Слишком длинно", "reason": "Нет фото меню"}

    await audit_logger.drain()
    rows = await audit_rows(session_factory, action="moderate_reject", entity_id=est.id)
    assert len(rows) == 1


async def test_moderate_non_pending_is_rejected(client, admin, partner, create_establishment):
    est = await create_establishment(partner, status="draft")
    r = await client.post(f"{ADMIN}/{est.id}/moderate", json={"action": "approve"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_STATUS_FOR_MODERATION"


async def test_moderate_unknown_action_is_validation_error(client, admin, partner, create_establishment):
    est = await create_establishment(partner, status="pending")
    r = await client.post(f"{ADMIN}/{est.id}/moderate", json={"action": "publish"}, headers=auth(admin))
    assert r.status_code == 422
    assert r.json()["error"]["details"][0]["field"] == "action"


async def test_moderate_missing_establishment(client, admin):
    r = await client.post(f"{ADMIN}/{uuid.uuid4()}/moderate", json={"action": "approve"}, headers=auth(admin))
    assert r.status_code == 404
    assert r.json()["error"]["code"] == "ESTABLISHMENT_NOT_FOUND"


async def test_moderate_requires_admin(client, partner, create_establishment):
    est = await create_establishment(partner, status="pending")

    r = await client.post(f"{ADMIN}/{est.id}/moderate", json={"action": "approve"}, headers=auth(partner))
    assert r.status_code == 403
    assert r.json()["success"] is False
    assert r.json()["error"]["code"] == "FORBIDDEN"

    r = await client.post(f"{ADMIN}/{est.id}/moderate", json={"action": "approve"})
    assert r.status_code == 401
    assert r.json()["error"]["code"] == "MISSING_TOKEN"


async def test_second_approval_keeps_first_published_at(client, admin, partner, create_establishment, fetch):
    est = await create_establishment(partner, status="pending")
    await client.post(f"{ADMIN}/{est.id}/moderate", json={"action": "approve"}, headers=auth(admin))
    first = (await fetch(Establishment, est.id)).published_at

    # Правка основного поля -> снова pending -> повторное одобрение
    r = await client.put(
        f"/api/v1/partner/establishments/{est.id}", json={"cuisines": ["Итальянская"]}, headers=auth(partner)
    )
    assert r.json()["data"]["establishment"]["status"] == "pending"
    await client.post(f"{ADMIN}/{est.id}/moderate", json={"action": "approve"}, headers=auth(admin))

    stored = await fetch(Establishment, est.id)
    assert stored.status == "active"
    assert stored.published_at == first


async def test_suspend_requires_reason(client, admin, partner, create_establishment):
    est = await create_establishment(partner, status="active")
    r = await client.post(f"{ADMIN}/{est.id}/suspend", json={"reason": "  "}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "REASON_REQUIRED"

    r = await client.post(f"{ADMIN}/{est.id}/suspend", headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "REASON_REQUIRED"


async def test_suspend_and_unsuspend(client, admin, partner, create_establishment, audit_logger, session_factory, fetch):
    est = await create_establishment(partner, status="active")

    r = await client.post(f"{ADMIN}/{est.id}/suspend", json={"reason": "Жалобы посетителей"}, headers=auth(admin))
    assert r.status_code == 200, r.text
    stored = await fetch(Establishment, est.id)
    assert stored.status == "suspended"
    assert stored.moderation_notes["suspend_reason"] == "Жалобы посетителей"

    r = await client.post(f"{ADMIN}/{est.id}/suspend", json={"reason": "Ещё раз"}, headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_STATUS_FOR_SUSPEND"

    r = await client.post(f"{ADMIN}/{est.id}/unsuspend", headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "active"

    r = await client.post(f"{ADMIN}/{est.id}/unsuspend", headers=auth(admin))
    assert r.status_code == 400
    assert r.json()["error"]["code"] == "INVALID_STATUS_FOR_UNSUSPEND"

    await audit_logger.drain()
    actions = sorted(row.action for row in await audit_rows(session_factory, entity_id=est.id))
    assert actions == ["suspend_establishment", "unsuspend_establishment"]


async def test_archive_from_any_status(client, admin, partner, create_establishment):
    for status in ("draft", "pending", "active", "rejected", "suspended"):
        est = await create_establishment(partner, status=status, name=f"Заведение {status}")
        r = await client.post(f"{ADMIN}/{est.id}/archive", json={"reason": "Закрылось"}, headers=auth(admin))
        assert r.status_code == 200, r.text
        assert r.json()["data"]["status"] == "archived"

        r = await client.post(f"{ADMIN}/{est.id}/archive", headers=auth(admin))
        assert r.status_code == 400
        assert r.json()["error"]["code"] == "INVALID_STATUS_FOR_ARCHIVE"


async def test_pending_queue(client, admin, partner, create_establishment):
    await create_establishment(partner, status="pending", name="Ждёт")
    await create_establishment(partner, status="active", name="Работает")

    r = await client.get(f"{ADMIN}/pending", headers=auth(admin))
    assert r.status_code == 200
    body = r.json()
    assert [e["name"] for e in body["data"]] == ["Ждёт"]
    assert body["data"][0]["partner_name"] == "Иван Партнёр"
    assert body["meta"]["total"] == 1


async def test_get_for_moderation_any_status(client, admin, partner, create_establishment):
    est = await create_establishment(partner, status="suspended")
    r = await client.get(f"{ADMIN}/{est.id}", headers=auth(admin))
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["status"] == "suspended"
    assert data["partner"]["id"] == str(partner.id)

    r = await client.get(f"{ADMIN}/{uuid.uuid4()}", headers=auth(admin))
    assert r.status_code == 404


async def test_audit_failure_does_not_fail_action(client, admin, partner, create_establishment, fetch):
    from catalog_api.main import app
    from catalog_api.services.audit import AuditLogger

    def broken_factory():
        raise RuntimeError("audit storage unavailable")

    broken = AuditLogger(broken_factory)
    app.state.audit_logger = broken

    est = await create_establishment(partner, status="pending")
    r = await client.post(f"{ADMIN}/{est.id}/moderate", json={"action": "approve"}, headers=auth(admin))
    assert r.status_code == 200, r.text
    await broken.drain()

    assert (await fetch(Establishment, est.id)).status == "active"


async def test_unsuspend_restores_status_before_suspension(client, admin, partner, create_establishment, fetch):
    for status in ("draft", "pending", "rejected", "archived"):
        est = await create_establishment(partner, status=status, name=f"Без публикации {status}")

        r = await client.post(f"{ADMIN}/{est.id}/suspend", json={"reason": "Проверка"}, headers=auth(admin))
        assert r.status_code == 200, r.text
        assert (await fetch(Establishment, est.id)).moderation_notes["suspended_from"] == status

        r = await client.post(f"{ADMIN}/{est.id}/unsuspend", headers=auth(admin))
        assert r.status_code == 200, r.text
        assert r.json()["data"]["status"] == status

        stored = await fetch(Establishment, est.id)
        assert stored.status == status
        assert stored.published_at is None
        assert "suspended_from" not in (stored.moderation_notes or {})


async def test_unsuspend_without_recorded_status(client, admin, partner, create_establishment, fetch):
    est = await create_establishment(partner, status="suspended")

    r = await client.post(f"{ADMIN}/{est.id}/unsuspend", headers=auth(admin))
    assert r.status_code == 200, r.text
    assert r.json()["data"]["status"] == "draft"
    assert (await fetch(Establishment, est.id)).status == "draft"
