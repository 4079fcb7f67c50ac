from datetime import datetime, timedelta, timezone

from catalog_api.services.admin_reviews import audit_summary
from catalog_shared.models import AuditLog

from tests.conftest import auth

AUDIT = "/api/v1/admin/audit-log"


async def add_entries(session_factory, admin, count, action="moderate_approve", entity_type="establishment"):
    start = datetime.now(timezone.utc) - timedelta(hours=count)
    async with session_factory() as session:
        for i in range(count):
            session.add(AuditLog(
                user_id=admin.id,
                action=action,
                entity_type=entity_type,
                new_data={"n": i},
                ip_address="10.0.0.1",
                user_agent="pytest",
                created_at=start + timedelta(hours=i),
            ))
        await session.commit()


async def test_per_page_is_capped_at_50(client, admin, session_factory):
    await add_entries(session_factory, admin, 3)
    r = await client.get(AUDIT, params={"per_page": 100}, headers=auth(admin))
    assert r.status_code == 200
    assert r.json()["meta"]["per_page"] == 50


async def test_defaults_and_summary(client, admin, session_factory):
    await add_entries(session_factory, admin, 2)
    r = await client.get(AUDIT, headers=auth(admin))
    body = r.json()
    assert body["meta"] == {"total": 2, "page": 1, "per_page": 20, "pages": 1}
    entry = body["data"][0]
    assert entry["summary"] == "Одобрено заведение"
    assert entry["admin_name"] == "Анна Админ"
    assert "ip_address" not in entry
    assert "user_agent" not in entry


async def test_include_metadata(client, admin, session_factory):
    await add_entries(session_factory, admin, 1)
    r = await client.get(AUDIT, params={"include_metadata": "true"}, headers=auth(admin))
    entry = r.json()["data"][0]
    assert entry["ip_address"] == "10.0.0.1"
    assert entry["user_agent"] == "pytest"


async def test_sort_order(client, admin, session_factory):
    await add_entries(session_factory, admin, 3)

    r = await client.get(AUDIT, headers=auth(admin))
    assert [e["new_data"]["n"] for e in r.json()["data"]] == [2, 1, 0]

    r = await client.get(AUDIT, params={"sort": "oldest"}, headers=auth(admin))
    assert [e["new_data"]["n"] for e in r.json()["data"]] == [0, 1, 2]


async def test_out_of_range_page_returns_empty_with_totals(client, admin, session_factory):
    await add_entries(session_factory, admin, 3)
    r = await client.get(AUDIT, params={"page": 10, "per_page": 2}, headers=auth(admin))
    assert r.status_code == 200
    body = r.json()
    assert body["data"] == []
    assert body["meta"] == {"total": 3, "page": 10, "per_page": 2, "pages": 2}


async def test_filters(client, admin, create_user, session_factory):
    await add_entries(session_factory, admin, 2)
    await add_entries(session_factory, admin, 1, action="review_hide", entity_type="review")
    other_admin = await create_user("admin")

    r = await client.get(AUDIT, params={"action": "review_hide"}, headers=auth(admin))
    assert r.json()["meta"]["total"] == 1
    assert r.json()["data"][0]["summary"] == "Скрыт отзыв"

    r = await client.get(AUDIT, params={"entity_type": "establishment"}, headers=auth(admin))
    assert r.json()["meta"]["total"] == 2

    r = await client.get(AUDIT, params={"user_id": str(other_admin.id)}, headers=auth(admin))
    assert r.json()["meta"]["total"] == 0


async def test_unknown_filter_values_give_empty_result(client, admin, session_factory):
    await add_entries(session_factory, admin, 2)
    for params in ({"action": "drop_tables"}, {"entity_type": "user"}, {"user_id": "nobody"}):
        r = await client.get(AUDIT, params=params, headers=auth(admin))
        assert r.status_code == 200
        assert r.json()["data"] == []
        assert r.json()["meta"]["total"] == 0


def test_summary_falls_back_to_action_and_entity():
    assert audit_summary("review_delete", "review") == "Удалён отзыв"
    assert audit_summary("custom_action", "review") == "custom_action (review)"
