"""HTTP 接口"""
from sqlalchemy import select

from magpie.models.activity_log import ActivityLog
from magpie.models.api_token import ApiToken
from magpie.models.setting import Setting
from magpie.models.user import User
from magpie.services.settings_store import SECRET_SENTINEL, SettingsStore
from magpie.utils.clock import utcnow


# ==================== 认证 ====================

async def test_health(client):
    response = await client.get("/health")
    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_write_without_credentials_is_401(client):
    response = await client.post("/api/links", json={"url": "https://example.com"})
    assert response.status_code == 401
    assert response.json()["code"] == "AUTH_INVALID"


async def test_invalid_token_is_401_and_not_logged(client, session_factory):
    headers = {"Authorization": "Bearer mgp_" + "0" * 64}
    response = await client.post("/api/links", json={"url": "https://example.com"}, headers=headers)
    assert response.status_code == 401

    async with session_factory() as session:
        result = await session.execute(select(ActivityLog).where(ActivityLog.action == "link_add"))
        assert result.scalars().all() == []


async def test_api_token_cannot_use_admin_routes(client, token_headers):
    response = await client.get("/api/settings", headers=token_headers)
    assert response.status_code == 403
    response = await client.get("/api/tokens", headers=token_headers)
    assert response.status_code == 403


async def test_admin_init_login_verify(client):
    response = await client.post("/api/auth/init", json={"username": "root", "password": "password123"})
    assert response.status_code == 201

    response = await client.post("/api/auth/init", json={"username": "other", "password": "password123"})
    assert response.status_code == 409

    response = await client.post("/api/auth/login", json={"username": "root", "password": "wrong"})
    assert response.status_code == 401

    response = await client.post("/api/auth/login", json={"username": "root", "password": "password123"})
    assert response.status_code == 200
    access_token = response.json()["access_token"]

    response = await client.get("/api/auth/verify", headers={"Authorization": f"Bearer {access_token}"})
    assert response.json() == {"type": "user", "id": 1, "name": "root", "is_admin": True}


async def test_verify_with_api_token_updates_usage(client, token_headers, session_factory):
    response = await client.get("/api/auth/verify", headers=token_headers)
    assert response.status_code == 200
    assert response.json()["is_admin"] is False

    async with session_factory() as session:
        token = (await session.execute(select(ApiToken))).scalar_one()
        assert token.usage_count == 1
        assert token.last_used_at is not None


# ==================== 链接 ====================

async def test_submit_review_publish_flow(client, token_headers):
    response = await client.post(
        "/api/links", json={"url": "https://example.com/post"}, headers=token_headers
    )
    assert response.status_code == 201
    link = response.json()
    assert link["status"] == "pending"
    assert link["ai_summary"] == "AI summary"

    # 待确认链接不公开
    assert (await client.get(f"/api/links/{link['id']}")).status_code == 404

    response = await client.get("/api/links/pending", headers=token_headers)
    assert response.json()["pagination"]["total"] == 1

    response = await client.post(
        f"/api/links/{link['id']}/confirm",
        json={"description": "final", "category": "技术", "tags": "python, web"},
        headers=token_headers,
    )
    assert response.status_code == 200
    assert response.json()["user_tags"] == ["python", "web"]

    response = await client.get(f"/api/links/{link['id']}")
    assert response.status_code == 200
    public = response.json()
    assert public["description"] == "final"
    assert "ai_summary" not in public

    response = await client.post(
        f"/api/links/{link['id']}/confirm", json={"description": "again"}, headers=token_headers
    )
    assert response.status_code == 409
    assert response.json()["code"] == "INVALID_STATUS"


async def test_pending_detail_of_published_link_is_409(client, token_headers):
    response = await client.post(
        "/api/links", json={"url": "https://example.com/a", "skip_confirm": True}, headers=token_headers
    )
    link_id = response.json()["id"]
    response = await client.get(f"/api/links/pending/{link_id}", headers=token_headers)
    assert response.status_code == 409


async def test_public_list_filters(client, token_headers):
    for path, category in (("/a", "技术"), ("/b", "设计"), ("/c", "技术")):
        await client.post(
            "/api/links",
            json={"url": f"https://example.com{path}", "skip_confirm": True, "category": category},
            headers=token_headers,
        )

    response = await client.get("/api/links", params={"category": "技术"})
    assert response.json()["pagination"]["total"] == 2

    response = await client.get("/api/links", params={"tag": "python"})
    assert response.json()["pagination"]["total"] == 3

    response = await client.get("/api/links", params={"search": "设计"})
    assert response.json()["pagination"]["total"] == 1

    response = await client.get("/api/links", params={"limit": 2, "sort": "oldest"})
    body = response.json()
    assert len(body["links"]) == 2
    assert body["pagination"]["has_next"] is True
    assert body["links"][0]["url"] == "https://example.com/a"


async def test_delete_restore_requires_admin(client, token_headers, admin_headers):
    response = await client.post(
        "/api/links", json={"url": "https://example.com/a", "skip_confirm": True}, headers=token_headers
    )
    link_id = response.json()["id"]

    assert (await client.delete(f"/api/links/{link_id}", headers=token_headers)).status_code == 200
    assert (await client.get(f"/api/links/{link_id}")).status_code == 404

    response = await client.post(f"/api/links/{link_id}/restore", headers=token_headers)
    assert response.status_code == 403

    response = await client.post(f"/api/links/{link_id}/restore", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "published"
    assert (await client.get(f"/api/links/{link_id}")).status_code == 200


async def test_batch_and_reindex(client, token_headers, admin_headers):
    ids = []
    for i in range(2):
        response = await client.post(
            "/api/links", json={"url": f"https://example.com/{i}"}, headers=token_headers
        )
        ids.append(response.json()["id"])

    response = await client.post(
        "/api/links/batch", json={"ids": ids + [999], "action": "confirm"}, headers=admin_headers
    )
    assert response.status_code == 200
    body = response.json()
    assert body["processed"] == 2
    assert body["failed"] == 1

    response = await client.post("/api/links/reindex", headers=admin_headers)
    assert response.json() == {"indexed": 2}


async def test_rate_limit(client, token_headers, db):
    await SettingsStore(db).set("rate_limit_per_minute", 2)
    await db.commit()

    for i in range(2):
        response = await client.post(
            "/api/links", json={"url": f"https://example.com/{i}"}, headers=token_headers
        )
        assert response.status_code == 201
    response = await client.post("/api/links", json={"url": "https://example.com/x"}, headers=token_headers)
    assert response.status_code == 429


# ==================== 设置 ====================

async def test_settings_never_expose_api_key(client, admin_headers):
    response = await client.put("/api/settings", json={"ai_api_key": "sk-secret"}, headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["ai"]["api_key"] == SECRET_SENTINEL

    # 回传占位值不会覆盖已保存的密钥
    response = await client.put(
        "/api/settings", json={"ai_api_key": SECRET_SENTINEL, "site_title": "Links"}, headers=admin_headers
    )
    body = response.json()
    assert body["site"]["title"] == "Links"
    assert body["ai"]["api_key"] == SECRET_SENTINEL
    assert "sk-secret" not in response.text


async def test_settings_reject_unknown_default_category(client, admin_headers):
    response = await client.put(
        "/api/settings", json={"default_category": "不存在"}, headers=admin_headers
    )
    assert response.status_code == 400


async def test_ai_test_without_key(client, admin_headers):
    response = await client.post("/api/settings/ai/test", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["success"] is False


# ==================== 分类 / Token / 日志 ====================

async def test_categories_crud(client, admin_headers):
    response = await client.get("/api/categories")
    assert [c["name"] for c in response.json()][0] == "技术"

    response = await client.post("/api/categories", json={"name": "Reading"}, headers=admin_headers)
    assert response.status_code == 201
    category_id = response.json()["id"]

    response = await client.post("/api/categories", json={"name": "Reading"}, headers=admin_headers)
    assert response.status_code == 409

    response = await client.delete(f"/api/categories/{category_id}", headers=admin_headers)
    assert response.status_code == 204


async def test_token_plaintext_shown_once(client, admin_headers):
    response = await client.post("/api/tokens", json={"name": "cli"}, headers=admin_headers)
    assert response.status_code == 201
    created = response.json()
    assert len(created["token"]) == 68

    response = await client.get("/api/tokens", headers=admin_headers)
    listed = [t for t in response.json() if t["id"] == created["id"]][0]
    assert listed["token"] == f"mgp_***{created['token'][-4:]}"

    response = await client.post(f"/api/tokens/{created['id']}/revoke", headers=admin_headers)
    assert response.json()["status"] == "revoked"

    response = await client.get("/api/auth/verify", headers={"Authorization": f"Bearer {created['token']}"})
    assert response.status_code == 401


async def test_activity_log_lists_failures(client, token_headers, admin_headers):
    await client.post("/api/links", json={"url": "ftp://example.com"}, headers=token_headers)

    response = await client.get("/api/activity", params={"status": "failed"}, headers=admin_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["pagination"]["total"] == 1
    log = body["logs"][0]
    assert log["action"] == "link_add"
    assert log["actor_type"] == "token"
    assert "failed" in body["filters"]["statuses"]


async def test_suspended_admin_login_is_logged(client, db, admin_user, session_factory):
    admin_user.status = "suspended"
    await db.commit()

    response = await client.post("/api/auth/login", json={"username": "admin", "password": "password123"})
    assert response.status_code == 403

    async with session_factory() as session:
        result = await session.execute(select(ActivityLog).where(ActivityLog.action == "login_failed"))
        log = result.scalar_one()
    assert log.status == "failed"
    assert log.resource_id == admin_user.id
    assert log.error_message == "用户已被禁用"


async def test_admin_init_loses_to_concurrent_init(client, db, session_factory):
    # 另一个请求已占用初始化标记但尚未写入用户
    now = utcnow()
    db.add(Setting(
        key="admin_initialized", value=now.isoformat(), type="string",
        description="", created_at=now, updated_at=now,
    ))
    await db.commit()

    response = await client.post("/api/auth/init", json={"username": "root", "password": "password123"})
    assert response.status_code == 409

    async with session_factory() as session:
        assert (await session.execute(select(User))).scalars().all() == []
        result = await session.execute(select(ActivityLog).where(ActivityLog.action == "admin_init"))
        assert result.scalar_one().status == "failed"


# ==================== 管理端列表 / 直接入库 / 统计 ====================

async def test_admin_list_finds_deleted_links(client, token_headers, admin_headers):
    ids = []
    for path in ("/a", "/b"):
        response = await client.post(
            "/api/links", json={"url": f"https://example.com{path}", "skip_confirm": True}, headers=token_headers
        )
        ids.append(response.json()["id"])
    await client.post("/api/links", json={"url": "https://other.org/c"}, headers=token_headers)
    await client.delete(f"/api/links/{ids[0]}", headers=token_headers)

    assert (await client.get("/api/links/admin", headers=token_headers)).status_code == 403

    response = await client.get("/api/links/admin", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["pagination"]["total"] == 3

    response = await client.get("/api/links/admin", params={"status": "deleted"}, headers=admin_headers)
    body = response.json()
    assert [link["id"] for link in body["links"]] == [ids[0]]
    assert body["links"][0]["status"] == "deleted"

    response = await client.get("/api/links/admin", params={"domain": "other.org"}, headers=admin_headers)
    assert response.json()["links"][0]["status"] == "pending"

    response = await client.get("/api/links/admin", params={"search": str(ids[1])}, headers=admin_headers)
    assert ids[1] in [link["id"] for link in response.json()["links"]]

    response = await client.get("/api/links/admin", params={"status": "bogus"}, headers=admin_headers)
    assert response.status_code == 422

    response = await client.post(f"/api/links/{ids[0]}/restore", headers=admin_headers)
    assert response.json()["status"] == "published"


async def test_direct_ingest_publishes_with_preset_fields(client, token_headers, session_factory):
    response = await client.post(
        "/api/links/direct",
        json={"url": "https://example.com/direct", "category": "工具", "tags": "cli, go"},
        headers=token_headers,
    )
    assert response.status_code == 201
    link = response.json()
    assert link["status"] == "published"
    assert link["published_at"] is not None
    assert link["user_description"] is None
    assert link["user_category"] == "工具"
    assert link["user_tags"] == ["cli", "go"]
    assert link["ai_summary"] == "AI summary"

    public = (await client.get(f"/api/links/{link['id']}")).json()
    assert public["description"] == ""
    assert public["category"] == "工具"

    response = await client.get("/api/links", params={"search": "cli"})
    assert response.json()["pagination"]["total"] == 1

    async with session_factory() as session:
        result = await session.execute(select(ActivityLog).where(ActivityLog.action == "link_add"))
        assert result.scalar_one().details["direct"] is True


async def test_site_and_domain_stats(client, token_headers):
    for path in ("/a", "/b"):
        await client.post(
            "/api/links", json={"url": f"https://example.com{path}", "skip_confirm": True}, headers=token_headers
        )
    await client.post("/api/links", json={"url": "https://example.com/c"}, headers=token_headers)

    response = await client.get("/api/stats")
    assert response.status_code == 200
    stats = response.json()
    assert stats["total_links"] == 3
    assert stats["published_links"] == 2
    assert stats["pending_links"] == 1
    assert stats["total_categories"] == 1
    assert stats["popular_tags"] == [{"name": "python", "count": 2}, {"name": "web", "count": 2}]
    assert stats["popular_domains"] == [{"name": "example.com", "count": 2}]
    assert len(stats["recent_links"]) == 2
    assert len(stats["monthly"]) == 12
    assert stats["monthly"][-1]["count"] == 2

    response = await client.get("/api/domains/example.com/stats")
    assert response.status_code == 200
    body = response.json()
    assert body["count"] == 2
    assert body["latest_title"] == "Example Page"

    response = await client.get("/api/domains/unknown.test/stats")
    assert response.status_code == 404
