"""目录查询与统计"""
from datetime import datetime, timedelta

import pytest

from magpie.errors import NotFoundError, ValidationError
from magpie.models.link import Link, encode_tags
from magpie.services.catalog import _recent_months, domain_stats, list_all, site_stats
from magpie.utils.clock import utcnow


async def _add_link(db, status="published", published_at=None, **fields):
    now = utcnow()
    link = Link(
        url=fields.pop("url", "https://example.com/x"),
        domain=fields.pop("domain", "example.com"),
        title=fields.pop("title", "Untitled"),
        status=status,
        published_at=published_at or (now if status == "published" else None),
        created_at=now,
        updated_at=now,
        **fields,
    )
    db.add(link)
    await db.flush()
    return link


def test_recent_months_wraps_year():
    assert _recent_months(datetime(2024, 2, 10), 3) == [(2023, 12), (2024, 1), (2024, 2)]


async def test_list_all_search_covers_ai_fields_and_is_literal(db):
    a = await _add_link(db, status="pending", title="One", ai_summary="covers 100% of cases")
    await _add_link(db, status="deleted", title="Two", ai_summary="nothing here")
    await db.commit()

    links, total = await list_all(db, search="100%")
    assert total == 1
    assert links[0].id == a.id

    _, total = await list_all(db, search="_")
    assert total == 0

    _, total = await list_all(db, status="deleted")
    assert total == 1

    with pytest.raises(ValidationError):
        await list_all(db, status="archived")


async def test_list_all_category_matches_ai_or_user(db):
    await _add_link(db, status="pending", ai_category="设计")
    await _add_link(db, user_category="设计", ai_category="技术")
    await _add_link(db, user_category="技术", ai_category="技术")
    await db.commit()

    _, total = await list_all(db, category="设计")
    assert total == 2


async def test_monthly_stats_follow_client_timezone(db):
    # 当地时间（东八区）本月 1 日 02:00，对应 UTC 上个月最后一天 18:00
    local_now = utcnow() + timedelta(hours=8)
    local_start = datetime(local_now.year, local_now.month, 1, 2)
    published_at = local_start - timedelta(hours=8)
    await _add_link(db, published_at=published_at, user_tags=encode_tags(["a"]))
    await db.commit()

    stats = await site_stats(db, tz_offset=480)
    assert stats["monthly"][-1] == {"year": local_now.year, "month": local_now.month, "count": 1}

    stats = await site_stats(db, tz_offset=0)
    counts = {(m["year"], m["month"]): m["count"] for m in stats["monthly"]}
    assert counts[(published_at.year, published_at.month)] == 1
    assert (published_at.year, published_at.month) != (local_now.year, local_now.month)
    assert stats["total_tags"] == 1


async def test_domain_stats_ignores_unpublished(db):
    await _add_link(db, status="pending", domain="draft.test")
    await db.commit()

    with pytest.raises(NotFoundError):
        await domain_stats(db, "draft.test")
