"""链接目录查询（公开列表、管理端列表、统计）"""

from collections import Counter
from datetime import datetime, timedelta
from typing import List, Optional, Tuple
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, asc, desc, or_
import json

from ..errors import NotFoundError, ValidationError
from ..models.link import Link, LinkStatus, decode_tags
from ..utils.clock import utcnow
from .search_index import SearchIndexMaintainer, escape_like

SORTS = {
    "newest": (desc(Link.published_at), desc(Link.id)),
    "oldest": (asc(Link.published_at), asc(Link.id)),
    "title": (asc(Link.title), asc(Link.id)),
    "domain": (asc(Link.domain), desc(Link.published_at)),
}


def _month_range(year: int, month: Optional[int]) -> Tuple[datetime, datetime]:
    if month is None:
        return datetime(year, 1, 1), datetime(year + 1, 1, 1)
    if not 1 <= month <= 12:
        raise ValidationError("月份必须在 1-12 之间")
    if month == 12:
        return datetime(year, 12, 1), datetime(year + 1, 1, 1)
    return datetime(year, month, 1), datetime(year, month + 1, 1)


async def list_published(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = None,
    domain: Optional[str] = None,
    year: Optional[int] = None,
    month: Optional[int] = None,
    sort: str = "newest",
) -> Tuple[List[Link], int]:
    """
    已发布链接列表

    search 走搜索索引，其余筛选直接按列过滤。

    Returns:
        (当前页链接, 总数)
    """
    if sort not in SORTS:
        raise ValidationError(f"不支持的排序方式: {sort}")
    if month is not None and year is None:
        raise ValidationError("按月筛选时必须指定年份")

    conditions = [Link.status == LinkStatus.PUBLISHED.value]
    if category:
        conditions.append(Link.user_category == category)
    if tag:
        # user_tags 为 JSON 数组文本，按带引号的完整元素匹配
        encoded = escape_like(json.dumps(tag.strip(), ensure_ascii=False))
        conditions.append(Link.user_tags.like(f"%{encoded}%", escape="\\"))
    if domain:
        conditions.append(Link.domain == domain.lower())
    if year is not None:
        start, end = _month_range(year, month)
        conditions.append(Link.published_at >= start)
        conditions.append(Link.published_at < end)
    if search:
        clause = SearchIndexMaintainer.match_clause(search)
        if clause is not None:
            conditions.append(Link.id.in_(clause))

    total_result = await db.execute(select(func.count(Link.id)).where(*conditions))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Link)
        .where(*conditions)
        .order_by(*SORTS[sort])
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(result.scalars().all()), total


async def get_published(db: AsyncSession, link_id: int) -> Link:
    """已发布链接详情，其他状态一律视为不存在"""
    result = await db.execute(
        select(Link).where(Link.id == link_id, Link.status == LinkStatus.PUBLISHED.value)
    )
    link = result.scalar_one_or_none()
    if not link:
        raise NotFoundError("链接不存在")
    return link


async def list_pending(db: AsyncSession, page: int = 1, limit: int = 20) -> Tuple[List[Link], int]:
    """待确认链接，最新的在前"""
    condition = Link.status == LinkStatus.PENDING.value
    total_result = await db.execute(select(func.count(Link.id)).where(condition))
    total = total_result.scalar() or 0
    result = await db.execute(
        select(Link)
        .where(condition)
        .order_by(desc(Link.created_at), desc(Link.id))
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(result.scalars().all()), total


# ==================== 管理端 ====================

ADMIN_SORTS = {
    "newest": (desc(Link.created_at), desc(Link.id)),
    "oldest": (asc(Link.created_at), asc(Link.id)),
    "title": (asc(Link.title), asc(Link.id)),
    "domain": (asc(Link.domain), desc(Link.created_at)),
}

ADMIN_STATUSES = ("all", "pending", "published", "deleted")


async def list_all(
    db: AsyncSession,
    page: int = 1,
    limit: int = 20,
    status: str = "all",
    search: Optional[str] = None,
    category: Optional[str] = None,
    domain: Optional[str] = None,
    sort: str = "newest",
) -> Tuple[List[Link], int]:
    """
    管理端链接列表，包含所有状态（已删除的链接只能从这里找回）

    search 直接匹配标题、描述、域名和分类列（不走搜索索引，索引里只有已发布链接），
    纯数字时同时按 ID 匹配；category 同时匹配 AI 分类和用户分类。
    """
    if sort not in ADMIN_SORTS:
        raise ValidationError(f"不支持的排序方式: {sort}")
    if status not in ADMIN_STATUSES:
        raise ValidationError(f"不支持的状态: {status}")

    conditions = []
    if status != "all":
        conditions.append(Link.status == status)
    if domain:
        conditions.append(Link.domain == domain.lower())
    if category:
        conditions.append(or_(Link.ai_category == category, Link.user_category == category))

    search = (search or "").strip()
    if search:
        pattern = f"%{escape_like(search)}%"
        columns = (
            Link.title,
            Link.original_description,
            Link.user_description,
            Link.ai_summary,
            Link.domain,
            Link.ai_category,
            Link.user_category,
        )
        matches = [column.like(pattern, escape="\\") for column in columns]
        if search.isdigit() and int(search) > 0:
            matches.append(Link.id == int(search))
        conditions.append(or_(*matches))

    total_result = await db.execute(select(func.count(Link.id)).where(*conditions))
    total = total_result.scalar() or 0

    result = await db.execute(
        select(Link)
        .where(*conditions)
        .order_by(*ADMIN_SORTS[sort])
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return list(result.scalars().all()), total


# ==================== 统计 ====================

async def domain_stats(db: AsyncSession, domain: str) -> dict:
    """单个域名的已发布链接数和最近一次发布"""
    domain = (domain or "").strip().lower()
    conditions = (Link.domain == domain, Link.status == LinkStatus.PUBLISHED.value)

    count_result = await db.execute(select(func.count(Link.id)).where(*conditions))
    count = count_result.scalar() or 0
    if count == 0:
        raise NotFoundError("域名不存在或没有已发布的链接")

    latest_result = await db.execute(
        select(Link.published_at, Link.title)
        .where(*conditions)
        .order_by(desc(Link.published_at), desc(Link.id))
        .limit(1)
    )
    latest = latest_result.first()
    return {
        "domain": domain,
        "count": count,
        "latest_published": latest.published_at if latest else None,
        "latest_title": (latest.title or None) if latest else None,
    }


def _recent_months(now: datetime, months: int) -> List[Tuple[int, int]]:
    """截至 now 所在月份的最近 months 个 (年, 月)，从旧到新"""
    result = []
    year, month = now.year, now.month
    for _ in range(months):
        result.append((year, month))
        year, month = (year - 1, 12) if month == 1 else (year, month - 1)
    return list(reversed(result))


async def site_stats(db: AsyncSession, tz_offset: int = 0, months: int = 12, top: int = 10) -> dict:
    """
    站点统计

    Args:
        tz_offset: 客户端时区相对 UTC 的分钟数（东八区为 480），按当地时间划分月份
        months: 月度统计的月数
        top: 热门标签、热门域名和最近发布的条数

    Returns:
        与 SiteStats schema 对应的字典
    """
    published = Link.status == LinkStatus.PUBLISHED.value

    status_result = await db.execute(
        select(Link.status, func.count(Link.id)).group_by(Link.status)
    )
    by_status = {row[0]: row[1] for row in status_result.all()}

    category_result = await db.execute(
        select(func.count(func.distinct(Link.user_category)))
        .where(published, Link.user_category.is_not(None), Link.user_category != "")
    )

    tag_counts: Counter = Counter()
    tag_result = await db.execute(select(Link.user_tags).where(published))
    for raw in tag_result.scalars().all():
        tag_counts.update(decode_tags(raw))

    domain_result = await db.execute(
        select(Link.domain, func.count(Link.id))
        .where(published)
        .group_by(Link.domain)
        .order_by(desc(func.count(Link.id)), asc(Link.domain))
        .limit(top)
    )

    recent_result = await db.execute(
        select(Link.title, Link.url, Link.published_at)
        .where(published)
        .order_by(desc(Link.published_at), desc(Link.id))
        .limit(top)
    )

    # 月度统计按当地时间分桶
    offset = timedelta(minutes=tz_offset)
    buckets = {key: 0 for key in _recent_months(utcnow() + offset, months)}
    first_year, first_month = next(iter(buckets))
    since = datetime(first_year, first_month, 1) - offset
    month_result = await db.execute(
        select(Link.published_at).where(published, Link.published_at >= since)
    )
    for published_at in month_result.scalars().all():
        local = published_at + offset
        key = (local.year, local.month)
        if key in buckets:
            buckets[key] += 1

    return {
        "total_links": sum(by_status.values()),
        "published_links": by_status.get(LinkStatus.PUBLISHED.value, 0),
        "pending_links": by_status.get(LinkStatus.PENDING.value, 0),
        "deleted_links": by_status.get(LinkStatus.DELETED.value, 0),
        "total_categories": category_result.scalar() or 0,
        "total_tags": len(tag_counts),
        "popular_tags": [
            {"name": name, "count": count}
            for name, count in sorted(tag_counts.items(), key=lambda item: (-item[1], item[0]))[:top]
        ],
        "popular_domains": [{"name": name, "count": count} for name, count in domain_result.all()],
        "recent_links": [
            {"title": row.title or "Untitled", "url": row.url, "published_at": row.published_at}
            for row in recent_result.all()
        ],
        "monthly": [
            {"year": year, "month": month, "count": count}
            for (year, month), count in buckets.items()
        ],
    }
