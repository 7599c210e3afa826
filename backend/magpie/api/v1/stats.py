"""公开统计路由"""
from fastapi import APIRouter, Depends, Path, Query
from sqlalchemy.ext.asyncio import AsyncSession

from ...database import get_db
from ...schemas import SiteStats, DomainStats
from ...services.catalog import site_stats, domain_stats

router = APIRouter()


@router.get("/stats", response_model=SiteStats)
async def get_stats(
    tz: int = Query(0, ge=-720, le=840, description="客户端时区相对 UTC 的分钟数"),
    db: AsyncSession = Depends(get_db),
):
    """站点统计：链接数、热门标签/域名、最近发布、近 12 个月发布量"""
    return SiteStats(**await site_stats(db, tz_offset=tz))


@router.get("/domains/{domain}/stats", response_model=DomainStats)
async def get_domain_stats(
    domain: str = Path(..., min_length=1, max_length=255),
    db: AsyncSession = Depends(get_db),
):
    """单个域名的已发布链接统计，没有已发布链接时返回 404"""
    return DomainStats(**await domain_stats(db, domain))
