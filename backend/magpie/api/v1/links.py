"""链接路由"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ...database import get_db
from ...schemas import (
    LinkCreate, LinkEdit, LinkConfirm, BatchRequest, BatchResponse,
    LinkPublic, LinkDetail, Pagination, LinkListResponse, PendingListResponse,
    LinkDirectCreate, AdminLinkListResponse,
)
from ...services.activity import ActivityLogger
from ...services.base import ContentAnalyzer, ContentScraper
from ...services.catalog import list_published, get_published, list_pending, list_all
from ...services.ingest import IngestService
from ...services.lifecycle import LinkLifecycle
from ...services.search_index import SearchIndexMaintainer
from ...services.settings_store import SettingsStore
from ...models.activity_log import ActivityAction
from ...models.link import LinkStatus
from ...errors import InvalidStateError
from ...utils.cache import ingest_limiter
from ..deps import (
    AuthContext, require_actor, require_admin, get_activity, get_admin_activity, get_scraper, get_analyzer,
)

router = APIRouter()

MAX_PAGE_SIZE = 100


async def _page_size(db: AsyncSession, limit: Optional[int]) -> int:
    if limit:
        return limit
    return max(1, min(int(await SettingsStore(db).get("items_per_page")), MAX_PAGE_SIZE))


# ==================== 提交 ====================

@router.post("", response_model=LinkDetail, status_code=status.HTTP_201_CREATED)
async def add_link(
    link_in: LinkCreate,
    auth: AuthContext = Depends(require_actor),
    activity: ActivityLogger = Depends(get_activity),
    scraper: Optional[ContentScraper] = Depends(get_scraper),
    analyzer: Optional[ContentAnalyzer] = Depends(get_analyzer),
    db: AsyncSession = Depends(get_db),
):
    """提交链接：抓取、AI 分析后创建（待确认或直接发布）"""
    limit = await SettingsStore(db).get("rate_limit_per_minute")
    ingest_limiter.hit(f"{auth.actor.type}:{auth.actor.id}", int(limit))

    service = IngestService(db, activity, scraper=scraper, analyzer=analyzer)
    link = await service.add_link(
        link_in.url,
        skip_confirm=link_in.skip_confirm,
        category=link_in.category,
        tags=link_in.tags,
    )
    return LinkDetail.from_link(link)


@router.post("/direct", response_model=LinkDetail, status_code=status.HTTP_201_CREATED)
async def add_link_direct(
    link_in: LinkDirectCreate,
    auth: AuthContext = Depends(require_actor),
    activity: ActivityLogger = Depends(get_activity),
    scraper: Optional[ContentScraper] = Depends(get_scraper),
    analyzer: Optional[ContentAnalyzer] = Depends(get_analyzer),
    db: AsyncSession = Depends(get_db),
):
    """直接入库：不经确认直接发布，描述留空，分类/标签只取提交的预设值"""
    limit = await SettingsStore(db).get("rate_limit_per_minute")
    ingest_limiter.hit(f"{auth.actor.type}:{auth.actor.id}", int(limit))

    service = IngestService(db, activity, scraper=scraper, analyzer=analyzer)
    link = await service.add_link(
        link_in.url,
        category=link_in.category,
        tags=link_in.tags,
        force_user_fields=True,
    )
    return LinkDetail.from_link(link)


# ==================== 公开目录 ====================

@router.get("", response_model=LinkListResponse)
async def get_links(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
    category: Optional[str] = None,
    tag: Optional[str] = None,
    search: Optional[str] = Query(None, max_length=200),
    domain: Optional[str] = None,
    year: Optional[int] = Query(None, ge=1970, le=9999),
    month: Optional[int] = Query(None, ge=1, le=12),
    sort: str = Query("newest", pattern="^(newest|oldest|title|domain)$"),
    db: AsyncSession = Depends(get_db),
):
    """已发布链接列表"""
    limit = await _page_size(db, limit)
    links, total = await list_published(
        db,
        page=page,
        limit=limit,
        category=category,
        tag=tag,
        search=search,
        domain=domain,
        year=year,
        month=month,
        sort=sort,
    )
    return LinkListResponse(
        links=[LinkPublic.from_link(link) for link in links],
        pagination=Pagination.build(page, limit, total),
    )


# ==================== 审核 ====================

@router.get("/admin", response_model=AdminLinkListResponse)
async def get_admin_links(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
    status_filter: str = Query("all", alias="status", pattern="^(all|pending|published|deleted)$"),
    search: Optional[str] = Query(None, max_length=200),
    category: Optional[str] = None,
    domain: Optional[str] = None,
    sort: str = Query("newest", pattern="^(newest|oldest|title|domain)$"),
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """管理端链接列表，包含待确认和已删除的链接"""
    limit = await _page_size(db, limit)
    links, total = await list_all(
        db,
        page=page,
        limit=limit,
        status=status_filter,
        search=search,
        category=category,
        domain=domain,
        sort=sort,
    )
    return AdminLinkListResponse(
        links=[LinkDetail.from_link(link) for link in links],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/pending", response_model=PendingListResponse)
async def get_pending_links(
    page: int = Query(1, ge=1),
    limit: Optional[int] = Query(None, ge=1, le=MAX_PAGE_SIZE),
    auth: AuthContext = Depends(require_actor),
    db: AsyncSession = Depends(get_db),
):
    """待确认链接列表"""
    limit = await _page_size(db, limit)
    links, total = await list_pending(db, page=page, limit=limit)
    return PendingListResponse(
        links=[LinkDetail.from_link(link) for link in links],
        pagination=Pagination.build(page, limit, total),
    )


@router.get("/pending/{link_id}", response_model=LinkDetail)
async def get_pending_link(
    link_id: int,
    auth: AuthContext = Depends(require_actor),
    db: AsyncSession = Depends(get_db),
):
    """待确认链接的完整记录（AI 字段 + 用户字段）"""
    lifecycle = LinkLifecycle(db, ActivityLogger(db, auth.actor))
    link = await lifecycle.get(link_id)
    if link.status != LinkStatus.PENDING.value:
        raise InvalidStateError("链接不是待确认状态 (not in pending state)", {"status": link.status})
    return LinkDetail.from_link(link)


@router.post("/batch", response_model=BatchResponse)
async def batch_links(
    batch_in: BatchRequest,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """批量确认或删除，逐条处理，结果顺序与输入一致"""
    lifecycle = LinkLifecycle(db, activity)
    if batch_in.action == "confirm":
        return await lifecycle.batch_confirm(batch_in.ids, batch_in.params)
    return await lifecycle.batch_delete(batch_in.ids)


@router.post("/reindex")
async def reindex_links(
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """根据已发布链接重建搜索索引"""
    async with activity.track(ActivityAction.SEARCH_REBUILD, "links") as op:
        count = await SearchIndexMaintainer(db).rebuild()
        op.add_details(indexed=count)
    return {"indexed": count}


# ==================== 单条链接 ====================

@router.get("/{link_id}", response_model=LinkPublic)
async def get_link(link_id: int, db: AsyncSession = Depends(get_db)):
    """已发布链接详情"""
    return LinkPublic.from_link(await get_published(db, link_id))


@router.post("/{link_id}/confirm", response_model=LinkDetail)
async def confirm_link(
    link_id: int,
    confirm_in: LinkConfirm,
    activity: ActivityLogger = Depends(get_activity),
    db: AsyncSession = Depends(get_db),
):
    """确认链接（publish=false 时保存草稿）"""
    link = await LinkLifecycle(db, activity).confirm(link_id, confirm_in)
    return LinkDetail.from_link(link)


@router.put("/{link_id}", response_model=LinkDetail)
async def update_link(
    link_id: int,
    link_in: LinkEdit,
    activity: ActivityLogger = Depends(get_activity),
    db: AsyncSession = Depends(get_db),
):
    """编辑链接（已删除的链接不可编辑）"""
    link = await LinkLifecycle(db, activity).update(link_id, link_in)
    return LinkDetail.from_link(link)


@router.delete("/{link_id}", response_model=LinkDetail)
async def delete_link(
    link_id: int,
    activity: ActivityLogger = Depends(get_activity),
    db: AsyncSession = Depends(get_db),
):
    """软删除"""
    link = await LinkLifecycle(db, activity).soft_delete(link_id)
    return LinkDetail.from_link(link)


@router.post("/{link_id}/restore", response_model=LinkDetail)
async def restore_link(
    link_id: int,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """恢复已删除链接（重新发布）"""
    link = await LinkLifecycle(db, activity).restore(link_id)
    return LinkDetail.from_link(link)
