"""操作日志路由"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import Optional

from ...database import get_db
from ...schemas import ActivityLogResponse, ActivityFilters, ActivityListResponse, Pagination
from ...services.activity import list_activity, get_filter_options
from ..deps import AuthContext, require_admin

router = APIRouter()


@router.get("", response_model=ActivityListResponse)
async def get_activity_logs(
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    action: Optional[str] = None,
    resource: Optional[str] = None,
    status: Optional[str] = Query(None, pattern="^(success|failed|pending)$"),
    actor_type: Optional[str] = Query(None, pattern="^(token|user)$"),
    actor_id: Optional[int] = None,
    search: Optional[str] = Query(None, max_length=200),
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """分页查询操作日志，最新的在前"""
    result = await list_activity(
        db,
        page=page,
        limit=limit,
        action=action,
        resource=resource,
        status=status,
        actor_type=actor_type,
        actor_id=actor_id,
        search=search,
    )
    return ActivityListResponse(
        logs=[ActivityLogResponse.model_validate(log) for log in result["items"]],
        pagination=Pagination.build(page, limit, result["total"]),
        filters=ActivityFilters(**await get_filter_options(db)),
    )
