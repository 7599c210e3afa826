"""
操作日志服务

每个写操作都包在 ActivityLogger.track() 中：
- 成功：写入 success 日志并提交事务
- 失败：回滚业务写入，在同一会话中写入 failed 日志并提交，然后重新抛出异常

失败日志与业务写入共用一个会话，SQLite 单写者模型下不会互相等待。
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, desc, func, or_
from sqlalchemy.exc import SQLAlchemyError
import time
import logging

from ..models.activity_log import ActivityLog, ActivityAction, ActivityStatus
from .search_index import escape_like

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Actor:
    """
    操作者身份

    只保存基础类型：回滚后 ORM 对象会过期，异步会话里再访问属性会触发懒加载。
    """
    type: str                      # token|user
    id: Optional[int] = None
    name: Optional[str] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None


class TrackedOperation:
    """track() 返回的句柄，操作过程中可以补充日志字段"""

    def __init__(self, resource_id: Optional[int], details: Optional[Dict[str, Any]]):
        self.resource_id = resource_id
        self.details: Dict[str, Any] = dict(details or {})
        self.status = ActivityStatus.SUCCESS

    def set_resource(self, resource_id: Optional[int]) -> None:
        self.resource_id = resource_id

    def add_details(self, **details: Any) -> None:
        self.details.update(details)


class _Tracker:
    """单次操作的上下文管理器"""

    def __init__(
        self,
        logger_: "ActivityLogger",
        action: ActivityAction,
        resource: Optional[str],
        resource_id: Optional[int],
        details: Optional[Dict[str, Any]],
    ):
        self._logger = logger_
        self._action = action
        self._resource = resource
        self._op = TrackedOperation(resource_id, details)
        self._start_time = 0.0

    async def __aenter__(self) -> TrackedOperation:
        self._start_time = time.time()
        return self._op

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        duration_ms = int((time.time() - self._start_time) * 1000)
        db = self._logger.db

        if exc_type is None:
            await self._logger.log(
                self._action,
                resource=self._resource,
                resource_id=self._op.resource_id,
                status=self._op.status,
                duration_ms=duration_ms,
                details=self._op.details or None,
            )
            await db.commit()
            logger.info(f"✅ [Activity] {self._action.value} #{self._op.resource_id}")
            return False

        # 业务写入全部回滚，失败记录单独提交
        try:
            await db.rollback()
            await self._logger.log(
                self._action,
                resource=self._resource,
                resource_id=self._op.resource_id,
                status=ActivityStatus.FAILED,
                duration_ms=duration_ms,
                error_message=str(exc_val),
                details=self._op.details or None,
            )
            await db.commit()
        except SQLAlchemyError:
            logger.exception(f"写入失败日志出错: {self._action.value}")
        logger.warning(f"❌ [Activity] {self._action.value} #{self._op.resource_id}: {exc_val}")
        return False


class ActivityLogger:
    """
    操作日志记录器

    使用示例:
        activity = ActivityLogger(db, actor)
        async with activity.track(ActivityAction.LINK_DELETE, "links", link_id) as op:
            ...
            op.add_details(previous_status="published")
    """

    def __init__(self, db: AsyncSession, actor: Optional[Actor] = None):
        self.db = db
        self.actor = actor

    def track(
        self,
        action: ActivityAction,
        resource: Optional[str] = None,
        resource_id: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> _Tracker:
        """包裹一次写操作，退出时负责提交或回滚"""
        return _Tracker(self, action, resource, resource_id, details)

    async def log(
        self,
        action: ActivityAction,
        resource: Optional[str] = None,
        resource_id: Optional[int] = None,
        status: ActivityStatus = ActivityStatus.SUCCESS,
        duration_ms: Optional[int] = None,
        error_message: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> ActivityLog:
        """追加一条日志（只 flush，不提交）"""
        actor = self.actor
        entry = ActivityLog(
            action=action.value,
            resource=resource,
            resource_id=resource_id,
            actor_type=actor.type if actor else None,
            actor_id=actor.id if actor else None,
            actor_name=actor.name if actor else None,
            status=status.value,
            duration_ms=duration_ms,
            error_message=error_message[:1000] if error_message else None,
            details=details,
            ip=actor.ip if actor else None,
            user_agent=actor.user_agent[:500] if actor and actor.user_agent else None,
        )
        self.db.add(entry)
        await self.db.flush()

        logger.debug(f"📝 [Activity] {action.value} {resource}#{resource_id} -> {status.value}")
        return entry


# ==================== 查询函数 ====================

async def list_activity(
    db: AsyncSession,
    page: int = 1,
    limit: int = 50,
    action: Optional[str] = None,
    resource: Optional[str] = None,
    status: Optional[str] = None,
    actor_type: Optional[str] = None,
    actor_id: Optional[int] = None,
    search: Optional[str] = None,
) -> Dict[str, Any]:
    """分页查询日志，最新的在前"""
    conditions = []
    if action:
        conditions.append(ActivityLog.action == action)
    if resource:
        conditions.append(ActivityLog.resource == resource)
    if status:
        conditions.append(ActivityLog.status == status)
    if actor_type:
        conditions.append(ActivityLog.actor_type == actor_type)
    if actor_id is not None:
        conditions.append(ActivityLog.actor_id == actor_id)
    if search:
        pattern = f"%{escape_like(search)}%"
        conditions.append(or_(
            ActivityLog.action.like(pattern, escape="\\"),
            ActivityLog.actor_name.like(pattern, escape="\\"),
            ActivityLog.error_message.like(pattern, escape="\\"),
        ))

    total_result = await db.execute(
        select(func.count(ActivityLog.id)).where(*conditions)
    )
    total = total_result.scalar() or 0

    result = await db.execute(
        select(ActivityLog)
        .where(*conditions)
        .order_by(desc(ActivityLog.created_at), desc(ActivityLog.id))
        .limit(limit)
        .offset((page - 1) * limit)
    )
    return {
        "items": list(result.scalars().all()),
        "total": total,
    }


async def get_filter_options(db: AsyncSession) -> Dict[str, List[str]]:
    """日志中出现过的操作、资源和状态，用于筛选下拉框"""
    options: Dict[str, List[str]] = {}
    for name, column in (
        ("actions", ActivityLog.action),
        ("resources", ActivityLog.resource),
        ("statuses", ActivityLog.status),
    ):
        result = await db.execute(
            select(column).where(column.isnot(None)).distinct().order_by(column)
        )
        options[name] = list(result.scalars().all())
    return options
