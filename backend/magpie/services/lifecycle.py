"""
链接生命周期（状态机）

    pending --confirm--> published
    pending --save_draft--> pending
    pending|published --update--> (不变)
    pending|published --delete--> deleted
    deleted --restore--> published

所有状态变更都是带当前状态条件的 UPDATE（比较并交换），
并发确认同一条链接时只有一方成功，另一方得到 InvalidStateError。
"""

from enum import Enum
from typing import Any, Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
import logging

from ..errors import InvalidStateError, MagpieError, NotFoundError, ValidationError
from ..models.activity_log import ActivityAction
from ..models.link import Link, LinkStatus, encode_tags
from ..schemas.link import BatchItemResult, BatchParams, BatchResponse, LinkConfirm, LinkEdit
from ..utils.clock import utcnow
from .activity import ActivityLogger
from .search_index import SearchIndexMaintainer

logger = logging.getLogger(__name__)

RESOURCE = "links"


class LinkAction(str, Enum):
    """状态机动作"""
    CONFIRM = "confirm"
    SAVE_DRAFT = "save_draft"
    UPDATE = "update"
    DELETE = "delete"
    RESTORE = "restore"


# (当前状态, 动作) -> 下一个状态
TRANSITIONS: Dict[tuple, LinkStatus] = {
    (LinkStatus.PENDING, LinkAction.CONFIRM): LinkStatus.PUBLISHED,
    (LinkStatus.PENDING, LinkAction.SAVE_DRAFT): LinkStatus.PENDING,
    (LinkStatus.PENDING, LinkAction.UPDATE): LinkStatus.PENDING,
    (LinkStatus.PUBLISHED, LinkAction.UPDATE): LinkStatus.PUBLISHED,
    (LinkStatus.PENDING, LinkAction.DELETE): LinkStatus.DELETED,
    (LinkStatus.PUBLISHED, LinkAction.DELETE): LinkStatus.DELETED,
    (LinkStatus.DELETED, LinkAction.RESTORE): LinkStatus.PUBLISHED,
}

# 非法转换时的错误信息
REJECT_MESSAGES = {
    LinkAction.CONFIRM: "链接不是待确认状态 (not in pending state)",
    LinkAction.SAVE_DRAFT: "链接不是待确认状态 (not in pending state)",
    LinkAction.UPDATE: "已删除的链接不能编辑",
    LinkAction.DELETE: "链接已被删除",
    LinkAction.RESTORE: "只有已删除的链接可以恢复",
}

# 影响搜索索引的字段
INDEXED_FIELDS = ("title", "user_description", "user_category", "user_tags")


def next_status(current: str, action: LinkAction) -> LinkStatus:
    """查转换表，非法转换抛出 InvalidStateError"""
    try:
        state = LinkStatus(current)
    except ValueError:
        raise InvalidStateError(f"未知的链接状态: {current}")
    target = TRANSITIONS.get((state, action))
    if target is None:
        raise InvalidStateError(REJECT_MESSAGES[action], {"status": state.value})
    return target


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    return value.strip()


def _validate_reading_time(value) -> None:
    if value is None:
        return
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise ValidationError("阅读时间必须是正整数")


class LinkLifecycle:
    """
    链接状态机

    每个操作都在 ActivityLogger.track() 中执行，由 track 负责提交或回滚。
    """

    def __init__(
        self,
        db: AsyncSession,
        activity: ActivityLogger,
        index: Optional[SearchIndexMaintainer] = None,
    ):
        self.db = db
        self.activity = activity
        self.index = index or SearchIndexMaintainer(db)

    async def get(self, link_id: int) -> Link:
        """按 ID 读取链接，不存在时抛出 NotFoundError"""
        if not isinstance(link_id, int) or link_id < 1:
            raise ValidationError("无效的链接 ID")
        result = await self.db.execute(select(Link).where(Link.id == link_id))
        link = result.scalar_one_or_none()
        if not link:
            raise NotFoundError("链接不存在")
        return link

    async def _swap(self, link: Link, expected: str, values: Dict[str, Any], action: LinkAction) -> None:
        """以当前状态为条件更新，0 行受影响说明状态已被别人改变"""
        result = await self.db.execute(
            update(Link)
            .where(Link.id == link.id, Link.status == expected)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount == 0:
            raise InvalidStateError(REJECT_MESSAGES[action])
        await self.db.refresh(link)

    # ==================== 创建 ====================

    async def create(self, data: Dict[str, Any], details: Optional[Dict[str, Any]] = None) -> Link:
        """写入新链接，创建即发布的链接同时写入索引"""
        async with self.activity.track(ActivityAction.LINK_ADD, RESOURCE, details=details) as op:
            link = Link(**data)
            self.db.add(link)
            await self.db.flush()
            op.set_resource(link.id)
            op.add_details(url=link.url, status=link.status)

            if link.is_published:
                await self.index.on_publish(link)

        logger.info(f"🔗 新链接 #{link.id} ({link.status}): {link.url}")
        return link

    # ==================== 确认 ====================

    def _confirm_values(self, link: Link, edits: LinkEdit) -> Dict[str, Any]:
        title = _clean(edits.title)
        if title is None:
            title = link.title
        if not title:
            raise ValidationError("标题不能为空")

        description = _clean(edits.description)
        if not description:
            raise ValidationError("描述不能为空")

        _validate_reading_time(edits.reading_time)

        category = _clean(edits.category) or link.user_category or link.ai_category or ""
        if edits.tags is not None:
            tags = edits.tags
        elif link.user_tags is not None:
            tags = link.user_tag_list
        else:
            tags = link.ai_tag_list

        values = {
            "title": title,
            "user_description": description,
            "user_category": category,
            "user_tags": encode_tags(tags),
            "updated_at": utcnow(),
        }
        if edits.reading_time is not None:
            values["ai_reading_time"] = edits.reading_time
        return values

    async def confirm(self, link_id: int, edits: LinkConfirm) -> Link:
        """确认待审核链接，publish=False 时保存为草稿（仍为 pending）"""
        action = LinkAction.CONFIRM if edits.publish else LinkAction.SAVE_DRAFT
        async with self.activity.track(ActivityAction.LINK_CONFIRM, RESOURCE, link_id) as op:
            link = await self.get(link_id)
            target = next_status(link.status, action)
            values = self._confirm_values(link, edits)
            if target == LinkStatus.PUBLISHED:
                values["status"] = target.value
                values["published_at"] = values["updated_at"]

            await self._swap(link, LinkStatus.PENDING.value, values, action)
            await self.index.sync(link)

            op.add_details(
                url=link.url,
                category=link.user_category,
                tags=link.user_tag_list,
                publish=edits.publish,
                final_status=link.status,
            )
        return link

    # ==================== 编辑 ====================

    async def update(self, link_id: int, edits: LinkEdit) -> Link:
        """编辑待确认或已发布链接，状态不变；已发布链接的索引字段变化时重建索引行"""
        async with self.activity.track(ActivityAction.LINK_UPDATE, RESOURCE, link_id) as op:
            link = await self.get(link_id)
            next_status(link.status, LinkAction.UPDATE)

            values: Dict[str, Any] = {}
            if edits.title is not None:
                title = edits.title.strip()
                if not title:
                    raise ValidationError("标题不能为空")
                values["title"] = title
            if edits.description is not None:
                description = edits.description.strip()
                if not description:
                    raise ValidationError("描述不能为空")
                values["user_description"] = description
            if edits.category is not None:
                values["user_category"] = edits.category.strip()
            if edits.tags is not None:
                values["user_tags"] = encode_tags(edits.tags)
            if edits.reading_time is not None:
                _validate_reading_time(edits.reading_time)
                values["ai_reading_time"] = edits.reading_time

            if not values:
                raise ValidationError("没有需要更新的字段")

            changed = [k for k in INDEXED_FIELDS if k in values and values[k] != getattr(link, k)]
            values["updated_at"] = utcnow()
            await self._swap(link, link.status, values, LinkAction.UPDATE)

            if link.is_published and changed:
                await self.index.on_publish(link)

            op.add_details(updates=edits.model_dump(exclude_none=True), status=link.status)
        return link

    # ==================== 删除与恢复 ====================

    async def soft_delete(self, link_id: int) -> Link:
        """软删除，保留全部字段"""
        async with self.activity.track(ActivityAction.LINK_DELETE, RESOURCE, link_id) as op:
            link = await self.get(link_id)
            previous = link.status
            target = next_status(previous, LinkAction.DELETE)

            await self._swap(link, previous, {
                "status": target.value,
                "published_at": None,
                "updated_at": utcnow(),
            }, LinkAction.DELETE)
            await self.index.on_unpublish(link.id)

            op.add_details(url=link.url, previous_status=previous)
        return link

    async def restore(self, link_id: int) -> Link:
        """恢复已删除链接，总是重新发布"""
        async with self.activity.track(ActivityAction.LINK_RESTORE, RESOURCE, link_id) as op:
            link = await self.get(link_id)
            target = next_status(link.status, LinkAction.RESTORE)

            now = utcnow()
            await self._swap(link, LinkStatus.DELETED.value, {
                "status": target.value,
                "published_at": now,
                "updated_at": now,
            }, LinkAction.RESTORE)
            await self.index.on_publish(link)

            op.add_details(url=link.url)
        return link

    # ==================== 批量操作 ====================

    async def _batch_confirm_one(self, link_id: int, params: Optional[BatchParams]) -> BatchItemResult:
        async with self.activity.track(ActivityAction.LINK_PUBLISH, RESOURCE, link_id) as op:
            link = await self.get(link_id)
            if link.status == LinkStatus.DELETED.value:
                op.add_details(skipped=True, reason="already_deleted")
                return BatchItemResult(id=link_id, success=True, skipped=True, error="已删除，跳过")

            target = next_status(link.status, LinkAction.CONFIRM)
            params = params or BatchParams()

            description = (
                params.description
                or link.user_description
                or link.ai_summary
                or link.original_description
                or ""
            )
            category = params.category or link.user_category or link.ai_category or ""
            tags = params.tags or link.user_tag_list or link.ai_tag_list

            now = utcnow()
            await self._swap(link, LinkStatus.PENDING.value, {
                "status": target.value,
                "published_at": now,
                "updated_at": now,
                "user_description": description,
                "user_category": category,
                "user_tags": encode_tags(tags),
            }, LinkAction.CONFIRM)
            await self.index.on_publish(link)
            op.add_details(batch=True)
        return BatchItemResult(id=link_id, success=True)

    async def _batch_delete_one(self, link_id: int) -> BatchItemResult:
        link = await self.db.get(Link, link_id)
        if link is not None and link.status == LinkStatus.DELETED.value:
            return BatchItemResult(id=link_id, success=True, skipped=True, error="已删除，跳过")
        await self.soft_delete(link_id)
        return BatchItemResult(id=link_id, success=True)

    async def _run_batch(self, action: str, ids: List[int], run_one) -> BatchResponse:
        summary = BatchResponse(total=len(ids))
        for link_id in ids:
            try:
                item = await run_one(link_id)
            except MagpieError as e:
                item = BatchItemResult(id=link_id, success=False, error=e.message)

            if not item.success:
                summary.failed += 1
            elif item.skipped:
                summary.skipped += 1
            else:
                summary.processed += 1
            summary.results.append(item)

        await self.activity.log(ActivityAction.LINK_BATCH, RESOURCE, details={
            "action": action,
            "ids": ids,
            "processed": summary.processed,
            "failed": summary.failed,
            "skipped": summary.skipped,
        })
        await self.db.commit()

        logger.info(
            f"📦 批量{action}: 成功 {summary.processed}, 失败 {summary.failed}, 跳过 {summary.skipped}"
        )
        return summary

    async def batch_confirm(self, ids: List[int], params: Optional[BatchParams] = None) -> BatchResponse:
        """逐条确认发布，单条失败不影响其他条目，结果顺序与输入一致"""
        return await self._run_batch("confirm", ids, lambda link_id: self._batch_confirm_one(link_id, params))

    async def batch_delete(self, ids: List[int]) -> BatchResponse:
        """逐条软删除"""
        return await self._run_batch("delete", ids, self._batch_delete_one)
