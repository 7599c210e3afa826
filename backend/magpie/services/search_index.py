"""
搜索索引维护

link_search_index 中有且只有已发布链接的行，字段取自最终展示字段（user_*）。
所有写入都在对应的 Link 写入 flush 之后执行。
"""

from typing import Iterable, List
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, delete, and_
from sqlalchemy.dialects.sqlite import insert
import logging

from ..models.link import Link, LinkStatus
from ..models.search_index import LinkSearchEntry
from ..utils.clock import utcnow

logger = logging.getLogger(__name__)


def index_fields(link: Link) -> dict:
    """由链接的最终字段生成索引行"""
    tags = " ".join(link.final_tags)
    fields = {
        "title": link.title or "",
        "description": link.final_description,
        "tags": tags,
        "domain": link.domain or "",
        "category": link.final_category,
    }
    fields["search_text"] = " ".join(v for v in fields.values() if v).lower()
    return fields


def escape_like(term: str) -> str:
    """转义 LIKE 通配符，配合 escape="\\" 使用"""
    return term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def split_terms(query: str) -> List[str]:
    """搜索词按空白切分，去重保序"""
    terms: List[str] = []
    for term in (query or "").lower().split():
        if term not in terms:
            terms.append(term)
    return terms


class SearchIndexMaintainer:
    """搜索索引维护器"""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def on_publish(self, link: Link) -> None:
        """写入（或覆盖）索引行"""
        fields = index_fields(link)
        now = utcnow()
        stmt = insert(LinkSearchEntry).values(link_id=link.id, indexed_at=now, **fields)
        stmt = stmt.on_conflict_do_update(
            index_elements=[LinkSearchEntry.link_id],
            set_={**fields, "indexed_at": now},
        )
        await self.db.execute(stmt)
        logger.debug(f"🔎 索引已更新: link#{link.id}")

    async def on_unpublish(self, link_id: int) -> None:
        """删除索引行"""
        await self.db.execute(
            delete(LinkSearchEntry).where(LinkSearchEntry.link_id == link_id)
        )
        logger.debug(f"🔎 索引已移除: link#{link_id}")

    async def sync(self, link: Link) -> None:
        """按链接当前状态同步索引"""
        if link.status == LinkStatus.PUBLISHED.value:
            await self.on_publish(link)
        else:
            await self.on_unpublish(link.id)

    async def rebuild(self) -> int:
        """
        根据所有已发布链接重建索引

        只会删除非发布链接的行、写入或覆盖已发布链接的行，可以和正常写入并发执行。

        Returns:
            写入的索引行数
        """
        published_ids = select(Link.id).where(Link.status == LinkStatus.PUBLISHED.value)
        await self.db.execute(
            delete(LinkSearchEntry).where(LinkSearchEntry.link_id.not_in(published_ids))
        )

        result = await self.db.execute(
            select(Link).where(Link.status == LinkStatus.PUBLISHED.value).order_by(Link.id)
        )
        count = 0
        for link in result.scalars().all():
            await self.on_publish(link)
            count += 1

        logger.info(f"🔎 索引重建完成: {count} 条")
        return count

    @staticmethod
    def match_clause(query: str):
        """返回匹配搜索词的 link_id 子查询，多个词之间为 AND；无有效词时返回 None"""
        terms = split_terms(query)
        if not terms:
            return None
        conditions = [
            LinkSearchEntry.search_text.like(f"%{escape_like(term)}%", escape="\\")
            for term in terms
        ]
        return select(LinkSearchEntry.link_id).where(and_(*conditions))

    async def search(self, query: str) -> List[int]:
        """返回匹配的链接 ID"""
        clause = self.match_clause(query)
        if clause is None:
            return []
        result = await self.db.execute(clause)
        return list(result.scalars().all())

    async def indexed_ids(self, link_ids: Iterable[int] = None) -> List[int]:
        """当前索引中的链接 ID"""
        stmt = select(LinkSearchEntry.link_id)
        if link_ids is not None:
            stmt = stmt.where(LinkSearchEntry.link_id.in_(list(link_ids)))
        result = await self.db.execute(stmt.order_by(LinkSearchEntry.link_id))
        return list(result.scalars().all())
