"""
分类管理

链接按名称引用分类（松引用），分类改名或删除后旧链接保留原名称。
display_order 的唯一性在这里校验，数据库不加约束，重排时可以整体改写。
"""

from typing import Dict, List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_
import re
import logging

from ..errors import ConflictError, NotFoundError, ValidationError
from ..models.activity_log import ActivityAction
from ..models.category import Category
from ..schemas.category import CategoryCreate, CategoryUpdate
from ..utils.clock import utcnow
from .activity import ActivityLogger
from .prompts import FALLBACK_CATEGORY
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)

RESOURCE = "categories"

# 可选图标
PRESET_ICONS = [
    "code", "cube", "palette", "wrench", "folder", "game-controller",
    "book", "video", "music", "photo", "document", "globe",
    "chat", "shopping", "academic",
]

DEFAULT_CATEGORIES = [
    {"name": "技术", "slug": "tech", "icon": "code", "color": "#3B82F6",
     "description": "编程、开发、技术相关内容", "display_order": 1},
    {"name": "设计", "slug": "design", "icon": "palette", "color": "#8B5CF6",
     "description": "设计、UI/UX、创意相关内容", "display_order": 2},
    {"name": "产品", "slug": "product", "icon": "cube", "color": "#10B981",
     "description": "产品管理、商业分析相关内容", "display_order": 3},
    {"name": "工具", "slug": "tools", "icon": "wrench", "color": "#F59E0B",
     "description": "实用工具、软件推荐", "display_order": 4},
    {"name": "游戏", "slug": "game", "icon": "game-controller", "color": "#EC4899",
     "description": "游戏相关内容", "display_order": 5},
    {"name": "其他", "slug": "other", "icon": "folder", "color": "#6B7280",
     "description": "其他未分类内容", "display_order": 99},
]


def slugify(name: str) -> Optional[str]:
    """名称转 slug，只保留 ASCII 字母数字，中文名称返回 None"""
    slug = re.sub(r"[^\w\s-]", "", name.lower(), flags=re.ASCII)
    slug = re.sub(r"[\s_-]+", "-", slug)
    slug = slug.strip("-")
    return slug or None


class CategoryRegistry:
    """分类注册表"""

    def __init__(self, db: AsyncSession, activity: Optional[ActivityLogger] = None):
        self.db = db
        self.activity = activity or ActivityLogger(db)

    async def list_categories(self, active_only: bool = False) -> List[Category]:
        stmt = select(Category)
        if active_only:
            stmt = stmt.where(Category.is_active.is_(True))
        result = await self.db.execute(stmt.order_by(Category.display_order, Category.name))
        return list(result.scalars().all())

    async def active_names(self) -> List[str]:
        """启用分类的名称（用于 AI 提示词）"""
        return [c.name for c in await self.list_categories(active_only=True)]

    async def get(self, category_id: int) -> Category:
        category = await self.db.get(Category, category_id)
        if not category:
            raise NotFoundError("分类不存在")
        return category

    async def _check_unique(self, name: Optional[str], slug: Optional[str], exclude_id: Optional[int] = None):
        conditions = []
        if name:
            conditions.append(Category.name == name)
        if slug:
            conditions.append(Category.slug == slug)
        if not conditions:
            return
        stmt = select(Category.id).where(or_(*conditions))
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        if result.scalar_one_or_none() is not None:
            raise ConflictError("分类名称或 slug 已存在")

    async def _check_order(self, display_order: int, exclude_id: Optional[int] = None):
        stmt = select(Category.id).where(Category.display_order == display_order)
        if exclude_id is not None:
            stmt = stmt.where(Category.id != exclude_id)
        result = await self.db.execute(stmt.limit(1))
        if result.scalar_one_or_none() is not None:
            raise ConflictError(f"排序值 {display_order} 已被占用")

    async def _next_order(self) -> int:
        result = await self.db.execute(select(func.max(Category.display_order)))
        return (result.scalar() or 0) + 1

    async def create(self, data: CategoryCreate) -> Category:
        async with self.activity.track(ActivityAction.CATEGORY_CREATE, RESOURCE) as op:
            name = data.name.strip()
            if not name:
                raise ValidationError("分类名称不能为空")
            slug = data.slug or slugify(name)
            await self._check_unique(name, slug)

            if data.display_order is None:
                display_order = await self._next_order()
            else:
                display_order = data.display_order
                await self._check_order(display_order)

            category = Category(
                name=name,
                slug=slug,
                icon=data.icon,
                color=data.color,
                description=data.description,
                display_order=display_order,
                is_active=data.is_active,
            )
            self.db.add(category)
            await self.db.flush()
            op.set_resource(category.id)
            op.add_details(name=name, slug=slug)

        logger.info(f"📁 新建分类: {category.name}")
        return category

    async def update(self, category_id: int, data: CategoryUpdate) -> Category:
        async with self.activity.track(ActivityAction.CATEGORY_UPDATE, RESOURCE, category_id) as op:
            category = await self.get(category_id)
            changes = data.model_dump(exclude_unset=True)

            if "name" in changes:
                changes["name"] = (changes["name"] or "").strip()
                if not changes["name"]:
                    raise ValidationError("分类名称不能为空")
                if not changes.get("slug"):
                    changes["slug"] = slugify(changes["name"]) or category.slug
            await self._check_unique(changes.get("name"), changes.get("slug"), exclude_id=category_id)

            if changes.get("display_order") is not None:
                await self._check_order(changes["display_order"], exclude_id=category_id)

            for field, value in changes.items():
                if value is None and field in ("icon", "is_active", "display_order"):
                    continue
                setattr(category, field, value)
            category.updated_at = utcnow()
            await self.db.flush()
            op.add_details(changes=data.model_dump(exclude_unset=True))

        return category

    async def delete(self, category_id: int, default_category: str) -> None:
        """删除分类，默认分类不允许删除；引用该分类的链接保留原名称"""
        async with self.activity.track(ActivityAction.CATEGORY_DELETE, RESOURCE, category_id) as op:
            category = await self.get(category_id)
            if category.name == default_category:
                raise ValidationError("默认分类不能删除")
            op.add_details(name=category.name)
            await self.db.delete(category)
            await self.db.flush()

    async def reorder(self, category_ids: List[int]) -> List[Category]:
        """按给定顺序设置 1..n，未列出的分类按原顺序排在后面"""
        async with self.activity.track(ActivityAction.CATEGORY_REORDER, RESOURCE) as op:
            if len(set(category_ids)) != len(category_ids):
                raise ValidationError("分类 ID 重复")

            categories = await self.list_categories()
            by_id: Dict[int, Category] = {c.id: c for c in categories}
            missing = [cid for cid in category_ids if cid not in by_id]
            if missing:
                raise NotFoundError(f"分类不存在: {missing}")

            ordered = [by_id[cid] for cid in category_ids]
            ordered += [c for c in categories if c.id not in set(category_ids)]
            now = utcnow()
            for position, category in enumerate(ordered, start=1):
                category.display_order = position
                category.updated_at = now
            await self.db.flush()
            op.add_details(category_ids=category_ids)

        return ordered

    async def seed_defaults(self, store: SettingsStore) -> int:
        """分类表为空时写入默认分类，并同步 categories 设置"""
        result = await self.db.execute(select(func.count(Category.id)))
        if (result.scalar() or 0) > 0:
            return 0

        now = utcnow()
        for item in DEFAULT_CATEGORIES:
            self.db.add(Category(is_active=True, created_at=now, updated_at=now, **item))
        await self.db.flush()
        await store.set("categories", [item["name"] for item in DEFAULT_CATEGORIES])

        logger.info(f"📁 已写入 {len(DEFAULT_CATEGORIES)} 个默认分类")
        return len(DEFAULT_CATEGORIES)


async def prompt_categories(db: AsyncSession, store: SettingsStore) -> List[str]:
    """AI 提示词使用的分类列表：启用的分类，为空时回退到 categories 设置"""
    names = await CategoryRegistry(db).active_names()
    if names:
        return names
    configured = await store.get("categories")
    if isinstance(configured, list) and configured:
        return [str(name) for name in configured]
    return [FALLBACK_CATEGORY]
