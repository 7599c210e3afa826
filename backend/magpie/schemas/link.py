"""链接相关 Schema"""
from pydantic import BaseModel, Field, field_validator
from datetime import datetime
from typing import List, Literal, Optional, Union

from ..models.link import Link


MAX_TAGS = 10


def normalize_tags(value) -> Optional[List[str]]:
    """标签支持列表或逗号分隔字符串，去空白后最多保留 10 个"""
    if value is None:
        return None
    if isinstance(value, str):
        value = value.split(",")
    tags = [str(tag).strip() for tag in value if str(tag).strip()]
    return tags[:MAX_TAGS]


class LinkDirectCreate(BaseModel):
    """直接入库（不经确认，只写入预设的分类/标签）"""
    url: str = Field(..., min_length=1, max_length=2000)
    category: Optional[str] = Field(None, max_length=100)
    tags: Optional[Union[List[str], str]] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):
        return normalize_tags(value)


class LinkCreate(LinkDirectCreate):
    """提交链接"""
    skip_confirm: bool = False


class LinkEdit(BaseModel):
    """编辑链接（未提供的字段保持不变）"""
    title: Optional[str] = Field(None, max_length=500)
    description: Optional[str] = None
    category: Optional[str] = Field(None, max_length=100)
    tags: Optional[List[str]] = None
    reading_time: Optional[int] = None

    @field_validator("tags", mode="before")
    @classmethod
    def _tags(cls, value):
        return normalize_tags(value)


class LinkConfirm(LinkEdit):
    """确认链接，publish=False 时只保存草稿"""
    publish: bool = True


class BatchParams(BaseModel):
    """批量确认时覆盖的字段"""
    description: Optional[str] = None
    category: Optional[str] = None
    tags: Optional[List[str]] = None


class BatchRequest(BaseModel):
    """批量操作"""
    ids: List[int] = Field(..., min_length=1, max_length=100)
    action: Literal["confirm", "delete"]
    params: Optional[BatchParams] = None


class BatchItemResult(BaseModel):
    """单条批量操作结果"""
    id: int
    success: bool
    skipped: bool = False
    error: Optional[str] = None


class BatchResponse(BaseModel):
    """批量操作结果"""
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    total: int = 0
    results: List[BatchItemResult] = []


class LinkPublic(BaseModel):
    """公开展示的链接，只包含最终字段"""
    id: int
    url: str
    domain: str
    title: str
    description: str
    category: str
    tags: List[str]
    reading_time: int
    published_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_link(cls, link: Link) -> "LinkPublic":
        return cls(
            id=link.id,
            url=link.url,
            domain=link.domain,
            title=link.title,
            description=link.final_description,
            category=link.final_category,
            tags=link.final_tags,
            reading_time=link.ai_reading_time,
            published_at=link.published_at,
            created_at=link.created_at,
        )


class LinkDetail(BaseModel):
    """完整记录（AI 字段 + 用户字段），用于审核"""
    id: int
    url: str
    domain: str
    title: str
    original_description: Optional[str] = None
    ai_summary: Optional[str] = None
    ai_category: Optional[str] = None
    ai_tags: List[str] = []
    ai_reading_time: int
    ai_analysis_failed: bool
    ai_error: Optional[str] = None
    user_description: Optional[str] = None
    user_category: Optional[str] = None
    user_tags: Optional[List[str]] = None
    status: str
    created_at: datetime
    updated_at: datetime
    published_at: Optional[datetime] = None

    @classmethod
    def from_link(cls, link: Link) -> "LinkDetail":
        return cls(
            id=link.id,
            url=link.url,
            domain=link.domain,
            title=link.title,
            original_description=link.original_description,
            ai_summary=link.ai_summary,
            ai_category=link.ai_category,
            ai_tags=link.ai_tag_list,
            ai_reading_time=link.ai_reading_time,
            ai_analysis_failed=bool(link.ai_analysis_failed),
            ai_error=link.ai_error,
            user_description=link.user_description,
            user_category=link.user_category,
            user_tags=link.user_tag_list if link.user_tags is not None else None,
            status=link.status,
            created_at=link.created_at,
            updated_at=link.updated_at,
            published_at=link.published_at,
        )


class Pagination(BaseModel):
    """分页信息"""
    page: int
    limit: int
    total: int
    pages: int
    has_next: bool
    has_prev: bool

    @classmethod
    def build(cls, page: int, limit: int, total: int) -> "Pagination":
        pages = (total + limit - 1) // limit if limit else 0
        return cls(
            page=page,
            limit=limit,
            total=total,
            pages=pages,
            has_next=page < pages,
            has_prev=page > 1,
        )


class LinkListResponse(BaseModel):
    """公开链接列表"""
    links: List[LinkPublic]
    pagination: Pagination


class PendingListResponse(BaseModel):
    """待确认链接列表"""
    links: List[LinkDetail]
    pagination: Pagination


class AdminLinkListResponse(BaseModel):
    """管理端链接列表（所有状态）"""
    links: List[LinkDetail]
    pagination: Pagination
