"""链接模型"""
from sqlalchemy import Column, String, DateTime, Integer, Text, Boolean, Index
import enum
import json

from ..database import Base
from ..utils.clock import utcnow


class LinkStatus(str, enum.Enum):
    """链接状态"""
    PENDING = "pending"        # 待确认
    PUBLISHED = "published"    # 已发布
    DELETED = "deleted"        # 已删除（软删除）


def decode_tags(raw) -> list[str]:
    """解析 JSON 编码的标签列表，异常数据按空列表处理"""
    if not raw:
        return []
    try:
        tags = json.loads(raw)
    except (TypeError, ValueError):
        return []
    if not isinstance(tags, list):
        return []
    return [str(tag) for tag in tags]


def encode_tags(tags) -> str:
    """标签列表编码为 JSON 字符串"""
    return json.dumps(list(tags), ensure_ascii=False)


class Link(Base):
    """链接表

    ai_* 字段是 AI 产出的原始记录（溯源），user_* 字段是确认后对外展示的最终值。
    """
    __tablename__ = "links"

    id = Column(Integer, primary_key=True, autoincrement=True)
    url = Column(String(2000), nullable=False)  # 不做唯一约束，允许重复收藏
    domain = Column(String(255), nullable=False)

    # 内容信息
    title = Column(String(500), nullable=False, default="")
    original_description = Column(Text, nullable=True)

    # AI 分析结果
    ai_summary = Column(Text, nullable=True)
    ai_category = Column(String(100), nullable=True)
    ai_tags = Column(Text, nullable=False, default="[]")  # JSON 数组
    ai_reading_time = Column(Integer, nullable=False, default=1)  # 分钟
    ai_analysis_failed = Column(Boolean, nullable=False, default=False)
    ai_error = Column(Text, nullable=True)

    # 用户确认的内容
    user_description = Column(Text, nullable=True)
    user_category = Column(String(100), nullable=True)
    user_tags = Column(Text, nullable=True)  # JSON 数组

    # 状态
    status = Column(String(20), nullable=False, default=LinkStatus.PENDING.value)

    # 时间戳
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
    published_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_links_status", "status"),
        Index("idx_links_domain", "domain"),
        Index("idx_links_status_published_at", "status", "published_at"),
    )

    @property
    def ai_tag_list(self) -> list[str]:
        return decode_tags(self.ai_tags)

    @property
    def user_tag_list(self) -> list[str]:
        return decode_tags(self.user_tags)

    # ==================== 最终展示字段 ====================

    @property
    def final_description(self) -> str:
        return self.user_description or ""

    @property
    def final_category(self) -> str:
        return self.user_category or ""

    @property
    def final_tags(self) -> list[str]:
        return self.user_tag_list

    @property
    def is_published(self) -> bool:
        return self.status == LinkStatus.PUBLISHED.value
