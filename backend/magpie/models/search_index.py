"""全文索引模型"""
from sqlalchemy import Column, String, DateTime, Integer, Text

from ..database import Base
from ..utils.clock import utcnow


class LinkSearchEntry(Base):
    """链接搜索索引表

    按 link_id 一行，只保存已发布链接的最终字段，search_text 为小写拼接文本。
    """
    __tablename__ = "link_search_index"

    link_id = Column(Integer, primary_key=True, autoincrement=False)
    title = Column(String(500), nullable=False, default="")
    description = Column(Text, nullable=False, default="")
    tags = Column(Text, nullable=False, default="")  # 空格分隔
    domain = Column(String(255), nullable=False, default="")
    category = Column(String(100), nullable=False, default="")
    search_text = Column(Text, nullable=False, default="")
    indexed_at = Column(DateTime, nullable=False, default=utcnow)
