"""分类模型"""
from sqlalchemy import Column, String, DateTime, Integer, Boolean, Index

from ..database import Base
from ..utils.clock import utcnow


class Category(Base):
    """分类表"""
    __tablename__ = "categories"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(50), unique=True, nullable=False)
    slug = Column(String(50), unique=True, nullable=True)

    # 展示配置
    icon = Column(String(50), nullable=False, default="folder")
    color = Column(String(20), nullable=True)
    description = Column(String(200), nullable=True)

    # 排序与状态
    display_order = Column(Integer, nullable=False, default=0)
    is_active = Column(Boolean, nullable=False, default=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        Index("idx_categories_display_order", "display_order"),
    )
