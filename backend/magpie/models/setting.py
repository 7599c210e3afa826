"""系统设置模型"""
from sqlalchemy import Column, String, DateTime, Text

from ..database import Base
from ..utils.clock import utcnow


class Setting(Base):
    """设置表，value 按 type 编码为字符串"""
    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text, nullable=True)
    type = Column(String(20), nullable=False, default="string")  # string|number|boolean|json
    description = Column(String(255), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow)
