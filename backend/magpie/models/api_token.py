"""API Token 模型"""
from sqlalchemy import Column, String, DateTime, Integer, Index
import enum

from ..database import Base
from ..utils.clock import utcnow


class TokenStatus(str, enum.Enum):
    """Token 状态"""
    ACTIVE = "active"
    REVOKED = "revoked"


class ApiToken(Base):
    """API Token 表"""
    __tablename__ = "api_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    token = Column(String(100), unique=True, nullable=False, index=True)
    name = Column(String(100), nullable=True)
    prefix = Column(String(10), nullable=False, default="mgp_")

    # 状态
    status = Column(String(20), nullable=False, default=TokenStatus.ACTIVE.value)

    # 使用统计
    usage_count = Column(Integer, nullable=False, default=0)
    last_used_at = Column(DateTime, nullable=True)
    last_used_ip = Column(String(45), nullable=True)  # 支持 IPv6

    created_at = Column(DateTime, nullable=False, default=utcnow)
    revoked_at = Column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_tokens_status", "status"),
    )
