"""操作日志模型"""
from sqlalchemy import Column, String, DateTime, Text, Integer, JSON, Index
import enum

from ..database import Base
from ..utils.clock import utcnow


class ActivityAction(str, enum.Enum):
    """操作类型"""
    # 链接
    LINK_ADD = "link_add"                  # 新增链接
    LINK_CONFIRM = "link_confirm"          # 确认（可能发布或存草稿）
    LINK_PUBLISH = "link_publish"          # 批量确认中的单条发布
    LINK_UPDATE = "link_update"            # 编辑
    LINK_DELETE = "link_delete"            # 软删除
    LINK_RESTORE = "link_restore"          # 恢复
    LINK_BATCH = "link_batch"              # 批量操作汇总

    # 搜索索引
    SEARCH_REBUILD = "search_rebuild"

    # Token
    TOKEN_CREATE = "token_create"
    TOKEN_REVOKE = "token_revoke"

    # 设置与分类
    SETTINGS_UPDATE = "settings_update"
    CATEGORY_CREATE = "category_create"
    CATEGORY_UPDATE = "category_update"
    CATEGORY_DELETE = "category_delete"
    CATEGORY_REORDER = "category_reorder"

    # 管理员
    ADMIN_INIT = "admin_init"
    LOGIN_SUCCESS = "login_success"
    LOGIN_FAILED = "login_failed"


class ActivityStatus(str, enum.Enum):
    """操作结果"""
    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"


class ActivityLog(Base):
    """操作日志表（只追加）"""
    __tablename__ = "activity_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)

    # 操作信息
    action = Column(String(50), nullable=False)
    resource = Column(String(50), nullable=True)       # links|settings|tokens|categories|users
    resource_id = Column(Integer, nullable=True)

    # 操作者（系统操作为空）
    actor_type = Column(String(20), nullable=True)     # token|user
    actor_id = Column(Integer, nullable=True)
    actor_name = Column(String(100), nullable=True)

    # 结果
    status = Column(String(20), nullable=False, default=ActivityStatus.SUCCESS.value)
    duration_ms = Column(Integer, nullable=True)
    error_message = Column(Text, nullable=True)
    details = Column(JSON, nullable=True)

    # 请求信息
    ip = Column(String(45), nullable=True)
    user_agent = Column(String(500), nullable=True)

    created_at = Column(DateTime, nullable=False, default=utcnow)

    __table_args__ = (
        Index("idx_logs_created_at", "created_at"),
        Index("idx_logs_action", "action"),
        Index("idx_logs_resource", "resource", "resource_id"),
        Index("idx_logs_actor", "actor_type", "actor_id"),
    )
