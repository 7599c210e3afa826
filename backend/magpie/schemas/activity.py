"""操作日志 Schema"""
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from typing import Any, Dict, List, Optional

from .link import Pagination


class ActivityLogResponse(BaseModel):
    """日志条目"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    action: str
    resource: Optional[str] = None
    resource_id: Optional[int] = None
    actor_type: Optional[str] = None
    actor_id: Optional[int] = None
    actor_name: Optional[str] = None
    status: str
    duration_ms: Optional[int] = None
    error_message: Optional[str] = None
    details: Optional[Dict[str, Any]] = None
    ip: Optional[str] = None
    user_agent: Optional[str] = None
    created_at: datetime


class ActivityFilters(BaseModel):
    """可选筛选项"""
    actions: List[str] = []
    resources: List[str] = []
    statuses: List[str] = []


class ActivityListResponse(BaseModel):
    """日志列表"""
    logs: List[ActivityLogResponse]
    pagination: Pagination
    filters: ActivityFilters
