"""数据模型"""
from .link import Link, LinkStatus, decode_tags, encode_tags
from .search_index import LinkSearchEntry
from .category import Category
from .api_token import ApiToken, TokenStatus
from .setting import Setting
from .activity_log import ActivityLog, ActivityAction, ActivityStatus
from .user import User

__all__ = [
    "Link", "LinkStatus", "decode_tags", "encode_tags",
    "LinkSearchEntry",
    "Category",
    "ApiToken", "TokenStatus",
    "Setting",
    "ActivityLog", "ActivityAction", "ActivityStatus",
    "User",
]
