"""Pydantic Schemas"""
from .link import (
    LinkCreate, LinkEdit, LinkConfirm, BatchParams, BatchRequest, BatchItemResult, BatchResponse,
    LinkPublic, LinkDetail, Pagination, LinkListResponse, PendingListResponse,
    LinkDirectCreate, AdminLinkListResponse,
)
from .category import CategoryCreate, CategoryUpdate, CategoryReorder, CategoryResponse
from .token import TokenCreate, TokenResponse
from .auth import AdminInit, AdminLogin, Token, Identity
from .activity import ActivityLogResponse, ActivityFilters, ActivityListResponse
from .settings import SettingsResponse, SettingsUpdate, AITestResponse
from .stats import SiteStats, DomainStats

__all__ = [
    "LinkCreate", "LinkEdit", "LinkConfirm", "BatchParams", "BatchRequest", "BatchItemResult", "BatchResponse",
    "LinkPublic", "LinkDetail", "Pagination", "LinkListResponse", "PendingListResponse",
    "LinkDirectCreate", "AdminLinkListResponse",
    "CategoryCreate", "CategoryUpdate", "CategoryReorder", "CategoryResponse",
    "TokenCreate", "TokenResponse",
    "AdminInit", "AdminLogin", "Token", "Identity",
    "ActivityLogResponse", "ActivityFilters", "ActivityListResponse",
    "SettingsResponse", "SettingsUpdate", "AITestResponse",
    "SiteStats", "DomainStats",
]
