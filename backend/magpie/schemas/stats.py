"""统计 Schema"""
from pydantic import BaseModel
from datetime import datetime
from typing import List, Optional


class NameCount(BaseModel):
    name: str
    count: int


class RecentLink(BaseModel):
    title: str
    url: str
    published_at: Optional[datetime] = None


class MonthlyCount(BaseModel):
    year: int
    month: int
    count: int


class SiteStats(BaseModel):
    """站点统计"""
    total_links: int
    published_links: int
    pending_links: int
    deleted_links: int
    total_categories: int
    total_tags: int
    popular_tags: List[NameCount]
    popular_domains: List[NameCount]
    recent_links: List[RecentLink]
    monthly: List[MonthlyCount]


class DomainStats(BaseModel):
    """单个域名的统计"""
    domain: str
    count: int
    latest_published: Optional[datetime] = None
    latest_title: Optional[str] = None
