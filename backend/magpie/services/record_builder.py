"""链接记录构建（纯函数，无 I/O）"""

from datetime import datetime
from typing import Any, Dict, List, Optional

from ..models.link import LinkStatus, encode_tags
from .base import ScrapedContent, AIAnalysisResult


def build_link_data(
    url: str,
    domain: str,
    scraped: ScrapedContent,
    analysis: AIAnalysisResult,
    ai_analysis_failed: bool,
    ai_error: Optional[str],
    skip_confirm: bool,
    now: datetime,
    category: Optional[str] = None,
    tags: Optional[List[str]] = None,
    force_user_fields: bool = False,
) -> Dict[str, Any]:
    """
    由抓取结果和 AI 分析结果生成 Link 的字段

    ai_* 字段原样记录 AI（或兜底分析）的产出；user_* 字段是对外展示的值，
    只有跳过确认（或直接入库模式）时才在创建时填写，预设的分类/标签在待确认状态下也会保留。

    Args:
        category: 预设分类
        tags: 预设标签
        force_user_fields: 直接入库模式，只写入预设字段并直接发布

    Returns:
        可直接传给 Link(**data) 的字段字典
    """
    title = analysis.title or scraped.title or ""

    if force_user_fields:
        user_description = None
        user_category = category or None
        user_tags = encode_tags(tags) if tags else None
        published = True
    elif skip_confirm:
        user_description = analysis.summary
        user_category = category or analysis.category
        user_tags = encode_tags(tags or analysis.tags)
        published = True
    else:
        user_description = None
        user_category = category or None
        user_tags = encode_tags(tags) if tags else None
        published = False

    return {
        "url": url,
        "domain": domain,
        "title": title,
        "original_description": scraped.description or "",
        "ai_summary": analysis.summary,
        "ai_category": analysis.category,
        "ai_tags": encode_tags(analysis.tags),
        "ai_reading_time": analysis.reading_time,
        "ai_analysis_failed": bool(ai_analysis_failed),
        "ai_error": ai_error or None,
        "user_description": user_description,
        "user_category": user_category,
        "user_tags": user_tags,
        "status": LinkStatus.PUBLISHED.value if published else LinkStatus.PENDING.value,
        "published_at": now if published else None,
        "created_at": now,
        "updated_at": now,
    }
