"""
链接提交流程

抓取 -> AI 分析 -> 构建记录 -> 创建

抓取和 AI 失败都不会中断提交：失败原因记录在 ai_analysis_failed / ai_error 中，
分析结果使用由抓取内容生成的兜底值。
"""

from typing import List, Optional
from urllib.parse import urlparse
from sqlalchemy.ext.asyncio import AsyncSession
import logging

from ..errors import ValidationError
from ..models.activity_log import ActivityAction, ActivityStatus
from ..models.link import Link
from ..utils.clock import utcnow
from .activity import ActivityLogger
from .analyzer import AIAnalyzer, AIConfig, build_fallback_analysis
from .base import AIAnalysisError, ContentAnalyzer, ContentScraper, ScrapedContent, ScrapeError
from .categories import prompt_categories
from .lifecycle import LinkLifecycle
from .record_builder import build_link_data
from .scraper import WebScraper, extract_domain
from .settings_store import SettingsStore

logger = logging.getLogger(__name__)


def normalize_url(url: str) -> str:
    """校验提交的 URL，只接受 http/https"""
    url = (url or "").strip()
    parsed = urlparse(url)
    if parsed.scheme.lower() not in ("http", "https") or not parsed.hostname:
        raise ValidationError("无效的 URL，仅支持 http/https")
    return url


class IngestService:
    """链接提交服务"""

    def __init__(
        self,
        db: AsyncSession,
        activity: ActivityLogger,
        scraper: Optional[ContentScraper] = None,
        analyzer: Optional[ContentAnalyzer] = None,
    ):
        self.db = db
        self.activity = activity
        self.store = SettingsStore(db)
        self.lifecycle = LinkLifecycle(db, activity)
        self._scraper = scraper
        self._analyzer = analyzer

    async def _get_scraper(self) -> ContentScraper:
        if self._scraper is None:
            max_length = await self.store.get("max_content_length")
            self._scraper = WebScraper(max_content_length=int(max_length))
        return self._scraper

    async def _get_analyzer(self, categories: List[str]) -> ContentAnalyzer:
        if self._analyzer is None:
            values = await self.store.get_all()
            self._analyzer = AIAnalyzer(
                AIConfig.from_settings(values),
                prompt_template=values.get("ai_prompt_template"),
                categories=categories,
                user_instructions=values.get("ai_user_instructions"),
            )
        return self._analyzer

    async def add_link(
        self,
        url: str,
        skip_confirm: bool = False,
        category: Optional[str] = None,
        tags: Optional[List[str]] = None,
        force_user_fields: bool = False,
    ) -> Link:
        """
        提交链接，返回创建的记录（pending 或 published）

        force_user_fields 为直接入库模式：跳过确认直接发布，用户字段只取预设值
        """
        try:
            url = normalize_url(url)
        except ValidationError as e:
            await self.activity.log(
                ActivityAction.LINK_ADD,
                "links",
                status=ActivityStatus.FAILED,
                error_message=e.message,
                details={"url": url},
            )
            await self.db.commit()
            raise
        domain = extract_domain(url)
        categories = await prompt_categories(self.db, self.store)

        ai_failed = False
        ai_error = None
        scraper = await self._get_scraper()
        try:
            scraped = await scraper.scrape(url)
        except ScrapeError as e:
            logger.warning(f"⚠️ 抓取失败，使用最小内容: {url}: {e}")
            scraped = ScrapedContent(url=url, title=domain)
            analysis = build_fallback_analysis(scraped, categories)
            ai_failed = True
            ai_error = f"抓取失败: {e}"
        else:
            analyzer = await self._get_analyzer(categories)
            try:
                analysis = await analyzer.analyze(scraped)
            except AIAnalysisError as e:
                logger.warning(f"⚠️ AI 分析失败，使用兜底结果: {url}: {e}")
                analysis = build_fallback_analysis(scraped, categories)
                ai_failed = True
                ai_error = str(e)

        data = build_link_data(
            url=url,
            domain=domain,
            scraped=scraped,
            analysis=analysis,
            ai_analysis_failed=ai_failed,
            ai_error=ai_error,
            skip_confirm=skip_confirm,
            now=utcnow(),
            category=(category or "").strip() or None,
            tags=tags or None,
            force_user_fields=force_user_fields,
        )
        return await self.lifecycle.create(data, details={
            "skip_confirm": skip_confirm,
            "direct": force_user_fields,
            "ai_analysis_failed": ai_failed,
        })
