"""
外部协作方接口定义

核心只依赖这里的数据结构和抽象类：
    ContentScraper.scrape(url) -> ScrapedContent
    ContentAnalyzer.analyze(content) -> AIAnalysisResult（失败时抛出 AIAnalysisError）

测试中可以用假实现替换真实的网页抓取和 LLM 调用。
"""

from abc import ABC, abstractmethod
from typing import List, Optional
from pydantic import BaseModel, Field


class ScrapeError(Exception):
    """网页抓取失败"""
    pass


class AIAnalysisError(Exception):
    """AI 分析失败（未配置、超时、响应无法解析等）"""
    pass


class ScrapedContent(BaseModel):
    """网页抓取结果"""
    url: str = Field(..., description="原始 URL")
    title: str = Field(default="", description="页面标题")
    description: str = Field(default="", description="页面描述")
    content: str = Field(default="", description="正文纯文本")
    content_type: str = Field(default="article", description="article/video/pdf/image/other")
    site_name: Optional[str] = Field(default=None, description="站点名称")
    language: Optional[str] = Field(default=None, description="页面语言")
    word_count: int = Field(default=0, description="字数（中文按字、英文按词）")


class AIAnalysisResult(BaseModel):
    """AI 分析结果"""
    title: Optional[str] = Field(default=None, description="AI 建议的标题")
    summary: str = Field(default="", description="摘要")
    category: str = Field(default="", description="分类名称")
    tags: List[str] = Field(default_factory=list, description="标签")
    reading_time: int = Field(default=1, ge=1, description="预估阅读时间（分钟）")
    language: Optional[str] = Field(default=None, description="语言代码")
    sentiment: Optional[str] = Field(default=None, description="positive/neutral/negative")


class ContentScraper(ABC):
    """网页抓取器"""

    @abstractmethod
    async def scrape(self, url: str) -> ScrapedContent:
        """抓取网页，失败时抛出 ScrapeError"""
        pass


class ContentAnalyzer(ABC):
    """内容分析器"""

    @abstractmethod
    async def analyze(self, content: ScrapedContent) -> AIAnalysisResult:
        """分析内容，失败时抛出 AIAnalysisError"""
        pass
