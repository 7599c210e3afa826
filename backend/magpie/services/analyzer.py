"""
AI 内容分析

调用 OpenAI 兼容的 /chat/completions 接口，生成摘要、分类、标签和阅读时间。
任何失败（未配置、超时、HTTP 错误、响应无法解析）都抛出 AIAnalysisError，
由调用方决定是否使用 build_fallback_analysis() 的兜底结果。
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel
import json
import math
import re
import time
import logging

import httpx

from .base import AIAnalysisError, AIAnalysisResult, ContentAnalyzer, ScrapedContent
from .prompts import (
    CONNECTION_TEST_PROMPT,
    DEFAULT_CATEGORIES,
    DEFAULT_PROMPT_TEMPLATE,
    FALLBACK_CATEGORY,
    USER_INSTRUCTIONS_TEMPLATE,
)

logger = logging.getLogger(__name__)

MAX_PROMPT_CONTENT = 3000
MAX_SUMMARY_LENGTH = 500
MAX_TAGS = 10
MAX_TAG_LENGTH = 50
MAX_READING_TIME = 60
WORDS_PER_MINUTE = 225

VALID_LANGUAGES = ("en", "zh", "ja", "ko", "es", "fr", "de", "ru", "ar", "hi")
VALID_SENTIMENTS = ("positive", "neutral", "negative")

# 兜底分类关键词
CATEGORY_KEYWORDS = {
    "技术": ["technology", "programming", "software", "code", "api", "framework", "dev", "tech",
           "技术", "编程", "软件", "代码", "开发"],
    "设计": ["design", "ui", "ux", "visual", "graphic", "figma", "设计", "界面", "视觉"],
    "产品": ["product", "startup", "business", "company", "marketing", "strategy",
           "产品", "商业", "创业", "营销"],
    "工具": ["tool", "app", "software", "utility", "plugin", "extension", "工具", "应用", "插件"],
}

URL_KEYWORDS = {
    "技术": ["tech", "programming", "software", "github", "dev", "code", "api", "framework"],
    "设计": ["design", "ui", "ux", "figma", "dribbble", "behance"],
    "产品": ["product", "startup", "business", "pm", "strategy"],
    "工具": ["tool", "app", "software", "extension", "plugin", "utility"],
}

STOP_WORDS = {
    "the", "and", "for", "are", "but", "not", "you", "all", "can", "had", "was", "one", "our",
    "has", "have", "this", "that", "with", "they", "will", "been", "said", "each", "which",
    "their", "time", "from",
}

_CJK_RE = re.compile(r"[一-鿿]")


class AIConfig(BaseModel):
    """AI 服务配置（来自 settings 表）"""
    api_key: str = ""
    base_url: str = "https://api.openai.com/v1"
    model: str = "gpt-3.5-turbo"
    temperature: float = 0.7
    max_tokens: int = 1000
    timeout: float = 30.0

    @classmethod
    def from_settings(cls, values: Dict[str, Any]) -> "AIConfig":
        api_key = values.get("ai_api_key")
        if hasattr(api_key, "get_secret_value"):
            api_key = api_key.get_secret_value()
        return cls(
            api_key=api_key or "",
            base_url=values.get("ai_base_url") or cls.model_fields["base_url"].default,
            model=values.get("ai_model") or cls.model_fields["model"].default,
            temperature=values.get("ai_temperature", 0.7),
            max_tokens=values.get("ai_max_tokens", 1000),
            timeout=values.get("ai_timeout", 30),
        )


def fallback_category(categories: List[str]) -> str:
    """兜底分类：优先“其他”，否则取最后一个"""
    if FALLBACK_CATEGORY in categories:
        return FALLBACK_CATEGORY
    return categories[-1] if categories else FALLBACK_CATEGORY


def truncate_content(text: str, max_length: int = MAX_PROMPT_CONTENT) -> str:
    """截断正文，尽量在句子结尾处断开"""
    if len(text) <= max_length:
        return text
    truncated = text[:max_length]
    last_end = max(truncated.rfind(mark) for mark in (".", "!", "?", "。", "！", "？"))
    if last_end > max_length * 0.8:
        return truncated[:last_end + 1]
    return truncated + "..."


def estimate_reading_time(word_count: int) -> int:
    return max(1, math.ceil(word_count / WORDS_PER_MINUTE))


def parse_response(text: str) -> Dict[str, Any]:
    """解析模型输出：直接解析 JSON，失败时提取第一个 {...} 块"""
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        match = re.search(r"\{[\s\S]*\}", text)
        if not match:
            raise AIAnalysisError("AI 响应不是有效的 JSON")
        try:
            data = json.loads(match.group(0))
        except json.JSONDecodeError:
            raise AIAnalysisError("AI 响应不是有效的 JSON")
    if not isinstance(data, dict):
        raise AIAnalysisError("AI 响应格式错误")
    return data


def validate_category(category: Any, categories: List[str]) -> str:
    if isinstance(category, str):
        value = category.strip()
        if value in categories:
            return value
        if value.lower() in categories:
            return value.lower()
    return fallback_category(categories)


def validate_tags(tags: Any) -> List[str]:
    if not isinstance(tags, list):
        return []
    result: List[str] = []
    for tag in tags:
        if not isinstance(tag, str):
            continue
        value = tag.strip().lower()
        if 0 < len(value) <= MAX_TAG_LENGTH and value not in result:
            result.append(value)
    return result[:MAX_TAGS]


def validate_reading_time(value: Any, word_count: int) -> int:
    if isinstance(value, str) and value.strip().isdigit():
        value = int(value.strip())
    if isinstance(value, (int, float)) and not isinstance(value, bool) and 0 < value <= MAX_READING_TIME:
        return max(1, int(round(value)))
    return estimate_reading_time(word_count)


def validate_language(value: Any) -> Optional[str]:
    if not isinstance(value, str) or not value:
        return None
    lang = value.lower()[:2]
    return lang if lang in VALID_LANGUAGES else "en"


def sanitize_result(data: Dict[str, Any], content: ScrapedContent, categories: List[str]) -> AIAnalysisResult:
    """校验并清洗模型输出"""
    summary = data.get("summary")
    summary = summary.strip()[:MAX_SUMMARY_LENGTH] if isinstance(summary, str) else ""
    sentiment = data.get("sentiment")
    return AIAnalysisResult(
        summary=summary or content.description or "暂无摘要",
        category=validate_category(data.get("category"), categories),
        tags=validate_tags(data.get("tags")),
        reading_time=validate_reading_time(data.get("readingTime", data.get("reading_time")), content.word_count),
        language=validate_language(data.get("language") or content.language),
        sentiment=sentiment if sentiment in VALID_SENTIMENTS else "neutral",
    )


# ==================== 兜底分析 ====================

def _keyword_hit(text: str, keyword: str) -> bool:
    if _CJK_RE.search(keyword):
        return keyword in text
    return re.search(rf"\b{re.escape(keyword)}\b", text) is not None


def guess_category(content: ScrapedContent, categories: List[str]) -> str:
    """先按标题和描述中的关键词猜分类，再按 URL 猜"""
    text = f"{content.title} {content.description}".lower()
    for category in categories:
        keywords = CATEGORY_KEYWORDS.get(category)
        if keywords and any(_keyword_hit(text, keyword) for keyword in keywords):
            return category

    url = content.url.lower()
    for category, keywords in URL_KEYWORDS.items():
        if category in categories and any(keyword in url for keyword in keywords):
            return category
    return fallback_category(categories)


def extract_basic_tags(title: str, description: str, limit: int = 5) -> List[str]:
    """简单关键词提取：3 个字符以上的词，去掉常见词"""
    words = re.findall(r"\b\w{3,}\b", f"{title} {description}".lower())
    tags: List[str] = []
    for word in words:
        if word in STOP_WORDS or len(word) > 20 or word in tags:
            continue
        tags.append(word)
        if len(tags) >= limit:
            break
    return tags


def detect_language(text: str) -> str:
    if not text:
        return "en"
    total = len(text)
    if len(_CJK_RE.findall(text)) / total > 0.3:
        return "zh"
    if len(re.findall(r"[぀-ヿ]", text)) / total > 0.3:
        return "ja"
    if len(re.findall(r"[가-힯]", text)) / total > 0.3:
        return "ko"
    return "en"


def build_fallback_analysis(content: ScrapedContent, categories: Optional[List[str]] = None) -> AIAnalysisResult:
    """AI 不可用时由抓取内容生成的分析结果"""
    categories = categories or list(DEFAULT_CATEGORIES)
    summary = content.description or (content.title or "")[:200] or "暂无内容分析"
    return AIAnalysisResult(
        summary=summary,
        category=guess_category(content, categories),
        tags=extract_basic_tags(content.title, content.description),
        reading_time=estimate_reading_time(content.word_count),
        language=detect_language(f"{content.title} {content.description}"),
        sentiment="neutral",
    )


# ==================== 分析器 ====================

class AIAnalyzer(ContentAnalyzer):
    """
    OpenAI 兼容接口的内容分析器

    使用示例:
        analyzer = AIAnalyzer(AIConfig(api_key="sk-..."), categories=["技术", "其他"])
        result = await analyzer.analyze(scraped)
    """

    def __init__(
        self,
        config: AIConfig,
        prompt_template: Optional[str] = None,
        categories: Optional[List[str]] = None,
        user_instructions: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.config = config
        self.prompt_template = prompt_template or DEFAULT_PROMPT_TEMPLATE
        self.categories = categories or list(DEFAULT_CATEGORIES)
        self.user_instructions = (user_instructions or "").strip()
        self._transport = transport

    def build_prompt(self, content: ScrapedContent) -> str:
        """填充提示词模板（字符串替换，模板中的 JSON 花括号原样保留）"""
        replacements = {
            "{url}": content.url,
            "{title}": content.title or "无标题",
            "{content_type}": content.content_type,
            "{description}": content.description or "无描述",
            "{content}": truncate_content(content.content),
            "{categories}": "、".join(self.categories),
        }
        prompt = self.prompt_template
        for placeholder, value in replacements.items():
            prompt = prompt.replace(placeholder, value)
        if self.user_instructions:
            prompt += USER_INSTRUCTIONS_TEMPLATE.replace("{instructions}", self.user_instructions)
        return prompt

    async def _chat(self, prompt: str, max_tokens: int, temperature: float) -> str:
        if not self.config.api_key:
            raise AIAnalysisError("未配置 AI API Key")

        start_time = time.time()
        try:
            async with httpx.AsyncClient(timeout=self.config.timeout, transport=self._transport) as client:
                response = await client.post(
                    f"{self.config.base_url.rstrip('/')}/chat/completions",
                    headers={
                        "Content-Type": "application/json",
                        "Authorization": f"Bearer {self.config.api_key}",
                    },
                    json={
                        "model": self.config.model,
                        "messages": [{"role": "user", "content": prompt}],
                        "temperature": temperature,
                        "max_tokens": max_tokens,
                    },
                )
        except httpx.TimeoutException:
            raise AIAnalysisError(f"AI 请求超时 ({self.config.timeout}s)")
        except httpx.HTTPError as e:
            raise AIAnalysisError(f"AI 请求失败: {e}")

        elapsed = (time.time() - start_time) * 1000
        if response.status_code != 200:
            logger.error(f"🤖 [AI] 调用失败: status={response.status_code}, body={response.text[:200]}, 耗时={elapsed:.0f}ms")
            raise AIAnalysisError(f"AI 服务返回 HTTP {response.status_code}")

        try:
            message = response.json()["choices"][0]["message"]
        except (ValueError, KeyError, IndexError, TypeError, AttributeError):
            raise AIAnalysisError("AI 响应格式错误")

        # 部分兼容接口的 content 是分段列表，这里只接受字符串
        if not isinstance(message, dict):
            raise AIAnalysisError("AI 响应格式错误")
        content = message.get("content")
        if content is not None and not isinstance(content, str):
            raise AIAnalysisError("AI 响应格式错误")

        text = (content or "").strip()
        if not text:
            raise AIAnalysisError("AI 返回了空响应")
        logger.debug(f"🤖 [AI] 响应 {len(text)} 字符，耗时={elapsed:.0f}ms")
        return text

    async def analyze(self, content: ScrapedContent) -> AIAnalysisResult:
        text = await self._chat(self.build_prompt(content), self.config.max_tokens, self.config.temperature)
        data = parse_response(text)
        result = sanitize_result(data, content, self.categories)
        logger.info(f"🤖 [AI] 分析完成: {content.url} -> {result.category} {result.tags}")
        return result

    async def test_connection(self) -> bool:
        """测试连接，模型回复 OK 即视为成功"""
        try:
            text = await self._chat(CONNECTION_TEST_PROMPT, max_tokens=10, temperature=0)
        except AIAnalysisError as e:
            logger.warning(f"AI 连接测试失败: {e}")
            return False
        return text.strip().strip('"').lower() == "ok"
