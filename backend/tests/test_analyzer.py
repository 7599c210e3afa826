"""AI 分析"""
import json

import httpx
import pytest

from magpie.services.analyzer import (
    AIAnalyzer,
    AIConfig,
    build_fallback_analysis,
    parse_response,
    sanitize_result,
    truncate_content,
)
from magpie.services.base import AIAnalysisError, ScrapedContent

CATEGORIES = ["技术", "设计", "产品", "工具", "其他"]


def _content(**overrides):
    data = dict(
        url="https://example.com/post",
        title="Building a REST API with Python",
        description="A practical guide",
        content="FastAPI makes it easy to build APIs. " * 20,
        word_count=450,
    )
    data.update(overrides)
    return ScrapedContent(**data)


def _completion(content: str, status_code: int = 200):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"choices": [{"message": {"content": content}}]})
    return httpx.MockTransport(handler)


def test_parse_response_extracts_embedded_json():
    text = '好的，结果如下：\n```json\n{"summary": "s", "category": "技术"}\n```'
    assert parse_response(text) == {"summary": "s", "category": "技术"}


def test_parse_response_rejects_garbage():
    with pytest.raises(AIAnalysisError):
        parse_response("no json here")
    with pytest.raises(AIAnalysisError):
        parse_response("[1, 2]")


def test_sanitize_clamps_fields():
    data = {
        "summary": "  s  ",
        "category": "unknown",
        "tags": ["Python", "python", "", 42, "x" * 60] + [f"t{i}" for i in range(20)],
        "readingTime": 500,
        "language": "zh-CN",
        "sentiment": "ecstatic",
    }
    result = sanitize_result(data, _content(), CATEGORIES)
    assert result.summary == "s"
    assert result.category == "其他"
    assert result.tags[0] == "python"
    assert len(result.tags) == 10
    assert result.reading_time == 2
    assert result.language == "zh"
    assert result.sentiment == "neutral"


def test_sanitize_accepts_string_reading_time():
    result = sanitize_result({"summary": "s", "category": "技术", "readingTime": "7"}, _content(), CATEGORIES)
    assert result.reading_time == 7
    assert result.category == "技术"


def test_truncate_content_prefers_sentence_end():
    text = ("word " * 10 + ". ") * 100
    truncated = truncate_content(text, 300)
    assert len(truncated) <= 300
    assert truncated.endswith(".")


def test_fallback_analysis_uses_scraped_content():
    result = build_fallback_analysis(_content(), CATEGORIES)
    assert result.summary == "A practical guide"
    assert result.category == "技术"
    assert "building" in result.tags
    assert result.reading_time == 2
    assert result.sentiment == "neutral"


def test_fallback_analysis_without_description():
    result = build_fallback_analysis(ScrapedContent(url="https://x.test/a", title="A"), CATEGORIES)
    assert result.summary == "A"
    assert result.category == "其他"
    assert result.reading_time == 1


def test_build_prompt_fills_placeholders():
    analyzer = AIAnalyzer(AIConfig(api_key="k"), categories=CATEGORIES, user_instructions="用中文回答")
    prompt = analyzer.build_prompt(_content())
    assert "https://example.com/post" in prompt
    assert "Building a REST API with Python" in prompt
    assert "技术、设计、产品、工具、其他" in prompt
    assert "用中文回答" in prompt
    assert "{url}" not in prompt


async def test_analyze_parses_completion():
    body = json.dumps({"summary": "总结", "category": "技术", "tags": ["api"], "readingTime": 3})
    analyzer = AIAnalyzer(AIConfig(api_key="k"), categories=CATEGORIES, transport=_completion(body))
    result = await analyzer.analyze(_content())
    assert result.summary == "总结"
    assert result.tags == ["api"]
    assert result.reading_time == 3


async def test_analyze_without_api_key_fails():
    analyzer = AIAnalyzer(AIConfig(api_key=""), categories=CATEGORIES)
    with pytest.raises(AIAnalysisError):
        await analyzer.analyze(_content())


async def test_analyze_http_error_fails():
    analyzer = AIAnalyzer(AIConfig(api_key="k"), transport=_completion("{}", status_code=500))
    with pytest.raises(AIAnalysisError) as exc_info:
        await analyzer.analyze(_content())
    assert "500" in str(exc_info.value)


async def test_analyze_timeout_fails():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    analyzer = AIAnalyzer(AIConfig(api_key="k", timeout=5), transport=httpx.MockTransport(handler))
    with pytest.raises(AIAnalysisError) as exc_info:
        await analyzer.analyze(_content())
    assert "超时" in str(exc_info.value)


@pytest.mark.parametrize("payload", [
    {"choices": [{"message": "oops"}]},
    {"choices": [{"message": {"content": [{"type": "text", "text": "{}"}]}}]},
    {"choices": "none"},
    {"choices": []},
])
async def test_analyze_malformed_completion_fails(payload):
    transport = httpx.MockTransport(lambda request: httpx.Response(200, json=payload))
    analyzer = AIAnalyzer(AIConfig(api_key="k"), categories=CATEGORIES, transport=transport)
    with pytest.raises(AIAnalysisError) as exc_info:
        await analyzer.analyze(_content())
    assert "格式错误" in str(exc_info.value)


async def test_connection_test():
    ok = AIAnalyzer(AIConfig(api_key="k"), transport=_completion("OK"))
    assert await ok.test_connection() is True

    broken = AIAnalyzer(AIConfig(api_key="k"), transport=_completion("{}", status_code=401))
    assert await broken.test_connection() is False
