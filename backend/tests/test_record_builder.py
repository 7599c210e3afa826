"""链接记录构建"""
from datetime import datetime

from magpie.models.link import decode_tags
from magpie.services.base import AIAnalysisResult, ScrapedContent
from magpie.services.record_builder import build_link_data

NOW = datetime(2024, 5, 1, 12, 0, 0)


def _inputs():
    scraped = ScrapedContent(url="https://example.com/a", title="Scraped Title", description="desc")
    analysis = AIAnalysisResult(
        title="AI Title",
        summary="AI summary",
        category="技术",
        tags=["python", "web"],
        reading_time=4,
    )
    return scraped, analysis


def _build(**overrides):
    scraped, analysis = _inputs()
    params = dict(
        url="https://example.com/a",
        domain="example.com",
        scraped=scraped,
        analysis=analysis,
        ai_analysis_failed=False,
        ai_error=None,
        skip_confirm=False,
        now=NOW,
    )
    params.update(overrides)
    return build_link_data(**params)


def test_pending_record_keeps_ai_fields_only():
    data = _build()
    assert data["status"] == "pending"
    assert data["published_at"] is None
    assert data["title"] == "AI Title"
    assert data["original_description"] == "desc"
    assert data["ai_summary"] == "AI summary"
    assert data["ai_category"] == "技术"
    assert decode_tags(data["ai_tags"]) == ["python", "web"]
    assert data["ai_reading_time"] == 4
    assert data["user_description"] is None
    assert data["user_category"] is None
    assert data["user_tags"] is None


def test_skip_confirm_publishes_with_ai_values():
    data = _build(skip_confirm=True)
    assert data["status"] == "published"
    assert data["published_at"] == NOW
    assert data["user_description"] == "AI summary"
    assert data["user_category"] == "技术"
    assert decode_tags(data["user_tags"]) == ["python", "web"]


def test_preset_category_and_tags_override_ai_on_skip_confirm():
    data = _build(skip_confirm=True, category="工具", tags=["cli"])
    assert data["user_category"] == "工具"
    assert decode_tags(data["user_tags"]) == ["cli"]
    assert data["ai_category"] == "技术"


def test_preset_values_are_kept_on_pending_record():
    data = _build(category="工具", tags=["cli"])
    assert data["status"] == "pending"
    assert data["user_category"] == "工具"
    assert decode_tags(data["user_tags"]) == ["cli"]
    assert data["user_description"] is None


def test_force_user_fields_publishes_without_ai_description():
    data = _build(force_user_fields=True, category="工具")
    assert data["status"] == "published"
    assert data["published_at"] == NOW
    assert data["user_description"] is None
    assert data["user_category"] == "工具"
    assert data["user_tags"] is None


def test_title_falls_back_to_scraped_title():
    scraped, analysis = _inputs()
    analysis = analysis.model_copy(update={"title": None})
    data = _build(analysis=analysis)
    assert data["title"] == "Scraped Title"


def test_failure_flags_are_recorded():
    data = _build(ai_analysis_failed=True, ai_error="AI 请求超时 (30s)")
    assert data["ai_analysis_failed"] is True
    assert data["ai_error"] == "AI 请求超时 (30s)"
