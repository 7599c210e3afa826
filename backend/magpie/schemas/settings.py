"""系统设置 Schema"""
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional

from ..services.settings_store import SECRET_SENTINEL


class SiteSettings(BaseModel):
    title: str
    description: str
    about_url: str


class AISettings(BaseModel):
    api_key: str  # 已配置时为占位值，永不返回明文
    base_url: str
    model: str
    temperature: float
    max_tokens: int
    timeout: float
    prompt_template: str
    user_instructions: str


class ContentSettings(BaseModel):
    default_category: str
    categories: list
    items_per_page: int
    max_content_length: int


class LimitSettings(BaseModel):
    rate_limit_per_minute: int


class SettingsResponse(BaseModel):
    """分组后的设置"""
    site: SiteSettings
    ai: AISettings
    content: ContentSettings
    limits: LimitSettings

    @classmethod
    def from_values(cls, values: Dict[str, Any]) -> "SettingsResponse":
        api_key = values["ai_api_key"].get_secret_value()
        return cls(
            site=SiteSettings(
                title=values["site_title"],
                description=values["site_description"],
                about_url=values["about_url"],
            ),
            ai=AISettings(
                api_key=SECRET_SENTINEL if api_key else "",
                base_url=values["ai_base_url"],
                model=values["ai_model"],
                temperature=values["ai_temperature"],
                max_tokens=values["ai_max_tokens"],
                timeout=values["ai_timeout"],
                prompt_template=values["ai_prompt_template"],
                user_instructions=values["ai_user_instructions"],
            ),
            content=ContentSettings(
                default_category=values["default_category"],
                categories=values["categories"],
                items_per_page=values["items_per_page"],
                max_content_length=values["max_content_length"],
            ),
            limits=LimitSettings(rate_limit_per_minute=values["rate_limit_per_minute"]),
        )


class SettingsUpdate(BaseModel):
    """部分更新，未提供的字段保持不变"""
    site_title: Optional[str] = Field(None, max_length=100)
    site_description: Optional[str] = Field(None, max_length=500)
    about_url: Optional[str] = Field(None, max_length=500)
    ai_api_key: Optional[str] = None
    ai_base_url: Optional[str] = Field(None, max_length=500)
    ai_model: Optional[str] = Field(None, max_length=100)
    ai_temperature: Optional[float] = Field(None, ge=0, le=2)
    ai_max_tokens: Optional[int] = Field(None, ge=1, le=32000)
    ai_timeout: Optional[float] = Field(None, gt=0, le=300)
    ai_prompt_template: Optional[str] = None
    ai_user_instructions: Optional[str] = Field(None, max_length=2000)
    default_category: Optional[str] = Field(None, max_length=50)
    items_per_page: Optional[int] = Field(None, ge=1, le=100)
    max_content_length: Optional[int] = Field(None, ge=100, le=100000)
    rate_limit_per_minute: Optional[int] = Field(None, ge=1, le=1000)


class AITestResponse(BaseModel):
    """AI 连接测试结果"""
    success: bool
    connected: bool
    message: str
    analysis: Optional[Dict[str, Any]] = None
