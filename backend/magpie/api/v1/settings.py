"""系统设置路由"""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from ...database import get_db
from ...errors import ValidationError
from ...models.activity_log import ActivityAction
from ...models.category import Category
from ...schemas import SettingsResponse, SettingsUpdate, AITestResponse
from ...services.activity import ActivityLogger
from ...services.analyzer import AIAnalyzer, AIConfig
from ...services.base import AIAnalysisError, ScrapedContent
from ...services.categories import prompt_categories
from ...services.settings_store import SettingsStore, SECRET_SENTINEL
from ..deps import AuthContext, require_admin, get_admin_activity

router = APIRouter()

# AI 测试用的示例内容
SAMPLE_CONTENT = ScrapedContent(
    url="https://example.com/test-article",
    title="如何构建现代化的 Web 应用",
    description="介绍现代 Web 开发中的最佳实践和常用技术栈。",
    content=(
        "现代 Web 应用开发涉及前端框架、后端服务、数据库设计和部署运维等多个方面。"
        "本文介绍如何选择合适的技术栈，以及在开发过程中需要注意的性能和安全问题。"
    ),
    content_type="article",
    language="zh",
    word_count=80,
)


@router.get("", response_model=SettingsResponse)
async def get_settings(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """获取设置（API Key 只返回是否已配置）"""
    return SettingsResponse.from_values(await SettingsStore(db).get_all())


@router.put("", response_model=SettingsResponse)
async def update_settings(
    settings_in: SettingsUpdate,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """部分更新设置"""
    store = SettingsStore(db)
    updates = settings_in.model_dump(exclude_none=True)

    # 空值或占位值表示不修改 API Key
    api_key = updates.get("ai_api_key")
    if api_key is not None and (not api_key.strip() or api_key == SECRET_SENTINEL):
        updates.pop("ai_api_key")

    async with activity.track(ActivityAction.SETTINGS_UPDATE, "settings") as op:
        if "default_category" in updates:
            result = await db.execute(
                select(Category.id).where(
                    Category.name == updates["default_category"],
                    Category.is_active.is_(True),
                )
            )
            if result.scalar_one_or_none() is None:
                raise ValidationError(f"分类不存在: {updates['default_category']}")

        await store.set_many(updates)
        op.add_details(keys=sorted(updates.keys()))

    return SettingsResponse.from_values(await store.get_all())


@router.post("/ai/test", response_model=AITestResponse)
async def test_ai(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """使用当前配置测试 AI 分析"""
    store = SettingsStore(db)
    values = await store.get_all()
    config = AIConfig.from_settings(values)
    if not config.api_key:
        return AITestResponse(success=False, connected=False, message="未配置 AI API Key")

    analyzer = AIAnalyzer(
        config,
        prompt_template=values.get("ai_prompt_template"),
        categories=await prompt_categories(db, store),
        user_instructions=values.get("ai_user_instructions"),
    )
    connected = await analyzer.test_connection()
    try:
        result = await analyzer.analyze(SAMPLE_CONTENT)
    except AIAnalysisError as e:
        return AITestResponse(success=False, connected=connected, message=str(e))

    return AITestResponse(
        success=True,
        connected=connected,
        message="AI 分析测试成功",
        analysis=result.model_dump(),
    )
