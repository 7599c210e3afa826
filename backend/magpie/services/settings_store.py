"""
系统设置存储

settings 表中的值按 type 编码为字符串，在这里一次性解码为 Python 值，
调用方拿到的永远是解码后的结果。解码失败或行不存在时回退到内置默认值。
"""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from pydantic import SecretStr
import json
import logging

from ..models.setting import Setting
from ..utils.clock import utcnow
from .prompts import DEFAULT_PROMPT_TEMPLATE, DEFAULT_CATEGORIES, FALLBACK_CATEGORY

logger = logging.getLogger(__name__)


class SettingType(str, Enum):
    """设置值类型"""
    STRING = "string"
    NUMBER = "number"
    BOOLEAN = "boolean"
    JSON = "json"


@dataclass(frozen=True)
class SettingDefinition:
    """内置设置项定义"""
    default: Any
    type: SettingType = SettingType.STRING
    description: str = ""
    secret: bool = False


# 读取接口对密钥只返回这个占位值
SECRET_SENTINEL = "***CONFIGURED***"

DEFAULT_SETTINGS: Dict[str, SettingDefinition] = {
    # 站点
    "site_title": SettingDefinition("Magpie", description="站点标题"),
    "site_description": SettingDefinition("收集和分享有趣的链接", description="站点描述"),
    "about_url": SettingDefinition("", description="关于页面链接"),

    # AI
    "ai_api_key": SettingDefinition("", description="AI 服务 API Key", secret=True),
    "ai_base_url": SettingDefinition("https://api.openai.com/v1", description="AI 服务地址（OpenAI 兼容）"),
    "ai_model": SettingDefinition("gpt-3.5-turbo", description="模型名称"),
    "ai_temperature": SettingDefinition(0.7, SettingType.NUMBER, "采样温度"),
    "ai_max_tokens": SettingDefinition(1000, SettingType.NUMBER, "最大输出 token 数"),
    "ai_timeout": SettingDefinition(30, SettingType.NUMBER, "AI 请求超时（秒）"),
    "ai_prompt_template": SettingDefinition(DEFAULT_PROMPT_TEMPLATE, description="分析提示词模板"),
    "ai_user_instructions": SettingDefinition("", description="追加到提示词末尾的补充说明"),

    # 内容
    "default_category": SettingDefinition(FALLBACK_CATEGORY, description="默认分类"),
    "categories": SettingDefinition(list(DEFAULT_CATEGORIES), SettingType.JSON, "分类名称列表"),
    "items_per_page": SettingDefinition(20, SettingType.NUMBER, "每页条数"),
    "max_content_length": SettingDefinition(10000, SettingType.NUMBER, "抓取正文最大长度"),

    # 限制
    "rate_limit_per_minute": SettingDefinition(50, SettingType.NUMBER, "每分钟最多提交链接数"),

    # 系统
    "db_version": SettingDefinition("1.0.0", description="数据库版本"),
}


def encode_value(value: Any, type_: SettingType) -> str:
    """Python 值编码为存储字符串"""
    if isinstance(value, SecretStr):
        value = value.get_secret_value()
    if type_ == SettingType.NUMBER:
        number = float(value)
        return str(int(number)) if number.is_integer() else str(number)
    if type_ == SettingType.BOOLEAN:
        if isinstance(value, str):
            return "true" if value.strip().lower() in ("true", "1") else "false"
        return "true" if value else "false"
    if type_ == SettingType.JSON:
        return value if isinstance(value, str) else json.dumps(value, ensure_ascii=False)
    return "" if value is None else str(value)


def decode_value(raw: Optional[str], type_: str) -> Any:
    """存储字符串解码为 Python 值，无法解码时抛出 ValueError"""
    if type_ == SettingType.NUMBER.value:
        if raw is None or raw.strip() == "":
            raise ValueError("empty number")
        number = float(raw)
        if number != number or number in (float("inf"), float("-inf")):
            raise ValueError(f"invalid number: {raw}")
        return int(number) if number.is_integer() else number
    if type_ == SettingType.BOOLEAN.value:
        text = (raw or "").strip().lower()
        if text in ("true", "1"):
            return True
        if text in ("false", "0", ""):
            return False
        raise ValueError(f"invalid boolean: {raw}")
    if type_ == SettingType.JSON.value:
        return json.loads(raw)
    if type_ == SettingType.STRING.value:
        return raw or ""
    raise ValueError(f"unknown setting type: {type_}")


def _wrap(key: str, value: Any) -> Any:
    definition = DEFAULT_SETTINGS.get(key)
    if definition and definition.secret:
        return SecretStr(value or "")
    return value


def default_for(key: str) -> Any:
    """内置默认值（密钥包装为 SecretStr）"""
    definition = DEFAULT_SETTINGS.get(key)
    if definition is None:
        return None
    default = definition.default
    if isinstance(default, (list, dict)):
        default = json.loads(json.dumps(default))
    return _wrap(key, default)


def type_for(key: str, value: Any = None) -> SettingType:
    """设置项类型：内置项取定义，未知项按值推断"""
    definition = DEFAULT_SETTINGS.get(key)
    if definition:
        return definition.type
    if isinstance(value, bool):
        return SettingType.BOOLEAN
    if isinstance(value, (int, float)):
        return SettingType.NUMBER
    if isinstance(value, (list, dict)):
        return SettingType.JSON
    return SettingType.STRING


class SettingsStore:
    """
    设置读写

    使用示例:
        store = SettingsStore(db)
        page_size = await store.get("items_per_page")
        await store.set("ai_model", "gpt-4o-mini")
    """

    def __init__(self, db: AsyncSession):
        self.db = db

    def _decode_row(self, row: Setting) -> Any:
        try:
            return _wrap(row.key, decode_value(row.value, row.type))
        except (TypeError, ValueError) as e:
            logger.warning(f"⚠️ 设置 {row.key} 解码失败，使用默认值: {e}")
            return default_for(row.key)

    async def get(self, key: str) -> Any:
        """读取单个设置，永不抛出"""
        try:
            result = await self.db.execute(select(Setting).where(Setting.key == key))
            row = result.scalar_one_or_none()
        except SQLAlchemyError as e:
            logger.error(f"读取设置 {key} 失败: {e}")
            return default_for(key)

        if row is None:
            return default_for(key)
        return self._decode_row(row)

    async def get_all(self) -> Dict[str, Any]:
        """默认值表叠加所有已存储的设置"""
        values = {key: default_for(key) for key in DEFAULT_SETTINGS}
        try:
            result = await self.db.execute(select(Setting))
            rows = result.scalars().all()
        except SQLAlchemyError as e:
            logger.error(f"读取全部设置失败: {e}")
            return values

        for row in rows:
            values[row.key] = self._decode_row(row)
        return values

    async def set(
        self,
        key: str,
        value: Any,
        type_: Optional[SettingType] = None,
        description: Optional[str] = None,
    ) -> None:
        """写入设置：先按 key 更新，影响 0 行时插入"""
        type_ = SettingType(type_) if type_ else type_for(key, value)
        encoded = encode_value(value, type_)
        if description is None and key in DEFAULT_SETTINGS:
            description = DEFAULT_SETTINGS[key].description
        now = utcnow()

        result = await self.db.execute(
            update(Setting)
            .where(Setting.key == key)
            .values(value=encoded, type=type_.value, description=description, updated_at=now)
        )
        if result.rowcount == 0:
            self.db.add(Setting(
                key=key,
                value=encoded,
                type=type_.value,
                description=description,
                created_at=now,
                updated_at=now,
            ))
            await self.db.flush()

        logger.debug(f"设置已写入: {key}")

    async def set_many(self, values: Dict[str, Any]) -> None:
        """批量写入"""
        for key, value in values.items():
            await self.set(key, value)

    async def initialize(self) -> int:
        """写入缺失的默认设置，已存在的行保持不变，返回新增条数"""
        result = await self.db.execute(select(Setting.key))
        existing = set(result.scalars().all())

        now = utcnow()
        created = 0
        for key, definition in DEFAULT_SETTINGS.items():
            if key in existing:
                continue
            self.db.add(Setting(
                key=key,
                value=encode_value(definition.default, definition.type),
                type=definition.type.value,
                description=definition.description,
                created_at=now,
                updated_at=now,
            ))
            created += 1

        if created:
            await self.db.flush()
            logger.info(f"⚙️ 已初始化 {created} 项默认设置")
        return created
