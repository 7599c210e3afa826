"""设置存储"""
import pytest
from pydantic import SecretStr
from sqlalchemy import select, func, update

from magpie.models.setting import Setting
from magpie.services.settings_store import (
    DEFAULT_SETTINGS,
    SettingType,
    SettingsStore,
    decode_value,
    encode_value,
)


def test_encode_decode_numbers():
    assert encode_value(20, SettingType.NUMBER) == "20"
    assert encode_value(0.5, SettingType.NUMBER) == "0.5"
    assert decode_value("20", "number") == 20
    assert decode_value("0.7", "number") == 0.7


def test_decode_booleans_and_json():
    assert decode_value("true", "boolean") is True
    assert decode_value("0", "boolean") is False
    assert decode_value('["a", "b"]', "json") == ["a", "b"]


@pytest.mark.parametrize("raw,type_", [
    ("abc", "number"),
    ("", "number"),
    ("maybe", "boolean"),
    ("{not json", "json"),
    ("x", "unknown"),
])
def test_decode_rejects_malformed_values(raw, type_):
    with pytest.raises(ValueError):
        decode_value(raw, type_)


async def test_initialize_is_idempotent(db):
    store = SettingsStore(db)
    # db 夹具已经初始化过一次
    assert await store.initialize() == 0

    result = await db.execute(select(func.count()).select_from(Setting))
    # 默认分类写入时还会更新 categories，不会新增行
    assert result.scalar() == len(DEFAULT_SETTINGS)


async def test_initialize_keeps_existing_values(db):
    store = SettingsStore(db)
    await store.set("site_title", "My Links")
    await db.commit()

    await store.initialize()
    assert await store.get("site_title") == "My Links"


async def test_get_returns_typed_values(db):
    store = SettingsStore(db)
    assert await store.get("items_per_page") == 20
    assert await store.get("ai_temperature") == 0.7
    assert isinstance(await store.get("categories"), list)


async def test_malformed_row_falls_back_to_default(db):
    await db.execute(
        update(Setting)
        .where(Setting.key == "items_per_page")
        .values(value="not-a-number")
    )
    await db.commit()

    store = SettingsStore(db)
    assert await store.get("items_per_page") == 20
    values = await store.get_all()
    assert values["items_per_page"] == 20


async def test_unknown_key_returns_none(db):
    assert await SettingsStore(db).get("no_such_key") is None


async def test_secret_is_wrapped(db):
    store = SettingsStore(db)
    await store.set("ai_api_key", "sk-secret")
    await db.commit()

    value = await store.get("ai_api_key")
    assert isinstance(value, SecretStr)
    assert value.get_secret_value() == "sk-secret"
    assert "sk-secret" not in repr(value)


async def test_set_inserts_unknown_key_with_inferred_type(db):
    store = SettingsStore(db)
    await store.set("feature_flag", True)
    await db.commit()

    row = await db.get(Setting, "feature_flag")
    assert row.type == "boolean"
    assert await store.get("feature_flag") is True
