"""分类管理"""
import pytest

from magpie.errors import ConflictError, NotFoundError, ValidationError
from magpie.schemas import CategoryCreate, CategoryUpdate
from magpie.services.categories import CategoryRegistry, DEFAULT_CATEGORIES, prompt_categories, slugify
from magpie.services.settings_store import SettingsStore


@pytest.fixture
def registry(db, activity):
    return CategoryRegistry(db, activity)


def test_slugify():
    assert slugify("Machine Learning") == "machine-learning"
    assert slugify("C++ / Rust") == "c-rust"
    assert slugify("技术") is None


async def test_defaults_are_seeded_once(db, registry):
    names = [c.name for c in await registry.list_categories()]
    assert names == [item["name"] for item in DEFAULT_CATEGORIES]
    assert await registry.seed_defaults(SettingsStore(db)) == 0


async def test_create_appends_after_last(registry):
    category = await registry.create(CategoryCreate(name="Reading List"))
    assert category.slug == "reading-list"
    assert category.display_order == 100


async def test_duplicate_name_conflicts(registry):
    with pytest.raises(ConflictError):
        await registry.create(CategoryCreate(name="技术"))


async def test_duplicate_display_order_conflicts(registry):
    with pytest.raises(ConflictError):
        await registry.create(CategoryCreate(name="New", display_order=1))


async def test_rename_to_chinese_keeps_slug(registry):
    categories = await registry.list_categories()
    tech = categories[0]
    updated = await registry.update(tech.id, CategoryUpdate(name="科技"))
    assert updated.name == "科技"
    assert updated.slug == "tech"


async def test_default_category_cannot_be_deleted(registry):
    other = [c for c in await registry.list_categories() if c.name == "其他"][0]
    with pytest.raises(ValidationError):
        await registry.delete(other.id, "其他")


async def test_delete_and_missing(registry):
    game = [c for c in await registry.list_categories() if c.name == "游戏"][0]
    await registry.delete(game.id, "其他")
    with pytest.raises(NotFoundError):
        await registry.get(game.id)


async def test_reorder_assigns_sequential_positions(registry):
    categories = await registry.list_categories()
    ids = [c.id for c in categories]
    reordered = await registry.reorder([ids[-1], ids[0]])

    assert [c.id for c in reordered][:2] == [ids[-1], ids[0]]
    assert [c.display_order for c in reordered] == list(range(1, len(ids) + 1))


async def test_reorder_rejects_unknown_ids(registry):
    with pytest.raises(NotFoundError):
        await registry.reorder([12345])


async def test_prompt_categories_use_active_names(db, registry):
    game = [c for c in await registry.list_categories() if c.name == "游戏"][0]
    await registry.update(game.id, CategoryUpdate(is_active=False))

    names = await prompt_categories(db, SettingsStore(db))
    assert "游戏" not in names
    assert names[0] == "技术"
