"""分类路由"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ...database import get_db
from ...schemas import CategoryCreate, CategoryUpdate, CategoryReorder, CategoryResponse
from ...services.activity import ActivityLogger
from ...services.categories import CategoryRegistry, PRESET_ICONS
from ...services.settings_store import SettingsStore
from ..deps import get_admin_activity

router = APIRouter()


@router.get("", response_model=List[CategoryResponse])
async def get_categories(db: AsyncSession = Depends(get_db)):
    """启用的分类，按排序值"""
    return await CategoryRegistry(db).list_categories(active_only=True)


@router.get("/icons", response_model=List[str])
async def get_icons():
    """可选图标"""
    return PRESET_ICONS


@router.post("", response_model=CategoryResponse, status_code=status.HTTP_201_CREATED)
async def create_category(
    category_in: CategoryCreate,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """创建分类"""
    return await CategoryRegistry(db, activity).create(category_in)


@router.post("/reorder", response_model=List[CategoryResponse])
async def reorder_categories(
    reorder_in: CategoryReorder,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """调整分类顺序"""
    return await CategoryRegistry(db, activity).reorder(reorder_in.category_ids)


@router.put("/{category_id}", response_model=CategoryResponse)
async def update_category(
    category_id: int,
    category_in: CategoryUpdate,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """更新分类"""
    return await CategoryRegistry(db, activity).update(category_id, category_in)


@router.delete("/{category_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_category(
    category_id: int,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """删除分类（默认分类不可删除）"""
    default_category = await SettingsStore(db).get("default_category")
    await CategoryRegistry(db, activity).delete(category_id, default_category)
