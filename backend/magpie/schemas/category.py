"""分类相关 Schema"""
from pydantic import BaseModel, ConfigDict, Field
from datetime import datetime
from typing import List, Optional


class CategoryCreate(BaseModel):
    """创建分类"""
    name: str = Field(..., min_length=1, max_length=50)
    slug: Optional[str] = Field(None, min_length=1, max_length=50, pattern=r"^[a-z0-9-]+$")
    icon: str = Field("folder", min_length=1, max_length=50)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = Field(None, max_length=200)
    display_order: Optional[int] = Field(None, ge=0)
    is_active: bool = True


class CategoryUpdate(BaseModel):
    """更新分类"""
    name: Optional[str] = Field(None, min_length=1, max_length=50)
    slug: Optional[str] = Field(None, min_length=1, max_length=50, pattern=r"^[a-z0-9-]+$")
    icon: Optional[str] = Field(None, min_length=1, max_length=50)
    color: Optional[str] = Field(None, pattern=r"^#[0-9A-Fa-f]{6}$")
    description: Optional[str] = Field(None, max_length=200)
    display_order: Optional[int] = Field(None, ge=0)
    is_active: Optional[bool] = None


class CategoryReorder(BaseModel):
    """分类排序"""
    category_ids: List[int] = Field(..., min_length=1)


class CategoryResponse(BaseModel):
    """分类响应"""
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    slug: Optional[str] = None
    icon: str
    color: Optional[str] = None
    description: Optional[str] = None
    display_order: int
    is_active: bool
    created_at: datetime
    updated_at: datetime
