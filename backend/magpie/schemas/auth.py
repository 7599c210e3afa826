"""管理员认证 Schema"""
from pydantic import BaseModel, Field
from typing import Optional


class AdminInit(BaseModel):
    """初始化管理员"""
    username: str = Field("admin", min_length=3, max_length=50)
    password: str = Field(..., min_length=8, max_length=128)


class AdminLogin(BaseModel):
    """管理员登录"""
    username: str = Field(..., min_length=1, max_length=50)
    password: str = Field(..., min_length=1, max_length=128)


class Token(BaseModel):
    """登录令牌"""
    access_token: str
    token_type: str = "bearer"
    expires_in: int


class Identity(BaseModel):
    """当前认证身份"""
    type: str  # token|user
    id: Optional[int] = None
    name: Optional[str] = None
    is_admin: bool = False
