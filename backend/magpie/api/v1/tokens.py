"""API Token 路由"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List

from ...database import get_db
from ...schemas import TokenCreate, TokenResponse
from ...services.activity import ActivityLogger
from ...services.tokens import TokenAuthority
from ..deps import AuthContext, require_admin, get_admin_activity

router = APIRouter()


@router.get("", response_model=List[TokenResponse])
async def list_tokens(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
):
    """Token 列表（脱敏）"""
    tokens = await TokenAuthority(db).list_tokens()
    return [TokenResponse.from_token(token) for token in tokens]


@router.post("", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
async def create_token(
    token_in: TokenCreate,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """创建 Token，明文只在这里返回一次"""
    token = await TokenAuthority(db, activity).issue(token_in.name)
    return TokenResponse.from_token(token, reveal=True)


@router.post("/{token_id}/revoke", response_model=TokenResponse)
async def revoke_token(
    token_id: int,
    activity: ActivityLogger = Depends(get_admin_activity),
    db: AsyncSession = Depends(get_db),
):
    """撤销 Token（不可恢复）"""
    token = await TokenAuthority(db, activity).revoke(token_id)
    return TokenResponse.from_token(token)
