"""API Token 相关 Schema"""
from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional

from ..models.api_token import ApiToken
from ..utils.security import mask_token


class TokenCreate(BaseModel):
    """创建 Token"""
    name: Optional[str] = Field(None, max_length=100)


class TokenResponse(BaseModel):
    """Token 列表项（脱敏）"""
    id: int
    name: Optional[str] = None
    token: str
    status: str
    usage_count: int
    created_at: datetime
    last_used_at: Optional[datetime] = None
    last_used_ip: Optional[str] = None
    revoked_at: Optional[datetime] = None

    @classmethod
    def from_token(cls, token: ApiToken, reveal: bool = False) -> "TokenResponse":
        return cls(
            id=token.id,
            name=token.name,
            token=token.token if reveal else mask_token(token.token),
            status=token.status,
            usage_count=token.usage_count or 0,
            created_at=token.created_at,
            last_used_at=token.last_used_at,
            last_used_ip=token.last_used_ip,
            revoked_at=token.revoked_at,
        )
