"""
路由依赖

认证方式：Authorization: Bearer <凭证>
- mgp_ 开头：API Token，可以提交、审核、编辑、删除链接
- 其他：管理员 JWT，拥有全部权限
无效或缺失的凭证在任何写入之前被拒绝，不记录资源操作日志。
"""
from dataclasses import dataclass
from typing import Optional
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from ..config import settings
from ..database import get_db
from ..errors import AuthenticationError, PermissionDeniedError
from ..models.user import User
from ..services.activity import Actor, ActivityLogger
from ..services.base import ContentAnalyzer, ContentScraper
from ..services.tokens import TokenAuthority
from ..utils.security import decode_token

security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AuthContext:
    """已认证的请求身份"""
    actor: Actor
    is_admin: bool


def get_client_ip(request: Request) -> Optional[str]:
    """客户端 IP（优先取反向代理头）"""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip.strip()
    return request.client.host if request.client else None


async def get_optional_auth(
    request: Request,
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: AsyncSession = Depends(get_db),
) -> Optional[AuthContext]:
    """解析凭证，没有凭证时返回 None，凭证无效时抛出 AuthenticationError"""
    if credentials is None or not credentials.credentials:
        return None

    value = credentials.credentials.strip()
    ip = get_client_ip(request)
    user_agent = request.headers.get("user-agent")

    if value.startswith(settings.API_TOKEN_PREFIX):
        token = await TokenAuthority(db).verify(value, ip)
        if not token:
            raise AuthenticationError("无效或已撤销的 API Token")
        # 最近使用时间与后续业务事务分开提交
        await db.commit()
        return AuthContext(
            actor=Actor(type="token", id=token.id, name=token.name, ip=ip, user_agent=user_agent),
            is_admin=False,
        )

    payload = decode_token(value)
    if payload is None or payload.get("type") != "access":
        raise AuthenticationError("无效的认证令牌")
    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise AuthenticationError("无效的认证令牌")

    user = await db.get(User, user_id)
    if not user or user.status != "active":
        raise AuthenticationError("用户不存在或已被禁用")

    return AuthContext(
        actor=Actor(type="user", id=user.id, name=user.username, ip=ip, user_agent=user_agent),
        is_admin=user.role == "admin",
    )


async def require_actor(auth: Optional[AuthContext] = Depends(get_optional_auth)) -> AuthContext:
    """API Token 或管理员"""
    if auth is None:
        raise AuthenticationError("缺少认证信息")
    return auth


async def require_admin(auth: Optional[AuthContext] = Depends(get_optional_auth)) -> AuthContext:
    """仅管理员"""
    if auth is None:
        raise AuthenticationError("缺少认证信息")
    if not auth.is_admin:
        raise PermissionDeniedError("需要管理员权限")
    return auth


async def get_activity(
    auth: AuthContext = Depends(require_actor),
    db: AsyncSession = Depends(get_db),
) -> ActivityLogger:
    """带操作者身份的日志记录器"""
    return ActivityLogger(db, auth.actor)


async def get_admin_activity(
    auth: AuthContext = Depends(require_admin),
    db: AsyncSession = Depends(get_db),
) -> ActivityLogger:
    return ActivityLogger(db, auth.actor)


def get_scraper() -> Optional[ContentScraper]:
    """网页抓取器，None 表示按设置创建默认实现"""
    return None


def get_analyzer() -> Optional[ContentAnalyzer]:
    """AI 分析器，None 表示按设置创建默认实现"""
    return None
