"""管理员认证路由"""
from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func
from sqlalchemy.exc import IntegrityError
import logging

from ...config import settings
from ...database import get_db
from ...errors import AuthenticationError, ConflictError, PermissionDeniedError
from ...models.activity_log import ActivityAction, ActivityStatus
from ...models.setting import Setting
from ...models.user import User
from ...schemas import AdminInit, AdminLogin, Token, Identity
from ...services.activity import Actor, ActivityLogger
from ...utils.clock import utcnow
from ...utils.security import hash_password, verify_password, create_access_token
from ..deps import AuthContext, require_actor, get_client_ip

logger = logging.getLogger(__name__)

router = APIRouter()

ADMIN_INIT_SETTING_KEY = "admin_initialized"


def _request_actor(request: Request, user_id=None, username=None) -> Actor:
    return Actor(
        type="user",
        id=user_id,
        name=username,
        ip=get_client_ip(request),
        user_agent=request.headers.get("user-agent"),
    )


@router.post("/init", response_model=Identity, status_code=status.HTTP_201_CREATED)
async def init_admin(admin_in: AdminInit, request: Request, db: AsyncSession = Depends(get_db)):
    """创建管理员账号（只能执行一次）"""
    result = await db.execute(select(func.count(User.id)))
    if result.scalar_one() > 0:
        raise ConflictError("管理员已初始化")

    activity = ActivityLogger(db, _request_actor(request, username=admin_in.username))
    async with activity.track(ActivityAction.ADMIN_INIT, "users") as op:
        # 占位设置行的主键保证并发初始化时只有一方成功
        now = utcnow()
        try:
            db.add(Setting(
                key=ADMIN_INIT_SETTING_KEY,
                value=now.isoformat(),
                type="string",
                description="管理员初始化时间",
                created_at=now,
                updated_at=now,
            ))
            await db.flush()
        except IntegrityError:
            raise ConflictError("管理员已初始化")

        user = User(
            username=admin_in.username,
            password_hash=hash_password(admin_in.password),
            role="admin",
        )
        db.add(user)
        await db.flush()
        op.set_resource(user.id)

    logger.info(f"👤 管理员已创建: {user.username}")
    return Identity(type="user", id=user.id, name=user.username, is_admin=True)


async def _reject_login(db: AsyncSession, request: Request, username: str, user, reason: str) -> None:
    """记录失败的登录并提交"""
    activity = ActivityLogger(db, _request_actor(request, user.id if user else None, username))
    await activity.log(
        ActivityAction.LOGIN_FAILED,
        resource="users",
        resource_id=user.id if user else None,
        status=ActivityStatus.FAILED,
        error_message=reason,
    )
    await db.commit()


@router.post("/login", response_model=Token)
async def login(admin_in: AdminLogin, request: Request, db: AsyncSession = Depends(get_db)):
    """管理员登录"""
    result = await db.execute(select(User).where(User.username == admin_in.username))
    user = result.scalar_one_or_none()

    if not user or not verify_password(admin_in.password, user.password_hash):
        if user:
            user.login_attempts = (user.login_attempts or 0) + 1
        await _reject_login(db, request, admin_in.username, user, "用户名或密码错误")
        raise AuthenticationError("用户名或密码错误")

    if user.status != "active":
        await _reject_login(db, request, admin_in.username, user, "用户已被禁用")
        raise PermissionDeniedError("用户已被禁用")

    user.last_login_at = utcnow()
    user.last_login_ip = get_client_ip(request)
    user.login_attempts = 0

    activity = ActivityLogger(db, _request_actor(request, user.id, user.username))
    await activity.log(ActivityAction.LOGIN_SUCCESS, resource="users", resource_id=user.id)
    await db.commit()

    return Token(
        access_token=create_access_token(user.id, user.username),
        expires_in=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60,
    )


@router.get("/verify", response_model=Identity)
async def verify(auth: AuthContext = Depends(require_actor)):
    """校验当前凭证"""
    return Identity(
        type=auth.actor.type,
        id=auth.actor.id,
        name=auth.actor.name,
        is_admin=auth.is_admin,
    )
