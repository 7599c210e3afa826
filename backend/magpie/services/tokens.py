"""
API Token 管理

Token 明文只在创建时返回一次，列表中一律脱敏展示。
撤销不可逆：撤销后的 token 即使仍在库中也不能再通过验证。
"""

from typing import List, Optional
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, update, func
from sqlalchemy.exc import IntegrityError
import logging

from ..errors import InvalidStateError, NotFoundError
from ..models.activity_log import ActivityAction
from ..models.api_token import ApiToken, TokenStatus
from ..models.setting import Setting
from ..config import settings
from ..utils.clock import utcnow
from ..utils.security import generate_api_token, is_api_token_format
from .activity import ActivityLogger

logger = logging.getLogger(__name__)

RESOURCE = "tokens"

# 首次启动创建 token 的占位设置，主键唯一性保证只有一个进程能创建
BOOTSTRAP_SETTING_KEY = "api_token_bootstrapped"


class TokenAuthority:
    """Token 签发、验证与撤销"""

    def __init__(self, db: AsyncSession, activity: Optional[ActivityLogger] = None):
        self.db = db
        self.activity = activity or ActivityLogger(db)

    async def list_tokens(self) -> List[ApiToken]:
        result = await self.db.execute(select(ApiToken).order_by(ApiToken.created_at.desc(), ApiToken.id.desc()))
        return list(result.scalars().all())

    async def issue(self, name: Optional[str] = None) -> ApiToken:
        """签发新 token，返回的对象中 token 字段是唯一一次能看到的明文"""
        async with self.activity.track(ActivityAction.TOKEN_CREATE, RESOURCE) as op:
            token = ApiToken(
                token=generate_api_token(),
                name=(name or "").strip() or None,
                prefix=settings.API_TOKEN_PREFIX,
                status=TokenStatus.ACTIVE.value,
            )
            self.db.add(token)
            await self.db.flush()
            op.set_resource(token.id)
            op.add_details(name=token.name)

        logger.info(f"🔑 已创建 API Token #{token.id} ({token.name or '未命名'})")
        return token

    async def verify(self, presented: str, ip: Optional[str] = None) -> Optional[ApiToken]:
        """
        校验 token

        Returns:
            有效时返回 token 记录（并更新最近使用时间和 IP），否则返回 None
        """
        if not is_api_token_format(presented):
            return None

        result = await self.db.execute(
            select(ApiToken).where(
                ApiToken.token == presented,
                ApiToken.status == TokenStatus.ACTIVE.value,
            )
        )
        token = result.scalar_one_or_none()
        if not token:
            return None

        await self.db.execute(
            update(ApiToken)
            .where(ApiToken.id == token.id)
            .values(
                last_used_at=utcnow(),
                last_used_ip=ip,
                usage_count=ApiToken.usage_count + 1,
            )
            .execution_options(synchronize_session=False)
        )
        await self.db.refresh(token)
        return token

    async def revoke(self, token_id: int) -> ApiToken:
        """撤销 token（不可逆）"""
        async with self.activity.track(ActivityAction.TOKEN_REVOKE, RESOURCE, token_id) as op:
            token = await self.db.get(ApiToken, token_id)
            if not token:
                raise NotFoundError("Token 不存在")

            result = await self.db.execute(
                update(ApiToken)
                .where(ApiToken.id == token_id, ApiToken.status == TokenStatus.ACTIVE.value)
                .values(status=TokenStatus.REVOKED.value, revoked_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                raise InvalidStateError("Token 已被撤销")
            await self.db.refresh(token)
            op.add_details(name=token.name)

        logger.info(f"🔒 已撤销 API Token #{token_id}")
        return token

    # ==================== 首次启动 ====================

    async def _has_tokens(self) -> bool:
        result = await self.db.execute(select(func.count(ApiToken.id)))
        return (result.scalar() or 0) > 0

    async def _claim_bootstrap(self) -> Optional[str]:
        """插入占位设置和 token，同一事务提交；占位行已存在说明别的进程抢先了"""
        now = utcnow()
        try:
            self.db.add(Setting(
                key=BOOTSTRAP_SETTING_KEY,
                value=now.isoformat(),
                type="string",
                description="首个 API Token 的创建时间",
                created_at=now,
                updated_at=now,
            ))
            await self.db.flush()

            token = ApiToken(
                token=generate_api_token(),
                name="Default Token",
                prefix=settings.API_TOKEN_PREFIX,
                status=TokenStatus.ACTIVE.value,
            )
            self.db.add(token)
            await self.db.flush()
            await self.activity.log(
                ActivityAction.TOKEN_CREATE,
                RESOURCE,
                token.id,
                details={"bootstrap": True, "name": token.name},
            )
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.info("首个 API Token 已由其他进程创建")
            return None

        return token.token

    async def bootstrap(self) -> Optional[str]:
        """
        没有任何 token 时创建一个

        Returns:
            新 token 明文（只返回这一次），已存在 token 时返回 None
        """
        if await self._has_tokens():
            return None
        return await self._claim_bootstrap()
