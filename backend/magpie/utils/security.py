"""安全相关工具"""
from datetime import timedelta
from typing import Optional
from jose import jwt, JWTError
from passlib.context import CryptContext
import re
import secrets

from ..config import settings
from .clock import utcnow

# 密码加密上下文
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# mgp_ + 64 位十六进制
API_TOKEN_PATTERN = re.compile(r"^" + re.escape(settings.API_TOKEN_PREFIX) + r"[0-9a-f]{64}$")


def hash_password(password: str) -> str:
    """哈希密码"""
    return pwd_context.hash(password)


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """验证密码"""
    return pwd_context.verify(plain_password, hashed_password)


def create_access_token(user_id: int, username: str) -> str:
    """创建管理员访问令牌"""
    expire = utcnow() + timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    payload = {
        "sub": str(user_id),
        "username": username,
        "exp": expire,
        "type": "access"
    }
    return jwt.encode(payload, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> Optional[dict]:
    """解码令牌"""
    try:
        payload = jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
        return payload
    except JWTError:
        return None


def generate_api_token() -> str:
    """生成 API Token"""
    return f"{settings.API_TOKEN_PREFIX}{secrets.token_hex(32)}"


def is_api_token_format(value: str) -> bool:
    """格式检查，不合法的直接拒绝，不查库"""
    return bool(value) and API_TOKEN_PATTERN.match(value) is not None


def mask_token(token: str) -> str:
    """列表中展示的脱敏 token：mgp_***abcd"""
    if not token:
        return ""
    return f"{settings.API_TOKEN_PREFIX}***{token[-4:]}"
