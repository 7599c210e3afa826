"""工具函数"""
from .cache import RateLimiter, ingest_limiter
from .clock import utcnow
from .security import (
    hash_password,
    verify_password,
    create_access_token,
    decode_token,
    generate_api_token,
    is_api_token_format,
    mask_token,
)

__all__ = [
    "RateLimiter", "ingest_limiter",
    "utcnow",
    "hash_password", "verify_password", "create_access_token", "decode_token",
    "generate_api_token", "is_api_token_format", "mask_token",
]
