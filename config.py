"""
Runtime configuration, read from the environment.

Values are looked up on each call so a changed environment (tests, reloads)
takes effect without re-importing.
"""
import os
from typing import List


def jwt_secret() -> str:
    secret = os.getenv("JWT_SECRET")
    if not secret:
        raise RuntimeError("JWT_SECRET is not configured")
    return secret


def token_ttl_hours() -> int:
    return int(os.getenv("TOKEN_TTL_HOURS", 24))


def delivery_fee() -> float:
    return float(os.getenv("DELIVERY_FEE", 10))


def cors_origins() -> List[str]:
    raw = os.getenv("CORS_ORIGINS", "http://localhost:5173")
    return [o.strip() for o in raw.split(",") if o.strip()]


def cookie_secure() -> bool:
    return os.getenv("COOKIE_SECURE", "false").lower() in ("1", "true", "yes")


def log_reset_tokens() -> bool:
    return os.getenv("LOG_RESET_TOKENS", "false").lower() in ("1", "true", "yes")
