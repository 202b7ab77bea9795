from fastapi import Request

from core.config import Settings
from core.exceptions import RateLimitExceeded
from core.registration_store import RegistrationStore
from core.security import get_client_ip

RATE_LIMIT_MESSAGES = {
    "registration": "Too many registration attempts from this IP address. Please try again later.",
    "retrieval": "Too many data requests from this IP address. Please try again later.",
    "general": "Too many requests from this IP address. Please try again later.",
}


def get_store(request: Request) -> RegistrationStore:
    return request.app.state.store


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def enforce_rate_limit(request: Request, kind: str):
    """Count this request against the named limiter; raise when over the cap"""
    settings: Settings = request.app.state.settings
    if not settings.ENABLE_RATE_LIMITING:
        return
    limiter = request.app.state.rate_limiters[kind]
    result = limiter.check(get_client_ip(request))
    if not result["allowed"]:
        raise RateLimitExceeded(RATE_LIMIT_MESSAGES[kind], retry_after=result["retry_after"])


def rate_limit(kind: str):
    """Dependency factory for a per-route rate limit"""
    async def dependency(request: Request):
        enforce_rate_limit(request, kind)
    return dependency
