# backend/core/security.py
import re
import time
import logging
from collections import defaultdict, deque
from typing import Any, Deque, Dict

from fastapi import Request

logger = logging.getLogger(__name__)

SCRIPT_TAG_PATTERN = re.compile(r"<script\b[^<]*(?:(?!</script>)<[^<]*)*</script>", re.IGNORECASE)
JAVASCRIPT_URI_PATTERN = re.compile(r"javascript:", re.IGNORECASE)
EVENT_HANDLER_PATTERN = re.compile(r"on\w+=", re.IGNORECASE)

SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "X-XSS-Protection": "1; mode=block",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}


# ===== INPUT SANITIZATION =====

def sanitize_string(value: str) -> str:
    """Strip script blocks, javascript: URIs and inline event handlers"""
    value = SCRIPT_TAG_PATTERN.sub("", value)
    value = JAVASCRIPT_URI_PATTERN.sub("", value)
    value = EVENT_HANDLER_PATTERN.sub("", value)
    return value.strip()


def sanitize_input(obj: Any) -> Any:
    """Recursively sanitize every string inside a request payload"""
    if isinstance(obj, str):
        return sanitize_string(obj)
    if isinstance(obj, dict):
        return {key: sanitize_input(value) for key, value in obj.items()}
    if isinstance(obj, list):
        return [sanitize_input(item) for item in obj]
    return obj


# ===== REQUEST ATTRIBUTION =====

def get_client_ip(request: Request) -> str:
    """Get client IP address"""
    forwarded = request.headers.get("X-Forwarded-For")
    if forwarded:
        return forwarded.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


def get_user_agent(request: Request) -> str:
    return request.headers.get("user-agent", "unknown")


# ===== RATE LIMITING =====

class RateLimiter:
    """Sliding-window in-memory rate limiter keyed by client address"""

    def __init__(self, name: str, max_requests: int, window_seconds: int):
        self.name = name
        self.max_requests = max_requests
        self.window = window_seconds
        self.requests: Dict[str, Deque[float]] = defaultdict(deque)
        self._last_sweep = 0.0

    def _clean_old_entries(self, timestamps: Deque[float], now: float):
        while timestamps and now - timestamps[0] >= self.window:
            timestamps.popleft()

    def _sweep_idle(self, now: float):
        """Drop addresses with no requests left in the window, at most once per window"""
        if now - self._last_sweep < self.window:
            return
        for identifier in list(self.requests):
            timestamps = self.requests[identifier]
            self._clean_old_entries(timestamps, now)
            if not timestamps:
                del self.requests[identifier]
        self._last_sweep = now

    def check(self, identifier: str) -> Dict[str, Any]:
        """Record a request for identifier and report whether it is allowed"""
        now = time.time()
        self._sweep_idle(now)
        timestamps = self.requests[identifier]
        self._clean_old_entries(timestamps, now)

        if len(timestamps) >= self.max_requests:
            retry_after = int(self.window - (now - timestamps[0])) + 1
            logger.warning(f"Rate limit '{self.name}' exceeded for {identifier}")
            return {
                "allowed": False,
                "current": len(timestamps),
                "limit": self.max_requests,
                "retry_after": retry_after,
            }

        timestamps.append(now)
        return {
            "allowed": True,
            "current": len(timestamps),
            "limit": self.max_requests,
            "remaining": self.max_requests - len(timestamps),
        }

    def reset(self):
        self.requests.clear()
