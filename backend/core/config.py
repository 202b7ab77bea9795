import os
from typing import Dict, Any, List
from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() == "true"


class Settings:
    """Unified application settings"""

    # ===== BASIC APP SETTINGS =====
    ENVIRONMENT: str = os.getenv("ENVIRONMENT", "development")
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    APP_NAME: str = os.getenv("APP_NAME", "Event Registration API")
    APP_VERSION: str = "1.0.0"
    API_PREFIX: str = os.getenv("API_PREFIX", "/api")

    # ===== DATABASE CONFIGURATION =====
    MONGODB_URI: str = os.getenv("MONGODB_URI", "mongodb://localhost:27017")
    MONGODB_DB_NAME: str = os.getenv("MONGODB_DB_NAME", "event_registrations")
    DB_MAX_POOL_SIZE: int = int(os.getenv("DB_MAX_POOL_SIZE", "50"))
    DB_MIN_POOL_SIZE: int = int(os.getenv("DB_MIN_POOL_SIZE", "5"))
    DB_CONNECT_TIMEOUT_MS: int = int(os.getenv("DB_CONNECT_TIMEOUT_MS", "10000"))
    DB_SERVER_SELECTION_TIMEOUT_MS: int = int(os.getenv("DB_SERVER_SELECTION_TIMEOUT_MS", "10000"))

    # ===== CORS =====
    CORS_ORIGIN: str = os.getenv("CORS_ORIGIN", "http://localhost:3000,http://localhost:3001")

    # ===== RATE LIMITING =====
    ENABLE_RATE_LIMITING: bool = _env_bool("ENABLE_RATE_LIMITING", "true")
    RATE_LIMIT_WINDOW_SECONDS: int = int(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "900"))  # 15 minutes
    REGISTRATION_RATE_LIMIT: int = int(os.getenv("REGISTRATION_RATE_LIMIT", "5"))
    RETRIEVAL_RATE_LIMIT: int = int(os.getenv("RETRIEVAL_RATE_LIMIT", "200"))
    GENERAL_RATE_LIMIT: int = int(os.getenv("GENERAL_RATE_LIMIT", "100"))

    # ===== QUERIES =====
    DEFAULT_PAGE_SIZE: int = int(os.getenv("DEFAULT_PAGE_SIZE", "10"))
    MAX_PAGE_SIZE: int = int(os.getenv("MAX_PAGE_SIZE", "100"))
    RECENT_REGISTRATION_DAYS: int = int(os.getenv("RECENT_REGISTRATION_DAYS", "7"))

    # ===== PERFORMANCE & AUDIT =====
    ENABLE_AUDIT_LOGGING: bool = _env_bool("ENABLE_AUDIT_LOGGING", "true")
    SLOW_REQUEST_THRESHOLD_SECONDS: float = float(os.getenv("SLOW_REQUEST_THRESHOLD_SECONDS", "2.0"))

    # ===== DISCOVERY DOCUMENT =====
    CONTACT_EMAIL: str = os.getenv("CONTACT_EMAIL", "registrations@example.org")
    CONTACT_ORGANIZATION: str = os.getenv("CONTACT_ORGANIZATION", "Event Secretariat")

    def __init__(self, **overrides: Any):
        """Initialize and validate settings"""
        for key, value in overrides.items():
            if not hasattr(type(self), key):
                raise AttributeError(f"Unknown setting: {key}")
            setattr(self, key, value)

        self._validate_critical_settings()

    def _validate_critical_settings(self):
        """Validate critical configuration values"""
        errors = []

        if not self.MONGODB_URI.startswith(("mongodb://", "mongodb+srv://")):
            errors.append("MONGODB_URI must start with mongodb:// or mongodb+srv://")

        if self.DEFAULT_PAGE_SIZE < 1 or self.MAX_PAGE_SIZE < 1:
            errors.append("DEFAULT_PAGE_SIZE and MAX_PAGE_SIZE must be positive")
        elif self.DEFAULT_PAGE_SIZE > self.MAX_PAGE_SIZE:
            errors.append("DEFAULT_PAGE_SIZE must not exceed MAX_PAGE_SIZE")

        for name in ("REGISTRATION_RATE_LIMIT", "RETRIEVAL_RATE_LIMIT",
                     "GENERAL_RATE_LIMIT", "RATE_LIMIT_WINDOW_SECONDS"):
            if getattr(self, name) < 1:
                errors.append(f"{name} must be positive")

        if errors:
            error_message = "Configuration validation failed:\n" + "\n".join(f"  ❌ {err}" for err in errors)
            raise ValueError(error_message)

    # ============================================
    # HELPER METHODS
    # ============================================

    def is_production(self) -> bool:
        """Check if running in production environment"""
        return self.ENVIRONMENT.lower() == "production"

    def is_development(self) -> bool:
        """Check if running in development environment"""
        return self.ENVIRONMENT.lower() == "development"

    def get_cors_origins(self) -> List[str]:
        return [origin.strip() for origin in self.CORS_ORIGIN.split(",") if origin.strip()]

    def get_rate_limits(self) -> Dict[str, int]:
        return {
            "registration": self.REGISTRATION_RATE_LIMIT,
            "retrieval": self.RETRIEVAL_RATE_LIMIT,
            "general": self.GENERAL_RATE_LIMIT,
        }

    def to_dict(self) -> Dict[str, Any]:
        """Export configuration as dictionary (excluding sensitive data)"""
        sensitive_keys = {'MONGODB_URI'}

        config_dict = {}
        for key in dir(self):
            if key.isupper() and key not in sensitive_keys:
                config_dict[key] = getattr(self, key)

        return config_dict


# ============================================
# GLOBAL SETTINGS INSTANCE
# ============================================

settings = Settings()


__all__ = [
    'settings',
    'Settings',
]
