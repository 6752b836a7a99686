"""
BadgeFolio Configuration
Environment-driven settings shared by every router
"""

import os

ENVIRONMENT = os.getenv("ENVIRONMENT", "development")


def require_env(key: str, default: str = None) -> str:
    """Get environment variable, failing fast in production when it is missing"""
    value = os.getenv(key)
    if value:
        return value
    if ENVIRONMENT == "production":
        raise RuntimeError(f"FATAL: Missing required environment variable: {key}")
    return default


# MongoDB
MONGO_URL = require_env("MONGO_URL", "mongodb://localhost:27017")
DATABASE_NAME = os.getenv("DATABASE_NAME", "badgefolio")

# Session tokens
JWT_SECRET = require_env("JWT_SECRET", "dev_secret_change_me")
JWT_ALGORITHM = "HS256"
ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", 60 * 24))

# The super admin is an email address, not a role value
SUPER_ADMIN_EMAIL = os.getenv("SUPER_ADMIN_EMAIL", "superadmin@badgefolio.app").strip().lower()
SUPER_ADMIN_PASSWORD = os.getenv("SUPER_ADMIN_PASSWORD")

# Invitations
APP_BASE_URL = os.getenv("APP_BASE_URL", "http://localhost:3000")
INVITATION_TTL_HOURS = int(os.getenv("INVITATION_TTL_HOURS", 48))
MIN_PASSWORD_LENGTH = 8

# Categories
DEFAULT_CATEGORY_COLOR = "purple"
AUTO_CATEGORY_COLOR = "#9333EA"

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")


def normalize_email(email: str) -> str:
    if not email:
        return ""
    return email.strip().lower()


def is_super_admin_email(email: str) -> bool:
    """Case-insensitive match against the configured super admin address"""
    return bool(email) and normalize_email(email) == SUPER_ADMIN_EMAIL
