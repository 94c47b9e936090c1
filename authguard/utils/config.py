"""
Configuration management
"""
import os
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, ValidationError

from ..exceptions import ConfigurationError
from .urls import URLs


# ============================================
# CONFIGURATION DEFAULTS
# ============================================

class ConfigDefaults:
    """Default configuration values as constants"""

    # Redis / counter store
    REDIS_KEY_PREFIX = "authguard"
    REDIS_OPERATION_TIMEOUT_SECONDS = 0.1

    # Event database
    DATABASE_OPERATION_TIMEOUT_SECONDS = 0.5

    # Lockout policy
    LOCKOUT_MAX_FAILED_ATTEMPTS = 5
    LOCKOUT_ATTEMPT_WINDOW_MINUTES = 15
    LOCKOUT_BASE_MINUTES = 30
    LOCKOUT_MAX_MINUTES = 24 * 60
    LOCKOUT_BACKOFF_MULTIPLIER = 2

    # Monitoring
    MONITORING_INTERVAL_MINUTES = 5
    MONITORING_DETECTION_WINDOW_MINUTES = 60
    MONITORING_MAX_ACTIVE_ALERTS = 1000
    MONITORING_EVENT_RETENTION_DAYS = 90
    MONITORING_SOURCE_NAME = "Security System"

    # Logging
    LOGGING_LEVEL_INFO = "INFO"

    # Server
    SERVER_HOST_DEFAULT = "0.0.0.0"
    SERVER_PORT_DEFAULT = 8000

    # Config file
    CONFIG_PATH_DEFAULT = "config/config.yaml"


# ============================================
# CONFIGURATION MODELS
# ============================================

class RedisConfig(BaseModel):
    """Counter store backend configuration"""
    url: Optional[str] = None  # None selects the in-process backend
    key_prefix: str = ConfigDefaults.REDIS_KEY_PREFIX
    operation_timeout_seconds: float = ConfigDefaults.REDIS_OPERATION_TIMEOUT_SECONDS


class DatabaseConfig(BaseModel):
    """Security event database configuration"""
    url: str = Field(default_factory=lambda: URLs.DATABASE)
    echo: bool = False
    operation_timeout_seconds: float = ConfigDefaults.DATABASE_OPERATION_TIMEOUT_SECONDS


class LockoutConfig(BaseModel):
    """Account lockout policy"""
    max_failed_attempts: int = ConfigDefaults.LOCKOUT_MAX_FAILED_ATTEMPTS
    attempt_window_minutes: int = ConfigDefaults.LOCKOUT_ATTEMPT_WINDOW_MINUTES
    base_lockout_minutes: int = ConfigDefaults.LOCKOUT_BASE_MINUTES
    max_lockout_minutes: int = ConfigDefaults.LOCKOUT_MAX_MINUTES
    backoff_multiplier: float = ConfigDefaults.LOCKOUT_BACKOFF_MULTIPLIER


class RateLimitRule(BaseModel):
    """A fixed-window limit for one action"""
    limit: int
    window_seconds: int


def default_rate_limit_rules() -> Dict[str, RateLimitRule]:
    return {
        "login": RateLimitRule(limit=5, window_seconds=15 * 60),
        "registration": RateLimitRule(limit=3, window_seconds=60 * 60),
        "password_reset": RateLimitRule(limit=3, window_seconds=60 * 60),
        "email_verification": RateLimitRule(limit=5, window_seconds=60 * 60),
        "password_change": RateLimitRule(limit=10, window_seconds=60 * 60),
        "auth_api": RateLimitRule(limit=50, window_seconds=15 * 60),
    }


class RateLimitConfig(BaseModel):
    """Named rate limit rules keyed by action"""
    rules: Dict[str, RateLimitRule] = Field(default_factory=default_rate_limit_rules)


class MonitoringConfig(BaseModel):
    """Suspicious activity monitoring and alerting"""
    interval_minutes: int = ConfigDefaults.MONITORING_INTERVAL_MINUTES
    detection_window_minutes: int = ConfigDefaults.MONITORING_DETECTION_WINDOW_MINUTES
    admin_emails: List[str] = Field(default_factory=list)
    max_active_alerts: int = ConfigDefaults.MONITORING_MAX_ACTIVE_ALERTS
    event_retention_days: int = ConfigDefaults.MONITORING_EVENT_RETENTION_DAYS
    source_name: str = ConfigDefaults.MONITORING_SOURCE_NAME
    autostart: bool = True
    webhook_url: Optional[str] = None  # None logs notifications only


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = ConfigDefaults.LOGGING_LEVEL_INFO
    file: Optional[str] = None


class ServerConfig(BaseModel):
    """Server configuration"""
    host: str = ConfigDefaults.SERVER_HOST_DEFAULT
    port: int = ConfigDefaults.SERVER_PORT_DEFAULT
    admin_api_key: Optional[str] = None  # required in X-API-Key when set


class Config(BaseModel):
    """Main configuration"""
    redis: RedisConfig = Field(default_factory=RedisConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    lockout: LockoutConfig = Field(default_factory=LockoutConfig)
    rate_limits: RateLimitConfig = Field(default_factory=RateLimitConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


def load_config(config_path: str = ConfigDefaults.CONFIG_PATH_DEFAULT) -> Config:
    """
    Load configuration from YAML file and environment variables.

    A missing file is not an error: the defaults apply, with the admin
    recipient list taken from SECURITY_ADMIN_EMAILS.
    """
    load_dotenv()

    config_dict: Dict[str, Any] = {}
    path = Path(config_path)
    if path.exists():
        with open(path, 'r') as f:
            config_dict = yaml.safe_load(f) or {}

    config_dict = _replace_env_vars(config_dict)

    try:
        config = Config(**config_dict)
    except ValidationError as e:
        raise ConfigurationError(f"Invalid configuration in {config_path}: {e}") from e

    if not config.monitoring.admin_emails:
        config.monitoring.admin_emails = get_admin_emails()
    if config.redis.url is None and os.getenv("REDIS_URL"):
        config.redis.url = URLs.REDIS

    return config


def get_admin_emails() -> List[str]:
    """Admin alert recipients from SECURITY_ADMIN_EMAILS (comma separated)"""
    raw = os.getenv("SECURITY_ADMIN_EMAILS", "")
    return [email.strip() for email in raw.split(",") if email.strip()]


def _replace_env_vars(obj: Any) -> Any:
    """
    Recursively replace ${VAR} placeholders with environment variables.
    """
    if isinstance(obj, dict):
        return {k: _replace_env_vars(v) for k, v in obj.items()}
    elif isinstance(obj, list):
        return [_replace_env_vars(item) for item in obj]
    elif isinstance(obj, str) and obj.startswith("${") and obj.endswith("}"):
        var_name = obj[2:-1]
        env_value = os.getenv(var_name)
        if env_value:
            return env_value
        if var_name == "REDIS_URL":
            return None
        if var_name == "DATABASE_URL":
            return URLs.DATABASE
        return obj
    return obj
