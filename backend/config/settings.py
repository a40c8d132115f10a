"""
Configuration Management for Dockpanel
Centralizes all environment-based configuration and logging setup
"""

import os
import logging
from dataclasses import dataclass
from logging.handlers import RotatingFileHandler
from typing import List, Optional

# Streaming relays drop records instead of queueing once this many bytes
# are waiting to be sent to a single client.
DEFAULT_BACKPRESSURE_BYTES = 1_000_000

DEFAULT_DOCKER_SOCKET = '/var/run/docker.sock'

# Per-client request budget for the HTTP API (WebSockets are not counted)
DEFAULT_RATE_LIMIT_MAX = 100
DEFAULT_RATE_LIMIT_WINDOW = 60

ALLOWED_LOG_LEVELS = ['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']


class HealthCheckFilter(logging.Filter):
    """Filter out health check and routine polling requests to reduce log noise"""
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()

        # For uvicorn access logs, the message format is:
        # 'IP:PORT - "METHOD /path HTTP/1.1" STATUS'
        if '200 OK' in message or '200' in str(getattr(record, 'args', '')):
            # Health checks
            if '/api/health' in message:
                return False
            # Dashboard polling of system info and disk usage
            if '/api/system/info' in message or '/api/system/df' in message:
                return False
            # Prometheus scrapes
            if '"GET /metrics ' in message:
                return False
        return True


def setup_logging(log_level_str: Optional[str] = None, log_dir: Optional[str] = None):
    """Configure application logging with optional rotation to disk"""
    root_logger = logging.getLogger()

    # Close and clear any existing handlers to ensure our logging configuration
    # is used and prevent file descriptor leaks
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    if log_level_str is None:
        log_level_str = os.getenv('DOCKPANEL_LOG_LEVEL', 'INFO')
    log_level_str = log_level_str.upper()
    if log_level_str not in ALLOWED_LOG_LEVELS:
        print(f"WARNING: Invalid DOCKPANEL_LOG_LEVEL '{log_level_str}'. Using INFO. Valid values: {ALLOWED_LOG_LEVELS}")
        log_level_str = 'INFO'

    log_level = getattr(logging, log_level_str)
    root_logger.setLevel(log_level)

    console_handler = logging.StreamHandler()
    console_handler.setLevel(log_level)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)
    root_logger.addHandler(console_handler)

    if log_dir is None:
        log_dir = os.getenv('DOCKPANEL_LOG_DIR') or None
    if log_dir:
        os.makedirs(log_dir, mode=0o700, exist_ok=True)

        # Max 10MB per file, keep 14 backups
        file_handler = RotatingFileHandler(
            os.path.join(log_dir, 'dockpanel.log'),
            maxBytes=10*1024*1024,
            backupCount=14,
            encoding='utf-8'
        )
        file_handler.setLevel(log_level)
        file_handler.setFormatter(console_formatter)
        root_logger.addHandler(file_handler)

    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(HealthCheckFilter())

    # The Docker SDK and its HTTP stack log every request at DEBUG
    logging.getLogger("docker").setLevel(logging.WARNING)
    logging.getLogger("urllib3").setLevel(logging.WARNING)


def get_cors_origins() -> Optional[List[str]]:
    """
    Get CORS origins from environment.

    Returns:
        - List of specific origins if DOCKPANEL_CORS_ORIGINS is set
        - None to fall back to the local development origin regex
    """
    custom_origins = os.getenv('DOCKPANEL_CORS_ORIGINS')
    if custom_origins:
        origins = [origin.strip() for origin in custom_origins.split(',') if origin.strip()]
        return origins or None
    return None


def _safe_int(env_var: str, default: int, min_val: int = None, max_val: int = None) -> int:
    """
    Safely parse an integer from environment variable with validation.

    Args:
        env_var: Environment variable name
        default: Default value if not set
        min_val: Minimum allowed value (inclusive)
        max_val: Maximum allowed value (inclusive)

    Returns:
        Parsed and validated integer

    Raises:
        ValueError: If value is not a valid integer or out of range
    """
    value_str = os.getenv(env_var)
    if value_str is None:
        return default

    try:
        value = int(value_str)
    except ValueError:
        raise ValueError(
            f"{env_var} must be a valid integer, got: '{value_str}'"
        )

    if min_val is not None and value < min_val:
        raise ValueError(
            f"{env_var} must be at least {min_val}, got: {value}"
        )

    if max_val is not None and value > max_val:
        raise ValueError(
            f"{env_var} must be at most {max_val}, got: {value}"
        )

    return value


def _safe_bool(env_var: str, default: bool) -> bool:
    """
    Parse a boolean environment variable.

    Accepts true/false, 1/0, yes/no and on/off (case-insensitive).

    Raises:
        ValueError: If the value is not a recognised boolean
    """
    value_str = os.getenv(env_var)
    if value_str is None or value_str.strip() == '':
        return default

    normalized = value_str.strip().lower()
    if normalized in ('true', '1', 'yes', 'on'):
        return True
    if normalized in ('false', '0', 'no', 'off'):
        return False
    raise ValueError(f"{env_var} must be a boolean (true/false), got: '{value_str}'")


@dataclass(frozen=True)
class AppConfig:
    """
    Main application configuration.

    Built once at process start and passed to the app factory. Instances are
    immutable, so request handlers and relay sessions can read them without
    coordination.
    """

    host: str = '0.0.0.0'
    port: int = 3001
    log_level: str = 'INFO'
    log_dir: Optional[str] = None
    docker_socket: str = DEFAULT_DOCKER_SOCKET
    safe_mode: bool = False
    backpressure_bytes: int = DEFAULT_BACKPRESSURE_BYTES
    cors_origins: Optional[List[str]] = None
    rate_limit_max: int = DEFAULT_RATE_LIMIT_MAX
    rate_limit_window: int = DEFAULT_RATE_LIMIT_WINDOW

    @classmethod
    def from_env(cls) -> 'AppConfig':
        """Read configuration from DOCKPANEL_* environment variables."""
        return cls(
            host=os.getenv('DOCKPANEL_HOST', '0.0.0.0'),
            port=_safe_int('DOCKPANEL_PORT', 3001, min_val=1, max_val=65535),
            log_level=os.getenv('DOCKPANEL_LOG_LEVEL', 'INFO').upper(),
            log_dir=os.getenv('DOCKPANEL_LOG_DIR') or None,
            docker_socket=os.getenv('DOCKPANEL_DOCKER_SOCKET', DEFAULT_DOCKER_SOCKET),
            safe_mode=_safe_bool('DOCKPANEL_SAFE_MODE', False),
            backpressure_bytes=_safe_int(
                'DOCKPANEL_STREAM_BACKPRESSURE_BYTES',
                DEFAULT_BACKPRESSURE_BYTES,
                min_val=1,
            ),
            cors_origins=get_cors_origins(),
            # 0 disables rate limiting
            rate_limit_max=_safe_int('DOCKPANEL_RATE_LIMIT_MAX', DEFAULT_RATE_LIMIT_MAX, min_val=0),
            rate_limit_window=_safe_int('DOCKPANEL_RATE_LIMIT_WINDOW', DEFAULT_RATE_LIMIT_WINDOW, min_val=1),
        )

    def validate(self):
        """
        Validate configuration.

        Integer and boolean fields are already validated while loading from
        the environment; this covers values passed in directly.
        """
        if self.log_level not in ALLOWED_LOG_LEVELS:
            raise ValueError(
                f"Invalid DOCKPANEL_LOG_LEVEL: '{self.log_level}'. "
                f"Must be one of {ALLOWED_LOG_LEVELS}"
            )

        if not 1 <= self.port <= 65535:
            raise ValueError(f"DOCKPANEL_PORT must be between 1 and 65535, got: {self.port}")

        if self.backpressure_bytes < 1:
            raise ValueError(
                f"DOCKPANEL_STREAM_BACKPRESSURE_BYTES must be positive, got: {self.backpressure_bytes}"
            )

        if not self.docker_socket:
            raise ValueError("DOCKPANEL_DOCKER_SOCKET must not be empty")

        if self.rate_limit_max < 0:
            raise ValueError(f"DOCKPANEL_RATE_LIMIT_MAX must not be negative, got: {self.rate_limit_max}")

        if self.rate_limit_window < 1:
            raise ValueError(
                f"DOCKPANEL_RATE_LIMIT_WINDOW must be at least 1 second, got: {self.rate_limit_window}"
            )

        return True
