"""
Configuration Management for simple-text
Centralizes environment-based application settings and the sync settings file
"""

import os
import logging
import tomllib
from logging.handlers import RotatingFileHandler
from typing import Optional

import yaml
from pydantic import ValidationError

from models.sync_models import SyncConfig
from sync.errors import ConfigError

logger = logging.getLogger(__name__)

# Settings files with this suffix are read as TOML, anything else as YAML
TOML_SUFFIX = '.toml'


class HealthCheckFilter(logging.Filter):
    """Filter out health check and liveness requests to reduce log noise"""
    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()

        # For uvicorn access logs, the message format is:
        # 'IP:PORT - "METHOD /path HTTP/1.1" STATUS'
        if '200 OK' in message or '200' in str(getattr(record, 'args', '')):
            if '/health' in message:
                return False
            if 'GET /api/simple-text' in message:
                return False
        return True


def setup_logging():
    """Configure application logging with rotation"""
    from .paths import LOG_DIR, ensure_data_dirs

    # Create data and logs directories with secure permissions
    ensure_data_dirs()

    root_logger = logging.getLogger()

    # Close and clear any existing handlers to ensure our logging configuration
    # is used and prevent file descriptor leaks
    for handler in root_logger.handlers[:]:
        handler.close()
        root_logger.removeHandler(handler)

    level = getattr(logging, AppConfig.LOG_LEVEL.upper(), logging.INFO)
    root_logger.setLevel(level)

    # Console handler for stdout
    console_handler = logging.StreamHandler()
    console_handler.setLevel(level)
    console_formatter = logging.Formatter(
        '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    console_handler.setFormatter(console_formatter)

    # File handler with rotation, max 10MB per file, keep 14 backups
    file_handler = RotatingFileHandler(
        os.path.join(LOG_DIR, 'simple-text.log'),
        maxBytes=10*1024*1024,  # 10MB
        backupCount=14,
        encoding='utf-8'
    )
    file_handler.setLevel(level)
    file_handler.setFormatter(console_formatter)

    root_logger.addHandler(console_handler)
    root_logger.addHandler(file_handler)

    uvicorn_access = logging.getLogger("uvicorn.access")
    uvicorn_access.addFilter(HealthCheckFilter())


class AppConfig:
    """Main application configuration"""

    # Server settings
    HOST = os.getenv('SIMPLE_TEXT_HOST', '127.0.0.1')
    PORT = int(os.getenv('SIMPLE_TEXT_PORT', 8080))

    # Logging
    LOG_LEVEL = os.getenv('SIMPLE_TEXT_LOG_LEVEL', 'INFO')

    @classmethod
    def validate(cls):
        """Validate configuration"""
        if cls.PORT < 1 or cls.PORT > 65535:
            raise ValueError(f"Invalid port: {cls.PORT}")

        return True


def get_config_path() -> str:
    """Path of the sync settings file, re-evaluated on every call."""
    from .paths import CONFIG_FILE
    return os.getenv('SIMPLE_TEXT_CONFIG', CONFIG_FILE)


def load_sync_config(path: Optional[str] = None) -> SyncConfig:
    """
    Load and validate the sync settings file.

    Called before every pipeline run so edits to the file take effect
    without a restart. A .toml file is parsed as TOML, any other file as
    YAML; both use the same keys.

    Args:
        path: Settings file path (defaults to SIMPLE_TEXT_CONFIG or the data dir)

    Returns:
        Validated SyncConfig

    Raises:
        ConfigError: If the file is missing, unreadable, not valid YAML
            or TOML, or fails validation
    """
    config_path = path or get_config_path()

    try:
        if str(config_path).lower().endswith(TOML_SUFFIX):
            with open(config_path, 'rb') as f:
                data = tomllib.load(f)
        else:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = yaml.safe_load(f)
    except FileNotFoundError:
        raise ConfigError(f"Settings file not found: {config_path}")
    except OSError as e:
        raise ConfigError(f"Cannot read settings file {config_path}: {e}")
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in settings file {config_path}: {e}")
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in settings file {config_path}: {e}")

    if not isinstance(data, dict):
        raise ConfigError(f"Settings file {config_path} must contain a mapping")

    try:
        config = SyncConfig.model_validate(data)
    except ValidationError as e:
        fields = ", ".join(
            f"{'.'.join(str(x) for x in err['loc'])}: {err['msg']}" for err in e.errors()
        )
        raise ConfigError(f"Invalid settings in {config_path}: {fields}")

    logger.debug(f"Loaded sync settings from {config_path}")
    return config
