"""
Logging utilities for Trade Portal

The service is configured through logging.config.dictConfig. The mapping comes
from portal_shared/configs/logging.yml (or an explicit file), with the section
named after the current environment merged on top.
"""

import os
import logging
import logging.config
import copy
from typing import Optional, Dict, Any
import yaml
from pathlib import Path

DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Package loggers that get their own console handler
PORTAL_LOGGERS = ('trade_portal', 'portal_service', 'portal_shared')

ENVIRONMENTS = ('development', 'staging', 'production', 'test')

# Request paths logged at DEBUG so probes don't flood the console
QUIET_PATHS = ('/health',)

DEFAULT_LOGGING_CONFIG = {
    'version': 1,
    'disable_existing_loggers': False,
    'formatters': {
        'default': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            'datefmt': DATE_FORMAT
        },
        'detailed': {
            'format': '%(asctime)s - %(name)s - %(levelname)s - %(module)s:%(lineno)d - %(message)s',
            'datefmt': DATE_FORMAT
        },
        'json': {
            'format': '{"ts": "%(asctime)s", "logger": "%(name)s", "level": "%(levelname)s", "message": "%(message)s"}',
            'datefmt': DATE_FORMAT
        }
    },
    'handlers': {
        'console': {
            'class': 'logging.StreamHandler',
            'level': 'INFO',
            'formatter': 'default',
            'stream': 'ext://sys.stdout'
        }
    },
    'loggers': {
        name: {'level': 'INFO', 'handlers': ['console'], 'propagate': False}
        for name in ('root',) + PORTAL_LOGGERS
    }
}

SHARED_CONFIG_PATH = Path(__file__).parent.parent / "configs" / "logging.yml"


def _read_yaml(path: str) -> Optional[Dict[str, Any]]:
    try:
        with open(path, 'r') as f:
            return yaml.safe_load(f)
    except (OSError, yaml.YAMLError) as e:
        logging.getLogger(__name__).warning(f"Ignoring logging config {path}: {e}")
        return None


def build_logging_config(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    environment: Optional[str] = None
) -> Dict[str, Any]:
    """
    Assemble the dictConfig mapping without applying it

    Lookup order is config_path, the bundled logging.yml, then
    DEFAULT_LOGGING_CONFIG. The first one that parses wins.

    Args:
        config_path: Optional YAML file supplied through settings
        log_level: Level forced onto every logger and handler
        log_format: Formatter name forced onto every handler; unknown names are ignored
        environment: Section to merge, defaults to $ENVIRONMENT
    """
    candidates = [config_path] if config_path and os.path.exists(config_path) else []
    if SHARED_CONFIG_PATH.exists():
        candidates.append(str(SHARED_CONFIG_PATH))

    config = None
    for path in candidates:
        config = _read_yaml(path)
        if config:
            break
    if not config:
        config = copy.deepcopy(DEFAULT_LOGGING_CONFIG)

    formatters = config.setdefault('formatters', {})
    for name, formatter in DEFAULT_LOGGING_CONFIG['formatters'].items():
        formatters.setdefault(name, dict(formatter))

    # Environment sections are not valid dictConfig keys
    sections = {name: config.pop(name, None) for name in ENVIRONMENTS}
    overrides = sections.get(environment or os.getenv('ENVIRONMENT', 'development')) or {}
    for key in ('handlers', 'loggers'):
        config.setdefault(key, {}).update(overrides.get(key, {}))

    if log_level:
        level = log_level.upper()
        for entry in list(config['loggers'].values()) + list(config['handlers'].values()):
            entry['level'] = level

    if log_format in formatters:
        for handler in config['handlers'].values():
            handler['formatter'] = log_format

    return config


def setup_logging(
    config_path: Optional[str] = None,
    log_level: Optional[str] = None,
    log_format: Optional[str] = None,
    environment: Optional[str] = None
) -> None:
    """Apply build_logging_config(), falling back to basicConfig if dictConfig rejects it"""
    config = build_logging_config(config_path, log_level, log_format, environment)

    try:
        logging.config.dictConfig(config)
    except (ValueError, TypeError, AttributeError, ImportError) as e:
        logging.basicConfig(
            level=getattr(logging, (log_level or 'INFO').upper(), logging.INFO),
            format=DEFAULT_LOGGING_CONFIG['formatters']['default']['format'],
            datefmt=DATE_FORMAT
        )
        logging.getLogger(__name__).error(f"Failed to configure logging: {e}")


class RequestLogger:
    """One line per HTTP request, written by the app middleware"""

    def __init__(self, name: str = "trade_portal.requests"):
        self.logger = logging.getLogger(name)

    def log_request(
        self,
        method: str,
        path: str,
        status_code: int,
        response_time: float,
        user_agent: Optional[str] = None
    ):
        level = logging.DEBUG if path.startswith(QUIET_PATHS) else logging.INFO
        self.logger.log(
            level,
            f"{method} {path} {status_code} {response_time * 1000:.0f}ms",
            extra={
                'request_method': method,
                'request_path': path,
                'response_status': status_code,
                'response_time': response_time,
                'user_agent': user_agent,
                'event_type': 'http_request'
            }
        )


class AuditLogger:
    """
    Records auth and onboarding actions

    Details must never carry passwords, tokens or code verifiers.
    """

    def __init__(self, name: str = "trade_portal.audit"):
        self.logger = logging.getLogger(name)

    def log_user_action(
        self,
        action: str,
        user_id: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None
    ):
        self.logger.info(
            f"{action} user={user_id or 'anonymous'}",
            extra={
                'user_id': user_id,
                'action': action,
                'details': details or {},
                'event_type': 'user_action'
            }
        )


audit_logger = AuditLogger()
