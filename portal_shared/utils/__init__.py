"""
Shared utilities for Trade Portal

Logging setup and form validation rules.
"""

from .logger import setup_logging, build_logging_config, RequestLogger, AuditLogger
from .validators import (
    validate_password,
    validate_phone,
    normalize_phone_digits,
    is_duplicate_account_message,
    classify_gateway_error,
)

__all__ = [
    "setup_logging",
    "build_logging_config",
    "RequestLogger",
    "AuditLogger",
    "validate_password",
    "validate_phone",
    "normalize_phone_digits",
    "is_duplicate_account_message",
    "classify_gateway_error",
]
