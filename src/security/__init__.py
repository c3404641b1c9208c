"""
Security module for the practice manager.

Provides the standard API error format and upload validation for
client documents.
"""

from .api_errors import (
    APIError,
    ErrorCode,
    not_found,
    register_exception_handlers,
    rule_violation,
)
from .file_upload_security import (
    SecureUpload,
    compute_file_hash,
    sanitize_filename,
    validate_content,
)

__all__ = [
    "APIError",
    "ErrorCode",
    "not_found",
    "register_exception_handlers",
    "rule_violation",
    "SecureUpload",
    "compute_file_hash",
    "sanitize_filename",
    "validate_content",
]
