"""
File Upload Security.

Validation applied to every document stored by the practice:
- MIME type allow-list (declared type and extension must agree)
- File size limit
- Content signature (magic bytes) check
- Filename sanitization and path traversal prevention

Usage:
    from security.file_upload_security import validate_upload

    @router.post("/documents/upload")
    async def upload(file: UploadFile):
        secure_file = await validate_upload(file, max_size_mb=50)
"""

from __future__ import annotations

import hashlib
import logging
import os
import re
import uuid
from dataclasses import dataclass
from typing import Dict, List, Optional

from fastapi import UploadFile

from security.api_errors import APIError, ErrorCode

logger = logging.getLogger(__name__)


# =============================================================================
# FILE TYPE DEFINITIONS
# =============================================================================

# Allowed MIME types mapped to the extensions that may carry them
ALLOWED_MIME_TYPES: Dict[str, List[str]] = {
    "application/pdf": ["pdf"],
    "application/msword": ["doc"],
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": ["docx"],
    "application/vnd.ms-excel": ["xls"],
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": ["xlsx"],
    "text/plain": ["txt", "text", "log"],
    "text/csv": ["csv"],
    "image/jpeg": ["jpg", "jpeg"],
    "image/png": ["png"],
    "image/gif": ["gif"],
    "image/webp": ["webp"],
}

# Extension to canonical MIME type
EXTENSION_MIME_TYPES: Dict[str, str] = {
    ext: mime for mime, exts in ALLOWED_MIME_TYPES.items() for ext in exts
}

# Magic bytes (file signatures); empty list means no signature to check
MAGIC_BYTES: Dict[str, List[bytes]] = {
    "pdf": [b"%PDF"],
    "doc": [b"\xd0\xcf\x11\xe0"],  # MS Compound File
    "xls": [b"\xd0\xcf\x11\xe0"],
    "docx": [b"PK\x03\x04"],  # ZIP-based (Office Open XML)
    "xlsx": [b"PK\x03\x04"],
    "jpg": [b"\xff\xd8\xff"],
    "jpeg": [b"\xff\xd8\xff"],
    "png": [b"\x89PNG\r\n\x1a\n"],
    "gif": [b"GIF87a", b"GIF89a"],
    "webp": [b"RIFF"],
}

# Browsers send these for files they cannot classify
GENERIC_MIME_TYPES = {"", "application/octet-stream", "binary/octet-stream"}


# =============================================================================
# SECURE UPLOAD RESULT
# =============================================================================


@dataclass
class SecureUpload:
    """Result of secure file upload validation."""
    original_filename: str
    safe_filename: str
    extension: str
    content_type: str
    size_bytes: int
    file_hash: str
    content: bytes

    @property
    def size_mb(self) -> float:
        return self.size_bytes / (1024 * 1024)


# =============================================================================
# VALIDATION FUNCTIONS
# =============================================================================


def sanitize_filename(filename: str) -> str:
    """
    Sanitize filename to prevent path traversal and other attacks.

    - Removes path separators and control characters
    - Keeps only alphanumerics, dots, underscores and hyphens
    - Limits length, keeping the extension
    """
    if not filename:
        return f"upload_{uuid.uuid4().hex[:8]}"

    filename = os.path.basename(filename.replace("\\", "/"))
    filename = ''.join(c for c in filename if ord(c) >= 32)

    safe_chars = re.sub(r'[^\w\.\-]', '_', filename)

    while ".." in safe_chars:
        safe_chars = safe_chars.replace("..", ".")

    # No hidden files
    safe_chars = safe_chars.lstrip(".")

    if len(safe_chars) > 200:
        name, ext = os.path.splitext(safe_chars)
        safe_chars = name[:200 - len(ext)] + ext

    if not safe_chars or safe_chars == ".":
        return f"upload_{uuid.uuid4().hex[:8]}"

    return safe_chars


def get_extension(filename: str) -> str:
    """Extract and normalize file extension."""
    if not filename:
        return ""
    _, ext = os.path.splitext(filename)
    return ext.lstrip(".").lower()


def resolve_mime_type(declared: Optional[str], extension: str) -> Optional[str]:
    """
    Decide the stored MIME type for an upload.

    Returns None when neither the declared type nor the extension is allowed.
    """
    declared = (declared or "").split(";")[0].strip().lower()
    if declared in ALLOWED_MIME_TYPES:
        return declared
    if declared in GENERIC_MIME_TYPES:
        return EXTENSION_MIME_TYPES.get(extension)
    return None


def verify_magic_bytes(content: bytes, extension: str) -> bool:
    """
    Verify file content matches expected type via magic bytes.

    Returns True if magic bytes match or the type has no defined signature.
    """
    signatures = MAGIC_BYTES.get(extension.lower(), [])
    if not signatures:
        return True
    if extension.lower() == "webp":
        return content.startswith(b"RIFF") and content[8:12] == b"WEBP"
    return any(content.startswith(signature) for signature in signatures)


def compute_file_hash(content: bytes) -> str:
    """Compute SHA-256 hash of file content."""
    return hashlib.sha256(content).hexdigest()


# =============================================================================
# MAIN VALIDATION FUNCTION
# =============================================================================


def validate_content(
    filename: str,
    content: bytes,
    declared_type: Optional[str] = None,
    max_size_mb: float = 50.0,
    verify_content: bool = True,
) -> SecureUpload:
    """
    Validate raw upload bytes.

    Raises:
        APIError: If validation fails
    """
    original_filename = filename or "unknown"
    safe_filename = sanitize_filename(original_filename)
    extension = get_extension(safe_filename)

    content_type = resolve_mime_type(declared_type, extension)
    if content_type is None:
        raise APIError(
            code=ErrorCode.VALIDATION_ERROR,
            message=f"File type {declared_type or extension or 'unknown'} is not allowed",
            details={
                "filename": original_filename,
                "allowed": sorted(ALLOWED_MIME_TYPES),
            },
        )

    size_bytes = len(content)
    max_size_bytes = int(max_size_mb * 1024 * 1024)
    if size_bytes > max_size_bytes:
        raise APIError(
            code=ErrorCode.VALIDATION_FILE_TOO_LARGE,
            message=f"File too large. Maximum size: {max_size_mb:g} MB",
            details={
                "filename": original_filename,
                "size_mb": round(size_bytes / (1024 * 1024), 2),
                "max_size_mb": max_size_mb,
            }
        )

    if size_bytes == 0:
        raise APIError(
            code=ErrorCode.VALIDATION_ERROR,
            message="Empty file uploaded",
            details={"filename": original_filename}
        )

    if verify_content and extension and not verify_magic_bytes(content, extension):
        logger.warning(f"File content mismatch: claimed {extension}, signature differs")
        raise APIError(
            code=ErrorCode.VALIDATION_MALICIOUS_CONTENT,
            message="File content does not match its extension",
            details={"filename": original_filename, "extension": extension}
        )

    logger.info(f"File validated: {safe_filename} ({size_bytes} bytes, {content_type})")

    return SecureUpload(
        original_filename=original_filename,
        safe_filename=safe_filename,
        extension=extension,
        content_type=content_type,
        size_bytes=size_bytes,
        file_hash=compute_file_hash(content),
        content=content,
    )


async def validate_upload(
    file: UploadFile,
    max_size_mb: float = 50.0,
    verify_content: bool = True,
) -> SecureUpload:
    """
    Validate a FastAPI UploadFile.

    Raises:
        APIError: If validation fails
    """
    content = await file.read()
    await file.seek(0)
    return validate_content(
        file.filename or "",
        content,
        declared_type=file.content_type,
        max_size_mb=max_size_mb,
        verify_content=verify_content,
    )
