"""
File validation for exam documents.

Provides checks including:
- Emptiness and size limits
- MIME type validation (PDF, DOCX, legacy Word)
- Filename sanitization
- Content hash calculation
"""

import hashlib
import re
from pathlib import Path
from typing import Optional, Tuple

import magic

from exam_eval.config import get_settings

DOCX_MIME_TYPE = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"

ALLOWED_MIME_TYPES = {
    "application/pdf",
    DOCX_MIME_TYPE,
    "application/zip",  # libmagic often reports DOCX as a plain zip container
    "application/msword",
    "application/x-ole-storage",
}

DEFAULT_FILENAME = "document"
MAX_FILENAME_LENGTH = 255


class DocumentValidationError(ValueError):
    """Raised when a document fails a validation check."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message)
        self.filename = filename


def validate_document(
    content: bytes,
    filename: str,
    max_bytes: Optional[int] = None,
) -> Tuple[bytes, str, str]:
    """
    Validate document bytes and return content, hash, and sanitized filename.

    Args:
        content: Raw document bytes
        filename: Original filename
        max_bytes: Size limit; defaults to MAX_DOCUMENT_BYTES

    Returns:
        Tuple of (content, sha256_hash, sanitized_filename)

    Raises:
        DocumentValidationError: For empty, oversized or wrongly typed content
    """
    if max_bytes is None:
        max_bytes = get_settings().max_document_bytes

    if len(content) == 0:
        raise DocumentValidationError("File is empty", filename=filename)

    if len(content) > max_bytes:
        raise DocumentValidationError(
            f"File too large. Maximum size is {max_bytes // (1024 * 1024)}MB",
            filename=filename,
        )

    mime_type = magic.from_buffer(content, mime=True)
    if mime_type not in ALLOWED_MIME_TYPES:
        raise DocumentValidationError(
            f"Invalid file type. Expected PDF or Word document, got {mime_type}",
            filename=filename,
        )

    sanitized_filename = sanitize_filename(filename)
    file_hash = hashlib.sha256(content).hexdigest()

    return content, file_hash, sanitized_filename


def sanitize_filename(filename: str) -> str:
    """
    Sanitize a filename so it is safe to log and to write to a temp directory.

    - Removes directory components and parent references (..)
    - Removes null bytes
    - Limits to alphanumeric, dash, underscore, dot
    - Keeps the extension when truncating to 255 characters
    """
    filename = Path(filename.replace("\\", "/")).name
    filename = filename.replace("..", "").replace("\0", "")
    filename = re.sub(r"[^a-zA-Z0-9._-]", "_", filename)

    stem, dot, extension = filename.rpartition(".")
    if not dot:
        stem, extension = filename, ""
    if not stem.strip("._"):
        stem = DEFAULT_FILENAME

    suffix = f".{extension}" if extension else ""
    stem = stem[:MAX_FILENAME_LENGTH - len(suffix)]
    return stem + suffix
