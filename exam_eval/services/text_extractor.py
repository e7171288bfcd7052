"""
Text extraction for exam documents.

Turns PDF and DOCX bytes into plain text lines for the question segmenter:

- PDF: OpenDataLoader converts the file to markdown in a temporary
  directory, then markdown decoration is stripped line by line
- DOCX: python-docx paragraphs, followed by table cell paragraphs
- DOC: rejected with LegacyFormatError (never skipped silently)

Documents stored remotely are downloaded with httpx first. Every failure is
an ExtractionError carrying the filename and the stage that failed.
"""

import asyncio
import logging
import os
import re
import tempfile
from dataclasses import dataclass
from io import BytesIO
from typing import List, Optional, Tuple

import httpx
from docx import Document
from opendataloader_pdf import convert

from exam_eval.config import Settings, get_settings
from exam_eval.models.extraction import SourceDocument
from exam_eval.services.file_validator import DOCX_MIME_TYPE, DocumentValidationError, validate_document

logger = logging.getLogger(__name__)

CONTENT_TYPE_EXTENSIONS = {
    "application/pdf": ".pdf",
    DOCX_MIME_TYPE: ".docx",
    "application/msword": ".doc",
}

# Markdown decoration removed before segmentation
MD_HEADING = re.compile(r"^\s{0,3}#{1,6}\s+")
MD_BULLET = re.compile(r"^\s*[-*+]\s+")
MD_BLOCKQUOTE = re.compile(r"^\s*>\s?")
MD_IMAGE = re.compile(r"!\[[^\]]*\]\([^)]*\)")
MD_LINK = re.compile(r"\[([^\]]+)\]\([^)]*\)")
MD_BOLD_ITALIC = re.compile(r"(\*{1,3})(\S(?:.*?\S)?)\1")
MD_UNDERSCORE_BOLD = re.compile(r"__([^_\n]+)__")
MD_CODE = re.compile(r"`([^`]*)`")
MD_ESCAPE = re.compile(r"\\([\\`*_{}\[\]()#+\-.!|>])")
MD_TABLE_RULE = re.compile(r"^\s*\|?\s*:?-{3,}:?\s*(\|\s*:?-{3,}:?\s*)*\|?\s*$")


class ExtractionError(Exception):
    """A document could not be fetched, validated or decoded."""

    def __init__(self, message: str, filename: Optional[str] = None, stage: str = "decode"):
        super().__init__(message)
        self.filename = filename
        self.stage = stage

    def __str__(self) -> str:
        base = super().__str__()
        if self.filename:
            return f"{base} (file={self.filename}, stage={self.stage})"
        return base


class DocumentFetchError(ExtractionError):
    """Downloading a remotely stored document failed."""

    def __init__(self, message: str, filename: Optional[str] = None):
        super().__init__(message, filename=filename, stage="fetch")


class LegacyFormatError(ExtractionError):
    """Legacy .doc files are not supported."""


class UnsupportedFormatError(ExtractionError):
    """No text codec exists for this file type."""


@dataclass(frozen=True)
class LoadedDocument:
    """Plain text of one document plus what the request metadata needs."""
    filename: str
    text: str
    content_hash: str


# =============================================================================
# CODECS
# =============================================================================

def markdown_to_text(markdown: str) -> str:
    """Strip markdown decoration so each line reads as plain text."""
    lines: List[str] = []
    for line in markdown.splitlines():
        if MD_TABLE_RULE.match(line):
            continue
        line = MD_HEADING.sub("", line)
        line = MD_BLOCKQUOTE.sub("", line)
        line = MD_BULLET.sub("", line)
        line = MD_IMAGE.sub("", line)
        line = MD_LINK.sub(r"\1", line)
        line = MD_BOLD_ITALIC.sub(r"\2", line)
        line = MD_UNDERSCORE_BOLD.sub(r"\1", line)
        line = MD_CODE.sub(r"\1", line)
        line = MD_ESCAPE.sub(r"\1", line)
        stripped = line.strip()
        if stripped.startswith("|") and stripped.endswith("|") and len(stripped) > 1:
            cells = [cell.strip() for cell in stripped[1:-1].split("|")]
            line = " ".join(cell for cell in cells if cell)
        lines.append(line.rstrip())
    return "\n".join(lines)


def extract_pdf_text(content: bytes, filename: str) -> str:
    """Convert PDF bytes to plain text with OpenDataLoader."""
    with tempfile.TemporaryDirectory() as temp_dir:
        base_name = os.path.splitext(os.path.basename(filename))[0] or "document"
        input_path = os.path.join(temp_dir, f"{base_name}.pdf")
        output_dir = os.path.join(temp_dir, "out")
        os.makedirs(output_dir)

        with open(input_path, "wb") as f:
            f.write(content)

        try:
            convert(
                input_path=input_path,
                output_dir=output_dir,
                format="markdown",
                quiet=True
            )
        except Exception as e:
            raise ExtractionError(
                f"Failed to extract PDF text: {str(e)}", filename=filename
            ) from e

        markdown_path = os.path.join(output_dir, f"{base_name}.md")
        if not os.path.exists(markdown_path):
            raise ExtractionError("PDF conversion produced no markdown output", filename=filename)

        with open(markdown_path, "r", encoding="utf-8") as f:
            markdown = f.read()

    return markdown_to_text(markdown)


def extract_docx_text(content: bytes, filename: str) -> str:
    """Read DOCX paragraphs, then table cells, one text block per line."""
    try:
        doc = Document(BytesIO(content))
    except Exception as e:
        raise ExtractionError(
            f"Failed to read DOCX document: {str(e)}", filename=filename
        ) from e

    lines = [paragraph.text for paragraph in doc.paragraphs]

    for table in doc.tables:
        for row in table.rows:
            previous = None
            for cell in row.cells:
                # merged cells repeat the same cell object across the row
                if cell._tc is previous:
                    continue
                previous = cell._tc
                lines.extend(paragraph.text for paragraph in cell.paragraphs)

    return "\n".join(lines)


def detect_extension(filename: str, content_type: Optional[str] = None) -> str:
    """Pick the codec extension from the filename, falling back to content type."""
    extension = os.path.splitext(filename)[1].lower()
    if extension:
        return extension
    if content_type:
        return CONTENT_TYPE_EXTENSIONS.get(content_type.split(";")[0].strip().lower(), "")
    return ""


def extract_text(content: bytes, filename: str, content_type: Optional[str] = None) -> str:
    """
    Extract plain text from a document using the codec for its type.

    Args:
        content: Raw document bytes
        filename: Original filename, used to select the codec
        content_type: Declared MIME type, used when the filename has no extension

    Returns:
        Plain text with one line per paragraph

    Raises:
        LegacyFormatError: For .doc files
        UnsupportedFormatError: For anything other than PDF or DOCX
        ExtractionError: When the codec fails to read the document
    """
    extension = detect_extension(filename, content_type)

    if extension == ".pdf":
        return extract_pdf_text(content, filename)
    if extension == ".docx":
        return extract_docx_text(content, filename)
    if extension == ".doc":
        raise LegacyFormatError(
            "Legacy .doc format is unsupported; convert the file to DOCX or PDF",
            filename=filename,
        )
    raise UnsupportedFormatError(
        f"Unsupported document format: {extension or content_type or 'unknown'}",
        filename=filename,
    )


# =============================================================================
# LOADING
# =============================================================================

async def fetch_document(
    url: str,
    timeout_seconds: float,
    filename: Optional[str] = None,
) -> Tuple[bytes, Optional[str]]:
    """
    Download a remotely stored document.

    Returns:
        Tuple of (content, content_type header or None)

    Raises:
        DocumentFetchError: On timeout, transport failure or non-2xx status
    """
    try:
        async with httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True) as client:
            response = await client.get(url)
    except httpx.TimeoutException as e:
        raise DocumentFetchError(
            f"Timed out fetching document after {timeout_seconds}s", filename=filename
        ) from e
    except httpx.HTTPError as e:
        raise DocumentFetchError(f"Failed to fetch document: {str(e)}", filename=filename) from e

    if not 200 <= response.status_code < 300:
        raise DocumentFetchError(
            f"Failed to fetch document: HTTP {response.status_code}", filename=filename
        )

    return response.content, response.headers.get("content-type")


async def _load(document: SourceDocument, settings: Settings) -> LoadedDocument:
    content = document.content
    content_type = document.content_type

    if content is None:
        logger.info(f"Fetching {document.filename} from {document.url}")
        content, fetched_type = await fetch_document(
            document.url, settings.extraction_timeout_seconds, filename=document.filename
        )
        content_type = content_type or fetched_type

    try:
        content, content_hash, safe_name = validate_document(
            content, document.filename, max_bytes=settings.max_document_bytes
        )
    except DocumentValidationError as e:
        raise ExtractionError(str(e), filename=document.filename, stage="validate") from e

    text = await asyncio.to_thread(extract_text, content, document.filename, content_type)
    return LoadedDocument(filename=safe_name, text=text, content_hash=content_hash)


async def load_document_text(
    document: SourceDocument,
    settings: Optional[Settings] = None,
) -> LoadedDocument:
    """
    Fetch (if needed), validate and decode one document under the extraction timeout.

    Raises:
        ExtractionError: With stage ``timeout`` when the deadline passes, or
            the stage that failed otherwise
    """
    settings = settings or get_settings()
    timeout = settings.extraction_timeout_seconds

    try:
        return await asyncio.wait_for(_load(document, settings), timeout=timeout)
    except asyncio.TimeoutError as e:
        raise ExtractionError(
            f"Document extraction timed out after {timeout}s",
            filename=document.filename,
            stage="timeout",
        ) from e
