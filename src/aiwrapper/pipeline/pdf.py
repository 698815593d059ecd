"""PDF download and text extraction."""

import io
import logging

import aiohttp
from PyPDF2 import PdfReader

from ..utils.errors import InputValidationError

logger = logging.getLogger(__name__)


def extract_pdf_text(content: bytes) -> str:
    """Extract text from PDF bytes, pages joined by blank lines."""
    try:
        reader = PdfReader(io.BytesIO(content))
        pages = [(page.extract_text() or "") for page in reader.pages]
    except Exception as e:
        raise InputValidationError(f"PDF parsing failed: {e}") from e
    return "\n\n".join(pages).strip()


async def extract_text_from_pdf_url(storage_url: str, timeout_seconds: float = 30.0) -> str:
    """
    Download a PDF and return its text.

    Raises:
        InputValidationError: Non-2xx download, unparsable PDF, or no text
    """
    timeout = aiohttp.ClientTimeout(total=timeout_seconds)
    async with aiohttp.ClientSession(timeout=timeout) as session:
        async with session.get(storage_url) as response:
            if response.status < 200 or response.status >= 300:
                raise InputValidationError(f"Failed to fetch PDF ({response.status}) from {storage_url}")
            content = await response.read()

    text = extract_pdf_text(content)
    if not text:
        raise InputValidationError("PDF extraction produced empty text")

    logger.info(f"[pipeline] Extracted {len(text)} chars from PDF", extra={"storage_url": storage_url})
    return text
