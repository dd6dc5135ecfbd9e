"""
PDF Text Extraction
Turns an uploaded deck into the plain text the committee reads.
"""
import asyncio
import io
from typing import Optional
from pypdf import PdfReader
from pypdf.errors import PdfReadError
from loguru import logger

from deckslayer.config import settings
from deckslayer.core.exceptions import InvalidInputError

UNREADABLE_MESSAGE = "Could not read text from the uploaded PDF"


def extract_text(data: bytes) -> str:
    """
    Extract the text of every page, joined by newlines.

    Raises:
        InvalidInputError: If the bytes are not a readable PDF or carry no text
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except (PdfReadError, ValueError, OSError) as e:
        logger.warning(f"PDF parse failed: {e}")
        raise InvalidInputError(UNREADABLE_MESSAGE, detail=str(e)) from e

    text = "\n".join(pages).strip()
    if not text:
        raise InvalidInputError(UNREADABLE_MESSAGE, detail="no extractable text")

    return text


def truncate(text: str, limit: Optional[int] = None) -> str:
    """Cap deck text at the provider input budget."""
    limit = settings.max_deck_chars if limit is None else limit
    return text[:limit]


class PDFExtractor:
    """Async facade; parsing is CPU-bound and runs in a worker thread."""

    def __init__(self, max_chars: Optional[int] = None):
        self.max_chars = max_chars or settings.max_deck_chars

    async def extract(self, data: bytes, filename: str = "deck.pdf") -> str:
        """
        Extract and truncate a deck.

        Returns:
            At most `max_chars` characters of text
        """
        if not data:
            raise InvalidInputError(UNREADABLE_MESSAGE, detail=f"{filename} is empty")

        text = await asyncio.to_thread(extract_text, data)
        truncated = truncate(text, self.max_chars)

        logger.debug(f"Extracted {len(text)} chars from {filename} (kept {len(truncated)})")
        return truncated
