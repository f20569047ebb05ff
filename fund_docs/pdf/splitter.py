"""
Page extraction from a combined PDF.

Pages are copied as-is with pypdf; nothing is re-laid out, so an extracted
page is the same page object the composer produced.
"""
import io
import logging
from typing import Iterable

from pypdf import PdfReader, PdfWriter
from pypdf.errors import PdfReadError

from fund_docs.core.exceptions import PageRangeError, StorageError
from fund_docs.pdf.appendix import PageMapEntry

logger = logging.getLogger(__name__)


def _open(pdf_bytes: bytes) -> PdfReader:
    try:
        return PdfReader(io.BytesIO(pdf_bytes))
    except PdfReadError as e:
        raise StorageError("Artifact is not a readable PDF", original_error=e)


def page_count(pdf_bytes: bytes) -> int:
    return len(_open(pdf_bytes).pages)


def extract_pages(pdf_bytes: bytes, page_numbers: Iterable[int]) -> bytes:
    """
    Build a new PDF from selected pages of a combined PDF.

    Args:
        pdf_bytes: Combined PDF
        page_numbers: 1-based page numbers, in output order; need not be contiguous

    Returns:
        PDF bytes holding exactly those pages

    Raises:
        PageRangeError: If no pages are requested or any page is out of range
    """
    numbers = list(page_numbers)
    if not numbers:
        raise PageRangeError("No pages requested")

    reader = _open(pdf_bytes)
    total = len(reader.pages)
    for number in numbers:
        if number < 1 or number > total:
            raise PageRangeError(
                "Page out of range",
                page_number=number,
                page_count=total,
            )

    writer = PdfWriter()
    for number in numbers:
        writer.add_page(reader.pages[number - 1])

    output = io.BytesIO()
    writer.write(output)
    logger.debug(f"Extracted pages {numbers} of {total}")
    return output.getvalue()


def extract_page(pdf_bytes: bytes, page_number: int) -> bytes:
    return extract_pages(pdf_bytes, [page_number])


def pages_for_entry(entry: PageMapEntry) -> list[int]:
    """Page numbers recorded for one member of a combined PDF."""
    if entry.start_page < 1 or entry.page_count < 1:
        raise PageRangeError(
            "Invalid page map entry",
            details={"entity_id": entry.entity_id},
            page_number=entry.start_page,
        )
    return entry.page_numbers
