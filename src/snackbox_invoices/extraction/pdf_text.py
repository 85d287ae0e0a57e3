"""Read the embedded text layer of PDF invoices using pdfplumber.

Scanned invoices without a text layer come back empty; no OCR is attempted.
"""

import logging
from pathlib import Path

import pdfplumber

logger = logging.getLogger(__name__)


def extract_text(path: str | Path) -> str:
    """Extract all text from a PDF file, one page after another."""
    with pdfplumber.open(path) as pdf:
        pages = []
        for page in pdf.pages:
            text = page.extract_text()
            if text:
                pages.append(text)
    if not pages:
        logger.warning("No text layer found in %s", path)
    return "\n".join(pages)
