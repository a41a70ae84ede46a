"""Wrappers around the PDF and OCR libraries. Everything here is bytes in, text or bytes out."""

from __future__ import annotations
import io
import logging

import pdfplumber
import pytesseract
from PIL import Image

from menu_errors import ExternalToolError


log = logging.getLogger(__name__)


def pdf_to_text(pdf: bytes) -> str:
    """Layout-preserving text of all pages, so table columns keep their character offsets."""
    try:
        with pdfplumber.open(io.BytesIO(pdf)) as doc:
            if not doc.pages:
                raise ExternalToolError("pdf_to_text: document has no pages")
            pages = [page.extract_text(layout=True) or "" for page in doc.pages]
    except ExternalToolError:
        raise
    except Exception as exc:
        raise ExternalToolError(f"pdf_to_text: {exc}") from exc
    log.debug("pdf_to_text: extracted %d pages", len(pages))
    return "\n".join(pages)


def pdf_to_png(pdf: bytes, resolution: int = 150) -> bytes:
    """Render the first page to PNG bytes."""
    try:
        with pdfplumber.open(io.BytesIO(pdf)) as doc:
            if not doc.pages:
                raise ExternalToolError("pdf_to_png: document has no pages")
            img = doc.pages[0].to_image(resolution=resolution).original.copy()
    except ExternalToolError:
        raise
    except Exception as exc:
        raise ExternalToolError(f"pdf_to_png: {exc}") from exc

    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def ocr_image(img: bytes, lang: str = "deu", timeout: int = 30) -> str:
    """Run tesseract on PNG bytes. A stuck tesseract process is killed after `timeout` seconds."""
    try:
        with Image.open(io.BytesIO(img)) as im:
            return pytesseract.image_to_string(im, lang=lang, timeout=timeout)
    except pytesseract.TesseractNotFoundError as exc:
        raise ExternalToolError(f"ocr_image: tesseract is not installed: {exc}") from exc
    except (pytesseract.TesseractError, RuntimeError, OSError) as exc:
        # pytesseract reports timeouts as RuntimeError
        raise ExternalToolError(f"ocr_image: {exc}") from exc


class Tesseract:
    """OCR callable bound to a language and timeout, for handing to the tile pipeline."""

    def __init__(self, lang: str = "deu", timeout: int = 30):
        self.lang = lang
        self.timeout = timeout

    def __call__(self, img: bytes) -> str:
        return ocr_image(img, lang=self.lang, timeout=self.timeout)
