#!/usr/bin/env python3
"""
parse_menu.py — UKSH Bistro weekly menu parser (Mon–Sun) from the published PDF.

The PDF is read twice: once as layout text (titles, descriptions, kcal) and once as
a rendered image cut into tiles and OCR'd (prices). Both halves are keyed by
(row, column) of the menu table and joined here.

Usage:
    python3 parse_menu.py menu.pdf [menu.json] [year]

Requirements:
    pip install pdfplumber pytesseract Pillow   (plus the tesseract binary with "deu")
"""

from __future__ import annotations
import sys, json, logging
import datetime as dt
import threading
from dataclasses import dataclass
from typing import Dict, List, Optional

from menu_config import Settings
from menu_errors import MenuError, RefreshCancelledError
from menu_models import CellKey, Dish, PriceFragment
from menu_text import text_to_dishes
from menu_tiles import Recognizer, TileGrid, extract_prices
from menu_tools import Tesseract, pdf_to_png, pdf_to_text


log = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergeResult:
    dishes: List[Dish]
    unmatched: int = 0  # dishes that found no price in the image channel


def merge(
    dishes: Dict[CellKey, Dish],
    prices: Dict[CellKey, PriceFragment],
) -> MergeResult:
    """Join text-channel dishes with image-channel prices on their table cell."""
    out: List[Dish] = []
    unmatched = 0
    for key in sorted(dishes):
        frag = prices.get(key)
        if frag is None or not frag.price:
            unmatched += 1
            out.append(dishes[key])
        else:
            out.append(dishes[key].with_price(frag.price))
    return MergeResult(out, unmatched)


def _check(cancel: Optional[threading.Event], step: str) -> None:
    if cancel is not None and cancel.is_set():
        raise RefreshCancelledError(f"cancelled before {step}")


class MenuParser:
    """PDF bytes -> MergeResult, with the OCR engine and tile geometry fixed up front."""

    def __init__(
        self,
        settings: Settings = Settings(),
        grid: TileGrid = TileGrid(),
        recognize: Optional[Recognizer] = None,
    ):
        self.settings = settings
        self.grid = grid
        self.recognize = recognize or Tesseract(settings.ocr_lang, settings.ocr_timeout)

    def __call__(
        self,
        pdf: bytes,
        year: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> MergeResult:
        if year is None:
            year = dt.date.today().year

        _check(cancel, "text extraction")
        text = pdf_to_text(pdf)
        dishes = text_to_dishes(text, year)

        _check(cancel, "rendering")
        png = pdf_to_png(pdf, resolution=self.settings.render_dpi)
        prices = extract_prices(
            png, self.recognize, grid=self.grid,
            workers=self.settings.ocr_workers, cancel=cancel,
        )

        result = merge(dishes, prices)
        if result.unmatched:
            log.warning("%d of %d dishes have no price", result.unmatched, len(result.dishes))
        return result


def main() -> int:
    if len(sys.argv) < 2:
        print("Usage: python3 parse_menu.py <menu.pdf> [menu.json] [year]", file=sys.stderr)
        return 2

    pdf_path = sys.argv[1]
    out_path = sys.argv[2] if len(sys.argv) > 2 else None
    year = int(sys.argv[3]) if len(sys.argv) > 3 else None

    settings = Settings.from_env()
    logging.basicConfig(level=logging.DEBUG if settings.debug else logging.INFO)

    with open(pdf_path, "rb") as f:
        pdf = f.read()

    try:
        result = MenuParser(settings)(pdf, year=year)
    except MenuError as exc:
        print(f"Failed to parse {pdf_path}: {exc}", file=sys.stderr)
        return 1

    for dish in result.dishes:
        print(dish)

    if out_path:
        payload = {
            "updated_at": dt.datetime.now(dt.timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ"),
            "pdf_filename": pdf_path,
            "unmatched_prices": result.unmatched,
            "dishes": [d.to_dict() for d in result.dishes],
        }
        with open(out_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        print("Wrote", out_path)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
