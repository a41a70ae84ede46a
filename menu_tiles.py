"""
Image channel of the bistro menu parser.

The rendered page is cut into a fixed grid of cells; each cell is OCR'd on its own
and only the price line is kept. The grid geometry belongs to the PDF template
(150 dpi render). If the template moves, the tiles silently turn into garbage:
nothing here tries to detect the table.
"""

from __future__ import annotations
import io
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Callable, Dict, List, NamedTuple, Optional

from PIL import Image, UnidentifiedImageError

from menu_errors import ExternalToolError, RefreshCancelledError
from menu_models import CellKey, PriceFragment


CURRENCY = "€"
NUTRITION_MARK = "k"  # first letter of "kcal"

Recognizer = Callable[[bytes], str]


@dataclass(frozen=True)
class TileGrid:
    x_anchor: int = 303   # top left corner of the first tile
    y_anchor: int = 330
    tile_width: int = 338
    tile_height: int = 119
    rows: int = 7         # one row per week day
    cols: int = 4         # one column per dish type

    def box(self, key: CellKey) -> tuple:
        left = self.x_anchor + key.col * self.tile_width
        top = self.y_anchor + key.row * self.tile_height
        return (left, top, left + self.tile_width, top + self.tile_height)

    def keys(self) -> List[CellKey]:
        return [CellKey(r, c) for r in range(self.rows) for c in range(self.cols)]


class Tile(NamedTuple):
    key: CellKey
    image: Image.Image


def menu_to_tiles(png: bytes, grid: TileGrid = TileGrid()) -> List[Tile]:
    try:
        img = Image.open(io.BytesIO(png))
        img.load()
    except (UnidentifiedImageError, OSError) as exc:
        raise ExternalToolError(f"menu_to_tiles: cannot decode page image: {exc}") from exc
    return [Tile(key, img.crop(grid.box(key))) for key in grid.keys()]


def _png_bytes(img: Image.Image) -> bytes:
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def parse_tile_text(text: str) -> PriceFragment:
    """
    Pull the price out of the OCR text of one tile.

    Tiles look like:
        Pasta-Pfanne
        mit Hähnchenfleisch
        € 4,80 / € 6,00 kcal 528 / kJ 2212

    The first line is the title. The first line with a currency sign is split at the
    first "k" into price and nutrition; anything after it is noise.
    """
    lines = text.split("\n")
    for line in lines[1:]:
        line = line.strip()
        if CURRENCY not in line:
            continue
        cut = line.find(NUTRITION_MARK)
        if cut == -1:
            return PriceFragment(price=line)
        return PriceFragment(price=line[:cut].strip(), nutrition=line[cut:].strip())
    return PriceFragment()


def extract_prices(
    png: bytes,
    recognize: Recognizer,
    grid: TileGrid = TileGrid(),
    workers: int = 4,
    cancel: Optional[threading.Event] = None,
) -> Dict[CellKey, PriceFragment]:
    """OCR every tile of the rendered page in parallel and key the price fragments by cell."""
    tiles = menu_to_tiles(png, grid)

    def work(tile: Tile) -> PriceFragment:
        if cancel is not None and cancel.is_set():
            raise RefreshCancelledError(f"cancelled before tile {tuple(tile.key)}")
        try:
            text = recognize(_png_bytes(tile.image))
        except ExternalToolError as exc:
            raise ExternalToolError(f"tile {tuple(tile.key)}: {exc}") from exc
        return parse_tile_text(text)

    pool = ThreadPoolExecutor(max_workers=max(1, workers))
    try:
        fragments = list(pool.map(work, tiles))
    finally:
        # one failed tile fails the document, so drop the tiles not started yet
        pool.shutdown(wait=True, cancel_futures=True)
    return {tile.key: frag for tile, frag in zip(tiles, fragments)}
