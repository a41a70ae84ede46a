import io
from typing import List, Tuple

import pytest
from PIL import Image, ImageDraw

from menu_tiles import TileGrid


def place(*cells: Tuple[int, str]) -> str:
    """Build one layout-text line with each text starting at the given column."""
    line = ""
    for offset, text in cells:
        line = line.ljust(offset) + text
    return line


COLS = (20, 50, 80, 110)


def layout_lines() -> List[str]:
    return [
        "",
        place((30, "Speiseplan Bistro KW 47")),
        place((0, "Wochentag"), (COLS[0], "Wok Station"), (COLS[1], "Vegetarisch"),
              (COLS[2], "Gericht 2"), (COLS[3], "Gericht 3")),
        # row 0
        place((COLS[0], "Pasta-Pfanne"), (COLS[1], "Ofenkartoffel"),
              (COLS[2], "Bauernhacksteak"), (COLS[3], "Kabeljaufilet")),
        place((0, "Montag 16.11.")),
        place((COLS[0], "mit Hähnchenfleisch"), (COLS[1], "mit Sour Creme"),
              (COLS[2], "Schwarzwurzelgemüse"), (COLS[3], "mit Rahmwirsing")),
        place((COLS[3], "und Petersilienkartoffeln")),
        place((COLS[0], "kcal 528 / kJ 2212"), (COLS[1], "kcal 600 / kJ 2500"),
              (COLS[2], "kcal 700 / kJ 2900"), (COLS[3], "kcal 429 / kJ 1797")),
        # row 1, the "Tageskarte" in the last column has no kcal
        place((COLS[0], "Curry-Wok"), (COLS[1], "Gemüselasagne"), (COLS[3], "Tageskarte")),
        place((0, "Dienstag 17.11.")),
        place((COLS[0], "mit Reis"), (COLS[3], "wechselnde Angebote")),
        place((COLS[0], "kcal 610 / kJ 2550"), (COLS[1], "kcal 480 / kJ 2010")),
        "",
    ]


@pytest.fixture
def layout_text() -> str:
    return "\n".join(layout_lines())


def tile_color(row: int, col: int) -> Tuple[int, int, int]:
    return (row * 30 + 10, col * 60 + 10, 0)


def color_cell(rgb) -> Tuple[int, int]:
    return (rgb[0] - 10) // 30, (rgb[1] - 10) // 60


@pytest.fixture
def grid() -> TileGrid:
    return TileGrid()


@pytest.fixture
def menu_png(grid) -> bytes:
    """A page where every tile is filled with a colour encoding its (row, col)."""
    width = grid.x_anchor + grid.cols * grid.tile_width + 20
    height = grid.y_anchor + grid.rows * grid.tile_height + 20
    img = Image.new("RGB", (width, height), "white")
    draw = ImageDraw.Draw(img)
    for key in grid.keys():
        left, top, right, bottom = grid.box(key)
        draw.rectangle((left, top, right - 1, bottom - 1), fill=tile_color(key.row, key.col))
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def fake_ocr(png: bytes) -> str:
    """Recognizer that reads back the tile colour and makes up a price for that cell."""
    with Image.open(io.BytesIO(png)) as im:
        rgb = im.convert("RGB").getpixel((im.width // 2, im.height // 2))
    row, col = color_cell(rgb)
    return f"Gericht {row}/{col}\nmit Beilage\n€ {row},{col}0 / € 6,00 kcal 500 / kJ 2100\nAllergene: A, C\n"


@pytest.fixture
def recognize():
    return fake_ocr
