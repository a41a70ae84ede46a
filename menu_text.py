"""
menu_text.py — text channel of the bistro menu parser.

Works on the output of a layout-preserving PDF text extraction, where every table
column keeps a roughly constant character offset. Cells are recovered by cutting
lines into tokens at wide whitespace gaps and assigning each token to the header
column it starts closest to. Prices never appear in this channel.
"""

from __future__ import annotations
import re
import datetime as dt
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from menu_errors import FormatError
from menu_models import CellKey, Column, Dish, Token


WEEK_PREFIX = "Speiseplan Bistro"
HEADER_PREFIX = "Wochentag"
HEADERS = ["Wok Station", "Vegetarisch", "Gericht 2", "Gericht 3"]
KCAL = "kcal"
WEEKDAYS = ["Montag", "Dienstag", "Mittwoch", "Donnerstag", "Freitag", "Samstag", "Sonntag"]
TOKEN_GAP = 3
MIN_LINES = 4

WEEK_RE = re.compile(r"[0-9]{1,2}")


def split_tokens(line: str, max_gap: int) -> List[Token]:
    """
    Cut a line into tokens separated by at least max_gap whitespace characters.

    A token starts at a letter; digits or punctuation before the first letter are
    skipped. Example (max_gap=3):
        "   Pasta-Pfanne    Ofenkartoffel mit Quark" -> [(3, "Pasta-Pfanne"), (19, "Ofenkartoffel mit Quark")]
    """
    tokens: List[Token] = []
    start = -1
    gap = 0
    for i, ch in enumerate(line):
        if start == -1:
            if ch.isalpha():
                start = i
                gap = 0
        elif ch.isspace():
            gap += 1
            if gap >= max_gap:
                tokens.append(Token(start, line[start:i].strip()))
                start = -1
        else:
            gap = 0
    if start != -1:
        tokens.append(Token(start, line[start:].strip()))
    return tokens


def match_column(offset: int, columns: Sequence[Column]) -> Column:
    """Column whose offset is closest to offset; ties go to the left column. Columns must be sorted by offset."""
    for i in range(len(columns) - 1):
        if abs(offset - columns[i].offset) <= abs(offset - columns[i + 1].offset):
            return columns[i]
    return columns[-1]


def _has_weekday_prefix(line: str) -> bool:
    s = line.strip()
    return any(s.startswith(d) for d in WEEKDAYS)


def week_anchor(lines: Sequence[str], year: int) -> dt.date:
    """Monday of the ISO week announced in the 'Speiseplan Bistro KW nn' line."""
    for line in lines:
        if not line.strip().startswith(WEEK_PREFIX):
            continue
        m = WEEK_RE.search(line)
        if not m:
            raise FormatError(f"failed to locate week number in {line.strip()!r}")
        week = int(m.group(0))
        try:
            return dt.date.fromisocalendar(year, week, 1)
        except ValueError as exc:
            raise FormatError(f"week {week} is not a valid ISO week in {year}: {exc}") from exc
    raise FormatError("failed to locate week number")


def locate_columns(lines: Sequence[str]) -> Tuple[int, List[Column]]:
    """Return (header line index, columns) for the 'Wochentag' header line."""
    header_idx: Optional[int] = None
    for i, line in enumerate(lines):
        if line.strip().startswith(HEADER_PREFIX):
            header_idx = i
            break
    if header_idx is None:
        raise FormatError(f"{HEADER_PREFIX!r} line not found")

    header = lines[header_idx]
    columns: List[Column] = []
    for col_id, name in enumerate(HEADERS):
        idx = header.find(name)
        if idx == -1:
            raise FormatError(f"failed to locate {name!r} in {HEADER_PREFIX!r} line")
        columns.append(Column(idx, name, col_id))
    columns.sort(key=lambda c: c.offset)
    return header_idx, columns


@dataclass
class RowBlock:
    row: int
    titles: str
    descriptions: List[str] = field(default_factory=list)
    nutrition: str = ""


def segment_rows(lines: Sequence[str], header_idx: int) -> List[RowBlock]:
    """Split the lines below the header into one block per day, each ending in a kcal line."""
    blocks: List[RowBlock] = []
    last_kcal = header_idx
    for i in range(header_idx + 1, len(lines)):
        if KCAL not in lines[i]:
            continue
        start = last_kcal + 1
        blocks.append(RowBlock(
            row=len(blocks),
            titles=lines[start],
            descriptions=[ln for ln in lines[start + 1:i] if not _has_weekday_prefix(ln)],
            nutrition=lines[i],
        ))
        last_kcal = i
    return blocks


def assemble_row(block: RowBlock, columns: Sequence[Column], anchor: dt.date) -> Dict[CellKey, Dish]:
    partial: Dict[int, Dict[str, str]] = {}

    def cell(tok: Token) -> Dict[str, str]:
        col_id = match_column(tok.offset, columns).id
        return partial.setdefault(col_id, {"title": "", "description": "", "kcal": ""})

    for tok in split_tokens(block.titles, TOKEN_GAP):
        cell(tok)["title"] = tok.value

    for line in block.descriptions:
        for tok in split_tokens(line, TOKEN_GAP):
            c = cell(tok)
            desc = f"{c['description']}, {tok.value}" if c["description"] else tok.value
            c["description"] = desc.strip(" ,")

    for tok in split_tokens(block.nutrition, TOKEN_GAP):
        cell(tok)["kcal"] = tok.value

    # rows without nutrition values are not food (e.g. the "Tageskarte" line)
    names = {c.id: c.name for c in columns}
    date = anchor + dt.timedelta(days=block.row)
    out: Dict[CellKey, Dish] = {}
    for col_id in sorted(partial):
        c = partial[col_id]
        if not c["kcal"]:
            continue
        out[CellKey(block.row, col_id)] = Dish(
            title=c["title"],
            description=c["description"],
            kcal=c["kcal"],
            type=names[col_id],
            date=date,
        )
    return out


def text_to_dishes(text: str, year: int) -> Dict[CellKey, Dish]:
    """
    Parse layout text of one menu PDF into dishes keyed by table cell.

    The ISO week from the document header is interpreted in `year`.
    """
    lines = text.split("\n")
    if len(lines) < MIN_LINES:
        raise FormatError(f"input has not enough lines ({len(lines)})")

    anchor = week_anchor(lines, year)
    header_idx, columns = locate_columns(lines)

    dishes: Dict[CellKey, Dish] = {}
    for block in segment_rows(lines, header_idx):
        dishes.update(assemble_row(block, columns, anchor))
    return dishes
