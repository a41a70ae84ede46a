from __future__ import annotations
import datetime as dt
from dataclasses import dataclass, replace
from typing import Dict, NamedTuple


class Token(NamedTuple):
    offset: int  # start column in the source line
    value: str


class Column(NamedTuple):
    offset: int  # start column of the header name in the header line
    name: str
    id: int


class CellKey(NamedTuple):
    """Position of one table cell: row = day offset from the week anchor, col = column id."""
    row: int
    col: int


@dataclass(frozen=True)
class Dish:
    title: str = ""
    description: str = ""
    price: str = ""
    kcal: str = ""
    type: str = ""
    date: dt.date = dt.date.min

    def with_price(self, price: str) -> "Dish":
        return replace(self, price=price)

    def to_dict(self) -> Dict[str, str]:
        return {
            "Title": self.title,
            "Description": self.description,
            "Price": self.price,
            "Kcal": self.kcal,
            "Type": self.type,
            "Date": self.date.isoformat(),
        }

    def __str__(self) -> str:
        return (
            f"Type: {self.type} Title={self.title} Description={self.description} "
            f"Price={self.price} Kcal={self.kcal}"
        )


@dataclass(frozen=True)
class PriceFragment:
    price: str = ""
    nutrition: str = ""
