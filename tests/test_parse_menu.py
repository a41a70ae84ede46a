import datetime as dt
import json
import threading

import pytest

import parse_menu
from menu_config import Settings
from menu_errors import FormatError, RefreshCancelledError
from menu_models import CellKey, Dish, PriceFragment
from parse_menu import MenuParser, merge


MONDAY = dt.date(2020, 11, 16)


def test_merge_sets_price_on_shared_cell():
    dishes = {CellKey(0, 1): Dish(title="Ofenkartoffel", kcal="kcal 600", date=MONDAY)}
    prices = {CellKey(0, 1): PriceFragment("€ 3,90 / € 4,88", "kcal 600")}
    result = merge(dishes, prices)
    assert result.unmatched == 0
    assert result.dishes == [Dish(title="Ofenkartoffel", kcal="kcal 600", price="€ 3,90 / € 4,88", date=MONDAY)]


def test_merge_keeps_unmatched_dishes():
    dishes = {
        CellKey(1, 0): Dish(title="b", kcal="k"),
        CellKey(0, 2): Dish(title="a", kcal="k"),
        CellKey(7, 0): Dish(title="c", kcal="k"),
    }
    prices = {
        CellKey(0, 2): PriceFragment("€ 1,00"),
        CellKey(1, 0): PriceFragment(""),
        CellKey(3, 3): PriceFragment("€ 9,99"),
    }
    result = merge(dishes, prices)
    assert [d.title for d in result.dishes] == ["a", "b", "c"]
    assert [d.price for d in result.dishes] == ["€ 1,00", "", ""]
    assert result.unmatched == 2


def test_merge_empty():
    result = merge({}, {CellKey(0, 0): PriceFragment("€ 1,00")})
    assert result.dishes == []
    assert result.unmatched == 0


@pytest.fixture
def fake_pdf_tools(monkeypatch, layout_text, menu_png):
    monkeypatch.setattr(parse_menu, "pdf_to_text", lambda pdf: layout_text)
    monkeypatch.setattr(parse_menu, "pdf_to_png", lambda pdf, resolution=150: menu_png)


def test_menu_parser(fake_pdf_tools, recognize):
    result = MenuParser(Settings(ocr_workers=2), recognize=recognize)(b"%PDF", year=2020)
    assert result.unmatched == 0
    assert len(result.dishes) == 6

    by_title = {d.title: d for d in result.dishes}
    assert by_title["Kabeljaufilet"].price == "€ 0,30 / € 6,00"
    assert by_title["Kabeljaufilet"].kcal == "kcal 429 / kJ 1797"
    assert by_title["Gemüselasagne"].price == "€ 1,10 / € 6,00"
    assert by_title["Gemüselasagne"].date == MONDAY + dt.timedelta(days=1)


def test_menu_parser_unpriced_dishes_are_kept(fake_pdf_tools):
    result = MenuParser(recognize=lambda png: "no price here\n")(b"%PDF", year=2020)
    assert len(result.dishes) == 6
    assert result.unmatched == 6
    assert all(d.price == "" for d in result.dishes)


def test_menu_parser_format_error(monkeypatch, recognize):
    monkeypatch.setattr(parse_menu, "pdf_to_text", lambda pdf: "just\nsome\nother\ndocument\n")
    with pytest.raises(FormatError):
        MenuParser(recognize=recognize)(b"%PDF", year=2020)


def test_menu_parser_cancelled(fake_pdf_tools, recognize):
    cancel = threading.Event()
    cancel.set()
    with pytest.raises(RefreshCancelledError):
        MenuParser(recognize=recognize)(b"%PDF", cancel=cancel)


def test_main_writes_json(fake_pdf_tools, monkeypatch, tmp_path, capsys, recognize):
    monkeypatch.setattr(parse_menu, "Tesseract", lambda lang, timeout: recognize)
    pdf_path = tmp_path / "menu.pdf"
    pdf_path.write_bytes(b"%PDF-1.4")
    out_path = tmp_path / "menu.json"
    monkeypatch.setattr("sys.argv", ["parse_menu.py", str(pdf_path), str(out_path), "2020"])

    assert parse_menu.main() == 0
    payload = json.loads(out_path.read_text(encoding="utf-8"))
    assert len(payload["dishes"]) == 6
    assert payload["dishes"][0] == {
        "Title": "Pasta-Pfanne",
        "Description": "mit Hähnchenfleisch",
        "Price": "€ 0,00 / € 6,00",
        "Kcal": "kcal 528 / kJ 2212",
        "Type": "Wok Station",
        "Date": "2020-11-16",
    }
    assert "Type: Wok Station Title=Pasta-Pfanne" in capsys.readouterr().out


def test_main_usage(monkeypatch):
    monkeypatch.setattr("sys.argv", ["parse_menu.py"])
    assert parse_menu.main() == 2
