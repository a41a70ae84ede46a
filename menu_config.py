from __future__ import annotations
import os
import datetime as dt
from dataclasses import dataclass
from typing import Mapping, Optional, Tuple


MENU_SITE_URL = (
    "https://www.uksh.de/servicesternnord/Unser+Speisenangebot/"
    "Speisepl%C3%A4ne+L%C3%BCbeck/UKSH_Bistro+L%C3%BCbeck-p-346.html"
)
MENU_HOST = "https://www.uksh.de"


def _env_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{name} must be an integer, got {raw!r}")


def parse_clock(value: str) -> dt.time:
    """'01:00' -> time(1, 0)."""
    try:
        hh, mm = value.strip().split(":")
        return dt.time(int(hh), int(mm))
    except ValueError:
        raise ValueError(f"expected HH:MM, got {value!r}")


def parse_listen(value: str) -> Tuple[str, int]:
    # ":8080" listens on all interfaces
    host, _, port = value.rpartition(":")
    return (host or "0.0.0.0"), int(port)


@dataclass(frozen=True)
class Settings:
    site_url: str = MENU_SITE_URL
    host: str = MENU_HOST
    max_links: int = 2
    fetch_timeout: int = 30
    ocr_lang: str = "deu"
    ocr_timeout: int = 30
    ocr_workers: int = 4
    render_dpi: int = 150
    refresh_at: dt.time = dt.time(1, 0)
    listen: str = ":8080"
    debug: bool = False

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            site_url=env.get("MENU_SITE_URL", MENU_SITE_URL),
            host=env.get("MENU_HOST", MENU_HOST),
            max_links=_env_int(env, "MENU_MAX_LINKS", 2),
            fetch_timeout=_env_int(env, "MENU_FETCH_TIMEOUT", 30),
            ocr_lang=env.get("MENU_OCR_LANG", "deu"),
            ocr_timeout=_env_int(env, "MENU_OCR_TIMEOUT", 30),
            ocr_workers=_env_int(env, "MENU_OCR_WORKERS", 4),
            render_dpi=_env_int(env, "MENU_RENDER_DPI", 150),
            refresh_at=parse_clock(env.get("MENU_REFRESH_AT", "01:00")),
            listen=env.get("SERVER_LISTEN", ":8080"),
            debug=env.get("DEBUG") in ("1", "true", "TRUE", "yes", "on"),
        )
