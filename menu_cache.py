"""
Dishes of the published menus, indexed by serving day.

The day index is built off to the side on every refresh and published with a single
attribute assignment, so readers never lock and never see a half-built index. A
refresh that fails leaves the previous index in place.
"""

from __future__ import annotations
import logging
import threading
import datetime as dt
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from menu_config import Settings
from menu_errors import DateRangeError, NotYetPublishedError, RefreshCancelledError
from menu_models import Dish
from find_menu_pdfs import Downloader, fetch_menu_pdfs
from parse_menu import MenuParser, MergeResult


log = logging.getLogger(__name__)

WINDOW_DAYS = 7

DocumentSource = Callable[[Optional[threading.Event]], List[bytes]]
DocumentParser = Callable[..., MergeResult]


def _to_day(value: Union[dt.date, dt.datetime]) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    return value


def site_documents(settings: Settings) -> DocumentSource:
    fetch = Downloader(settings.fetch_timeout)

    def documents(cancel: Optional[threading.Event] = None) -> List[bytes]:
        return fetch_menu_pdfs(fetch, settings, cancel=cancel)

    return documents


class MenuCache:
    def __init__(
        self,
        documents: DocumentSource,
        parse: DocumentParser,
        today: Callable[[], dt.date] = dt.date.today,
    ):
        self._documents = documents
        self._parse = parse
        self._today = today

        self._days: Mapping[dt.date, Tuple[Dish, ...]] = {}
        self._refresh_lock = threading.Lock()
        self._attempts = 0
        self._last_error: Optional[Exception] = None
        self._cancel = threading.Event()

        self.last_refreshed: Optional[dt.datetime] = None
        self.unmatched_prices = 0

    @classmethod
    def create(
        cls,
        settings: Optional[Settings] = None,
        documents: Optional[DocumentSource] = None,
        parse: Optional[DocumentParser] = None,
        today: Callable[[], dt.date] = dt.date.today,
    ) -> "MenuCache":
        """Build a cache and fill it. Raises if the first refresh fails."""
        if documents is None or parse is None:
            settings = settings or Settings.from_env()
        if documents is None:
            documents = site_documents(settings)
        if parse is None:
            parse = MenuParser(settings)

        cache = cls(documents, parse, today=today)
        cache.refresh()
        return cache

    def days(self) -> List[dt.date]:
        return sorted(self._days)

    def refresh(self) -> None:
        """
        Fetch and parse the current menus and replace the day index.

        Callers that arrive while another refresh is running wait for it and share
        its outcome instead of fetching everything again.
        """
        seen = self._attempts
        with self._refresh_lock:
            if self._attempts != seen:
                if self._last_error is not None:
                    raise self._last_error
                return
            try:
                self._rebuild()
            except Exception as exc:
                self._last_error = exc
                raise
            else:
                self._last_error = None
            finally:
                self._attempts += 1

    def _rebuild(self) -> None:
        if self._cancel.is_set():
            raise RefreshCancelledError("menu cache is closed")
        log.info("refreshing menu cache")

        staging: Dict[dt.date, List[Dish]] = {}
        unmatched = 0
        pdfs = self._documents(self._cancel)
        for pdf in pdfs:
            result = self._parse(pdf, cancel=self._cancel)
            unmatched += result.unmatched
            for dish in result.dishes:
                staging.setdefault(dish.date, []).append(dish)

        self._days = {day: tuple(dishes) for day, dishes in staging.items()}
        self.unmatched_prices = unmatched
        self.last_refreshed = dt.datetime.now()
        log.info("menu cache holds %d days from %d documents", len(staging), len(pdfs))

    def get_menu(self, day: Union[dt.date, dt.datetime]) -> List[Dish]:
        """Dishes served on `day`, refreshing once if the day is within the next week but not cached."""
        day = _to_day(day)
        dishes = self._days.get(day)
        if dishes is not None:
            return list(dishes)

        today = self._today()
        if day < today:
            raise DateRangeError(f"{day} is in the past")
        if day > today + dt.timedelta(days=WINDOW_DAYS):
            raise DateRangeError(f"{day} is more than {WINDOW_DAYS} days in the future")

        self.refresh()
        dishes = self._days.get(day)
        if dishes is None:
            raise NotYetPublishedError(f"no menu published for {day} yet")
        return list(dishes)

    def close(self) -> None:
        """Abort a running refresh at its next checkpoint and refuse new ones."""
        self._cancel.set()


class DailyRefresh(threading.Thread):
    """Refresh the cache once a day at a fixed local time. Failures are logged and retried next day."""

    def __init__(
        self,
        cache: MenuCache,
        at: dt.time,
        now: Callable[[], dt.datetime] = dt.datetime.now,
    ):
        super().__init__(name="daily-menu-refresh", daemon=True)
        self.cache = cache
        self.at = at
        self._now = now
        self._halt = threading.Event()

    def next_run(self, now: dt.datetime) -> dt.datetime:
        run = dt.datetime.combine(now.date(), self.at)
        if run <= now:
            run += dt.timedelta(days=1)
        return run

    def run(self) -> None:
        while not self._halt.is_set():
            now = self._now()
            if self._halt.wait((self.next_run(now) - now).total_seconds()):
                break
            try:
                self.cache.refresh()
            except Exception:
                log.exception("scheduled menu refresh failed")

    def stop(self) -> None:
        self._halt.set()
