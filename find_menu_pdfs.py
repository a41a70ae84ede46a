import re
import sys
import logging
import threading
from typing import Callable, List, Optional
from urllib.parse import urljoin

import requests

from menu_config import Settings
from menu_errors import NetworkError, RefreshCancelledError


log = logging.getLogger(__name__)

# <a href="/uksh_media/.../Speiseplan+Bistro+KW+48.pdf" target="_blank">Speiseplan Bistro KW 48&nbsp;[pdf]</a>
HREF_RE = re.compile(r"<a[^>]+>\s*Speiseplan Bistro.*?</a>")
PDF_RE = re.compile(r"/[^\"'\s>]+?\.pdf", re.IGNORECASE)

HEADERS = {
    "User-Agent": "Mozilla/5.0 (compatible; BistroMenuBot/1.0)"
}

Fetcher = Callable[[str], bytes]


class Downloader:
    """GET a URL and return the body. Shares one requests session across calls."""

    def __init__(self, timeout: int = 30, session: Optional[requests.Session] = None):
        self.timeout = timeout
        self.session = session or requests.Session()
        self.session.headers.update(HEADERS)

    def __call__(self, url: str) -> bytes:
        try:
            r = self.session.get(url, timeout=self.timeout)
            r.raise_for_status()
        except requests.RequestException as exc:
            raise NetworkError(f"get for {url} failed: {exc}") from exc
        return r.content


def extract_links(site: str, host: str) -> List[str]:
    """Absolute URLs of the 'Speiseplan Bistro' PDFs linked from the menu page, in page order."""
    links: List[str] = []
    for anchor in HREF_RE.findall(site):
        m = PDF_RE.search(anchor)
        if not m:
            raise NetworkError(f"failed to extract link from {anchor!r}")
        link = urljoin(host, m.group(0))
        if link not in links:
            links.append(link)
    return links


def fetch_menu_pdfs(
    fetch: Fetcher,
    settings: Settings = Settings(),
    cancel: Optional[threading.Event] = None,
) -> List[bytes]:
    site = fetch(settings.site_url)
    links = extract_links(site.decode("utf-8", errors="replace"), settings.host)
    if not links:
        raise NetworkError("menu site lists no 'Speiseplan Bistro' PDFs")
    if len(links) > settings.max_links:
        raise NetworkError(f"expected at most {settings.max_links} links, got {len(links)}")

    pdfs = []
    for link in links:
        if cancel is not None and cancel.is_set():
            raise RefreshCancelledError(f"cancelled before fetching {link}")
        log.info("fetching %s", link)
        pdfs.append(fetch(link))
    return pdfs


def main():
    settings = Settings.from_env()
    site = Downloader(settings.fetch_timeout)(settings.site_url)
    for link in extract_links(site.decode("utf-8", errors="replace"), settings.host):
        sys.stdout.write(link + "\n")


if __name__ == "__main__":
    main()
