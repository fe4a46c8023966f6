"""
scraper — Fetch the upstream song list that the auto-updater merges into playlist.json.

Supports a JSON feed (list of songs in playlist.json shape) and an HTML chart
page with one YouTube link per row.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

import requests
import structlog
from bs4 import BeautifulSoup

from .errors import SourceError

log = structlog.get_logger()

_UA = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) "
    "AppleWebKit/537.36 (KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)

_YT_ID_RES = (
    re.compile(r"(?:youtube\.com/watch\?(?:.*&)?v=|youtu\.be/|youtube\.com/embed/)([A-Za-z0-9_-]{11})"),
    re.compile(r"youtube\.com/shorts/([A-Za-z0-9_-]{11})"),
)
_BARE_ID_RE = re.compile(r"^[A-Za-z0-9_-]{11}$")
# "Artist - Title", also with en/em dashes
_ARTIST_TITLE_RE = re.compile(r"^\s*(.+?)\s+[-–—]\s+(.+?)\s*$")


@dataclass
class Candidate:
    """One song as reported by the upstream source."""
    position: int
    title: str
    artist: str
    youtube_id: str


def extract_youtube_id(value: str) -> Optional[str]:
    """Extract an 11-char video ID from a YouTube URL (or a bare ID)."""
    if not value:
        return None
    value = value.strip()
    for rx in _YT_ID_RES:
        m = rx.search(value)
        if m:
            return m.group(1)
    if _BARE_ID_RE.match(value):
        return value
    return None


def _split_artist_title(text: str) -> tuple[str, str]:
    m = _ARTIST_TITLE_RE.match(text or "")
    if m:
        return m.group(1), m.group(2)
    return "", (text or "").strip()


def _fetch(session: requests.Session, url: str) -> requests.Response:
    try:
        resp = session.get(url, headers={"User-Agent": _UA}, timeout=30)
        resp.raise_for_status()
    except requests.RequestException as e:
        raise SourceError(f"could not fetch {url}: {e}") from e
    return resp


class JsonFeedScraper:
    """Songs from a JSON feed: either a list or {"songs": [...]}."""

    kind = "json"

    def __init__(self, url: str, label: str = "", session: requests.Session | None = None):
        self.url = url
        self.label = label or url
        self.session = session or requests.Session()

    def fetch(self) -> list[Candidate]:
        resp = _fetch(self.session, self.url)
        try:
            data = resp.json()
        except ValueError as e:
            raise SourceError(f"invalid JSON from {self.url}: {e}") from e
        if isinstance(data, dict):
            data = data.get("songs")
        if not isinstance(data, list):
            raise SourceError(f"no song list in feed {self.url}")

        candidates = []
        dropped = 0
        for idx, item in enumerate(data, 1):
            if not isinstance(item, dict):
                raise SourceError(f"feed item {idx} is not an object")
            raw_id = item.get("youtubeId") or item.get("youtube_id") or item.get("url") or ""
            youtube_id = extract_youtube_id(str(raw_id))
            try:
                position = int(item.get("position", idx))
            except (TypeError, ValueError):
                position = None
            if youtube_id is None or position is None:
                log.warning("json_feed_row_dropped", url=self.url, row=idx,
                            position=item.get("position"), youtube_id=str(raw_id))
                dropped += 1
                continue
            candidates.append(Candidate(
                position=position,
                title=str(item.get("title") or "").strip(),
                artist=str(item.get("artist") or "").strip(),
                youtube_id=youtube_id,
            ))
        log.info("json_feed_scraped", url=self.url, count=len(candidates), dropped=dropped)
        return candidates


class HtmlChartScraper:
    """Songs from an HTML chart page.

    Each <tr> or <li> holding a YouTube link is one song, in page order.
    Artist/title come from data-artist/data-title on the row, else from
    the link text ("Artist - Title").
    """

    kind = "html"

    def __init__(self, url: str, label: str = "", session: requests.Session | None = None):
        self.url = url
        self.label = label or url
        self.session = session or requests.Session()

    def fetch(self) -> list[Candidate]:
        html = _fetch(self.session, self.url).text
        candidates = parse_chart_html(html)
        log.info("html_chart_scraped", url=self.url, count=len(candidates))
        return candidates


def parse_chart_html(html: str) -> list[Candidate]:
    soup = BeautifulSoup(html, "html.parser")
    candidates: list[Candidate] = []
    seen: set[str] = set()

    for row in soup.find_all(["tr", "li"]):
        link = None
        yt_id = None
        for a in row.find_all("a", href=True):
            yt_id = extract_youtube_id(a["href"])
            if yt_id:
                link = a
                break
        if not link or yt_id in seen:
            continue
        # Nested rows (li inside td) would otherwise be counted twice
        seen.add(yt_id)

        artist = (row.get("data-artist") or "").strip()
        title = (row.get("data-title") or "").strip()
        if not artist or not title:
            link_artist, link_title = _split_artist_title(link.get_text(" ", strip=True))
            artist = artist or link_artist
            title = title or link_title

        candidates.append(Candidate(
            position=len(candidates) + 1,
            title=title,
            artist=artist,
            youtube_id=yt_id,
        ))
    return candidates


def build_scraper(kind: str, url: str, label: str = "", session: requests.Session | None = None):
    """Dispatch to source-specific scraper."""
    if not url:
        raise ValueError("No source URL configured")
    if kind == "json":
        return JsonFeedScraper(url, label=label, session=session)
    elif kind == "html":
        return HtmlChartScraper(url, label=label, session=session)
    else:
        raise ValueError(f"Unknown song source: {kind}")
