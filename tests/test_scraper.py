"""Tests for the upstream song sources."""
from unittest.mock import MagicMock

import pytest
import requests

from countrytv.errors import SourceError
from countrytv.scraper import (
    HtmlChartScraper, JsonFeedScraper, build_scraper,
    extract_youtube_id, parse_chart_html,
)

CHART_HTML = """
<html><body>
<table>
  <tr><th>#</th><th>Song</th></tr>
  <tr data-artist="Luke Combs" data-title="Fast Car">
    <td>1</td><td><a href="https://www.youtube.com/watch?v=cHr2lDFwYj4">watch</a></td>
  </tr>
  <tr>
    <td>2</td><td><a href="https://youtu.be/ZZ9Lj2oGzfk">Morgan Wallen – Last Night</a></td>
  </tr>
  <tr><td>3</td><td><a href="https://example.com/not-a-video">Nope</a></td></tr>
</table>
<ul>
  <li><a href="https://www.youtube.com/embed/AAAAAAAAAAA">Zach Bryan - Something in the Orange</a></li>
  <li><a href="https://youtu.be/ZZ9Lj2oGzfk">Morgan Wallen - Last Night</a></li>
</ul>
</body></html>
"""


def _session(json_data=None, text=None, error=None):
    session = MagicMock()
    resp = session.get.return_value
    if error is not None:
        resp.raise_for_status.side_effect = error
    if isinstance(json_data, Exception):
        resp.json.side_effect = json_data
    else:
        resp.json.return_value = json_data
    resp.text = text
    return session


@pytest.mark.parametrize("value,expected", [
    ("https://www.youtube.com/watch?v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
    ("https://www.youtube.com/watch?list=PL1&v=dQw4w9WgXcQ", "dQw4w9WgXcQ"),
    ("https://youtu.be/dQw4w9WgXcQ?t=10", "dQw4w9WgXcQ"),
    ("https://www.youtube.com/embed/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
    ("https://youtube.com/shorts/dQw4w9WgXcQ", "dQw4w9WgXcQ"),
    ("dQw4w9WgXcQ", "dQw4w9WgXcQ"),
    ("https://example.com/watch?v=short", None),
    ("", None),
])
def test_extract_youtube_id(value, expected):
    assert extract_youtube_id(value) == expected


def test_parse_chart_html():
    candidates = parse_chart_html(CHART_HTML)
    assert [(c.position, c.artist, c.title, c.youtube_id) for c in candidates] == [
        (1, "Luke Combs", "Fast Car", "cHr2lDFwYj4"),
        (2, "Morgan Wallen", "Last Night", "ZZ9Lj2oGzfk"),
        (3, "Zach Bryan", "Something in the Orange", "AAAAAAAAAAA"),
    ]


def test_html_scraper_fetches_page():
    scraper = HtmlChartScraper("https://charts.example/country", session=_session(text=CHART_HTML))
    assert len(scraper.fetch()) == 3
    assert scraper.label == "https://charts.example/country"


def test_json_feed_object_and_list():
    feed = {"songs": [
        {"position": 4, "title": "Tennessee Whiskey", "artist": "Chris Stapleton", "youtubeId": "4zAThXFOy2c"},
        {"title": "Jolene", "artist": "Dolly Parton", "url": "https://youtu.be/Ixrje2rXLMA"},
    ]}
    scraper = JsonFeedScraper("https://feed.example/top.json", label="top", session=_session(json_data=feed))
    first, second = scraper.fetch()
    assert (first.position, first.youtube_id) == (4, "4zAThXFOy2c")
    assert (second.position, second.youtube_id, second.artist) == (2, "Ixrje2rXLMA", "Dolly Parton")

    scraper = JsonFeedScraper("https://feed.example/top.json", session=_session(json_data=feed["songs"]))
    assert len(scraper.fetch()) == 2


def test_json_feed_http_error():
    scraper = JsonFeedScraper("https://feed.example/top.json",
                              session=_session(error=requests.HTTPError("503")))
    with pytest.raises(SourceError, match="could not fetch"):
        scraper.fetch()


def test_json_feed_invalid_payloads():
    bad_json = JsonFeedScraper("u", session=_session(json_data=ValueError("nope")))
    with pytest.raises(SourceError, match="invalid JSON"):
        bad_json.fetch()
    no_list = JsonFeedScraper("u", session=_session(json_data={"items": []}))
    with pytest.raises(SourceError, match="no song list"):
        no_list.fetch()


def test_build_scraper_dispatch():
    assert isinstance(build_scraper("json", "https://x"), JsonFeedScraper)
    assert isinstance(build_scraper("html", "https://x", label="chart"), HtmlChartScraper)
    with pytest.raises(ValueError, match="Unknown"):
        build_scraper("rss", "https://x")
    with pytest.raises(ValueError, match="No source URL"):
        build_scraper("json", "")


def test_json_feed_coerces_positions_and_drops_bad_rows():
    feed = [
        {"position": "1", "title": "Fast Car", "artist": "Luke Combs", "youtubeId": "cHr2lDFwYj4"},
        {"position": "two", "title": "Broken", "artist": "X", "youtubeId": "ZZ9Lj2oGzfk"},
        {"position": 3, "title": "No Video", "artist": "Y", "url": "https://example.com/x"},
        {"position": 4.0, "title": "Jolene", "artist": "Dolly Parton", "youtubeId": "Ixrje2rXLMA"},
    ]
    scraper = JsonFeedScraper("https://feed.example/top.json", session=_session(json_data=feed))
    assert [(c.position, c.youtube_id) for c in scraper.fetch()] == [
        (1, "cHr2lDFwYj4"),
        (4, "Ixrje2rXLMA"),
    ]
