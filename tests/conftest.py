"""
Shared fixtures: playlist documents on disk, fake probes and fake scrapers.
Nothing here touches the network.
"""
import json
import threading
import time

import pytest

from countrytv.availability import CheckResult
from countrytv.scraper import Candidate


@pytest.fixture(autouse=True)
def _isolated_env(tmp_path, monkeypatch):
    for key in ("COUNTRYTV_PLAYLIST", "COUNTRYTV_SOURCE_URL", "COUNTRYTV_SOURCE_KIND",
                "COUNTRYTV_CHECK_CONCURRENCY", "COUNTRYTV_CHECK_TIMEOUT"):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("COUNTRYTV_CONFIG", str(tmp_path / "no-config.yaml"))
    monkeypatch.setenv("COUNTRYTV_LOG_DIR", str(tmp_path / "logs"))


def song(position, youtube_id, title=None, artist="Artist", **flags):
    d = {
        "position": position,
        "title": title or f"Song {position}",
        "artist": artist,
        "youtubeId": youtube_id,
        "addedDate": "2025-01-01T00:00:00.000Z",
    }
    d.update(flags)
    return d


def write_playlist(path, songs, **meta):
    doc = {"lastUpdated": "2025-01-01T00:00:00.000Z", "source": "seed", "songs": songs}
    doc.update(meta)
    path.write_text(json.dumps(doc, indent=2), encoding="utf-8")
    return path


@pytest.fixture
def playlist_file(tmp_path):
    """A-B-C example: A fine, B flagged, C without a YouTube ID."""
    return write_playlist(tmp_path / "playlist.json", [
        song(1, "A", unavailable=False),
        song(2, "B", unavailable=True),
        song(3, ""),
    ])


class FakeProbe:
    """Returns canned results and records calls and peak concurrency."""

    def __init__(self, results=None, default=CheckResult.AVAILABLE, delay=0.0):
        self.results = results or {}
        self.default = default
        self.delay = delay
        self.calls = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()

    def __call__(self, youtube_id, timeout_s):
        with self._lock:
            self.calls.append(youtube_id)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                time.sleep(self.delay)
            result = self.results.get(youtube_id, self.default)
            if isinstance(result, Exception):
                raise result
            return result
        finally:
            with self._lock:
                self.in_flight -= 1


class FakeScraper:
    label = "fake-chart"

    def __init__(self, candidates=None, error=None, gate=None):
        self.candidates = candidates or []
        self.error = error
        self.gate = gate
        self.calls = 0

    def fetch(self):
        self.calls += 1
        if self.gate is not None:
            self.gate.wait(timeout=5)
        if self.error is not None:
            raise self.error
        return list(self.candidates)


def cand(position, youtube_id, title=None, artist="Artist"):
    return Candidate(position=position, title=title or f"Song {position}",
                     artist=artist, youtube_id=youtube_id)
