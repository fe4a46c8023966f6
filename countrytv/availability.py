"""
availability — Probe YouTube IDs in playlist.json and flag songs that disappeared.

Videos get taken down, region-locked or made private without notice.
This module checks whether each song is still embeddable via the oEmbed
endpoint (no API key, no quota) and keeps the `unavailable` flag current.
Only definitive answers flip the flag; anything ambiguous is skipped.
"""
from __future__ import annotations
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Callable
import time
import structlog
import requests

from .playlist import Playlist, Song, load_playlist, save_playlist, utc_now_iso

log = structlog.get_logger()

OEMBED_URL = "https://www.youtube.com/oembed"
WATCH_URL = "https://www.youtube.com/watch?v={}"

# Removed, private or embedding disabled
_GONE_STATUSES = (401, 403, 404, 410)


class CheckResult(str, Enum):
    AVAILABLE = "available"
    UNAVAILABLE = "unavailable"
    SKIPPED = "skipped"


class Outcome(str, Enum):
    PASS = "pass"
    RECOVERED = "recovered"
    NEWLY_UNAVAILABLE = "newly_unavailable"
    ALREADY_FLAGGED = "already_flagged"
    SKIPPED = "skipped"


Probe = Callable[[str, float], CheckResult]


class OEmbedProbe:
    """Reachability check for a single YouTube ID."""

    def __init__(
        self,
        session: requests.Session | None = None,
        user_agent: str = "CountryTV24-Validator/1.0",
        endpoint: str = OEMBED_URL,
    ):
        self.session = session or requests.Session()
        self.endpoint = endpoint
        self.headers = {"User-Agent": user_agent}

    def __call__(self, youtube_id: str, timeout_s: float) -> CheckResult:
        params = {"url": WATCH_URL.format(youtube_id), "format": "json"}
        # requests' timeout applies per socket read; the deadline caps the whole request
        deadline = time.monotonic() + timeout_s
        try:
            # stream=True: only the status line is needed, the body is never read
            with self.session.get(
                self.endpoint, params=params, headers=self.headers,
                timeout=timeout_s, stream=True,
            ) as r:
                status = r.status_code
                late = time.monotonic() > deadline
        except requests.Timeout:
            log.warning("availability_timeout", youtube_id=youtube_id, timeout_s=timeout_s)
            return CheckResult.SKIPPED
        except requests.RequestException as e:
            log.warning("availability_check_error", youtube_id=youtube_id, error=str(e))
            return CheckResult.SKIPPED

        if late:
            log.warning("availability_timeout", youtube_id=youtube_id, timeout_s=timeout_s, http=status)
            return CheckResult.SKIPPED
        if status == 200:
            return CheckResult.AVAILABLE
        if status in _GONE_STATUSES:
            return CheckResult.UNAVAILABLE
        log.warning("availability_unexpected_status", youtube_id=youtube_id, http=status)
        return CheckResult.SKIPPED


@dataclass
class CheckOptions:
    concurrency: int = 5
    timeout_ms: int = 5000
    dry_run: bool = False
    verbose: bool = False

    def __post_init__(self):
        if self.concurrency < 1:
            raise ValueError(f"concurrency must be positive, got {self.concurrency}")
        if self.timeout_ms < 1:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")


@dataclass
class EntryOutcome:
    song: Song
    result: CheckResult
    outcome: Outcome

    @property
    def changed(self) -> bool:
        return self.outcome in (Outcome.RECOVERED, Outcome.NEWLY_UNAVAILABLE)


@dataclass
class CheckReport:
    entries: list[EntryOutcome] = field(default_factory=list)
    ignored: int = 0  # songs without a YouTube ID
    dry_run: bool = False

    def count(self, outcome: Outcome) -> int:
        return sum(1 for e in self.entries if e.outcome == outcome)

    @property
    def checked(self) -> int:
        return len(self.entries)

    @property
    def available(self) -> int:
        return sum(1 for e in self.entries if e.result == CheckResult.AVAILABLE)

    @property
    def passed(self) -> int:
        return self.count(Outcome.PASS)

    @property
    def recovered(self) -> int:
        return self.count(Outcome.RECOVERED)

    @property
    def newly_unavailable(self) -> int:
        return self.count(Outcome.NEWLY_UNAVAILABLE)

    @property
    def already_flagged(self) -> int:
        return self.count(Outcome.ALREADY_FLAGGED)

    @property
    def skipped(self) -> int:
        return self.count(Outcome.SKIPPED)

    @property
    def changed(self) -> int:
        return self.recovered + self.newly_unavailable

    def summary(self) -> dict[str, int]:
        return {
            "checked": self.checked,
            "available": self.available,
            "passed": self.passed,
            "newly_unavailable": self.newly_unavailable,
            "already_flagged": self.already_flagged,
            "recovered": self.recovered,
            "skipped": self.skipped,
            "ignored": self.ignored,
        }


@dataclass
class CheckOutcome:
    playlist: Playlist
    report: CheckReport


def _safe_probe(probe: Probe, song: Song, timeout_s: float) -> CheckResult:
    try:
        result = probe(song.youtube_id, timeout_s)
    except Exception as e:
        log.warning("availability_probe_failed", youtube_id=song.youtube_id, error=str(e))
        return CheckResult.SKIPPED
    if not isinstance(result, CheckResult):
        return CheckResult.SKIPPED
    return result


def probe_songs(
    songs: list[Song],
    probe: Probe,
    concurrency: int = 5,
    timeout_ms: int = 5000,
) -> list[CheckResult]:
    """Probe songs in sequential batches of `concurrency`.

    Every probe in a batch runs at once; the next batch starts only when the
    whole batch has settled. Results come back in input order.
    """
    timeout_s = timeout_ms / 1000.0
    results: list[CheckResult] = []
    if not songs:
        return results
    with ThreadPoolExecutor(max_workers=concurrency, thread_name_prefix="probe") as pool:
        for i in range(0, len(songs), concurrency):
            batch = songs[i:i + concurrency]
            futures = [pool.submit(_safe_probe, probe, s, timeout_s) for s in batch]
            results.extend(f.result() for f in futures)
    return results


def _classify(song: Song, result: CheckResult) -> Outcome:
    if result == CheckResult.AVAILABLE:
        return Outcome.RECOVERED if song.unavailable else Outcome.PASS
    if result == CheckResult.UNAVAILABLE:
        return Outcome.ALREADY_FLAGGED if song.unavailable else Outcome.NEWLY_UNAVAILABLE
    return Outcome.SKIPPED


def check_playlist(playlist: Playlist, options: CheckOptions, probe: Probe) -> CheckOutcome:
    """
    Probe every song that has a YouTube ID and reconcile `unavailable` flags.
    Nothing is mutated in dry-run mode. Never persists; see validate_playlist_file().
    """
    candidates = [s for s in playlist.songs if s.checkable]
    report = CheckReport(ignored=len(playlist.songs) - len(candidates), dry_run=options.dry_run)
    log.info("availability_run_start", songs=len(candidates),
             concurrency=options.concurrency, timeout_ms=options.timeout_ms,
             dry_run=options.dry_run)

    results = probe_songs(candidates, probe, options.concurrency, options.timeout_ms)

    for song, result in zip(candidates, results):
        outcome = _classify(song, result)
        report.entries.append(EntryOutcome(song=song, result=result, outcome=outcome))

        if outcome in (Outcome.RECOVERED, Outcome.NEWLY_UNAVAILABLE):
            log.info("availability_changed", youtube_id=song.youtube_id,
                     title=song.title, artist=song.artist, outcome=outcome.value)
        elif options.verbose:
            log.info("availability_checked", youtube_id=song.youtube_id, outcome=outcome.value)

        if options.dry_run:
            continue
        if outcome == Outcome.RECOVERED:
            song.unavailable = False
        elif outcome == Outcome.NEWLY_UNAVAILABLE:
            song.unavailable = True

    if not options.dry_run:
        playlist.last_updated = utc_now_iso()

    log.info("availability_run_done", **report.summary())
    return CheckOutcome(playlist=playlist, report=report)


def validate_playlist_file(
    path: str | Path,
    options: CheckOptions,
    probe: Probe,
) -> CheckOutcome:
    """
    Load playlist.json, check it and write it back (unless dry-run).
    Read/write failures propagate as PlaylistIOError.
    """
    playlist = load_playlist(path)
    outcome = check_playlist(playlist, options, probe)
    if not options.dry_run:
        save_playlist(outcome.playlist, path)
    return outcome
