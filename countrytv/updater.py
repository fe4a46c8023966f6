"""
updater — Auto-update service: re-scrape the upstream source and merge it into playlist.json.

Merge rules:
- Songs are matched by YouTube ID; positions shift between runs and are not identity.
- Matched songs take title/artist/position from the source but keep addedDate,
  unavailable and isNew (isNew is never set again once a consumer cleared it).
- Unmatched source songs are inserted with a fresh addedDate and isNew=True.
- Songs missing from the source are retained (a partial scrape must not wipe the
  playlist). They go after the source songs and are renumbered past the highest
  source position so positions stay unique.
"""
from __future__ import annotations

import copy
import threading
import time
from concurrent.futures import Future
from contextlib import nullcontext
from dataclasses import dataclass, field, asdict
from enum import Enum
from pathlib import Path
from typing import Any, Protocol

import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .errors import MergeError, SourceError
from .playlist import Song, load_playlist, save_playlist, utc_now_iso
from .scraper import Candidate

log = structlog.get_logger()


class SongSource(Protocol):
    label: str

    def fetch(self) -> list[Candidate]: ...


# --- Merge ---

@dataclass
class MergeResult:
    songs: list[Song]
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    retained: int = 0


def _validate_candidates(candidates: list[Candidate]) -> None:
    positions: set[int] = set()
    ids: set[str] = set()
    for idx, c in enumerate(candidates, 1):
        if not isinstance(c.position, int) or isinstance(c.position, bool) or c.position < 1:
            raise MergeError(f"candidate {idx}: invalid position {c.position!r}")
        for name in ("title", "artist", "youtube_id"):
            value = getattr(c, name)
            if not isinstance(value, str) or not value.strip():
                raise MergeError(f"candidate {idx}: missing {name}")
        if c.position in positions:
            raise MergeError(f"candidate {idx}: duplicate position {c.position}")
        if c.youtube_id in ids:
            raise MergeError(f"candidate {idx}: duplicate YouTube ID {c.youtube_id}")
        positions.add(c.position)
        ids.add(c.youtube_id)


def merge_songs(existing: list[Song], candidates: list[Candidate], now: str) -> MergeResult:
    """Reconcile scraped candidates against the current songs.

    Does not modify `existing`; returns new Song objects.
    Raises MergeError on malformed candidates.
    """
    _validate_candidates(candidates)

    # First occurrence wins; later duplicates of an ID are retained like dropped songs
    by_id: dict[str, Song] = {}
    for s in existing:
        if s.youtube_id:
            by_id.setdefault(s.youtube_id, s)
    result = MergeResult(songs=[])
    matched: set[int] = set()  # id() of existing songs taken by a candidate

    for c in candidates:
        title, artist = c.title.strip(), c.artist.strip()
        old = by_id.get(c.youtube_id)
        if old is None:
            result.songs.append(Song(
                position=c.position,
                title=title,
                artist=artist,
                youtube_id=c.youtube_id,
                added_date=now,
                is_new=True,
            ))
            result.added += 1
            continue

        matched.add(id(old))
        song = copy.deepcopy(old)
        if (song.title, song.artist, song.position) == (title, artist, c.position):
            result.unchanged += 1
        else:
            song.title, song.artist, song.position = title, artist, c.position
            result.updated += 1
        result.songs.append(song)

    next_pos = max((c.position for c in candidates), default=0) + 1
    for old in existing:
        if id(old) in matched:
            continue
        song = copy.deepcopy(old)
        song.position = next_pos
        next_pos += 1
        result.songs.append(song)
        result.retained += 1

    return result


# --- Service ---

class UpdateState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    FAILED = "failed"


@dataclass
class RefreshResult:
    success: bool
    started_at: str
    finished_at: str
    source: str = ""
    added: int = 0
    updated: int = 0
    unchanged: int = 0
    retained: int = 0
    total: int = 0
    error: str | None = None
    duration_s: float = 0.0


@dataclass
class UpdateStatus:
    state: UpdateState = UpdateState.IDLE
    is_running: bool = False
    last_result: RefreshResult | None = None
    last_success_at: str | None = None
    interval_minutes: int | None = None
    checked_at: str = field(default_factory=utc_now_iso)

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["state"] = self.state.value
        return d


class AutoUpdateService:
    """Periodically refresh playlist.json from an upstream source.

    At most one refresh runs at a time: trigger_update() while a run is in
    flight returns the in-flight future instead of starting another.
    """

    JOB_ID = "playlist_update"

    def __init__(self, playlist_path: str | Path, scraper: SongSource, document_lock=None):
        self.playlist_path = Path(playlist_path)
        self.scraper = scraper
        # Supplied by the host process to serialise with the availability checker
        self.document_lock = document_lock
        self._guard = threading.Lock()
        self._running = False
        self._future: Future | None = None
        self._state = UpdateState.IDLE
        self._last_result: RefreshResult | None = None
        self._last_success_at: str | None = None
        self._interval_minutes: int | None = None
        self._scheduler = None
        self._owns_scheduler = False

    def start(self, interval_minutes: int, scheduler=None):
        """Schedule trigger_update() every interval_minutes and run once now.

        Uses the given APScheduler scheduler, else starts a private
        BackgroundScheduler (stopped again by stop()).
        """
        if interval_minutes < 1:
            raise ValueError(f"interval must be positive, got {interval_minutes}")
        if scheduler is None:
            scheduler = BackgroundScheduler()
            scheduler.start()
            self._owns_scheduler = True
        self._scheduler = scheduler
        self._interval_minutes = interval_minutes

        scheduler.add_job(
            self.trigger_update,
            trigger=IntervalTrigger(minutes=interval_minutes),
            id=self.JOB_ID,
            name="Refresh playlist from source",
            replace_existing=True,
            max_instances=1,
        )
        log.info("auto_update_started", interval=f"{interval_minutes}m", source=self.scraper.label)
        self.trigger_update()
        return scheduler

    def stop(self):
        if self._scheduler is not None and self._owns_scheduler:
            self._scheduler.shutdown(wait=False)
        self._scheduler = None
        self._owns_scheduler = False

    def trigger_update(self) -> Future:
        """Start a refresh in the background, or join the one in flight."""
        with self._guard:
            if self._running and self._future is not None:
                log.info("update_already_running")
                return self._future
            self._running = True
            self._state = UpdateState.RUNNING
            future: Future = Future()
            self._future = future

        t = threading.Thread(target=self._run, args=(future,), name="playlist-update", daemon=True)
        t.start()
        return future

    def run_now(self) -> RefreshResult:
        """Trigger and wait (CLI one-shot)."""
        return self.trigger_update().result()

    def get_status(self) -> UpdateStatus:
        with self._guard:
            return UpdateStatus(
                state=self._state,
                is_running=self._running,
                last_result=self._last_result,
                last_success_at=self._last_success_at,
                interval_minutes=self._interval_minutes,
            )

    def _run(self, future: Future):
        started_at = utc_now_iso()
        t0 = time.monotonic()
        log.info("update_start", source=self.scraper.label)
        try:
            with self.document_lock or nullcontext():
                result = self._refresh(started_at)
        except Exception as e:
            result = RefreshResult(
                success=False,
                started_at=started_at,
                finished_at=utc_now_iso(),
                source=self.scraper.label,
                error=f"{type(e).__name__}: {e}",
            )
            log.error("update_failed", source=self.scraper.label, error=result.error)
        result.duration_s = round(time.monotonic() - t0, 3)

        with self._guard:
            self._last_result = result
            if result.success:
                self._state = UpdateState.IDLE
                self._last_success_at = result.finished_at
            else:
                self._state = UpdateState.FAILED
            self._running = False
        future.set_result(result)

    def _refresh(self, started_at: str) -> RefreshResult:
        candidates = self.scraper.fetch()
        if not candidates:
            raise SourceError("source returned no songs")

        playlist = load_playlist(self.playlist_path, missing_ok=True)
        now = utc_now_iso()
        merged = merge_songs(playlist.songs, candidates, now)

        playlist.songs = merged.songs
        playlist.source = self.scraper.label
        playlist.last_updated = now
        save_playlist(playlist, self.playlist_path)

        log.info("update_done", source=self.scraper.label, added=merged.added,
                 updated=merged.updated, unchanged=merged.unchanged,
                 retained=merged.retained, total=len(merged.songs))
        return RefreshResult(
            success=True,
            started_at=started_at,
            finished_at=utc_now_iso(),
            source=self.scraper.label,
            added=merged.added,
            updated=merged.updated,
            unchanged=merged.unchanged,
            retained=merged.retained,
            total=len(merged.songs),
        )
