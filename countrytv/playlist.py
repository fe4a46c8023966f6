"""
playlist — The playlist.json document shared by the player, the updater and the checker.

The document is small (hundreds of songs), so every write is a full replace:
read, modify in memory, write to a temp file and rename over the original.
"""
from __future__ import annotations

import json
import os
import stat
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog

from .errors import PlaylistFormatError, PlaylistIOError

log = structlog.get_logger()

_SONG_KEYS = ("position", "title", "artist", "youtubeId", "addedDate", "isNew", "unavailable")
_PLAYLIST_KEYS = ("lastUpdated", "source", "songs")


def utc_now_iso() -> str:
    """Current UTC time as '2025-01-31T12:00:00.000Z'."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def _opt_bool(data: dict, key: str) -> bool | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, bool):
        raise PlaylistFormatError(f"'{key}' must be a boolean, got {value!r}")
    return value


@dataclass
class Song:
    position: int
    title: str
    artist: str
    youtube_id: str = ""
    added_date: str = ""
    # None means "not present in the document"; kept that way on write
    is_new: bool | None = None
    unavailable: bool | None = None
    extra: dict[str, Any] = field(default_factory=dict)

    @property
    def checkable(self) -> bool:
        return bool(self.youtube_id)

    @property
    def label(self) -> str:
        return f"{self.artist} - {self.title} ({self.youtube_id or 'no id'})"

    @classmethod
    def from_dict(cls, data: dict) -> "Song":
        if not isinstance(data, dict):
            raise PlaylistFormatError(f"song must be an object, got {type(data).__name__}")
        position = data.get("position")
        if not isinstance(position, int) or isinstance(position, bool):
            raise PlaylistFormatError(f"song position must be an integer, got {position!r}")
        return cls(
            position=position,
            title=str(data.get("title") or ""),
            artist=str(data.get("artist") or ""),
            youtube_id=str(data.get("youtubeId") or ""),
            added_date=str(data.get("addedDate") or ""),
            is_new=_opt_bool(data, "isNew"),
            unavailable=_opt_bool(data, "unavailable"),
            extra={k: v for k, v in data.items() if k not in _SONG_KEYS},
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "position": self.position,
            "title": self.title,
            "artist": self.artist,
            "youtubeId": self.youtube_id,
            "addedDate": self.added_date,
        }
        if self.is_new is not None:
            d["isNew"] = self.is_new
        if self.unavailable is not None:
            d["unavailable"] = self.unavailable
        d.update(self.extra)
        return d


@dataclass
class Playlist:
    last_updated: str = ""
    source: str = ""
    songs: list[Song] = field(default_factory=list)
    extra: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: dict) -> "Playlist":
        if not isinstance(data, dict):
            raise PlaylistFormatError("playlist must be a JSON object")
        songs = data.get("songs", [])
        if not isinstance(songs, list):
            raise PlaylistFormatError("'songs' must be an array")
        parsed = [Song.from_dict(s) for s in songs]

        seen: set[int] = set()
        for s in parsed:
            if s.position in seen:
                raise PlaylistFormatError(f"duplicate song position {s.position}")
            seen.add(s.position)

        return cls(
            last_updated=str(data.get("lastUpdated") or ""),
            source=str(data.get("source") or ""),
            songs=parsed,
            extra={k: v for k, v in data.items() if k not in _PLAYLIST_KEYS},
        )

    def to_dict(self) -> dict:
        d: dict[str, Any] = {
            "lastUpdated": self.last_updated,
            "source": self.source,
            "songs": [s.to_dict() for s in self.songs],
        }
        d.update(self.extra)
        return d

    def new_songs(self) -> list[Song]:
        return [s for s in self.songs if s.is_new is True]


def load_playlist(path: str | Path, missing_ok: bool = False) -> Playlist:
    """Read and parse playlist.json.

    Any failure (missing file, bad JSON, wrong shape) raises PlaylistIOError,
    except a missing file with missing_ok=True, which yields an empty playlist.
    """
    path = Path(path)
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError as e:
        if missing_ok:
            log.info("playlist_missing", path=str(path))
            return Playlist()
        raise PlaylistIOError(path, "could not read playlist") from e
    except (OSError, UnicodeDecodeError) as e:
        raise PlaylistIOError(path, f"could not read playlist: {e}") from e

    try:
        return Playlist.from_dict(json.loads(raw))
    except (ValueError, PlaylistFormatError) as e:
        raise PlaylistIOError(path, f"invalid playlist: {e}") from e


def _file_mode(path: Path) -> int:
    """Mode for a rewritten playlist: keep the existing one, else what open() would give."""
    try:
        return stat.S_IMODE(path.stat().st_mode)
    except FileNotFoundError:
        umask = os.umask(0)
        os.umask(umask)
        return 0o666 & ~umask


def save_playlist(playlist: Playlist, path: str | Path) -> None:
    """Replace playlist.json atomically (temp file + rename)."""
    path = Path(path)
    payload = json.dumps(playlist.to_dict(), indent=2, ensure_ascii=False)
    tmp_name = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            f.write(payload)
            f.write("\n")
        # mkstemp creates 0600; readers such as the web server need the usual mode
        os.chmod(tmp_name, _file_mode(path))
        os.replace(tmp_name, path)
    except OSError as e:
        if tmp_name and os.path.exists(tmp_name):
            os.unlink(tmp_name)
        raise PlaylistIOError(path, f"could not write playlist: {e}") from e
    log.info("playlist_saved", path=str(path), songs=len(playlist.songs))
