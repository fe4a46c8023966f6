"""
routers/playlist — Auto-update status/trigger and the "new songs" feed.
"""
from __future__ import annotations
from fastapi import APIRouter, Depends, HTTPException

from ...config import Config
from ...errors import PlaylistIOError
from ...playlist import load_playlist
from ...updater import AutoUpdateService
from ..deps import get_config, get_updater
from ..schemas import NewSongsResponse, SongResponse, TriggerResponse, UpdateStatusResponse

router = APIRouter(prefix="/api", tags=["playlist"])


@router.get("/update-status", response_model=UpdateStatusResponse)
def update_status(updater: AutoUpdateService = Depends(get_updater)):
    return UpdateStatusResponse(**updater.get_status().to_dict())


@router.post("/trigger-update", response_model=TriggerResponse)
def trigger_update(updater: AutoUpdateService = Depends(get_updater)):
    # Returns immediately; the refresh runs on a worker thread
    already = updater.get_status().is_running
    updater.trigger_update()
    if already:
        return TriggerResponse(status="update running", message="Playlist update already in progress")
    return TriggerResponse(status="update triggered", message="Playlist update started")


@router.get("/new-songs", response_model=NewSongsResponse)
def new_songs(cfg: Config = Depends(get_config)):
    try:
        playlist = load_playlist(cfg.playlist_path, missing_ok=True)
    except PlaylistIOError as e:
        raise HTTPException(500, f"Failed to read new songs: {e}")
    if not playlist.songs and not playlist.last_updated:
        return NewSongsResponse(count=0, songs=[], lastUpdated=None)
    songs = [SongResponse(**s.to_dict()) for s in playlist.new_songs()]
    return NewSongsResponse(count=len(songs), songs=songs, lastUpdated=playlist.last_updated or None)
