"""
schemas — Pydantic response models for the API.
"""
from __future__ import annotations
from pydantic import BaseModel


# --- System ---

class HealthResponse(BaseModel):
    status: str
    timestamp: str
    scheduler_running: bool


# --- Auto-update ---

class RefreshResultResponse(BaseModel):
    success: bool
    started_at: str
    finished_at: str
    source: str
    added: int
    updated: int
    unchanged: int
    retained: int
    total: int
    error: str | None
    duration_s: float


class UpdateStatusResponse(BaseModel):
    state: str
    is_running: bool
    last_result: RefreshResultResponse | None
    last_success_at: str | None
    interval_minutes: int | None
    checked_at: str


class TriggerResponse(BaseModel):
    status: str
    message: str


# --- Songs ---

class SongResponse(BaseModel):
    position: int
    title: str
    artist: str
    youtubeId: str
    addedDate: str
    isNew: bool | None = None
    unavailable: bool | None = None


class NewSongsResponse(BaseModel):
    count: int
    songs: list[SongResponse]
    lastUpdated: str | None
