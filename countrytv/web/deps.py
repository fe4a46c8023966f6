"""
deps — FastAPI dependencies (config, maintenance services).
"""
from __future__ import annotations
from fastapi import Request

from ..config import Config
from ..scheduler import PlaylistMaintenance
from ..updater import AutoUpdateService


def get_config(request: Request) -> Config:
    return request.app.state.config


def get_maintenance(request: Request) -> PlaylistMaintenance:
    return request.app.state.maintenance


def get_updater(request: Request) -> AutoUpdateService:
    return request.app.state.maintenance.updater
