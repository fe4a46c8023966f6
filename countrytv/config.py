"""
config — Loads config.yaml with env var overrides.

Precedence: env vars > config.yaml > defaults
"""
from __future__ import annotations
import os
from pathlib import Path
from dataclasses import dataclass
import yaml


@dataclass
class Config:
    # The single document shared by the player, the updater and the checker
    playlist_path: str = "playlist.json"

    # Upstream song source for the auto-updater
    source_kind: str = "json"  # json | html
    source_url: str = ""
    source_label: str = ""  # empty = use source_url

    # Scheduler intervals
    update_interval_minutes: int = 1440
    check_interval_hours: int = 6

    # Availability checks
    check_concurrency: int = 5
    check_timeout_ms: int = 5000
    user_agent: str = "CountryTV24-Validator/1.0"

    # Web server
    web_host: str = "0.0.0.0"
    web_port: int = 3000

    # Logging
    log_level: str = "INFO"
    log_dir: str = ""  # empty = use platformdirs default


def load_config(config_path: str | Path | None = None) -> Config:
    """Load config from YAML file, then override with env vars."""
    cfg = Config()

    # 1. Load from YAML if available
    if config_path is None:
        config_path = os.environ.get("COUNTRYTV_CONFIG", "config.yaml")
    path = Path(config_path)
    if path.exists():
        with open(path) as f:
            data = yaml.safe_load(f) or {}
        for key, value in data.items():
            key_norm = key.replace("-", "_")
            if hasattr(cfg, key_norm) and value is not None:
                setattr(cfg, key_norm, value)

    # 2. Override with env vars (COUNTRYTV_ prefix)
    env_map = {
        "COUNTRYTV_PLAYLIST": "playlist_path",
        "COUNTRYTV_SOURCE_KIND": "source_kind",
        "COUNTRYTV_SOURCE_URL": "source_url",
        "COUNTRYTV_SOURCE_LABEL": "source_label",
        "COUNTRYTV_UPDATE_INTERVAL": "update_interval_minutes",
        "COUNTRYTV_CHECK_INTERVAL": "check_interval_hours",
        "COUNTRYTV_CHECK_CONCURRENCY": "check_concurrency",
        "COUNTRYTV_CHECK_TIMEOUT": "check_timeout_ms",
        "COUNTRYTV_USER_AGENT": "user_agent",
        "COUNTRYTV_WEB_HOST": "web_host",
        "COUNTRYTV_WEB_PORT": "web_port",
        "COUNTRYTV_LOG_LEVEL": "log_level",
        "COUNTRYTV_LOG_DIR": "log_dir",
    }
    for env_key, attr in env_map.items():
        val = os.environ.get(env_key)
        if val is not None:
            field_type = type(getattr(cfg, attr))
            if field_type == int:
                setattr(cfg, attr, int(val))
            elif field_type == float:
                setattr(cfg, attr, float(val))
            else:
                setattr(cfg, attr, val)

    return cfg
