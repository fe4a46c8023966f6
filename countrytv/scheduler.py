"""
scheduler — APScheduler-based playlist maintenance (auto-update + availability checks).

Both jobs rewrite playlist.json as a whole, so they share one document lock:
the updater holds it around its read-modify-write, and an availability tick
that finds it busy is skipped.
"""
from __future__ import annotations
import signal
import sys
import threading
import structlog
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from .availability import CheckOptions, OEmbedProbe, validate_playlist_file
from .config import Config
from .scraper import build_scraper
from .updater import AutoUpdateService

log = structlog.get_logger()


class PlaylistMaintenance:
    """Composition root: owns the document lock, the updater and the probe."""

    def __init__(self, cfg: Config, updater: AutoUpdateService | None = None, probe=None):
        self.cfg = cfg
        self.document_lock = threading.Lock()
        if updater is None:
            scraper = build_scraper(cfg.source_kind, cfg.source_url, label=cfg.source_label)
            updater = AutoUpdateService(cfg.playlist_path, scraper, document_lock=self.document_lock)
        elif updater.document_lock is None:
            updater.document_lock = self.document_lock
        else:
            self.document_lock = updater.document_lock
        self.updater = updater
        self.probe = probe or OEmbedProbe(user_agent=cfg.user_agent)
        self.scheduler = None

    def check_options(self) -> CheckOptions:
        return CheckOptions(
            concurrency=self.cfg.check_concurrency,
            timeout_ms=self.cfg.check_timeout_ms,
        )

    def availability_job(self):
        """Scheduled job: check every song's video, unless a refresh holds the playlist."""
        if not self.document_lock.acquire(blocking=False):
            log.info("availability_cycle_skipped", reason="playlist_busy")
            return None
        try:
            outcome = validate_playlist_file(self.cfg.playlist_path, self.check_options(), self.probe)
            log.info("availability_cycle_done", **outcome.report.summary())
            return outcome.report
        except Exception as e:
            log.error("availability_cycle_error", error=str(e))
            return None
        finally:
            self.document_lock.release()

    def install(self, scheduler):
        scheduler.add_job(
            self.availability_job,
            trigger=IntervalTrigger(hours=self.cfg.check_interval_hours),
            id="check_availability",
            name="Check video availability",
            replace_existing=True,
            max_instances=1,
        )
        # Also runs one refresh immediately
        self.updater.start(self.cfg.update_interval_minutes, scheduler=scheduler)
        self.scheduler = scheduler
        return scheduler

    def start_background(self) -> BackgroundScheduler:
        """Start jobs on a background scheduler (web server lifespan)."""
        scheduler = BackgroundScheduler()
        scheduler.start()
        return self.install(scheduler)

    def shutdown(self):
        if self.scheduler is not None and self.scheduler.running:
            self.scheduler.shutdown(wait=False)
        self.scheduler = None


def start_scheduler(cfg: Config):
    """
    Start the blocking scheduler with update and availability jobs.
    This is the Docker entrypoint for headless operation.
    """
    maintenance = PlaylistMaintenance(cfg)
    scheduler = BlockingScheduler()
    maintenance.install(scheduler)

    def _shutdown(signum, frame):
        log.info("scheduler_shutdown", signal=signum)
        scheduler.shutdown(wait=False)
        sys.exit(0)

    signal.signal(signal.SIGTERM, _shutdown)
    signal.signal(signal.SIGINT, _shutdown)

    log.info("scheduler_started",
             update_interval=f"{cfg.update_interval_minutes}m",
             check_interval=f"{cfg.check_interval_hours}h")
    scheduler.start()
