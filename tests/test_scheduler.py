"""Tests for the maintenance composition root."""
import json
import threading
import time
from unittest.mock import MagicMock

from countrytv.availability import CheckResult
from countrytv.config import Config
from countrytv.scheduler import PlaylistMaintenance
from countrytv.updater import AutoUpdateService

from conftest import FakeProbe, FakeScraper, cand, song, write_playlist


def _maintenance(tmp_path, probe, songs):
    path = write_playlist(tmp_path / "playlist.json", songs)
    cfg = Config(playlist_path=str(path), check_concurrency=2)
    return PlaylistMaintenance(cfg, updater=AutoUpdateService(path, FakeScraper([cand(1, "A")])),
                               probe=probe), path


def test_availability_job_checks_and_writes(tmp_path):
    probe = FakeProbe(default=CheckResult.UNAVAILABLE)
    mt, path = _maintenance(tmp_path, probe, [song(1, "A")])
    report = mt.availability_job()
    assert report.newly_unavailable == 1
    assert json.loads(path.read_text(encoding="utf-8"))["songs"][0]["unavailable"] is True
    assert not mt.document_lock.locked()


def test_availability_job_skips_while_playlist_busy(tmp_path):
    probe = FakeProbe()
    mt, path = _maintenance(tmp_path, probe, [song(1, "A")])
    before = path.read_bytes()
    mt.document_lock.acquire()
    try:
        assert mt.availability_job() is None
    finally:
        mt.document_lock.release()
    assert probe.calls == []
    assert path.read_bytes() == before


def test_availability_job_absorbs_io_errors(tmp_path):
    cfg = Config(playlist_path=str(tmp_path / "missing.json"))
    mt = PlaylistMaintenance(cfg, updater=AutoUpdateService(cfg.playlist_path, FakeScraper()),
                             probe=FakeProbe())
    assert mt.availability_job() is None
    assert not mt.document_lock.locked()


def test_default_updater_shares_document_lock(tmp_path):
    cfg = Config(playlist_path=str(tmp_path / "p.json"), source_url="https://charts.example")
    mt = PlaylistMaintenance(cfg, probe=FakeProbe())
    assert mt.updater.document_lock is mt.document_lock


def test_install_registers_both_jobs(tmp_path):
    mt, _ = _maintenance(tmp_path, FakeProbe(), [song(1, "A")])
    scheduler = MagicMock()
    mt.install(scheduler)
    ids = [call.kwargs["id"] for call in scheduler.add_job.call_args_list]
    assert ids == ["check_availability", AutoUpdateService.JOB_ID]
    assert mt.updater.trigger_update().result(timeout=5).success


def test_injected_updater_gets_document_lock(tmp_path):
    gate = threading.Event()
    mt, path = _maintenance(tmp_path, FakeProbe(), [song(1, "A")])
    mt.updater.scraper = FakeScraper([cand(1, "A"), cand(2, "B")], gate=gate)
    assert mt.updater.document_lock is mt.document_lock

    future = mt.updater.trigger_update()
    try:
        # The refresh holds the playlist until its scrape returns
        deadline = time.monotonic() + 5
        while not mt.document_lock.locked() and time.monotonic() < deadline:
            time.sleep(0.01)
        assert mt.availability_job() is None
        assert mt.probe.calls == []
    finally:
        gate.set()
    assert future.result(timeout=5).success

    report = mt.availability_job()
    assert report.checked == 2
    assert len(json.loads(path.read_text(encoding="utf-8"))["songs"]) == 2


def test_updater_with_own_lock_is_shared(tmp_path):
    lock = threading.Lock()
    svc = AutoUpdateService(tmp_path / "p.json", FakeScraper(), document_lock=lock)
    mt = PlaylistMaintenance(Config(playlist_path=str(tmp_path / "p.json")), updater=svc,
                             probe=FakeProbe())
    assert mt.document_lock is lock
