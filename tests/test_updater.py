import os
import threading

import pytest
import requests

from mollylauncher.core.downloader import Downloader
from mollylauncher.core.errors import InstallLaunchError
from mollylauncher.core.manifest import ManifestFetcher
from mollylauncher.core.skip_marker import SkipMarkerStore
from mollylauncher.core.updater import (
    EVENT_AVAILABLE,
    EVENT_CHECKING,
    EVENT_DOWNLOADED,
    EVENT_DOWNLOADING,
    EVENT_ERROR,
    EVENT_NOT_AVAILABLE,
    EVENT_PROGRESS,
    CheckOutcome,
    UpdateOrchestrator,
    UpdateState,
)

from conftest import FakeResponse, FakeSession

MANIFEST_URL = "https://example.com/version.json"
SETUP_URL = "https://example.com/setup.exe"


def manifest_session(version="2.0.0", changelog=("Better things",)):
    return FakeSession({MANIFEST_URL: FakeResponse(body={
        "version": version,
        "downloadUrl": SETUP_URL,
        "changelog": list(changelog),
    })})


class RecordingSequencer:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def install_and_relaunch(self, artifact_path, install_args):
        self.calls.append((artifact_path, tuple(install_args)))
        if self.error:
            raise self.error
        raise SystemExit(0)


class MarkerCheckingDownloader:
    """Records what the skip marker held when the download started."""

    def __init__(self, marker):
        self.marker = marker
        self.marker_at_download = None
        self.calls = []

    def download(self, url, dest_path, on_progress=None):
        self.marker_at_download = self.marker.read()
        self.calls.append((url, dest_path))
        os.makedirs(os.path.dirname(dest_path), exist_ok=True)
        with open(dest_path, "wb") as f:
            f.write(b"installer")
        return dest_path


@pytest.fixture
def marker(tmp_path):
    return SkipMarkerStore(str(tmp_path / "update-skip.txt"))


def make_orchestrator(tmp_path, marker, sink, current="1.0.0", session=None, **kwargs):
    return UpdateOrchestrator(
        current_version=current,
        manifest_url=MANIFEST_URL,
        skip_marker=marker,
        sink=sink,
        fetcher=ManifestFetcher(session or manifest_session()),
        download_dir=str(tmp_path / "updates"),
        **kwargs,
    )


# ══════════════════════════════════════════════════════════════════════════════
# CHECK
# ══════════════════════════════════════════════════════════════════════════════

def test_newer_version_is_available(tmp_path, marker, sink):
    orchestrator = make_orchestrator(tmp_path, marker, sink)

    result = orchestrator.check()

    assert result.outcome is CheckOutcome.UPDATE_AVAILABLE
    assert result.latest_version == "2.0.0"
    assert result.download_url == SETUP_URL
    assert orchestrator.state is UpdateState.UPDATE_AVAILABLE
    assert sink.names == [EVENT_CHECKING, EVENT_AVAILABLE]
    assert sink.payloads(EVENT_AVAILABLE)[0] == {
        "version": "2.0.0",
        "downloadUrl": SETUP_URL,
        "changelog": ["Better things"],
    }


@pytest.mark.parametrize("current", ["2.0.0", "2.0.1", "v2.0"])
def test_same_or_older_remote_is_no_update(tmp_path, marker, sink, current):
    orchestrator = make_orchestrator(tmp_path, marker, sink, current=current)

    result = orchestrator.check()

    assert result.outcome is CheckOutcome.NO_UPDATE
    assert orchestrator.state is UpdateState.UP_TO_DATE
    assert sink.names == [EVENT_CHECKING, EVENT_NOT_AVAILABLE]


def test_loop_guard_skips_version_that_did_not_land(tmp_path, marker, sink):
    marker.write("2.0.0")
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="1.0.0")

    result = orchestrator.check()

    assert result.outcome is CheckOutcome.SKIPPED
    assert orchestrator.state is UpdateState.SKIPPED
    assert marker.read() == "2.0.0"
    assert EVENT_AVAILABLE not in sink.names


def test_marker_cleared_once_running_version_catches_up(tmp_path, marker, sink):
    marker.write("1.1.0")
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="1.1.0",
                                     session=manifest_session("1.1.0"))

    result = orchestrator.check()

    assert result.outcome is CheckOutcome.NO_UPDATE
    assert marker.read() is None


def test_newer_release_after_skip_is_offered(tmp_path, marker, sink):
    marker.write("1.1.0")
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="1.0.0",
                                     session=manifest_session("1.2.0"))

    result = orchestrator.check()

    assert result.outcome is CheckOutcome.UPDATE_AVAILABLE
    assert result.latest_version == "1.2.0"
    assert marker.read() == "1.1.0"


def test_unreadable_marker_is_discarded(tmp_path, marker, sink):
    marker.write("garbage")
    orchestrator = make_orchestrator(tmp_path, marker, sink)

    assert orchestrator.check().outcome is CheckOutcome.UPDATE_AVAILABLE
    assert marker.read() is None


def test_fetch_failure_reports_error_and_keeps_marker(tmp_path, marker, sink):
    marker.write("1.5.0")
    session = FakeSession({MANIFEST_URL: FakeResponse(status_code=503)})
    orchestrator = make_orchestrator(tmp_path, marker, sink, session=session)

    result = orchestrator.check()

    assert result.outcome is CheckOutcome.ERROR
    assert "503" in result.error
    assert orchestrator.state is UpdateState.ERROR
    assert sink.names == [EVENT_CHECKING, EVENT_ERROR]
    assert marker.read() == "1.5.0"


def test_malformed_remote_version_is_error(tmp_path, marker, sink):
    orchestrator = make_orchestrator(tmp_path, marker, sink, session=manifest_session("2.x"))

    assert orchestrator.check().outcome is CheckOutcome.ERROR


def test_failing_sink_does_not_break_check(tmp_path, marker):
    class BrokenSink:
        def notify(self, event, payload):
            raise RuntimeError("window closed")

    orchestrator = make_orchestrator(tmp_path, marker, BrokenSink())

    assert orchestrator.check().update_available


# ══════════════════════════════════════════════════════════════════════════════
# INSTALL
# ══════════════════════════════════════════════════════════════════════════════

def test_marker_written_before_download(tmp_path, marker, sink):
    downloader = MarkerCheckingDownloader(marker)
    sequencer = RecordingSequencer()
    orchestrator = make_orchestrator(tmp_path, marker, sink, downloader=downloader,
                                     sequencer=sequencer, artifact_name="setup.exe")

    with pytest.raises(SystemExit):
        orchestrator.install(SETUP_URL, "2.0.0")

    assert downloader.marker_at_download == "2.0.0"
    artifact = str(tmp_path / "updates" / "setup.exe")
    assert sequencer.calls == [(artifact, ("/S",))]
    assert sink.names == [EVENT_DOWNLOADING, EVENT_DOWNLOADED]
    assert orchestrator.state is UpdateState.INSTALLING


def test_install_streams_progress_events(tmp_path, marker, sink):
    payload = b"z" * 20_000
    download_session = FakeSession({SETUP_URL: FakeResponse(body=payload,
                                                            headers={"Content-Length": "20000"})})
    orchestrator = make_orchestrator(tmp_path, marker, sink,
                                     downloader=Downloader(download_session))

    result = orchestrator.install(SETUP_URL, "2.0.0")

    assert result.success
    progress = sink.payloads(EVENT_PROGRESS)
    assert progress[-1] == {"percent": 100.0, "downloaded": 20_000, "total": 20_000}
    assert (tmp_path / "updates" / "MollysLauncher-update.exe").read_bytes() == payload


def test_stale_target_aborts_and_records_marker(tmp_path, marker, sink):
    downloader = MarkerCheckingDownloader(marker)
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="2.0.0", downloader=downloader)

    result = orchestrator.install(SETUP_URL, "2.0.0")

    assert not result.success
    assert downloader.calls == []
    assert marker.read() == "2.0.0"


def test_missing_target_aborts(tmp_path, marker, sink):
    downloader = MarkerCheckingDownloader(marker)
    orchestrator = make_orchestrator(tmp_path, marker, sink, downloader=downloader)

    assert not orchestrator.install(SETUP_URL, None).success
    assert downloader.calls == []
    assert marker.read() is None


def test_download_failure_keeps_marker_and_reports(tmp_path, marker, sink):
    download_session = FakeSession({SETUP_URL: FakeResponse(status_code=404)})
    orchestrator = make_orchestrator(tmp_path, marker, sink,
                                     downloader=Downloader(download_session))

    result = orchestrator.install(SETUP_URL, "2.0.0")

    assert not result.success
    assert result.error == "Failed to download: HTTP 404"
    assert marker.read() == "2.0.0"
    assert sink.names[-1] == EVENT_ERROR
    assert orchestrator.state is UpdateState.ERROR


def test_install_launch_failure_is_reported(tmp_path, marker, sink):
    sequencer = RecordingSequencer(error=InstallLaunchError("Cannot start installer"))
    orchestrator = make_orchestrator(tmp_path, marker, sink,
                                     downloader=MarkerCheckingDownloader(marker),
                                     sequencer=sequencer)

    result = orchestrator.install(SETUP_URL, "2.0.0")

    assert not result.success
    assert sink.payloads(EVENT_ERROR) == [{"message": "Cannot start installer"}]


def test_second_install_while_busy_is_dropped(tmp_path, marker, sink):
    started = threading.Event()
    release = threading.Event()

    class SlowDownloader:
        def download(self, url, dest_path, on_progress=None):
            started.set()
            release.wait(5)
            return dest_path

    orchestrator = make_orchestrator(tmp_path, marker, sink, downloader=SlowDownloader())
    results = []
    worker = threading.Thread(target=lambda: results.append(orchestrator.install(SETUP_URL, "2.0.0")))
    worker.start()
    assert started.wait(5)

    second = orchestrator.install(SETUP_URL, "2.0.0")
    release.set()
    worker.join(5)

    assert not second.success
    assert second.error == "An update is already being installed"
    assert results[0].success
    assert sink.payloads(EVENT_ERROR) == [{"message": "An update is already being installed"}]


# ══════════════════════════════════════════════════════════════════════════════
# CYCLE
# ══════════════════════════════════════════════════════════════════════════════

def test_end_to_end_update_then_skip_after_failed_install(tmp_path, marker, sink):
    """First run installs 2.0.0; the relaunch is still 1.0.0 and must not retry."""
    downloader = MarkerCheckingDownloader(marker)
    sequencer = RecordingSequencer()
    orchestrator = make_orchestrator(tmp_path, marker, sink, downloader=downloader,
                                     sequencer=sequencer, auto_install=True)

    with pytest.raises(SystemExit):
        orchestrator.run_cycle()
    assert downloader.marker_at_download == "2.0.0"

    relaunched = make_orchestrator(tmp_path, marker, sink, downloader=downloader,
                                   sequencer=sequencer, auto_install=True)
    result = relaunched.run_cycle()

    assert result.outcome is CheckOutcome.SKIPPED
    assert len(sequencer.calls) == 1


def test_cycle_without_auto_install_only_checks(tmp_path, marker, sink):
    downloader = MarkerCheckingDownloader(marker)
    orchestrator = make_orchestrator(tmp_path, marker, sink, downloader=downloader)

    result = orchestrator.run_cycle()

    assert result.update_available
    assert downloader.calls == []


def test_overlapping_cycle_is_dropped(tmp_path, marker, sink):
    orchestrator = make_orchestrator(tmp_path, marker, sink)
    orchestrator._cycle_lock.acquire()
    try:
        assert orchestrator.is_busy
        assert orchestrator.run_cycle() is None
    finally:
        orchestrator._cycle_lock.release()
    assert not orchestrator.is_busy


def test_network_error_in_cycle_is_not_raised(tmp_path, marker, sink):
    session = FakeSession({MANIFEST_URL: requests.ConnectionError("offline")})
    orchestrator = make_orchestrator(tmp_path, marker, sink, session=session)

    assert orchestrator.run_cycle().outcome is CheckOutcome.ERROR


# ══════════════════════════════════════════════════════════════════════════════
# SCENARIOS
# ══════════════════════════════════════════════════════════════════════════════

def test_recovered_version_clears_marker_and_offers_next_release(tmp_path, marker, sink):
    marker.write("1.1.0")
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="1.1.0",
                                     session=manifest_session("1.2.0"))

    result = orchestrator.check()

    assert marker.read() is None
    assert result.outcome is CheckOutcome.UPDATE_AVAILABLE
    assert result.latest_version == "1.2.0"


def test_check_then_install_writes_marker_before_download(tmp_path, marker, sink):
    downloader = MarkerCheckingDownloader(marker)
    sequencer = RecordingSequencer()
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="1.9.5",
                                     session=manifest_session("2.0.0", changelog=["fix"]),
                                     downloader=downloader, sequencer=sequencer)

    result = orchestrator.check()
    assert result.outcome is CheckOutcome.UPDATE_AVAILABLE
    assert sink.payloads(EVENT_AVAILABLE) == [{
        "version": "2.0.0",
        "downloadUrl": SETUP_URL,
        "changelog": ["fix"],
    }]

    with pytest.raises(SystemExit):
        orchestrator.install(result.download_url, result.latest_version)

    assert downloader.marker_at_download == "2.0.0"
    assert len(sequencer.calls) == 1
    assert marker.read() == "2.0.0"


def test_older_target_is_downloaded(tmp_path, marker, sink):
    downloader = MarkerCheckingDownloader(marker)
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="1.0.0", downloader=downloader)

    result = orchestrator.install("https://example.com/old.exe", "0.9.0")

    assert result.success
    assert downloader.calls[0][0] == "https://example.com/old.exe"
    assert downloader.marker_at_download == "0.9.0"


def test_rejected_install_reports_one_error_event(tmp_path, marker, sink):
    orchestrator = make_orchestrator(tmp_path, marker, sink, current="2.0.0",
                                     downloader=MarkerCheckingDownloader(marker))

    result = orchestrator.install(SETUP_URL, "2.0.0")

    assert sink.payloads(EVENT_ERROR) == [{"message": result.error}]


def test_missing_url_reports_error_event(tmp_path, marker, sink):
    orchestrator = make_orchestrator(tmp_path, marker, sink,
                                     downloader=MarkerCheckingDownloader(marker))

    result = orchestrator.install("", "2.0.0")

    assert not result.success
    assert sink.payloads(EVENT_ERROR) == [{"message": "No download URL"}]


def test_failed_download_reports_error_once(tmp_path, marker, sink):
    download_session = FakeSession({SETUP_URL: FakeResponse(status_code=500)})
    orchestrator = make_orchestrator(tmp_path, marker, sink,
                                     downloader=Downloader(download_session))

    orchestrator.install(SETUP_URL, "2.0.0")

    assert sink.names.count(EVENT_ERROR) == 1


def test_stop_with_zero_timeout_returns_immediately(tmp_path, marker, sink):
    orchestrator = make_orchestrator(tmp_path, marker, sink, initial_delay=60)
    orchestrator.start()

    orchestrator.stop(timeout=0)

    assert orchestrator.scheduler._stop.is_set()
