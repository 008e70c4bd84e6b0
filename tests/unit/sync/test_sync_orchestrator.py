import logging

import pytest

from catalog.domain.remote.client import ArtistMatch
from catalog.domain.sync.orchestrator import SyncOrchestrator
from catalog.domain.sync.records import UpsertResult
from catalog.errors import DatastoreError, RateLimitExceeded
from catalog.utils.cancellation import CancellationRequested, CancelToken
from tests.support.stubs import FakeCatalogClient, SleepRecorder, make_track


class _RecordingRepository:
    def __init__(self, error=None):
        self.batches = []
        self.error = error

    def upsert(self, records, cancel=None):
        records = list(records)
        self.batches.append(records)
        if self.error is not None:
            raise self.error
        return UpsertResult(received=len(records), unique=len(records), saved=len(records), batches=1)


def _client(**kwargs):
    artists = {
        "Duki": ArtistMatch("duki-id", "Duki", 80, ["trap argentino"]),
        "Bizarrap": ArtistMatch("biza-id", "Bizarrap", 85, ["argentine hip hop"]),
    }
    top_tracks = {
        "duki-id": [make_track("d1", artists=["Duki"]), make_track("shared", artists=["Duki", "Bizarrap"])],
        "biza-id": [make_track("b1", artists=["Bizarrap"]), make_track("shared", artists=["Duki", "Bizarrap"])],
    }
    tempos = {"d1": 140.0, "shared": 95.5, "b1": 120.0}
    params = dict(artists=artists, top_tracks=top_tracks, tempos=tempos)
    params.update(kwargs)
    return FakeCatalogClient(**params)


def _settings(catalog_settings, **update):
    return catalog_settings.model_copy(update=update)


@pytest.mark.unit
def test_run_collects_dedupes_and_upserts_once(catalog_settings):
    repo = _RecordingRepository()
    sleeps = SleepRecorder()
    orchestrator = SyncOrchestrator(_client(), repo, _settings(catalog_settings, artist_delay_ms=300), sleep=sleeps)

    run = orchestrator.run()

    assert run.status == "completed"
    assert len(repo.batches) == 1
    assert [r.spotify_id for r in repo.batches[0]] == ["d1", "shared", "b1"]
    assert (run.found, run.processed, run.duplicates, run.saved) == (4, 3, 1, 3)
    assert run.succeeded == ["Duki", "Bizarrap"]
    assert sleeps.calls == [0.3]
    shared = repo.batches[0][1]
    assert shared.artist_main == "Duki"
    assert shared.bpm == 95.5
    assert shared.genres == ["trap argentino"]


@pytest.mark.unit
def test_lead_only_policy_files_features_under_lead_artist(catalog_settings):
    repo = _RecordingRepository()
    client = _client(top_tracks={"duki-id": [make_track("x", artists=["Bizarrap", "Duki"])]})
    settings = _settings(catalog_settings, artists=["Duki"], primary_artist_policy="lead_only")
    SyncOrchestrator(client, repo, settings, sleep=SleepRecorder()).run()
    record = repo.batches[0][0]
    assert record.artist_main == "Bizarrap"
    assert record.featured is True


@pytest.mark.unit
def test_featured_tracks_can_be_excluded(catalog_settings):
    repo = _RecordingRepository()
    client = _client(top_tracks={"duki-id": [make_track("x", artists=["Bizarrap", "Duki"]), make_track("y")]})
    settings = _settings(catalog_settings, artists=["Duki"], primary_artist_policy="lead_only", include_featured=False)
    SyncOrchestrator(client, repo, settings, sleep=SleepRecorder()).run()
    assert [r.spotify_id for r in repo.batches[0]] == ["y"]


@pytest.mark.unit
def test_failing_artist_is_skipped(catalog_settings):
    repo = _RecordingRepository()
    client = _client(failures={"Duki": RateLimitExceeded("slow down", status=429)})
    run = SyncOrchestrator(client, repo, catalog_settings, sleep=SleepRecorder()).run()
    assert run.status == "completed"
    assert run.errors == 1
    assert run.failed[0]["artist"] == "Duki"
    assert run.succeeded == ["Bizarrap"]
    assert [r.spotify_id for r in repo.batches[0]] == ["b1", "shared"]


@pytest.mark.unit
def test_unknown_artist_and_empty_catalog_are_errors(catalog_settings):
    repo = _RecordingRepository()
    client = _client(top_tracks={"duki-id": []})
    settings = _settings(catalog_settings, artists=["Duki", "Nobody"])
    run = SyncOrchestrator(client, repo, settings, sleep=SleepRecorder()).run()
    assert [f["artist"] for f in run.failed] == ["Duki", "Nobody"]
    assert repo.batches == []


@pytest.mark.unit
def test_tempo_failure_keeps_tracks_without_bpm(catalog_settings):
    repo = _RecordingRepository()
    client = _client(tempo_error=RateLimitExceeded("no tempo", status=429))
    settings = _settings(catalog_settings, artists=["Duki"])
    run = SyncOrchestrator(client, repo, settings, sleep=SleepRecorder()).run()
    assert run.errors == 0
    assert [r.bpm for r in repo.batches[0]] == [None, None]


@pytest.mark.unit
def test_track_cap_stops_accumulation(catalog_settings):
    repo = _RecordingRepository()
    settings = _settings(catalog_settings, max_tracks_to_process=2)
    client = _client()
    run = SyncOrchestrator(client, repo, settings, sleep=SleepRecorder()).run()
    assert run.processed == 2
    assert [r.spotify_id for r in repo.batches[0]] == ["d1", "shared"]
    assert ("search_artist", "Bizarrap") not in client.calls


@pytest.mark.unit
def test_search_expands_top_tracks_up_to_target(catalog_settings):
    repo = _RecordingRepository()
    client = _client(search_results={"Duki": [make_track("d1"), make_track("s1"), make_track("s2"), make_track("s3")]})
    settings = _settings(catalog_settings, artists=["Duki"], tracks_per_artist=4)
    SyncOrchestrator(client, repo, settings, sleep=SleepRecorder()).run()
    assert [r.spotify_id for r in repo.batches[0]] == ["d1", "shared", "s1", "s2"]


@pytest.mark.unit
def test_test_mode_processes_first_artist_without_search(catalog_settings):
    repo = _RecordingRepository()
    client = _client(search_results={"Duki": [make_track("s1")]})
    settings = _settings(catalog_settings, test_mode=True, tracks_per_artist=10)
    run = SyncOrchestrator(client, repo, settings, sleep=SleepRecorder()).run()
    assert run.artists == ["Duki"]
    assert not any(name == "search_tracks" for name, _ in client.calls)


@pytest.mark.unit
def test_explicit_artist_names_override_roster(catalog_settings):
    repo = _RecordingRepository()
    client = _client()
    run = SyncOrchestrator(client, repo, catalog_settings, sleep=SleepRecorder()).run(["Bizarrap", "bizarrap"])
    assert run.artists == ["Bizarrap"]


@pytest.mark.unit
def test_datastore_error_marks_run_failed_and_propagates(catalog_settings):
    repo = _RecordingRepository(error=DatastoreError("disk full"))
    orchestrator = SyncOrchestrator(_client(), repo, catalog_settings, sleep=SleepRecorder())
    with pytest.raises(DatastoreError):
        orchestrator.run()
    assert orchestrator.last_run.status == "failed"
    assert orchestrator.last_run.finished_at is not None


@pytest.mark.unit
def test_cancellation_stops_further_requests(catalog_settings):
    token = CancelToken()

    def _cancel_after_first_tempo(name, arg):
        if name == "get_tempo":
            token.cancel("deadline")

    repo = _RecordingRepository()
    client = _client(on_call=_cancel_after_first_tempo)
    orchestrator = SyncOrchestrator(client, repo, catalog_settings, sleep=SleepRecorder())
    with pytest.raises(CancellationRequested):
        orchestrator.run(cancel=token)
    assert orchestrator.last_run.status == "cancelled"
    assert ("search_artist", "Bizarrap") not in client.calls
    assert repo.batches == []


@pytest.mark.unit
def test_run_logs_carry_structured_sync_run(catalog_settings, caplog):
    caplog.set_level(logging.INFO, logger="catalog.domain.sync.orchestrator")
    SyncOrchestrator(_client(), _RecordingRepository(), catalog_settings, sleep=SleepRecorder()).run()

    tagged = [r.sync_run for r in caplog.records if hasattr(r, "sync_run")]
    assert tagged[0] == {"status": "running", "artists": ["Duki", "Bizarrap"]}
    assert tagged[-1]["status"] == "completed"
    assert tagged[-1]["saved"] == 3
    assert tagged[-1]["finishedAt"] is not None


@pytest.mark.unit
def test_failed_run_log_carries_the_error(catalog_settings, caplog):
    caplog.set_level(logging.INFO, logger="catalog.domain.sync.orchestrator")
    orchestrator = SyncOrchestrator(
        _client(), _RecordingRepository(error=DatastoreError("disk full")), catalog_settings, sleep=SleepRecorder()
    )
    with pytest.raises(DatastoreError):
        orchestrator.run()
    failed = [r for r in caplog.records if getattr(r, "sync_run", None) and r.sync_run["status"] == "failed"]
    assert len(failed) == 1
    assert failed[0].sync_run["error"] == "disk full"
