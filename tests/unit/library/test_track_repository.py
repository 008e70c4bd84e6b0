from datetime import date, datetime, timedelta

import pytest
from sqlalchemy import func, select

from catalog.database.db_manager import Track
from catalog.domain.library.repository import TrackRepository
from catalog.errors import DatastoreError
from catalog.utils.cancellation import CancellationRequested, CancelToken
from tests.support.factories import TrackRecordFactory


class _StepClock:
    def __init__(self, start=datetime(2024, 5, 1, 10, 0, 0)):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def _count(session):
    return session.execute(select(func.count()).select_from(Track)).scalar_one()


@pytest.mark.unit
def test_upsert_is_idempotent_and_refreshes_timestamp(db_session):
    clock = _StepClock()
    repo = TrackRepository(clock=clock)
    records = [TrackRecordFactory(spotify_id="a"), TrackRecordFactory(spotify_id="b")]

    first = repo.upsert(records)
    assert (first.saved, first.new, first.existing) == (2, 2, 0)
    clock.advance(hours=1)
    second = repo.upsert(records)
    assert (second.saved, second.new, second.existing) == (2, 0, 2)

    assert _count(db_session) == 2
    row = db_session.execute(select(Track).where(Track.spotify_id == "a")).scalar_one()
    assert row.fetched_at == datetime(2024, 5, 1, 11, 0, 0)


@pytest.mark.unit
def test_duplicate_ids_collapse_to_last_record(db_session):
    repo = TrackRepository()
    result = repo.upsert([
        TrackRecordFactory(spotify_id="dup", name="Old name", bpm=90.0),
        TrackRecordFactory(spotify_id="other"),
        TrackRecordFactory(spotify_id="dup", name="New name", bpm=91.0),
    ])
    assert (result.received, result.unique, result.saved) == (3, 2, 2)
    row = repo.get_track("dup")
    assert row.name == "New name"
    assert row.bpm == 91.0


@pytest.mark.unit
def test_conflict_overwrites_every_mutable_field(db_session):
    repo = TrackRepository()
    repo.upsert([TrackRecordFactory(spotify_id="x", genres=["pop"], bpm=100.0, release_date="2019", featured=False)])
    repo.upsert([TrackRecordFactory(
        spotify_id="x", name="Renamed", genres=["trap"], bpm=None, release_date=None,
        featured=True, artists=["Bizarrap", "Duki"], artist_main="Bizarrap",
    )])
    db_session.expire_all()
    row = repo.get_track("x")
    assert row.name == "Renamed"
    assert row.genres == ["trap"]
    assert row.bpm is None
    assert row.release_date is None
    assert row.featured is True
    assert row.artist_main == "Bizarrap"


@pytest.mark.unit
def test_writes_in_batches_of_fifty(db_session):
    repo = TrackRepository()
    result = repo.upsert(TrackRecordFactory.build_batch(120))
    assert result.batches == 3
    assert _count(db_session) == 120


@pytest.mark.unit
def test_empty_upsert_is_a_no_op(db_session):
    result = TrackRepository().upsert([])
    assert result.saved == 0
    assert _count(db_session) == 0


class _FlakySession:
    """Delegates to the real session but fails the Nth insert."""

    def __init__(self, inner, fail_on):
        self._inner = inner
        self._fail_on = fail_on
        self.inserts = 0

    def execute(self, statement, *args, **kwargs):
        from sqlalchemy.exc import OperationalError

        if getattr(statement, "is_insert", False):
            self.inserts += 1
            if self.inserts == self._fail_on:
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))
        return self._inner.execute(statement, *args, **kwargs)

    def __getattr__(self, name):
        return getattr(self._inner, name)


@pytest.mark.unit
def test_failing_batch_raises_datastore_error(db_session):
    repo = TrackRepository(session=_FlakySession(db_session, fail_on=2))
    with pytest.raises(DatastoreError, match="batch 2"):
        repo.upsert(TrackRecordFactory.build_batch(75))
    # the first batch stays committed
    assert _count(db_session) == 50


@pytest.mark.unit
def test_cancellation_between_batches(db_session):
    token = CancelToken()
    token.cancel("deadline")
    with pytest.raises(CancellationRequested):
        TrackRepository().upsert(TrackRecordFactory.build_batch(3), cancel=token)
    assert _count(db_session) == 0


@pytest.mark.unit
def test_list_tracks_filters_genre_case_insensitively(factories):
    factories.TrackFactory(spotify_id="a", genres=["Trap Argentino", "pop"])
    factories.TrackFactory(spotify_id="b", genres=["trap argentino"])
    factories.TrackFactory(spotify_id="c", genres=["rock"])
    factories.TrackFactory(spotify_id="d", genres=[])
    repo = TrackRepository()

    assert sorted(t.spotify_id for t in repo.list_tracks(genre="TRAP ARGENTINO")) == ["a", "b"]
    assert repo.list_tracks(genre="trap") == []
    assert len(repo.list_tracks()) == 4


@pytest.mark.unit
def test_get_track_by_spotify_id_or_row_id(factories):
    track = factories.TrackFactory(spotify_id="spot-1")
    repo = TrackRepository()
    assert repo.get_track("spot-1").id == track.id
    assert repo.get_track(str(track.id)).spotify_id == "spot-1"
    assert repo.get_track("999999") is None
    assert repo.get_track("") is None


@pytest.mark.unit
def test_artists_are_distinct_and_sorted(factories):
    factories.TrackFactory(artist_main="Emilia")
    factories.TrackFactory(artist_main="Duki")
    factories.TrackFactory(artist_main="Duki")
    assert TrackRepository().list_artists() == [
        {"name": "Duki", "id": "Duki"},
        {"name": "Emilia", "id": "Emilia"},
    ]


@pytest.mark.unit
def test_tracks_by_artist_newest_first(factories):
    factories.TrackFactory(spotify_id="old", artist_main="Duki", fetched_at=datetime(2024, 1, 1))
    factories.TrackFactory(spotify_id="new", artist_main="Duki", fetched_at=datetime(2024, 2, 1))
    factories.TrackFactory(spotify_id="other", artist_main="Airbag")
    assert [t.spotify_id for t in TrackRepository().tracks_by_artist("duki")] == ["new", "old"]


@pytest.mark.unit
def test_delete_by_spotify_ids(factories, db_session):
    factories.TrackFactory(spotify_id="keep")
    factories.TrackFactory(spotify_id="drop-1")
    factories.TrackFactory(spotify_id="drop-2")
    db_session.commit()
    assert TrackRepository().delete_by_spotify_ids(["drop-1", "drop-2", "missing"]) == 2
    assert [t.spotify_id for t in TrackRepository().list_tracks()] == ["keep"]


@pytest.mark.unit
def test_to_dict_serializes_dates(factories):
    track = factories.TrackFactory(spotify_id="z", release_date=date(2004, 1, 1), fetched_at=datetime(2024, 1, 1, 8, 30))
    data = track.to_dict()
    assert data["release_date"] == "2004-01-01"
    assert data["fetched_at"] == "2024-01-01T08:30:00"
    assert data["featured"] is False
