from __future__ import annotations

import logging
from typing import Callable, Dict, Iterable, List, Optional, Set

from sqlalchemy import delete, func, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import SQLAlchemyError

from catalog.database.db_manager import Track, db, utcnow
from catalog.domain.sync.records import TrackRecord, UpsertResult
from catalog.errors import DatastoreError
from catalog.observability.metrics import record_tracks_saved
from catalog.utils.cancellation import CancelToken


logger = logging.getLogger(__name__)

UPSERT_BATCH_SIZE = 50
_LOOKUP_CHUNK = 500

# Overwritten on conflict; everything except the surrogate id and the key.
MUTABLE_COLUMNS = (
    "name",
    "artists",
    "artist_main",
    "featured",
    "album",
    "release_date",
    "duration_ms",
    "bpm",
    "genres",
    "preview_url",
    "cover_url",
    "fetched_at",
)

_INSERTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


class TrackRepository:
    """Idempotent writes and simple reads over ``artist_tracks``."""

    def __init__(self, session=None, clock: Callable = utcnow, batch_size: int = UPSERT_BATCH_SIZE):
        self._session = session
        self._clock = clock
        self.batch_size = max(1, int(batch_size))

    @property
    def session(self):
        return self._session if self._session is not None else db.session

    def _insert(self):
        dialect = self.session.get_bind().dialect.name
        insert = _INSERTS.get(dialect)
        if insert is None:
            raise DatastoreError(f"Upsert is not supported on the {dialect} dialect")
        return insert

    # -- writes --------------------------------------------------------------

    def existing_ids(self, spotify_ids: Iterable[str]) -> Set[str]:
        ids = list(spotify_ids)
        found: Set[str] = set()
        for start in range(0, len(ids), _LOOKUP_CHUNK):
            chunk = ids[start:start + _LOOKUP_CHUNK]
            found.update(
                self.session.execute(select(Track.spotify_id).where(Track.spotify_id.in_(chunk))).scalars()
            )
        return found

    def upsert(self, records: Iterable[TrackRecord], cancel: Optional[CancelToken] = None) -> UpsertResult:
        """Insert or overwrite tracks keyed by ``spotify_id`` in batches.

        Duplicate ids in ``records`` collapse to the last occurrence. Each
        batch commits on its own; a failing batch is rolled back and raised
        as :class:`DatastoreError`, leaving earlier batches committed.
        """
        records = list(records)
        result = UpsertResult(received=len(records))
        if not records:
            logger.warning("upsert called with no tracks")
            return result

        unique: Dict[str, TrackRecord] = {}
        for record in records:
            unique[record.spotify_id] = record
        result.unique = len(unique)
        logger.info("Preparing %d unique track(s) (of %d received)", result.unique, result.received)

        # Informational only; the conflict clause is what guarantees idempotence.
        try:
            existing = self.existing_ids(unique)
        except SQLAlchemyError as exc:
            self.session.rollback()
            logger.warning("Could not check for existing tracks (%s); continuing with upsert", exc)
        else:
            result.existing = len(existing)
            result.new = result.unique - result.existing
            if result.new == 0:
                logger.info("All %d track(s) already stored; nothing new, refreshing them", result.unique)
            else:
                logger.info("%d new track(s), %d already stored", result.new, result.existing)

        insert = self._insert()
        rows = [record.to_row() for record in unique.values()]
        for start in range(0, len(rows), self.batch_size):
            if cancel is not None:
                cancel.raise_if_cancelled()
            batch = rows[start:start + self.batch_size]
            batch_no = start // self.batch_size + 1
            fetched_at = self._clock()
            for row in batch:
                row["fetched_at"] = fetched_at

            stmt = insert(Track.__table__).values(batch)
            stmt = stmt.on_conflict_do_update(
                index_elements=["spotify_id"],
                set_={column: stmt.excluded[column] for column in MUTABLE_COLUMNS},
            )
            try:
                self.session.execute(stmt)
                self.session.commit()
            except SQLAlchemyError as exc:
                self.session.rollback()
                logger.error("Upsert batch %d failed: %s", batch_no, exc)
                raise DatastoreError(f"Failed to upsert batch {batch_no}: {exc}") from exc
            result.saved += len(batch)
            result.batches += 1
            logger.info("Saved batch %d (%d/%d)", batch_no, result.saved, len(rows))

        record_tracks_saved(result.saved)
        return result

    def delete_by_spotify_ids(self, spotify_ids: Iterable[str]) -> int:
        ids = list(dict.fromkeys(spotify_ids))
        deleted = 0
        try:
            for start in range(0, len(ids), self.batch_size):
                chunk = ids[start:start + self.batch_size]
                outcome = self.session.execute(delete(Track).where(Track.spotify_id.in_(chunk)))
                deleted += outcome.rowcount or 0
            self.session.commit()
        except SQLAlchemyError as exc:
            self.session.rollback()
            raise DatastoreError(f"Failed to delete tracks: {exc}") from exc
        logger.info("Deleted %d track(s)", deleted)
        return deleted

    # -- reads ---------------------------------------------------------------

    def list_tracks(self, genre: Optional[str] = None) -> List[Track]:
        """All tracks, newest first; ``genre`` matches any tag case-insensitively."""
        tracks = list(
            self.session.execute(
                select(Track).order_by(Track.fetched_at.desc(), Track.id.desc())
            ).scalars()
        )
        if genre is None:
            return tracks
        wanted = genre.strip().lower()
        return [t for t in tracks if any((g or "").lower() == wanted for g in (t.genres or []))]

    def get_track(self, identifier: str) -> Optional[Track]:
        identifier = (identifier or "").strip()
        if not identifier:
            return None
        track = self.session.execute(
            select(Track).where(Track.spotify_id == identifier)
        ).scalar_one_or_none()
        if track is None and identifier.isdigit():
            track = self.session.get(Track, int(identifier))
        return track

    def list_artists(self) -> List[Dict[str, str]]:
        names = self.session.execute(
            select(Track.artist_main)
            .where(Track.artist_main.is_not(None))
            .distinct()
            .order_by(Track.artist_main)
        ).scalars()
        return [{"name": name, "id": name} for name in names]

    def tracks_by_artist(self, name: str) -> List[Track]:
        return list(
            self.session.execute(
                select(Track)
                .where(func.lower(Track.artist_main) == (name or "").strip().lower())
                .order_by(Track.fetched_at.desc(), Track.id.desc())
            ).scalars()
        )


__all__ = ["TrackRepository", "UPSERT_BATCH_SIZE", "MUTABLE_COLUMNS"]
