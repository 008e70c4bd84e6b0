"""Sequential artist sync: resolve, fetch, tag tempo, dedupe, upsert."""

from __future__ import annotations

import logging
import time
from typing import Callable, Iterable, List, Optional

from catalog.database.db_manager import utcnow
from catalog.domain.sync.records import PrimaryArtistPolicy, SyncRun, TrackRecord
from catalog.errors import CatalogError, ResourceNotFound
from catalog.observability.metrics import record_artist_failure, record_sync_run
from catalog.utils.cancellation import CancellationRequested, CancelToken

logger = logging.getLogger(__name__)


class SyncOrchestrator:
    def __init__(
        self,
        client,
        repository,
        settings,
        sleep: Optional[Callable[[float], None]] = None,
        clock: Callable = utcnow,
    ) -> None:
        self.client = client
        self.repository = repository
        self.settings = settings
        self._sleep = sleep
        self._clock = clock
        self.policy = PrimaryArtistPolicy.parse(settings.primary_artist_policy)
        self.last_run: Optional[SyncRun] = None

    def _roster(self, artist_names: Optional[Iterable[str]]) -> List[str]:
        names = list(artist_names) if artist_names else list(self.settings.artists)
        seen = set()
        roster = []
        for name in names:
            cleaned = (name or "").strip()
            if cleaned and cleaned.lower() not in seen:
                seen.add(cleaned.lower())
                roster.append(cleaned)
        if self.settings.test_mode:
            return roster[:1]
        return roster

    def _pause(self, seconds: float, cancel: Optional[CancelToken]) -> None:
        if seconds <= 0:
            return
        if self._sleep is not None:
            self._sleep(seconds)
            if cancel is not None:
                cancel.raise_if_cancelled()
        elif cancel is not None:
            cancel.wait(seconds)
        else:
            time.sleep(seconds)

    def run(self, artist_names: Optional[Iterable[str]] = None, cancel: Optional[CancelToken] = None) -> SyncRun:
        """Sync the given artists (or the configured roster) and upsert the result.

        Per-artist failures are recorded on the run and skipped. Cancellation,
        datastore errors and anything unexpected propagate after the run is
        marked ``cancelled``/``failed``.
        """
        roster = self._roster(artist_names)
        run = SyncRun(artists=roster, started_at=self._clock())
        self.last_run = run
        cap = self.settings.max_tracks_to_process
        delay = self.settings.artist_delay_ms / 1000.0
        started = time.monotonic()
        records: List[TrackRecord] = []

        logger.info(
            "Starting sync for %d artist(s): %s (policy=%s, test_mode=%s)",
            len(roster), ", ".join(roster), self.policy.value, self.settings.test_mode,
            extra={"sync_run": {"status": run.status, "artists": list(roster)}},
        )
        try:
            for index, name in enumerate(roster):
                if cancel is not None:
                    cancel.raise_if_cancelled()
                if cap and len(records) >= cap:
                    logger.info("Reached the limit of %d tracks; skipping remaining artists", cap)
                    break
                if index > 0:
                    self._pause(delay, cancel)

                try:
                    artist_records = self._collect_artist(name, cancel)
                except CatalogError as exc:
                    logger.error("Skipping artist %s: %s", name, exc)
                    run.record_failure(name, str(exc))
                    record_artist_failure()
                    continue

                run.succeeded.append(name)
                for record in artist_records:
                    run.found += 1
                    if record.spotify_id in run.seen_ids:
                        run.duplicates += 1
                        continue
                    if cap and len(records) >= cap:
                        break
                    run.seen_ids.add(record.spotify_id)
                    records.append(record)
                    run.processed += 1
                logger.info("Processed %d track(s) for %s", len(artist_records), name)

            if records:
                result = self.repository.upsert(records, cancel=cancel)
                run.saved = result.saved
            else:
                logger.warning("No tracks to save")
            run.status = "completed"
        except CancellationRequested as exc:
            run.status = "cancelled"
            run.error = str(exc)
            logger.warning("Sync cancelled: %s", exc, extra={"sync_run": run.summary()})
            raise
        except Exception as exc:
            run.status = "failed"
            run.error = str(exc)
            logger.error("Sync failed: %s", exc, exc_info=True, extra={"sync_run": run.summary()})
            raise
        finally:
            run.finished_at = self._clock()
            record_sync_run(run.status, time.monotonic() - started)

        logger.info(
            "Sync completed: found=%d processed=%d saved=%d duplicates=%d errors=%d",
            run.found, run.processed, run.saved, run.duplicates, run.errors,
            extra={"sync_run": run.summary()},
        )
        return run

    def _collect_artist(self, name: str, cancel: Optional[CancelToken]) -> List[TrackRecord]:
        match = self.client.search_artist(name, cancel=cancel)
        if match is None:
            raise ResourceNotFound(f"Artist not found: {name}")
        logger.info("Resolved %s -> %s (%s)", name, match.name, match.id)

        details = self.client.get_artist(match.id, cancel=cancel)
        genres = details.genres or match.genres
        if not genres:
            logger.warning("No genres reported for %s", name)

        tracks = self.client.get_top_tracks(match.id, market=self.settings.market, cancel=cancel)
        target = self.settings.tracks_per_artist
        if target and len(tracks) < target and not self.settings.test_mode:
            known = {track["id"] for track in tracks}
            for track in self.client.search_tracks(
                name, target, start_year=self.settings.start_year, market=self.settings.market, cancel=cancel
            ):
                if len(tracks) >= target:
                    break
                if track["id"] not in known:
                    known.add(track["id"])
                    tracks.append(track)
        if not tracks:
            raise ResourceNotFound(f"No tracks found for {name}")

        try:
            tempos = self.client.get_tempo([track["id"] for track in tracks], cancel=cancel)
        except CatalogError as exc:
            logger.warning("Could not fetch tempo for %s (%s); keeping tracks without BPM", name, exc)
            tempos = {}
        logger.info("Tempo known for %d of %d track(s) by %s", len(tempos), len(tracks), name)

        records = []
        for track in tracks:
            record = TrackRecord.from_spotify(
                track,
                requested_artist=name,
                genres=genres,
                bpm=tempos.get(track["id"]),
                policy=self.policy,
            )
            if record.featured and not self.settings.include_featured:
                continue
            records.append(record)
        return records


__all__ = ["SyncOrchestrator"]
