"""Manual label pruning: drop stored tracks released outside a target label."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional

from catalog.errors import CatalogError
from catalog.utils.cancellation import CancelToken
from catalog.utils.labels import extract_main_label, matches_label

logger = logging.getLogger(__name__)


@dataclass
class LabelVerdict:
    spotify_id: str
    name: str
    artist_main: Optional[str]
    album: Optional[str]
    label: Optional[str]
    matches: bool

    @property
    def prunable(self) -> bool:
        # Unknown labels are kept; only a confirmed mismatch is deleted.
        return self.label is not None and not self.matches


class LabelPruner:
    def __init__(
        self,
        client,
        repository,
        search_term: str,
        sleep: Callable[[float], None] = time.sleep,
        delay_seconds: float = 0.2,
    ) -> None:
        self.client = client
        self.repository = repository
        self.search_term = search_term
        self._sleep = sleep
        self.delay_seconds = delay_seconds

    def classify(self, cancel: Optional[CancelToken] = None) -> List[LabelVerdict]:
        tracks = self.repository.list_tracks()
        verdicts: List[LabelVerdict] = []
        for index, track in enumerate(tracks):
            if cancel is not None:
                cancel.raise_if_cancelled()
            try:
                label = self.client.get_track_label(track.spotify_id, cancel=cancel)
            except CatalogError as exc:
                logger.warning("Label lookup failed for %s (%s): %s", track.name, track.spotify_id, exc)
                label = None
            verdict = LabelVerdict(
                spotify_id=track.spotify_id,
                name=track.name,
                artist_main=track.artist_main,
                album=track.album,
                label=label,
                matches=matches_label(label, self.search_term),
            )
            verdicts.append(verdict)
            logger.info(
                "[%d/%d] %s %s - label: %s",
                index + 1, len(tracks), "ok" if verdict.matches else "--",
                track.name, extract_main_label(label) or "unknown",
            )
            if index < len(tracks) - 1 and self.delay_seconds > 0:
                self._sleep(self.delay_seconds)
        return verdicts

    def prune(self, verdicts: List[LabelVerdict], dry_run: bool = True) -> int:
        """Delete prunable tracks; returns the number deleted (or that would be)."""
        doomed = [v.spotify_id for v in verdicts if v.prunable]
        if not doomed:
            logger.info("Every track with a known label matches %r; nothing to prune", self.search_term)
            return 0
        if dry_run:
            logger.info("Dry run: %d track(s) would be deleted", len(doomed))
            return len(doomed)
        return self.repository.delete_by_spotify_ids(doomed)


__all__ = ["LabelPruner", "LabelVerdict"]
