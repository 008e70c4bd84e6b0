"""Value objects flowing between the remote client, the sync run and the store."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Set

from catalog.utils.dates import normalize_release_date, parse_release_date


class PrimaryArtistPolicy(str, Enum):
    """How a requested artist must be credited for a track to be filed under them."""

    LEAD_ONLY = "lead_only"
    ANY_CREDIT = "any_credit"

    @classmethod
    def parse(cls, value: Any) -> "PrimaryArtistPolicy":
        if isinstance(value, cls):
            return value
        raw = str(value or "").strip().lower().replace("-", "_")
        try:
            return cls(raw)
        except ValueError:
            return cls.ANY_CREDIT

    def matches(self, requested: str, artists: Sequence[str]) -> bool:
        wanted = (requested or "").strip().lower()
        names = [(name or "").strip().lower() for name in artists]
        if not wanted or not names:
            return False
        if self is PrimaryArtistPolicy.LEAD_ONLY:
            return names[0] == wanted
        return wanted in names


@dataclass
class TrackRecord:
    spotify_id: str
    name: str
    artists: List[str] = field(default_factory=list)
    artist_main: Optional[str] = None
    featured: bool = False
    album: Optional[str] = None
    release_date: Optional[str] = None
    duration_ms: Optional[int] = None
    bpm: Optional[float] = None
    genres: List[str] = field(default_factory=list)
    preview_url: Optional[str] = None
    cover_url: Optional[str] = None

    @classmethod
    def from_spotify(
        cls,
        track: Dict[str, Any],
        *,
        requested_artist: str,
        genres: Sequence[str],
        bpm: Optional[float],
        policy: PrimaryArtistPolicy,
    ) -> "TrackRecord":
        """Build a record from a Spotify track payload.

        Tracks crediting ``requested_artist`` per ``policy`` are filed under
        that name; any other track is filed under its own lead artist and
        flagged as featured.
        """
        artists = [a.get("name") for a in track.get("artists") or [] if a and a.get("name")]
        album = track.get("album") or {}
        images = album.get("images") or []
        credited = policy.matches(requested_artist, artists)
        return cls(
            spotify_id=track["id"],
            name=track.get("name") or "",
            artists=artists,
            artist_main=requested_artist if credited else (artists[0] if artists else requested_artist),
            featured=not credited,
            album=album.get("name"),
            release_date=normalize_release_date(album.get("release_date")),
            duration_ms=track.get("duration_ms"),
            bpm=bpm,
            genres=list(genres),
            preview_url=track.get("preview_url") or None,
            cover_url=(images[0] or {}).get("url") if images else None,
        )

    def to_row(self) -> Dict[str, Any]:
        row = asdict(self)
        row["release_date"] = parse_release_date(self.release_date)
        return row


@dataclass
class UpsertResult:
    received: int = 0
    unique: int = 0
    new: int = 0
    existing: int = 0
    saved: int = 0
    batches: int = 0


@dataclass
class SyncRun:
    artists: List[str]
    seen_ids: Set[str] = field(default_factory=set)
    found: int = 0
    processed: int = 0
    saved: int = 0
    duplicates: int = 0
    errors: int = 0
    succeeded: List[str] = field(default_factory=list)
    failed: List[Dict[str, str]] = field(default_factory=list)
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None
    status: str = "running"  # running | completed | failed | cancelled
    error: Optional[str] = None

    def record_failure(self, artist: str, reason: str) -> None:
        self.errors += 1
        self.failed.append({"artist": artist, "error": reason})

    def summary(self) -> Dict[str, Any]:
        duration = None
        if self.started_at and self.finished_at:
            duration = round((self.finished_at - self.started_at).total_seconds(), 3)
        return {
            "status": self.status,
            "artists": list(self.artists),
            "found": self.found,
            "processed": self.processed,
            "saved": self.saved,
            "duplicates": self.duplicates,
            "errors": self.errors,
            "succeeded": list(self.succeeded),
            "failed": [dict(entry) for entry in self.failed],
            "startedAt": self.started_at.isoformat() if self.started_at else None,
            "finishedAt": self.finished_at.isoformat() if self.finished_at else None,
            "durationSeconds": duration,
            "error": self.error,
        }


__all__ = ["PrimaryArtistPolicy", "TrackRecord", "UpsertResult", "SyncRun"]
