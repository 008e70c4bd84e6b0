"""In-memory catalog statistics, recomputed per request.

All functions take track dictionaries (``Track.to_dict()`` shape) and return
JSON-ready dictionaries. Rankings sort by count descending, then by name, so
identical input always yields identical output.
"""

from __future__ import annotations

from collections import Counter, defaultdict
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

TOP_ARTISTS = 20
TOP_ALBUMS = 20
TOP_GENRES = 5


def format_duration(duration_ms: int) -> str:
    """``Xh Ym`` when at least an hour, otherwise ``Ym``."""
    minutes = int(duration_ms or 0) // 60000
    hours, remaining = divmod(minutes, 60)
    if hours > 0:
        return f"{hours}h {remaining}m"
    return f"{remaining}m"


def _mean_bpm(tracks: Iterable[Mapping[str, Any]]) -> Optional[float]:
    values = [float(t["bpm"]) for t in tracks if t.get("bpm") is not None]
    if not values:
        return None
    return sum(values) / len(values)


def _total_duration(tracks: Iterable[Mapping[str, Any]]) -> int:
    return sum(int(t.get("duration_ms") or 0) for t in tracks)


def _ranked(counter: Mapping[str, int]) -> List[tuple]:
    return sorted(counter.items(), key=lambda item: (-item[1], item[0]))


def _genre_counts(tracks: Iterable[Mapping[str, Any]]) -> Counter:
    counts: Counter = Counter()
    for track in tracks:
        for genre in track.get("genres") or []:
            counts[genre] += 1
    return counts


def global_metrics(tracks: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    by_artist: Dict[str, List[Mapping[str, Any]]] = defaultdict(list)
    for track in tracks:
        if track.get("artist_main"):
            by_artist[track["artist_main"]].append(track)

    tracks_by_artist = dict(_ranked({name: len(rows) for name, rows in by_artist.items()}))
    avg_bpm_by_artist = {}
    for name in sorted(by_artist):
        mean = _mean_bpm(by_artist[name])
        if mean is not None:
            avg_bpm_by_artist[name] = mean

    top_artists = []
    for name, count in list(tracks_by_artist.items())[:TOP_ARTISTS]:
        duration = _total_duration(by_artist[name])
        top_artists.append({
            "name": name,
            "trackCount": count,
            "totalDuration": duration,
            "durationFormatted": format_duration(duration),
            "avgBpm": avg_bpm_by_artist.get(name),
        })

    albums: Dict[tuple, Dict[str, Any]] = {}
    for track in tracks:
        if not track.get("album"):
            continue
        key = (track["album"], track.get("artist_main") or "")
        entry = albums.setdefault(key, {"count": 0, "cover": track.get("cover_url")})
        entry["count"] += 1
    top_albums = [
        {"name": album, "artist": artist, "trackCount": entry["count"], "cover": entry["cover"]}
        for (album, artist), entry in sorted(
            albums.items(), key=lambda item: (-item[1]["count"], item[0][0], item[0][1])
        )[:TOP_ALBUMS]
    ]

    total_duration = _total_duration(tracks)
    return {
        "total_tracks": len(tracks),
        "bpm_average": _mean_bpm(tracks),
        "genre_distribution": dict(_ranked(_genre_counts(tracks))),
        "tracks_by_artist": tracks_by_artist,
        "avg_bpm_by_artist": avg_bpm_by_artist,
        "top_artists": top_artists,
        "top_albums": top_albums,
        "total_duration": total_duration,
        "total_duration_formatted": format_duration(total_duration),
        "unique_artists": len(by_artist),
        "unique_albums": len(albums),
    }


def artist_metrics(tracks: Sequence[Mapping[str, Any]]) -> Dict[str, Any]:
    years: Counter = Counter()
    for track in tracks:
        release = track.get("release_date")
        if release:
            years[str(release)[:4]] += 1

    total_duration = _total_duration(tracks)
    return {
        "total_tracks": len(tracks),
        "bpm_average": _mean_bpm(tracks),
        "top_genres": [genre for genre, _ in _ranked(_genre_counts(tracks))[:TOP_GENRES]],
        "release_year_distribution": dict(sorted(years.items())),
        "total_duration": total_duration,
        "total_duration_formatted": format_duration(total_duration),
    }


__all__ = ["global_metrics", "artist_metrics", "format_duration"]
