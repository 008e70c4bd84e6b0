"""Small helpers shared across the catalog layers."""

from .cancellation import CancellationRequested, CancelToken
from .dates import normalize_release_date, parse_release_date
from .labels import extract_main_label, matches_label, normalize_label

__all__ = [
    "CancellationRequested",
    "CancelToken",
    "normalize_release_date",
    "parse_release_date",
    "extract_main_label",
    "matches_label",
    "normalize_label",
]
