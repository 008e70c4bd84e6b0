"""Release-date normalisation for Spotify's variable-precision dates."""

from __future__ import annotations

import logging
import re
from datetime import date, datetime
from typing import Optional

logger = logging.getLogger(__name__)

_YEAR = re.compile(r"^[0-9]{4}$")
_YEAR_MONTH = re.compile(r"^[0-9]{4}-[0-9]{2}$")
_FULL_DATE = re.compile(r"^[0-9]{4}-[0-9]{2}-[0-9]{2}$")


def normalize_release_date(value: Optional[str]) -> Optional[str]:
    """Expand ``YYYY`` and ``YYYY-MM`` to a full ``YYYY-MM-DD`` date.

    Spotify reports album dates with year, month or day precision. Anything
    that is not one of those shapes (or is not a real calendar date) maps to
    None rather than raising.
    """
    if not value:
        return None
    text = str(value).strip()
    if not text:
        return None

    if _YEAR.match(text):
        candidate = f"{text}-01-01"
    elif _YEAR_MONTH.match(text):
        candidate = f"{text}-01"
    elif _FULL_DATE.match(text):
        candidate = text
    else:
        logger.warning("Unrecognised release date format %r; storing null", text)
        return None

    try:
        datetime.strptime(candidate, "%Y-%m-%d")
    except ValueError:
        logger.warning("Invalid release date %r; storing null", text)
        return None
    return candidate


def parse_release_date(value: Optional[str]) -> Optional[date]:
    normalized = normalize_release_date(value)
    if normalized is None:
        return None
    return datetime.strptime(normalized, "%Y-%m-%d").date()


__all__ = ["normalize_release_date", "parse_release_date"]
