"""Best-effort record-label classifier used by the maintenance pruner.

Label strings on Spotify albums are free text ("Dale Play Records / Sony
Music", "DALEPLAY RECORDS (Under exclusive license...)"), so matching is a
heuristic and only ever feeds a manually confirmed deletion.
"""

from __future__ import annotations

import re
import unicodedata
from typing import Optional

_NON_ALNUM = re.compile(r"[^a-z0-9\s]")
_SPACES = re.compile(r"\s+")
_PARENTHESISED = re.compile(r"\([^)]*\)")


def normalize_label(label: Optional[str]) -> str:
    if not label:
        return ""
    text = unicodedata.normalize("NFD", label.lower())
    text = "".join(ch for ch in text if not unicodedata.combining(ch))
    text = _NON_ALNUM.sub("", text)
    return _SPACES.sub(" ", text).strip()


def matches_label(label: Optional[str], search_term: Optional[str]) -> bool:
    normalized_label = normalize_label(label)
    normalized_term = normalize_label(search_term)
    if not normalized_label or not normalized_term:
        return False
    if normalized_term in normalized_label:
        return True
    # "DalePlay Records" vs "dale play records"
    if normalized_term.replace(" ", "") in normalized_label.replace(" ", ""):
        return True
    words = [w for w in normalized_term.split(" ") if w and w != "records"]
    return bool(words) and all(w in normalized_label for w in words)


def extract_main_label(label: Optional[str]) -> str:
    """Strip parenthesised notes and co-labels: 'A / B (c) 2020' -> 'A'."""
    if not label:
        return ""
    cleaned = _PARENTHESISED.sub("", label).strip()
    if "/" in cleaned:
        cleaned = cleaned.split("/", 1)[0].strip()
    return cleaned


__all__ = ["normalize_label", "matches_label", "extract_main_label"]
