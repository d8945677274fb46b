"""Search text normalization shared by every ranking stage."""
from __future__ import annotations

import re
import unicodedata

# Hyphens, parens, brackets, slash and comma survive for compound names like "(cooked)".
_DISALLOWED_CHARS = re.compile(r"[^a-z0-9\s\-()\[\]/,]")
_WHITESPACE = re.compile(r"\s+")


def normalize_search_term(term: str | None) -> str:
    """
    Canonicalise free text for matching.

    Lowercases, strips diacritics ("café" -> "cafe"), drops punctuation outside
    the compound-name whitelist and collapses whitespace. Never fails; ``None``
    and empty input yield an empty string. Idempotent.

    Example:
        >>> normalize_search_term("  Café  Crème!! ")
        'cafe creme'
    """
    if not term:
        return ""

    normalized = _remove_diacritics(term.lower())
    normalized = _DISALLOWED_CHARS.sub("", normalized)
    # Collapse after stripping so removed characters cannot leave double spaces.
    return _WHITESPACE.sub(" ", normalized).strip()


def _remove_diacritics(text: str) -> str:
    decomposed = unicodedata.normalize("NFD", text)
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def terms_match(term1: str | None, term2: str | None) -> bool:
    """Check normalized equality (case and diacritic insensitive)."""
    return normalize_search_term(term1) == normalize_search_term(term2)


def contains_term(search_term: str | None, target: str | None) -> bool:
    """Check whether the normalized search term appears inside the normalized target."""
    normalized_search = normalize_search_term(search_term)
    if not normalized_search:
        return True
    return normalized_search in normalize_search_term(target)
