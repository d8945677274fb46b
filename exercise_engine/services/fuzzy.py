"""Fuzzy, token and hybrid ranking of catalog records.

The pipeline mirrors how the app ranks free-text searches:

1. ``FuzzyMatcher`` scores every record against a normalized query using a
   typo-tolerant alignment over weighted fields (lower score = better match).
2. ``score_by_token_matching`` measures how many query tokens occur in the
   record's text fields (higher = better).
3. ``hybrid_rank`` blends both into a single descending ranking.
"""
from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from difflib import SequenceMatcher
from enum import Enum
from typing import Any, Awaitable, Callable, Generic, Iterable, Mapping, Sequence, TypeVar

from exercise_engine.services.normalize import normalize_search_term


logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_FUZZY_WEIGHT = 0.6
EXACT_MATCH_BONUS = 0.2
NEUTRAL_FUZZY_COMPONENT = 0.5
MIN_TOKEN_LENGTH = 2

# Floor for per-key distances so a perfect match does not zero out the product.
_DISTANCE_FLOOR = 0.001


@dataclass(frozen=True)
class WeightedKey:
    """A record field considered by fuzzy matching and its relative importance."""

    name: str
    weight: float = 1.0


@dataclass(frozen=True)
class FuzzyConfig:
    """Per-entity fuzzy matching configuration.

    ``threshold`` is the largest per-field distance (0 = identical, 1 = unrelated)
    still treated as a match, so lower values are stricter.
    """

    threshold: float
    keys: tuple[WeightedKey, ...]
    min_match_char_length: int = 2

    def __post_init__(self) -> None:
        if not 0.0 <= self.threshold <= 1.0:
            raise ValueError(f"threshold must be within [0, 1], got {self.threshold}")
        if not self.keys:
            raise ValueError("at least one weighted key is required")
        if any(key.weight <= 0 for key in self.keys):
            raise ValueError("key weights must be positive")
        if self.min_match_char_length < 1:
            raise ValueError("min_match_char_length must be at least 1")

    @property
    def total_weight(self) -> float:
        return sum(key.weight for key in self.keys)


class SearchEntity(str, Enum):
    """Record kinds with their own fuzzy configuration."""

    GENERAL = "general"
    BRANDED_FOOD = "branded_food"
    EXERCISE = "exercise"


FUZZY_CONFIGS: dict[SearchEntity, FuzzyConfig] = {
    # Permissive for typos and partial matches in short item names.
    SearchEntity.GENERAL: FuzzyConfig(
        threshold=0.3,
        keys=(
            WeightedKey("name", 2.0),
            WeightedKey("description", 1.0),
            WeightedKey("data_type", 0.5),
        ),
    ),
    # Long branded names such as "CHEESE,CHEDDAR,SHREDDED" need looser partial matching.
    SearchEntity.BRANDED_FOOD: FuzzyConfig(
        threshold=0.4,
        keys=(
            WeightedKey("description", 3.0),
            WeightedKey("brand_owner", 1.5),
            WeightedKey("food_category", 1.0),
            WeightedKey("additional_descriptions", 0.5),
        ),
    ),
    SearchEntity.EXERCISE: FuzzyConfig(
        threshold=0.35,
        keys=(
            WeightedKey("name", 3.0),
            WeightedKey("body_part", 2.0),
            WeightedKey("target_muscles", 1.5),
            WeightedKey("equipment", 1.0),
        ),
    ),
}


def get_fuzzy_config(entity: SearchEntity | str) -> FuzzyConfig:
    """Return the fuzzy configuration registered for an entity type."""
    return FUZZY_CONFIGS[SearchEntity(entity)]


@dataclass(frozen=True)
class FuzzyResult(Generic[T]):
    """A fuzzy match: ``score`` is None when the query was blank."""

    item: T
    ref_index: int
    score: float | None = None


@dataclass(frozen=True)
class ScoredCandidate(Generic[T]):
    """Transient ranking record combining fuzzy and token evidence."""

    item: T
    ref_index: int
    fuzzy_score: float | None
    token_score: float
    hybrid_score: float


def _field_values(record: Any, field_name: str) -> list[str]:
    if isinstance(record, Mapping):
        value = record.get(field_name)
    else:
        value = getattr(record, field_name, None)

    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Iterable):
        return [str(v) for v in value if v]
    return [str(value)]


def _alignment_similarity(query: str, text: str) -> float:
    """Fraction of query characters found in the best-aligned window of ``text``."""
    width = len(query)
    if len(text) <= width:
        windows = [text]
    else:
        anchor = SequenceMatcher(None, query, text, autojunk=False)
        starts = {
            min(max(block.b - block.a, 0), len(text) - width)
            for block in anchor.get_matching_blocks()
            if block.size
        }
        windows = [text[start:start + width] for start in sorted(starts)]

    best = 0
    for window in windows:
        matcher = SequenceMatcher(None, query, window, autojunk=False)
        matched = sum(block.size for block in matcher.get_matching_blocks())
        best = max(best, matched)
        if best == width:
            break
    return best / width


class FuzzyMatcher(Generic[T]):
    """Approximate multi-field matcher over a fixed list of records."""

    def __init__(
        self,
        records: Sequence[T],
        config: FuzzyConfig | SearchEntity = SearchEntity.GENERAL,
    ):
        self.records = list(records)
        self.config = config if isinstance(config, FuzzyConfig) else get_fuzzy_config(config)

    def field_distance(self, query: str, value: str) -> float:
        """Distance in [0, 1] between a normalized query and one raw field value."""
        text = normalize_search_term(value)
        if not text:
            return 1.0
        if query in text:
            return 0.0
        if len(query) < self.config.min_match_char_length:
            return 1.0
        return 1.0 - _alignment_similarity(query, text)

    def score_record(self, query: str, record: T) -> float | None:
        """
        Combine per-key distances for one record.

        Each matching key contributes ``distance ** normalized_weight``; keys over
        the threshold are ignored. Returns None when no key matches.
        """
        total_weight = self.config.total_weight
        score = 1.0
        matched = False

        for key in self.config.keys:
            values = _field_values(record, key.name)
            if not values:
                continue
            distance = min(self.field_distance(query, value) for value in values)
            if distance > self.config.threshold:
                continue
            matched = True
            score *= max(distance, _DISTANCE_FLOOR) ** (key.weight / total_weight)

        return score if matched else None

    def search(self, query: str | None, limit: int | None = None) -> list[FuzzyResult[T]]:
        """
        Score records against ``query``.

        A blank query returns every record unscored, in original order, so callers
        can present a browsable default list. Otherwise only matching records are
        returned, best (lowest) score first with ties in original order.
        """
        normalized = normalize_search_term(query)
        if not normalized:
            results = [FuzzyResult(item=record, ref_index=i) for i, record in enumerate(self.records)]
            return results[:limit] if limit is not None else results

        results = []
        for index, record in enumerate(self.records):
            score = self.score_record(normalized, record)
            if score is not None:
                results.append(FuzzyResult(item=record, ref_index=index, score=score))

        results.sort(key=lambda r: (r.score, r.ref_index))
        return results[:limit] if limit is not None else results


def fuzzy_search(
    records: Sequence[T],
    search_term: str | None,
    limit: int | None = None,
    config: FuzzyConfig | SearchEntity = SearchEntity.GENERAL,
) -> list[FuzzyResult[T]]:
    """Perform a one-off fuzzy search over ``records``."""
    return FuzzyMatcher(records, config).search(search_term, limit)


def tokenize_search_query(query: str | None) -> list[str]:
    """
    Split a query into normalized tokens, dropping those shorter than two characters.

    Example:
        >>> tokenize_search_query("Incline Bench")
        ['incline', 'bench']
    """
    return [token for token in normalize_search_term(query).split() if len(token) >= MIN_TOKEN_LENGTH]


def score_by_token_matching(
    item: T,
    tokens: Sequence[str],
    get_text_fields: Callable[[T], Iterable[str]],
) -> float:
    """
    Score an item in [0, 1] by how many tokens occur in its text fields.

    A token matches when it is a substring of the joined normalized fields and
    counts as exact when it is also a whole word there. Exact matches earn a
    bonus of 0.2 times the exact-match ratio. An empty token list scores 1.0.
    Substring-only hits (e.g. "incl" in "incline") earn no bonus, unlike a
    scorer that treats every contained token as exact.
    """
    if not tokens:
        return 1.0

    text = " ".join(normalize_search_term(field) for field in get_text_fields(item))
    words = set(text.split())

    matched_tokens = 0
    exact_matches = 0
    for token in tokens:
        if token in text:
            matched_tokens += 1
            if token in words:
                exact_matches += 1

    token_match_ratio = matched_tokens / len(tokens)
    exact_match_bonus = exact_matches / len(tokens) * EXACT_MATCH_BONUS
    return min(1.0, token_match_ratio + exact_match_bonus)


def hybrid_score(
    fuzzy_score: float | None,
    token_score: float,
    fuzzy_weight: float = DEFAULT_FUZZY_WEIGHT,
) -> float:
    """Blend a fuzzy distance (or its absence) with a token score."""
    if not 0.0 <= fuzzy_weight <= 1.0:
        raise ValueError(f"fuzzy_weight must be within [0, 1], got {fuzzy_weight}")
    fuzzy_component = 1.0 - fuzzy_score if fuzzy_score is not None else NEUTRAL_FUZZY_COMPONENT
    return fuzzy_component * fuzzy_weight + token_score * (1.0 - fuzzy_weight)


def hybrid_rank(
    fuzzy_results: Sequence[FuzzyResult[T]],
    tokens: Sequence[str],
    get_text_fields: Callable[[T], Iterable[str]],
    fuzzy_weight: float = DEFAULT_FUZZY_WEIGHT,
) -> list[ScoredCandidate[T]]:
    """Rank fuzzy results by hybrid score, descending; ties keep the incoming order."""
    scored = []
    for result in fuzzy_results:
        token_score = score_by_token_matching(result.item, tokens, get_text_fields)
        scored.append(
            ScoredCandidate(
                item=result.item,
                ref_index=result.ref_index,
                fuzzy_score=result.score,
                token_score=token_score,
                hybrid_score=hybrid_score(result.score, token_score, fuzzy_weight),
            )
        )

    # sorted() is stable, also with reverse=True.
    return sorted(scored, key=lambda candidate: candidate.hybrid_score, reverse=True)


def exercise_text_fields(exercise: Any) -> list[str]:
    """Text fields consulted by token scoring for exercises."""
    return [
        exercise.name,
        exercise.body_part,
        *exercise.equipment,
        *exercise.target_muscles,
    ]


def search_exercises(
    exercises: Sequence[T],
    search_term: str | None,
    limit: int | None = None,
    fuzzy_weight: float = DEFAULT_FUZZY_WEIGHT,
) -> list[T]:
    """Search and rank exercises with fuzzy plus token matching."""
    if not search_term or not search_term.strip():
        return list(exercises)[:limit] if limit is not None else list(exercises)

    tokens = tokenize_search_query(search_term)
    fuzzy_results = fuzzy_search(exercises, search_term, config=SearchEntity.EXERCISE)
    ranked = hybrid_rank(fuzzy_results, tokens, exercise_text_fields, fuzzy_weight)

    items = [candidate.item for candidate in ranked]
    return items[:limit] if limit is not None else items


def rerank_results(
    results: Sequence[T],
    search_term: str | None,
    entity: SearchEntity = SearchEntity.GENERAL,
    limit: int | None = None,
) -> list[T]:
    """Reorder externally fetched results by local fuzzy score."""
    if not search_term or not search_term.strip():
        return list(results)
    return [r.item for r in fuzzy_search(results, search_term, limit, config=entity)]


# ==================== Query relaxation ====================

_ROOT_SUFFIXES = ("cake", "berry", "fruit", "bread", "roll", "pie", "bar")


def generate_relaxed_queries(query: str, max_attempts: int = 3) -> list[str]:
    """
    Generate fallback queries for typeahead input that found nothing.

    Progressively shortens the last token, then tries stripping a common
    suffix, then drops the last token entirely.

    Examples:
        'cheeseca' -> ['cheesec', 'cheese']
        'greek yogurt' -> ['greek yogur', 'greek yogu']
    """
    trimmed = query.strip()
    fallbacks: list[str] = []

    if len(trimmed) < 4:
        return fallbacks

    tokens = trimmed.split()
    last_token = tokens[-1]

    shortened = last_token
    for _ in range(min(max_attempts - 1, len(last_token) - 2)):
        shortened = shortened[:-1]
        candidate = " ".join(tokens[:-1] + [shortened])
        if candidate != trimmed:
            fallbacks.append(candidate)

    if len(fallbacks) < max_attempts:
        for suffix in _ROOT_SUFFIXES:
            if last_token.lower().endswith(suffix) and len(last_token) > len(suffix) + 2:
                root_query = " ".join(tokens[:-1] + [last_token[: -len(suffix)]])
                if root_query != trimmed and root_query not in fallbacks:
                    fallbacks.append(root_query)
                    break

    if not fallbacks and len(tokens) > 1:
        fallbacks.append(" ".join(tokens[:-1]))

    return list(dict.fromkeys(fallbacks))[:max_attempts]


class SearchCache(Generic[T]):
    """Small in-memory cache so retyping a query does not repeat the search."""

    def __init__(self, max_age: float = 5.0, clock: Callable[[], float] = time.monotonic):
        self.max_age = max_age
        self._clock = clock
        self._entries: dict[str, tuple[T, float]] = {}

    def get(self, key: str) -> T | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        value, stored_at = entry
        if self._clock() - stored_at > self.max_age:
            del self._entries[key]
            return None
        return value

    def set(self, key: str, value: T) -> None:
        self._entries[key] = (value, self._clock())

    def clear(self) -> None:
        self._entries.clear()

    def prune(self) -> None:
        """Drop expired entries."""
        now = self._clock()
        expired = [key for key, (_, stored_at) in self._entries.items() if now - stored_at > self.max_age]
        for key in expired:
            del self._entries[key]

    def __len__(self) -> int:
        return len(self._entries)


@dataclass(frozen=True)
class RelaxedSearchResult(Generic[T]):
    results: list[T]
    query_used: str
    was_relaxed: bool


async def search_with_relaxation(
    search_fn: Callable[[str], Awaitable[list[T]]],
    original_query: str,
    max_attempts: int = 3,
    min_query_length: int = 4,
    cache: SearchCache[RelaxedSearchResult[T]] | None = None,
) -> RelaxedSearchResult[T]:
    """
    Run ``search_fn`` on the query, retrying with relaxed queries when it finds nothing.

    Failures of the exact query propagate; a failing relaxed query is logged and
    the next one is tried.
    """
    trimmed = original_query.strip()

    if cache is not None:
        cached = cache.get(trimmed)
        if cached is not None:
            logger.debug("Search cache hit for %r (used %r)", trimmed, cached.query_used)
            return cached

    results = await search_fn(trimmed)
    outcome = RelaxedSearchResult(results=list(results), query_used=trimmed, was_relaxed=False)

    if not results and len(trimmed) >= min_query_length:
        fallbacks = generate_relaxed_queries(trimmed, max_attempts)
        logger.info("Query %r returned no results, trying fallbacks %s", trimmed, fallbacks)

        for fallback in fallbacks:
            try:
                fallback_results = await search_fn(fallback)
            except Exception:
                logger.warning("Relaxed search failed for %r", fallback, exc_info=True)
                continue
            if fallback_results:
                logger.info("Found %d results using relaxed query %r", len(fallback_results), fallback)
                outcome = RelaxedSearchResult(
                    results=list(fallback_results), query_used=fallback, was_relaxed=True
                )
                break

    if cache is not None:
        cache.set(trimmed, outcome)
    return outcome
