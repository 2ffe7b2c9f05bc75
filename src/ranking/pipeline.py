"""Ranking pipeline for torrent candidates.

Stages run in a fixed order over an in-memory list; each one returns a
new list and leaves its input untouched:

    dedup -> annotate (series) -> size filter -> quality filter
          -> episode filter (series with season+episode) -> sort -> truncate

Sort order is data, not code: a ranking policy is an ordered list of
``SortKey`` entries applied most significant first.
"""

import math
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

import structlog

from src.config import DEFAULT_MAX_STREAMS_PER_ITEM
from src.ranking.episodes import EpisodeMatcher
from src.ranking.models import Candidate
from src.ranking.quality import QualityClassifier

logger = structlog.get_logger(__name__)


# =============================================================================
# Sort policy
# =============================================================================


@dataclass(frozen=True)
class SortKey:
    """One ranking criterion."""

    name: str
    key: Callable[[Candidate], Any]
    descending: bool = True


SortPolicy = Sequence[SortKey]


def seeders_key() -> SortKey:
    return SortKey("seeders", lambda c: c.seeders, descending=True)


def quality_key(classifier: QualityClassifier) -> SortKey:
    return SortKey("quality", classifier.score, descending=True)


def language_preference_key(preferred: Iterable[str]) -> SortKey:
    """Rank candidates by their best preferred language.

    Languages match on code or name, case-insensitively. Candidates with
    none of the preferred languages sort after all that have one.
    """
    order = [lang.lower() for lang in preferred]
    missing = len(order)

    def _rank(candidate: Candidate) -> int:
        best = missing
        for language in candidate.languages:
            for value in (language.code.lower(), language.name.lower()):
                if value in order:
                    best = min(best, order.index(value))
        return best

    return SortKey("language", _rank, descending=False)


def default_sort_policy(
    classifier: QualityClassifier,
    preferred_languages: Iterable[str] = (),
) -> list[SortKey]:
    """Seeders first, quality score second, optional language tie-break last."""
    policy = [seeders_key(), quality_key(classifier)]
    preferred = list(preferred_languages)
    if preferred:
        policy.append(language_preference_key(preferred))
    return policy


def sort_candidates(candidates: Iterable[Candidate], policy: SortPolicy) -> list[Candidate]:
    """Sort by every key in the policy, most significant first.

    Applies stable sorts from the least significant key upward.
    """
    result = list(candidates)
    for sort_key in reversed(policy):
        result.sort(key=sort_key.key, reverse=sort_key.descending)
    return result


# =============================================================================
# Pipeline
# =============================================================================


class RankingPipeline:
    """Deduplicates, filters, sorts and truncates torrent candidates.

    Example:
        pipeline = RankingPipeline(max_streams=10, max_size_gb=40)
        top = pipeline.run(candidates, series=True, season=1, episode=2)
    """

    def __init__(
        self,
        matcher: EpisodeMatcher | None = None,
        classifier: QualityClassifier | None = None,
        sort_policy: SortPolicy | None = None,
        max_streams: Any = DEFAULT_MAX_STREAMS_PER_ITEM,
        max_size_gb: Any = None,
    ):
        """Initialize the pipeline.

        Args:
            matcher: Episode matcher (default EpisodeMatcher())
            classifier: Quality classifier (default QualityClassifier())
            sort_policy: Ranking policy (default seeders then quality)
            max_streams: Truncation limit, invalid values fall back to 10
            max_size_gb: Size cap in GiB, invalid values disable the cap
        """
        self.matcher = matcher or EpisodeMatcher()
        self.classifier = classifier or QualityClassifier()
        self.sort_policy = list(sort_policy or default_sort_policy(self.classifier))
        self.max_streams = self._coerce_max_streams(max_streams)
        self.max_size_gb = self._coerce_max_size(max_size_gb)

    @staticmethod
    def _coerce_max_streams(value: Any) -> int:
        try:
            limit = int(value)
        except (TypeError, ValueError):
            logger.warning("invalid_max_streams", value=value, fallback=DEFAULT_MAX_STREAMS_PER_ITEM)
            return DEFAULT_MAX_STREAMS_PER_ITEM
        if limit <= 0:
            logger.warning("invalid_max_streams", value=value, fallback=DEFAULT_MAX_STREAMS_PER_ITEM)
            return DEFAULT_MAX_STREAMS_PER_ITEM
        return limit

    @staticmethod
    def _coerce_max_size(value: Any) -> float | None:
        if value is None:
            return None
        try:
            cap = float(value)
        except (TypeError, ValueError):
            logger.warning("invalid_max_size", value=value)
            return None
        if math.isnan(cap) or cap <= 0:
            logger.warning("invalid_max_size", value=value)
            return None
        return cap

    # =========================================================================
    # Stages
    # =========================================================================

    def dedup(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Drop repeated info hashes, keeping the first occurrence.

        Candidates without a hash cannot collide and are all kept.
        """
        seen: set[str] = set()
        result = []
        for candidate in candidates:
            if candidate.info_hash:
                info_hash = candidate.info_hash.lower()
                if info_hash in seen:
                    continue
                seen.add(info_hash)
            result.append(candidate)
        return result

    def annotate(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Attach parsed season/episode entries to copies of the candidates."""
        return [
            candidate.model_copy(update={"parsed_episodes": self.matcher.parse(candidate)})
            for candidate in candidates
        ]

    def filter_by_size(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Drop candidates larger than the size cap (no-op without a cap)."""
        if self.max_size_gb is None:
            return list(candidates)
        return [c for c in candidates if c.size_gib <= self.max_size_gb]

    def filter_by_quality(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        """Drop low-quality candidates, but only if something better exists."""
        candidates = list(candidates)
        flags = [self.classifier.is_low_quality(c) for c in candidates]
        if all(flags):
            return candidates
        return [c for c, low in zip(candidates, flags, strict=True) if not low]

    def filter_by_episode(
        self,
        candidates: Iterable[Candidate],
        season: int,
        episode: int,
    ) -> list[Candidate]:
        """Keep candidates whose parsed entries cover the requested episode."""
        result = []
        for candidate in candidates:
            entries = candidate.parsed_episodes
            if entries is None:
                entries = self.matcher.parse(candidate)
            if self.matcher.matches(entries, season, episode):
                result.append(candidate)
        return result

    def sort(self, candidates: Iterable[Candidate]) -> list[Candidate]:
        return sort_candidates(candidates, self.sort_policy)

    def truncate(self, candidates: Sequence[Candidate]) -> list[Candidate]:
        return list(candidates[: self.max_streams])

    # =========================================================================
    # Orchestration
    # =========================================================================

    def run(
        self,
        candidates: Iterable[Candidate],
        *,
        series: bool = False,
        season: int | None = None,
        episode: int | None = None,
    ) -> list[Candidate]:
        """Run every stage in order.

        Args:
            candidates: Raw search hits, possibly from several queries
            series: Whether this is a series lookup
            season: Requested season (series only)
            episode: Requested episode (series only)

        Returns:
            Ranked candidates, at most ``max_streams`` long
        """
        stage = self.dedup(candidates)
        logger.debug("pipeline_dedup", count=len(stage))

        if series:
            stage = self.annotate(stage)

        stage = self.filter_by_size(stage)
        logger.debug("pipeline_size_filter", count=len(stage), max_size_gb=self.max_size_gb)

        stage = self.filter_by_quality(stage)
        logger.debug("pipeline_quality_filter", count=len(stage))

        if series and season is not None and episode is not None:
            stage = self.filter_by_episode(stage, season, episode)
            logger.debug("pipeline_episode_filter", count=len(stage), season=season, episode=episode)

        ranked = self.truncate(self.sort(stage))
        logger.debug("pipeline_ranked", count=len(ranked), policy=[k.name for k in self.sort_policy])
        return ranked
