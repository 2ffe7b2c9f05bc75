"""Ranking module for torrent candidates.

Pure helpers that turn raw search hits into a short, ordered list:
episode recognition, quality scoring, source reconciliation and the
pipeline that composes them.
"""

from src.ranking.episodes import EPISODE_RULES, EpisodeMatcher, EpisodeRule
from src.ranking.models import (
    Candidate,
    EpisodesInfo,
    Language,
    OutputStream,
    ParsedEpisodeEntry,
    SeasonEpisodes,
    TorrentInfo,
)
from src.ranking.pipeline import (
    RankingPipeline,
    SortKey,
    default_sort_policy,
    language_preference_key,
    quality_key,
    seeders_key,
    sort_candidates,
)
from src.ranking.quality import QualityClassifier
from src.ranking.trackers import MagnetLink, MagnetParseError, TrackerReconciler, parse_magnet_uri

__all__ = [
    # Models
    "Candidate",
    "EpisodesInfo",
    "Language",
    "OutputStream",
    "ParsedEpisodeEntry",
    "SeasonEpisodes",
    "TorrentInfo",
    # Episodes
    "EPISODE_RULES",
    "EpisodeMatcher",
    "EpisodeRule",
    # Quality
    "QualityClassifier",
    # Trackers
    "MagnetLink",
    "MagnetParseError",
    "TrackerReconciler",
    "parse_magnet_uri",
    # Pipeline
    "RankingPipeline",
    "SortKey",
    "default_sort_policy",
    "language_preference_key",
    "quality_key",
    "seeders_key",
    "sort_candidates",
]
