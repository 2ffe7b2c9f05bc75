"""Season/episode recognition for torrent candidates.

Indexers sometimes classify a torrent's episodes themselves; when they
do, that data is trusted as-is. Otherwise the torrent name is run through
an ordered cascade of patterns. Release names are ambiguous
(``Show.S01E01-03``, ``Show.Season.1-3.Complete``, ``Show.EP05``), so every
pattern is evaluated and all interpretations are kept. Matching later
accepts a candidate when any interpretation covers the requested episode.
"""

import re
from collections.abc import Callable, Iterable, Iterator
from dataclasses import dataclass

from src.ranking.models import Candidate, ParsedEpisodeEntry, SeasonEpisodes

# (season, episodes) as produced by an extractor
EpisodeTuple = tuple[int | None, frozenset[int]]
Extractor = Callable[[re.Match[str]], Iterable[EpisodeTuple]]

# Longest season range expanded into individual packs
MAX_SEASON_SPAN = 50

# Longest episode range expanded into individual episodes
MAX_EPISODE_SPAN = 500

# Token start: not preceded by a letter or digit
_START = r"(?<![a-z0-9])"
# Separators found between words in release names
_SEP = r"[\s._-]*"

# A season token directly before an episode token ("s01 ep05", "season 2 episode 3")
_SEASON_CONTEXT = re.compile(r"(?:(?<![a-z0-9])s|season[\s._-]*)\d{1,2}[\s._-]*$")


# =============================================================================
# Extractors
# =============================================================================


def _single_episode(match: re.Match[str]) -> Iterator[EpisodeTuple]:
    yield int(match.group(1)), frozenset({int(match.group(2))})


def _episode_range(match: re.Match[str]) -> Iterator[EpisodeTuple]:
    season = int(match.group(1))
    first, last = int(match.group(2)), int(match.group(3))
    if first > last or last - first > MAX_EPISODE_SPAN:
        return
    yield season, frozenset(range(first, last + 1))


def _season_range(match: re.Match[str]) -> Iterator[EpisodeTuple]:
    first, last = int(match.group(1)), int(match.group(2))
    if first > last or last - first > MAX_SEASON_SPAN:
        return
    for season in range(first, last + 1):
        yield season, frozenset()


def _season_pack(match: re.Match[str]) -> Iterator[EpisodeTuple]:
    yield int(match.group(1)), frozenset()


def _episode_only(match: re.Match[str]) -> Iterator[EpisodeTuple]:
    if _SEASON_CONTEXT.search(match.string, 0, match.start()):
        return
    yield None, frozenset({int(match.group(1))})


@dataclass(frozen=True)
class EpisodeRule:
    """A named pattern and the extractor applied to each of its matches."""

    name: str
    pattern: re.Pattern[str]
    extract: Extractor

    def apply(self, text: str) -> Iterator[EpisodeTuple]:
        for match in self.pattern.finditer(text):
            yield from self.extract(match)


# Ordered strongest to weakest. Patterns run against the lowercased name.
EPISODE_RULES: tuple[EpisodeRule, ...] = (
    # S01E05, s1e5, S01 E05, S01EP05
    EpisodeRule(
        "single_episode",
        re.compile(_START + r"s(\d{1,2})[\s.]?ep?[\s.]?(\d{1,4})(?!\d)"),
        _single_episode,
    ),
    # S01E01-03, S01E01-E03, S01EP01-03, S01EP(01-03)
    EpisodeRule(
        "episode_range",
        re.compile(
            _START + r"s(\d{1,2})[\s.]?ep?[\s.]?\(?(\d{1,4})\s*-\s*(?:ep?)?(\d{1,4})\)?(?![\dp])"
        ),
        _episode_range,
    ),
    # Season 1 Episode 5, Season.1.Ep.5
    EpisodeRule(
        "season_word_episode",
        re.compile(
            _START
            + r"season"
            + _SEP
            + r"(\d{1,2})"
            + _SEP
            + r"(?:episode|ep)\.?"
            + _SEP
            + r"(\d{1,4})(?!\d)"
        ),
        _single_episode,
    ),
    # S01-S03, Season 1-3, Seasons 1-9
    EpisodeRule(
        "season_range",
        re.compile(_START + r"s(\d{1,2})\s*-\s*s(\d{1,2})(?!\d)"),
        _season_range,
    ),
    EpisodeRule(
        "season_word_range",
        re.compile(_START + r"seasons?" + _SEP + r"(\d{1,2})\s*-\s*(\d{1,2})(?!\d)"),
        _season_range,
    ),
    # Bare S01 / Season 1, unless an episode or a season range follows
    EpisodeRule(
        "season_pack",
        re.compile(_START + r"s(\d{1,2})(?!\d|[\s.]?ep?[\s.]?\(?\d|\s*-\s*s\d)"),
        _season_pack,
    ),
    EpisodeRule(
        "season_word_pack",
        re.compile(
            _START
            + r"seasons?"
            + _SEP
            + r"(\d{1,2})(?!\d|"
            + _SEP
            + r"(?:episode|ep)\.?"
            + _SEP
            + r"\d|\s*-\s*\d{1,2}(?!\d))"
        ),
        _season_pack,
    ),
    # EP05, Ep.5 with no season in front of it
    EpisodeRule(
        "episode_only",
        re.compile(_START + r"(?:episode|ep)[\s.]?(\d{1,4})(?!\d)"),
        _episode_only,
    ),
)


# =============================================================================
# Matcher
# =============================================================================


class EpisodeMatcher:
    """Parses and matches season/episode membership.

    Example:
        matcher = EpisodeMatcher()
        entries = matcher.parse(candidate)
        if matcher.matches(entries, season=1, episode=2):
            ...
    """

    def __init__(self, rules: Iterable[EpisodeRule] = EPISODE_RULES):
        self._rules = tuple(rules)

    def parse(self, candidate: Candidate) -> list[ParsedEpisodeEntry]:
        """Parse all plausible season/episode interpretations.

        Args:
            candidate: Torrent candidate

        Returns:
            Deduplicated entries, empty when nothing could be recognised
        """
        structured = candidate.structured_seasons
        if structured:
            entries = self.from_structured(structured)
        else:
            entries = self.parse_name(candidate.name)
        return entries

    def from_structured(self, seasons: list[SeasonEpisodes]) -> list[ParsedEpisodeEntry]:
        """Convert indexer-provided season data without reinterpretation."""
        return [
            ParsedEpisodeEntry(season=item.season, episodes=frozenset(item.episodes))
            for item in seasons
        ]

    def parse_name(self, name: str) -> list[ParsedEpisodeEntry]:
        """Run the pattern cascade against a free-text torrent name."""
        text = (name or "").lower()
        if not text:
            return []

        entries: list[ParsedEpisodeEntry] = []
        seen: set[tuple[int | None, tuple[int, ...]]] = set()

        for rule in self._rules:
            for season, episodes in rule.apply(text):
                entry = ParsedEpisodeEntry(season=season, episodes=episodes)
                if entry.key in seen:
                    continue
                seen.add(entry.key)
                entries.append(entry)

        return entries

    @staticmethod
    def matches(entries: Iterable[ParsedEpisodeEntry], season: int, episode: int) -> bool:
        """Check whether any entry covers the requested season/episode."""
        return any(entry.matches(season, episode) for entry in entries)
