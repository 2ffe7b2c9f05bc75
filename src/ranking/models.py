"""Data models for torrent candidates and ranked output streams.

Candidates mirror the ``TorrentContent`` items returned by BitMagnet's
GraphQL API. Every field except ``info_hash`` is advisory: upstream
indexers leave fields empty or contradict each other, so all of them
default to something harmless.
"""

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

BYTES_PER_GIB = 1024**3


# =============================================================================
# Candidate
# =============================================================================


class Language(BaseModel):
    """Audio/subtitle language detected for a torrent."""

    code: str = Field(default="", alias="id")
    name: str = ""

    model_config = ConfigDict(populate_by_name=True)


class SeasonEpisodes(BaseModel):
    """Structured season membership (episodes empty = whole season)."""

    season: int
    episodes: list[int] = Field(default_factory=list)

    @field_validator("episodes", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class EpisodesInfo(BaseModel):
    """Episode classification attached by the indexer."""

    label: str | None = None
    seasons: list[SeasonEpisodes] = Field(default_factory=list)

    @field_validator("seasons", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class TorrentInfo(BaseModel):
    """Raw torrent attributes."""

    name: str = ""
    size: int = 0
    file_type: str | None = Field(default=None, alias="fileType")
    tag_names: list[str] = Field(default_factory=list, alias="tagNames")
    magnet_uri: str | None = Field(default=None, alias="magnetUri")

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("name", mode="before")
    @classmethod
    def none_to_blank(cls, v: Any) -> Any:
        return "" if v is None else v

    @field_validator("size", mode="before")
    @classmethod
    def none_to_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("tag_names", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v


class ParsedEpisodeEntry(BaseModel):
    """One interpretation of which season/episodes a torrent contains.

    An empty ``episodes`` set means the whole season (a season pack).
    ``season`` is None when only an episode number could be read.
    """

    season: int | None = None
    episodes: frozenset[int] = Field(default_factory=frozenset)

    model_config = ConfigDict(frozen=True)

    @property
    def key(self) -> tuple[int | None, tuple[int, ...]]:
        """Identity used to deduplicate interpretations."""
        return self.season, tuple(sorted(self.episodes))

    @property
    def is_season_pack(self) -> bool:
        return self.season is not None and not self.episodes

    def matches(self, season: int, episode: int) -> bool:
        """Check whether this entry covers the requested episode."""
        if self.season is None or self.season != season:
            return False
        return not self.episodes or episode in self.episodes


class Candidate(BaseModel):
    """A single torrent search hit."""

    info_hash: str | None = Field(default=None, alias="infoHash")
    content_type: str | None = Field(default=None, alias="contentType")
    title: str | None = None
    languages: list[Language] = Field(default_factory=list)
    episodes: EpisodesInfo | None = None
    video_resolution: str | None = Field(default=None, alias="videoResolution")
    video_codec: str | None = Field(default=None, alias="videoCodec")
    video_modifier: str | None = Field(default=None, alias="videoModifier")
    video_source: str | None = Field(default=None, alias="videoSource")
    video_3d: str | None = Field(default=None, alias="video3d")
    torrent: TorrentInfo = Field(default_factory=TorrentInfo)
    seeders: int = 0
    leechers: int = 0
    published_at: datetime | None = Field(default=None, alias="publishedAt")

    # Attached per request by the ranking pipeline (series lookups only)
    parsed_episodes: list[ParsedEpisodeEntry] | None = Field(default=None, exclude=True)

    model_config = ConfigDict(populate_by_name=True)

    @field_validator("video_resolution", mode="before")
    @classmethod
    def normalize_resolution(cls, v: Any) -> Any:
        """BitMagnet reports resolutions as enum names such as ``V1080p``."""
        if isinstance(v, str):
            v = v.strip()
            if v[:1] in ("V", "v") and v[1:2].isdigit():
                v = v[1:]
            return v.lower() or None
        return v

    @field_validator("seeders", "leechers", mode="before")
    @classmethod
    def none_to_zero(cls, v: Any) -> Any:
        return 0 if v is None else v

    @field_validator("languages", mode="before")
    @classmethod
    def none_to_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("torrent", mode="before")
    @classmethod
    def none_to_default(cls, v: Any) -> Any:
        return {} if v is None else v

    @property
    def name(self) -> str:
        """Free-text torrent name."""
        return self.torrent.name

    @property
    def size_gib(self) -> float:
        """Torrent size in GiB."""
        return self.torrent.size / BYTES_PER_GIB

    @property
    def is_3d(self) -> bool:
        return bool(self.video_3d)

    @property
    def structured_seasons(self) -> list[SeasonEpisodes]:
        """Indexer-provided season data, empty when absent."""
        if self.episodes is None:
            return []
        return self.episodes.seasons


# =============================================================================
# Output
# =============================================================================


class OutputStream(BaseModel):
    """A ranked, playable stream descriptor."""

    info_hash: str | None
    display_name: str
    display_title: str
    description: str = ""
    content_type: str | None = None
    quality_label: str = "Unknown"
    seeders: int = 0
    sources: list[str] = Field(default_factory=list)
    is_torrent: bool = True

    def to_stremio_dict(self) -> dict[str, Any]:
        """Serialize in the shape the Stremio client expects."""
        return {
            "infoHash": self.info_hash,
            "name": self.display_name,
            "title": self.display_title,
            "description": self.description,
            "type": self.content_type,
            "quality": self.quality_label,
            "seeders": self.seeders,
            "sources": list(self.sources),
            "behaviorHints": {"bittorrent": self.is_torrent},
        }
