"""Peer-discovery source reconciliation.

Every output stream carries a set of ``tracker:<url>`` and ``dht:<hash>``
sources built from three inputs of varying reliability: announce URLs
embedded in the candidate's magnet URI, the public tracker list, and the
info hash itself for DHT lookups.
"""

from urllib.parse import parse_qs, urlsplit

import structlog
from pydantic import BaseModel, Field

from src.ranking.models import Candidate

logger = structlog.get_logger(__name__)

TRACKER_PREFIX = "tracker:"
DHT_PREFIX = "dht:"
BTIH_PREFIX = "urn:btih:"


class MagnetParseError(ValueError):
    """Raised when a magnet URI cannot be parsed."""

    pass


class MagnetLink(BaseModel):
    """Parsed magnet URI."""

    info_hash: str
    display_name: str | None = None
    trackers: list[str] = Field(default_factory=list)


def parse_magnet_uri(uri: str | None) -> MagnetLink:
    """Parse a magnet URI.

    Args:
        uri: Magnet URI (``magnet:?xt=urn:btih:<hash>&dn=...&tr=...``)

    Returns:
        MagnetLink with announce URLs in their original order

    Raises:
        MagnetParseError: If the URI is not a BitTorrent magnet link
    """
    if not uri or not isinstance(uri, str):
        raise MagnetParseError("Empty magnet URI")

    try:
        parts = urlsplit(uri.strip())
    except ValueError as e:
        raise MagnetParseError(f"Invalid URI: {e}") from e

    if parts.scheme.lower() != "magnet":
        raise MagnetParseError(f"Not a magnet URI: scheme={parts.scheme!r}")

    params = parse_qs(parts.query, keep_blank_values=False)

    info_hash = None
    for topic in params.get("xt", []):
        if topic.lower().startswith(BTIH_PREFIX):
            info_hash = topic[len(BTIH_PREFIX) :]
            break
    if not info_hash:
        raise MagnetParseError("Magnet URI has no BitTorrent info hash")

    trackers: list[str] = []
    # "tr" plus the indexed "tr.1", "tr.2" variant
    for key, values in params.items():
        if key == "tr" or key.startswith("tr."):
            for value in values:
                value = value.strip()
                if value and value not in trackers:
                    trackers.append(value)

    display_names = params.get("dn")
    return MagnetLink(
        info_hash=info_hash,
        display_name=display_names[0] if display_names else None,
        trackers=trackers,
    )


class TrackerReconciler:
    """Builds the unique source set for a candidate."""

    def embedded_trackers(self, candidate: Candidate) -> list[str]:
        """Announce URLs from the candidate's magnet URI, empty on any parse failure."""
        magnet_uri = candidate.torrent.magnet_uri
        if not magnet_uri:
            return []
        try:
            return parse_magnet_uri(magnet_uri).trackers
        except MagnetParseError as e:
            logger.warning(
                "magnet_parse_failed",
                info_hash=candidate.info_hash,
                error=str(e),
            )
            return []

    def build(self, candidate: Candidate, public_trackers: list[str]) -> set[str]:
        """Merge embedded trackers, public trackers and the DHT source.

        Args:
            candidate: Torrent candidate
            public_trackers: Public tracker announce URLs, may be empty

        Returns:
            Set of ``tracker:<url>`` and ``dht:<lowercase hash>`` sources
        """
        sources = {f"{TRACKER_PREFIX}{url}" for url in self.embedded_trackers(candidate)}
        sources.update(f"{TRACKER_PREFIX}{url}" for url in public_trackers if url)

        if candidate.info_hash:
            sources.add(f"{DHT_PREFIX}{candidate.info_hash.lower()}")
        else:
            logger.warning("dht_source_omitted", reason="missing_info_hash", name=candidate.name)

        return sources
