"""Search module.

Provides the BitMagnet GraphQL client that supplies torrent candidates
and the public tracker list used to enrich stream sources.
"""

from src.search.bitmagnet import (
    BitMagnetClient,
    BitMagnetError,
    BitMagnetSearch,
    BitMagnetUnavailableError,
    sanitize_title,
)
from src.search.trackers import PublicTrackerSource, TrackerRefreshScheduler, parse_tracker_list

__all__ = [
    # BitMagnet
    "BitMagnetClient",
    "BitMagnetError",
    "BitMagnetSearch",
    "BitMagnetUnavailableError",
    "sanitize_title",
    # Trackers
    "PublicTrackerSource",
    "TrackerRefreshScheduler",
    "parse_tracker_list",
]
