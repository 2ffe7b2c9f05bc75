"""Quality scoring for torrent candidates.

The score is a heuristic blend of the indexer's video classification and
markers found in the free-text torrent name. It is only meaningful for
comparing candidates of the same request and is never persisted.
"""

import re

from src.ranking.models import Candidate

# =============================================================================
# Scoring tables
# =============================================================================

RESOLUTION_SCORES: dict[str, int] = {
    "4320p": 100,
    "2160p": 90,
    "1440p": 70,
    "1080p": 50,
    "720p": 30,
    "576p": 10,
    "540p": 10,
    "480p": 10,
    "360p": 10,
}

HDR_BONUS = 15
CODEC_SCORES: dict[str, int] = {
    "X265": 10,
    "H265": 10,
    "H264": 5,
}
AUDIO_PREMIUM_BONUS = 10
AUDIO_LOSSLESS_BONUS = 5
MKV_BONUS = 5

# Size bonus: 0.2 points per GiB, counted up to 50 GiB
SIZE_POINTS_PER_GIB = 0.2
SIZE_CAP_GIB = 50

# Word boundaries keep "DVDRip" from counting as Dolby Vision
HDR_PATTERN = re.compile(
    r"(?<![a-z0-9])(?:hdr(?:10)?(?:\+|plus)?|dv|dovi|dolby[\s._-]*vision)(?![a-z0-9])",
    re.IGNORECASE,
)
REMUX_PATTERN = re.compile(r"remux", re.IGNORECASE)
AUDIO_PREMIUM_PATTERN = re.compile(r"dts[\s._-]?hd|atmos", re.IGNORECASE)
AUDIO_LOSSLESS_PATTERN = re.compile(r"truehd|dts", re.IGNORECASE)

# Resolutions that are never low quality regardless of their numeric value
HD_RESOLUTIONS = frozenset({720, 1080, 1440, 2160, 4320})
LOW_RESOLUTION_MAX = 576

# Case-insensitive substrings marking theatre captures and poor rips.
# "ts" and "cam" also hit unrelated words ("Shorts", "Camera"); accepted.
LOW_QUALITY_MARKERS = ("telecine", "ts", "cam", "hd-ts", "hd-cam", "web-rip")

_RESOLUTION_DIGITS = re.compile(r"(\d+)")


def resolution_value(resolution: str | None) -> int | None:
    """Numeric part of a resolution label ("1080p" -> 1080)."""
    if not resolution:
        return None
    match = _RESOLUTION_DIGITS.search(resolution)
    return int(match.group(1)) if match else None


class QualityClassifier:
    """Computes quality scores and low-quality flags.

    Both methods are pure functions of the candidate.
    """

    def score(self, candidate: Candidate) -> float:
        """Calculate a non-negative quality score.

        Args:
            candidate: Torrent candidate

        Returns:
            Score, higher is better
        """
        name = candidate.name
        score = 0.0

        score += RESOLUTION_SCORES.get(candidate.video_resolution or "", 0)

        modifier = (candidate.video_modifier or "").upper()
        if HDR_PATTERN.search(name) or modifier == "REMUX" or REMUX_PATTERN.search(name):
            score += HDR_BONUS

        score += CODEC_SCORES.get((candidate.video_codec or "").upper(), 0)

        if AUDIO_PREMIUM_PATTERN.search(name):
            score += AUDIO_PREMIUM_BONUS
        elif AUDIO_LOSSLESS_PATTERN.search(name):
            score += AUDIO_LOSSLESS_BONUS

        if ".mkv" in name.lower():
            score += MKV_BONUS

        score += min(max(candidate.size_gib, 0.0), SIZE_CAP_GIB) * SIZE_POINTS_PER_GIB

        return score

    def is_low_quality(self, candidate: Candidate) -> bool:
        """Check for sub-SD resolutions or capture/rip markers."""
        value = resolution_value(candidate.video_resolution)
        if value is not None and value <= LOW_RESOLUTION_MAX and value not in HD_RESOLUTIONS:
            return True

        fields = (candidate.name, candidate.video_source, candidate.video_modifier)
        for field in fields:
            text = (field or "").lower()
            if any(marker in text for marker in LOW_QUALITY_MARKERS):
                return True

        return False
