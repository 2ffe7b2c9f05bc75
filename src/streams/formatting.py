"""Display fields for ranked streams.

Turns a ranked candidate plus the resolved title into the ``name``,
``title``, ``quality`` and multi-line ``description`` shown by the client.
"""

from collections.abc import Iterable

from src.media.resolver import MediaMetadata
from src.ranking.models import Candidate, OutputStream

STREAM_NAME_PREFIX = "Bitmagnet"
UNKNOWN_RESOLUTION_NAME = "Local"
UNKNOWN_QUALITY = "Unknown"

# Release tags worth showing next to the size
KNOWN_SOURCE_TAGS = ("yts", "dmm", "rarbg", "ettv")

# (label, substrings) checked in order against the lowercased torrent name
AUDIO_LABELS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Atmos", ("atmos",)),
    ("DTS-HD", ("dts-hd",)),
    ("TrueHD", ("truehd",)),
    ("DTS", ("dts",)),
    ("EAC3/DDP", ("eac3", "ddp")),
    ("AC3", ("ac3",)),
    ("AAC", ("aac",)),
    ("DD 5.1", ("dd 5.1", "dolby digital 5.1")),
    ("Stereo", ("2.0", "stereo")),
)
UNKNOWN_AUDIO = "Unknown Audio"


def stream_name(candidate: Candidate) -> str:
    """``Bitmagnet-1080p``, or ``Bitmagnet-Local`` without a resolution."""
    return f"{STREAM_NAME_PREFIX}-{candidate.video_resolution or UNKNOWN_RESOLUTION_NAME}"


def quality_label(candidate: Candidate) -> str:
    return candidate.video_resolution or UNKNOWN_QUALITY


def stream_title(
    metadata: MediaMetadata | None,
    media_id: str,
    content_type: str,
    season: int | None = None,
    episode: int | None = None,
) -> str:
    """Build the display title.

    Movies with a known year read ``Title (Year)``, episodes read
    ``S01E02 Title``. Without metadata the media id stands in for the title.
    """
    title = metadata.title if metadata and metadata.title else media_id

    if content_type == "movie" and metadata and metadata.year:
        return f"{title} ({metadata.year})"
    if content_type == "series" and season is not None and episode is not None:
        return f"S{season:02d}E{episode:02d} {title}"
    return title


def audio_label(name: str) -> str:
    """Best-guess audio format from the torrent name."""
    lowered = name.lower()
    for label, markers in AUDIO_LABELS:
        if any(marker in lowered for marker in markers):
            return label
    return UNKNOWN_AUDIO


def quality_details(candidate: Candidate) -> list[str]:
    """Source, codec, modifier and a ``10bit`` flag, whichever are known."""
    details = [
        value
        for value in (candidate.video_source, candidate.video_codec, candidate.video_modifier)
        if value
    ]
    tags = (tag.lower() for tag in candidate.torrent.tag_names)
    if any("10bit" in tag for tag in tags) or "10bit" in candidate.name.lower():
        details.append("10bit")
    return details


def source_tag(candidate: Candidate) -> str | None:
    for tag in candidate.torrent.tag_names:
        if tag.lower() in KNOWN_SOURCE_TAGS:
            return tag.upper()
    return None


def build_description(candidate: Candidate) -> str:
    """Multi-line stream description.

    Example:
        Quality: BluRay | x265 | REMUX | 10bit
        10.00 GiB | YTS
        Audio: DTS-HD
        Language: ENGLISH|FRENCH
        Seeders: 120
    """
    details = quality_details(candidate)
    lines = [f"Quality: {' | '.join(details) if details else UNKNOWN_QUALITY}"]

    size_line = f"{candidate.size_gib:.2f} GiB"
    tag = source_tag(candidate)
    if tag:
        size_line += f" | {tag}"
    lines.append(size_line)

    lines.append(f"Audio: {audio_label(candidate.name)}")

    languages = [language.name.upper() for language in candidate.languages if language.name]
    lines.append(f"Language: {'|'.join(languages) if languages else 'Unknown'}")

    lines.append(f"Seeders: {candidate.seeders}")
    return "\n".join(lines)


def build_output_stream(
    candidate: Candidate,
    metadata: MediaMetadata | None,
    media_id: str,
    content_type: str,
    sources: Iterable[str],
    season: int | None = None,
    episode: int | None = None,
) -> OutputStream:
    """Assemble the output descriptor for one ranked candidate.

    Sources are emitted sorted so equal sets serialize identically.
    """
    return OutputStream(
        info_hash=candidate.info_hash,
        display_name=stream_name(candidate),
        display_title=stream_title(metadata, media_id, content_type, season, episode),
        description=build_description(candidate),
        content_type=candidate.content_type or content_type,
        quality_label=quality_label(candidate),
        seeders=candidate.seeders,
        sources=sorted(set(sources)),
    )
