"""Stream lookup module.

Public entry point that turns a movie or episode id into ranked,
playable stream descriptors.
"""

from src.streams.formatting import audio_label, build_description, build_output_stream
from src.streams.service import (
    StreamRequest,
    StreamService,
    create_stream_service,
    parse_stream_id,
    stream_cache_key,
)

__all__ = [
    "StreamRequest",
    "StreamService",
    "audio_label",
    "build_description",
    "build_output_stream",
    "create_stream_service",
    "parse_stream_id",
    "stream_cache_key",
]
