"""Classification of probed audio streams."""

import math
from typing import Any, Mapping, Optional

from audiopass.errors import InvalidChannelCount, MissingProbeData
from audiopass.models.track import AudioTrackDescriptor, CodecFamily
from audiopass.utils.language import normalize_language_code
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)

CODEC_FAMILIES = {
    "dts": CodecFamily.DTS,
    "dca": CodecFamily.DTS,  # ffmpeg's container name for DTS
    "eac3": CodecFamily.EAC3,
    "ac3": CodecFamily.AC3,
    "truehd": CodecFamily.TRUEHD,
    "aac": CodecFamily.AAC,
    "flac": CodecFamily.FLAC,
    "opus": CodecFamily.OPUS,
}

# Profile/layout substrings that indicate object-based audio
OBJECT_AUDIO_MARKERS = ("joc", "atmos")


def codec_family(codec_name: Optional[str]) -> CodecFamily:
    """Map a raw codec name to its family.

    Args:
        codec_name: Codec name as reported by ffprobe

    Returns:
        CodecFamily (OTHER if unmatched)
    """
    codec = (codec_name or "").strip().lower()
    if codec in CODEC_FAMILIES:
        return CODEC_FAMILIES[codec]
    if "pcm" in codec:
        return CodecFamily.PCM
    return CodecFamily.OTHER


def has_object_audio(profile: Optional[str], channel_layout: Optional[str] = None) -> bool:
    """Check profile and channel layout for an object-audio marker."""
    prof = (profile or "").lower()
    layout = (channel_layout or "").lower()
    return any(marker in prof for marker in OBJECT_AUDIO_MARKERS) or "atmos" in layout


def is_default_disposition(stream: Mapping[str, Any]) -> bool:
    """Read the default disposition flag (1, True or "1")."""
    disposition = stream.get("disposition") or {}
    return disposition.get("default") in (1, True, "1")


def _channel_count(stream: Mapping[str, Any]) -> int:
    channels = stream.get("channels")
    index = stream.get("index")

    # bool is an int subclass, a True channel count is a probe bug
    if isinstance(channels, bool) or not isinstance(channels, (int, float)):
        raise InvalidChannelCount(
            f"Invalid channel count in audio stream {index}: {channels!r}",
            stream_index=index,
        )
    if not math.isfinite(channels) or channels < 1 or channels != int(channels):
        raise InvalidChannelCount(
            f"Invalid channel count in audio stream {index}: {channels!r}",
            stream_index=index,
        )
    return int(channels)


class StreamClassifier:
    """Turn probe stream records into audio track descriptors."""

    def classify(self, probe_data: Optional[Mapping[str, Any]]) -> list[AudioTrackDescriptor]:
        """Classify every audio stream of a probe result.

        Args:
            probe_data: ffprobe JSON mapping with a "streams" list

        Returns:
            Descriptors in stream order (may be empty)

        Raises:
            MissingProbeData: If probe data or its stream list is missing
            InvalidChannelCount: If an audio stream has no usable channel count
        """
        if not probe_data or "streams" not in probe_data:
            raise MissingProbeData("No probe data available")

        streams = probe_data["streams"]
        if not isinstance(streams, list):
            raise MissingProbeData("Probe streams is not a list")

        tracks: list[AudioTrackDescriptor] = []
        for position, stream in enumerate(streams):
            if not isinstance(stream, Mapping) or stream.get("codec_type") != "audio":
                continue

            tags = stream.get("tags") or {}
            language_raw = tags.get("language") or ""
            codec_name = stream.get("codec_name") or "unknown"

            track = AudioTrackDescriptor(
                source_index=len(tracks),
                stream_index=stream.get("index", position),
                codec_family=codec_family(codec_name),
                codec_name=codec_name,
                channels=_channel_count(stream),
                language=normalize_language_code(language_raw),
                language_raw=language_raw,
                title=tags.get("title") or "",
                profile=stream.get("profile") or "",
                channel_layout=stream.get("channel_layout") or "",
                is_default=is_default_disposition(stream),
            )
            tracks.append(track)

        logger.debug(
            "Audio streams classified",
            track_count=len(tracks),
            codecs=[t.codec_family.value for t in tracks],
            languages=[t.language for t in tracks],
        )
        return tracks
