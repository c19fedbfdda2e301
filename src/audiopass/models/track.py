"""Audio track data models."""

from dataclasses import dataclass
from enum import Enum

UNDETERMINED_LANGUAGES = ("", "und", "unk")


class CodecFamily(Enum):
    """Codec families the engine distinguishes."""

    DTS = "dts"
    EAC3 = "eac3"
    AC3 = "ac3"
    TRUEHD = "truehd"
    AAC = "aac"
    FLAC = "flac"
    OPUS = "opus"
    PCM = "pcm"
    OTHER = "other"


@dataclass(frozen=True)
class AudioTrackDescriptor:
    """Represents a classified audio stream of the input file."""

    source_index: int  # Position among audio streams (0:a:N)
    stream_index: int  # FFprobe global stream index
    codec_family: CodecFamily
    codec_name: str  # Raw codec name (e.g., "dts", "eac3")
    channels: int
    language: str  # Normalized ISO 639-2/B code, "und" if missing
    language_raw: str = ""
    title: str = ""
    profile: str = ""
    channel_layout: str = ""
    is_default: bool = False

    @property
    def has_language(self) -> bool:
        """Whether the stream carries a real language tag."""
        return self.language not in UNDETERMINED_LANGUAGES

    @property
    def is_stereo(self) -> bool:
        return self.channels == 2

    def __str__(self) -> str:
        """Human-readable representation."""
        default_marker = " [DEFAULT]" if self.is_default else ""
        title_part = f' "{self.title}"' if self.title else ""
        return (
            f"Audio {self.source_index} (0:{self.stream_index}): {self.language} "
            f"{self.codec_name} {self.channels}ch{title_part}{default_marker}"
        )
