"""Display tables and title synthesis for audio tracks.

Titles follow ``"{Language}[ Original][ Descriptor] - {Codec} - {Channels}"``,
e.g. ``"English Original - DTS-HD MA - 5.1"``.
"""

from enum import Enum
from typing import Optional

from audiopass.core.classifier import codec_family, has_object_audio
from audiopass.models.track import CodecFamily
from audiopass.utils.language import language_display_name

TITLE_SEPARATOR = " - "


class DescriptorKind(Enum):
    """Secondary-audio descriptors detected from an existing title."""

    COMMENTARY = "Commentary"
    DESCRIPTIVE = "Descriptive"
    DIRECTORS_COMMENTARY = "Directors Commentary"


class LayoutClass(Enum):
    """Channel layout classes and their display labels."""

    ATMOS = "Atmos"
    SURROUND_71 = "7.1"
    SURROUND_61 = "6.1"
    SURROUND_51 = "5.1"
    SURROUND_50 = "5.0"
    QUAD = "4.0"
    THREE = "3.0"
    STEREO = "Stereo"
    MONO = "Mono"
    OTHER = "other"


LAYOUTS_BY_CHANNELS = {
    8: LayoutClass.SURROUND_71,
    7: LayoutClass.SURROUND_61,
    6: LayoutClass.SURROUND_51,
    5: LayoutClass.SURROUND_50,
    4: LayoutClass.QUAD,
    3: LayoutClass.THREE,
    2: LayoutClass.STEREO,
    1: LayoutClass.MONO,
}


def detect_descriptor(existing_title: Optional[str]) -> Optional[DescriptorKind]:
    """Detect a secondary-audio marker in an existing title.

    Args:
        existing_title: Title currently stored on the track

    Returns:
        DescriptorKind or None
    """
    if not existing_title:
        return None
    lower = existing_title.lower()

    if "commentary" in lower:
        if "director" in lower:
            return DescriptorKind.DIRECTORS_COMMENTARY
        return DescriptorKind.COMMENTARY
    if (
        "descriptive" in lower
        or "described" in lower
        or "audio description" in lower
        or lower.strip() == "ad"
    ):
        return DescriptorKind.DESCRIPTIVE
    if "director" in lower:
        return DescriptorKind.DIRECTORS_COMMENTARY
    return None


def _dts_display(profile: str) -> str:
    if "ma" in profile or "master" in profile:
        return "DTS-HD MA"
    if "hra" in profile or "high res" in profile:
        return "DTS-HD HRA"
    if "x" in profile and "express" not in profile:
        return "DTS:X"
    if "es" in profile:
        return "DTS-ES"
    return "DTS"


def codec_display_name(codec_name: Optional[str], profile: Optional[str] = None) -> str:
    """Get the codec label used in titles.

    Args:
        codec_name: Raw codec name
        profile: Profile string from the probe

    Returns:
        Display label (e.g., "DD+ Atmos", "DTS-HD MA")
    """
    codec = (codec_name or "").lower()
    prof = (profile or "").lower()
    family = codec_family(codec)

    match family:
        case CodecFamily.EAC3:
            return "DD+ Atmos" if has_object_audio(prof) else "DD+"
        case CodecFamily.AC3:
            return "DD"
        case CodecFamily.DTS:
            return _dts_display(prof)
        case CodecFamily.TRUEHD:
            return "TrueHD Atmos" if "atmos" in prof else "TrueHD"
        case CodecFamily.AAC:
            return "AAC"
        case CodecFamily.FLAC:
            return "FLAC"
        case CodecFamily.OPUS:
            return "Opus"
        case CodecFamily.PCM:
            return "PCM"
        case CodecFamily.OTHER:
            if codec == "mp3":
                return "MP3"
            if codec == "vorbis":
                return "Vorbis"
            if "wma" in codec:
                return "WMA"
            return codec.upper()


def layout_class(
    channels: int, profile: Optional[str] = None, channel_layout: Optional[str] = None
) -> LayoutClass:
    """Classify a track's channel layout."""
    if has_object_audio(profile, channel_layout):
        return LayoutClass.ATMOS
    return LAYOUTS_BY_CHANNELS.get(channels, LayoutClass.OTHER)


def numeric_layout_label(channels: int) -> str:
    """Channel label that never says "Atmos"."""
    layout = LAYOUTS_BY_CHANNELS.get(channels)
    if layout is None:
        return f"{channels}ch"
    return layout.value


def channel_display(
    channels: int, profile: Optional[str] = None, channel_layout: Optional[str] = None
) -> str:
    """Get the channel label used in titles.

    Args:
        channels: Channel count
        profile: Profile string from the probe
        channel_layout: Channel layout string from the probe

    Returns:
        Display label (e.g., "7.1", "Stereo", "Atmos")
    """
    layout = layout_class(channels, profile, channel_layout)
    if layout is LayoutClass.ATMOS:
        return LayoutClass.ATMOS.value
    return numeric_layout_label(channels)


def build_title(
    language: str,
    codec_label: str,
    channel_label: str,
    channels: int,
    default_language: str = "eng",
    original: bool = False,
    descriptor: Optional[DescriptorKind] = None,
) -> str:
    """Assemble a canonical track title.

    When both the codec and the channel label would say "Atmos", the channel
    label falls back to the numeric layout.

    Args:
        language: Normalized language code
        codec_label: Result of codec_display_name
        channel_label: Result of channel_display
        channels: Channel count, for the Atmos fallback
        default_language: Language used for undetermined tags
        original: Whether to add the "Original" marker
        descriptor: Secondary-audio descriptor, if any

    Returns:
        Title string
    """
    if "Atmos" in codec_label and channel_label == LayoutClass.ATMOS.value:
        channel_label = numeric_layout_label(channels)

    head = [language_display_name(language, default_language)]
    if original:
        head.append("Original")
    if descriptor is not None:
        head.append(descriptor.value)

    return TITLE_SEPARATOR.join([" ".join(head), codec_label, channel_label])
