"""Transformation plan data models."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from audiopass.models.track import AudioTrackDescriptor


class TrackOrigin(Enum):
    """Where an output audio track comes from."""

    EXISTING_COPY = "existing_copy"
    SYNTHESIZED_RECODE = "synthesized_recode"
    SYNTHESIZED_DOWNMIX = "synthesized_downmix"

    @property
    def is_synthesized(self) -> bool:
        return self is not TrackOrigin.EXISTING_COPY


@dataclass
class TrackPlanEntry:
    """One output audio track."""

    origin: TrackOrigin
    source: Optional[AudioTrackDescriptor]  # None when fed by a filter graph
    target_codec: str  # "copy", "eac3" or "aac"
    language: str
    channels: int
    codec_name: str  # Codec of the output track, used for titles and sorting
    profile: str = ""
    channel_layout: str = ""
    bitrate_kbps: Optional[int] = None
    filter_graph: Optional[str] = None
    title: str = ""
    is_default: bool = False
    derived: bool = False  # Existing track produced by an earlier pass

    @property
    def is_synthesized(self) -> bool:
        return self.origin.is_synthesized

    @property
    def prior_title(self) -> str:
        """Title currently stored on the input track, if any."""
        return self.source.title if self.source and not self.is_synthesized else ""

    def __str__(self) -> str:
        """Human-readable representation."""
        if self.is_synthesized:
            origin = "new"
        else:
            origin = f"from 0:a:{self.source.source_index}"
        default_marker = " [DEFAULT]" if self.is_default else ""
        return f'"{self.title}" ({origin}, {self.target_codec}){default_marker}'


@dataclass
class TransformPlan:
    """Ordered output audio tracks for one planning pass."""

    entries: list[TrackPlanEntry]
    main_track: AudioTrackDescriptor
    no_op_required: bool = False
    needs_recode: bool = False
    needs_downmix: bool = False
    notes: list[str] = field(default_factory=list)

    @property
    def existing_entries(self) -> list[TrackPlanEntry]:
        return [e for e in self.entries if not e.is_synthesized]

    @property
    def synthesized_entries(self) -> list[TrackPlanEntry]:
        return [e for e in self.entries if e.is_synthesized]

    @property
    def titles(self) -> list[str]:
        return [e.title for e in self.entries]

    @property
    def default_entry(self) -> TrackPlanEntry:
        return next(e for e in self.entries if e.is_default)
