"""Decision engine: main track selection and transformation predicates."""

from dataclasses import dataclass
from typing import Iterable

from audiopass.config import PolicyConfig
from audiopass.errors import NoAudioStreams
from audiopass.models.plan import TrackPlanEntry
from audiopass.models.track import AudioTrackDescriptor, CodecFamily
from audiopass.utils.language import UNDETERMINED
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True)
class Decision:
    """Outcome of evaluating the policy against the classified tracks."""

    tracks: tuple[AudioTrackDescriptor, ...]
    main_track: AudioTrackDescriptor
    selection_method: str  # "default disposition" or "first audio stream"
    main_language: str
    needs_recode: bool
    needs_downmix: bool
    has_suitable_stereo: bool
    policy: PolicyConfig

    @property
    def needs_synthesis(self) -> bool:
        return self.needs_recode or self.needs_downmix

    def describe(self) -> list[str]:
        """Human-readable summary of the decision."""
        main = self.main_track
        return [
            f"Analysis: {len(self.tracks)} audio streams",
            f"Main audio ({self.selection_method}): 0:a:{main.source_index} "
            f"{main.codec_name} {main.channels}ch [{self.main_language}]",
            f"  Main is DTS: {main.codec_family is CodecFamily.DTS} "
            f"-> Create DD+: {self.needs_recode}",
            f"  Main multichannel: {main.channels > 2}, has stereo: "
            f"{self.has_suitable_stereo} -> Create stereo: {self.needs_downmix}",
        ]


def select_main_track(tracks: Iterable[AudioTrackDescriptor]) -> tuple[AudioTrackDescriptor, str]:
    """Pick the track a player would start with.

    The first track with the default disposition wins; without one, the
    first audio track in stream order.

    Args:
        tracks: Descriptors in stream order

    Returns:
        (main track, selection method)

    Raises:
        NoAudioStreams: If there are no tracks
    """
    tracks = list(tracks)
    if not tracks:
        raise NoAudioStreams("No audio streams found")

    for track in tracks:
        if track.is_default:
            return track, "default disposition"
    return tracks[0], "first audio stream"


class DecisionEngine:
    """Compute which transformations a file needs."""

    def __init__(self, policy: PolicyConfig):
        """Initialize decision engine.

        Args:
            policy: Track policy
        """
        self.policy = policy

    def decide(self, tracks: list[AudioTrackDescriptor]) -> Decision:
        """Evaluate recode and downmix predicates keyed off the main track.

        Args:
            tracks: Classified audio tracks in stream order

        Returns:
            Decision

        Raises:
            NoAudioStreams: If there are no audio tracks
        """
        main, method = select_main_track(tracks)
        main_language = main.language if main.has_language else self.policy.default_language

        needs_recode = self.policy.enable_recode and main.codec_family is CodecFamily.DTS

        stereo_languages = {self.policy.default_language, main_language, UNDETERMINED}
        has_suitable_stereo = any(
            t.is_stereo and (not t.has_language or t.language in stereo_languages)
            for t in tracks
        )
        needs_downmix = (
            self.policy.enable_downmix and main.channels > 2 and not has_suitable_stereo
        )

        decision = Decision(
            tracks=tuple(tracks),
            main_track=main,
            selection_method=method,
            main_language=main_language,
            needs_recode=needs_recode,
            needs_downmix=needs_downmix,
            has_suitable_stereo=has_suitable_stereo,
            policy=self.policy,
        )

        logger.info(
            "Decision evaluated",
            main_track=main.source_index,
            selection_method=method,
            main_codec=main.codec_family.value,
            main_channels=main.channels,
            main_language=main_language,
            needs_recode=needs_recode,
            needs_downmix=needs_downmix,
        )
        return decision


def is_no_op(decision: Decision, entries: list[TrackPlanEntry]) -> bool:
    """Check whether the file already satisfies the planned goal state.

    True only when nothing has to be synthesized, the existing tracks are
    already in their final order and every title already matches.

    Args:
        decision: Decision for this pass
        entries: Final ordered plan entries with titles

    Returns:
        True if no transcode is required
    """
    if decision.needs_synthesis:
        return False

    existing = [e for e in entries if not e.is_synthesized]
    in_order = all(e.source.source_index == pos for pos, e in enumerate(existing))
    titles_match = all(e.title == e.prior_title for e in existing)
    return in_order and titles_match
