"""Track planning: output order, defaults and titles."""

from audiopass.config import PolicyConfig
from audiopass.core.decision import Decision, is_no_op
from audiopass.core.titles import (
    build_title,
    channel_display,
    codec_display_name,
    detect_descriptor,
)
from audiopass.models.plan import TrackOrigin, TrackPlanEntry, TransformPlan
from audiopass.models.track import AudioTrackDescriptor
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)

RECODE_CODEC = "eac3"
DOWNMIX_CODEC = "aac"
COPY_CODEC = "copy"

# ffmpeg's native E-AC-3 encoder stops at 5.1
EAC3_MAX_CHANNELS = 6


def priority_rank(value: str, priority: list[str]) -> int:
    """Index of value in a priority list, unmatched values rank last."""
    try:
        return priority.index(value)
    except ValueError:
        return len(priority)


def sort_existing(entries: list[TrackPlanEntry], policy: PolicyConfig) -> list[TrackPlanEntry]:
    """Stable sort by language priority, then codec priority.

    Equal ranks keep their input order.

    Args:
        entries: Existing-track entries in input order
        policy: Track policy

    Returns:
        Sorted entries
    """
    return sorted(
        entries,
        key=lambda e: (
            priority_rank(e.language, policy.language_priority),
            priority_rank(e.codec_name.lower(), policy.codec_priority),
        ),
    )


def synthesized_title(entry: TrackPlanEntry, default_language: str) -> str:
    """Title a track gets when it is produced by this engine."""
    return build_title(
        entry.language,
        codec_display_name(entry.codec_name, entry.profile),
        channel_display(entry.channels, entry.profile, entry.channel_layout),
        entry.channels,
        default_language=default_language,
    )


class TrackPlanner:
    """Build the ordered output track list for a decision."""

    def __init__(self, policy: PolicyConfig):
        """Initialize track planner.

        Args:
            policy: Track policy
        """
        self.policy = policy

    def plan(self, decision: Decision) -> TransformPlan:
        """Order output tracks, synthesize titles and detect the no-op case.

        Final order is: new DD+ (if any), existing tracks sorted by language
        and codec priority, new stereo downmix (if any). The first entry
        becomes the default track.

        Args:
            decision: Decision for this pass

        Returns:
            TransformPlan
        """
        main = decision.main_track
        existing = [self._existing_entry(t, decision) for t in decision.tracks]
        self._mark_derived(existing)

        head, middle, tail = self._split_pinned(existing)
        ordered = head + sort_existing(middle, self.policy) + tail

        entries: list[TrackPlanEntry] = []
        if decision.needs_recode:
            entries.append(self._recode_entry(main, decision))
        entries.extend(ordered)
        if decision.needs_downmix:
            entries.append(self._downmix_entry(main, decision))

        self.assign_titles(entries)
        for position, entry in enumerate(entries):
            entry.is_default = position == 0

        plan = TransformPlan(
            entries=entries,
            main_track=main,
            needs_recode=decision.needs_recode,
            needs_downmix=decision.needs_downmix,
        )
        plan.no_op_required = is_no_op(decision, entries)

        for position, entry in enumerate(entries):
            plan.notes.append(
                f"Output audio {position}: {entry.title}"
                + (" (new)" if entry.is_synthesized else "")
            )

        logger.info(
            "Track plan built",
            track_count=len(entries),
            titles=plan.titles,
            no_op=plan.no_op_required,
        )
        return plan

    def assign_titles(self, entries: list[TrackPlanEntry]) -> None:
        """Compute the canonical title of every entry, in final order.

        Only the first plain existing track of each language may be marked
        "Original". Synthesized and derived tracks never are, and they do not
        claim the language either.

        Args:
            entries: Entries in final order (modified in place)
        """
        default_language = self.policy.default_language
        seen: set[str] = set()

        for entry in entries:
            if entry.is_synthesized or entry.derived:
                entry.title = synthesized_title(entry, default_language)
                continue

            descriptor = detect_descriptor(entry.prior_title)
            original = entry.language not in seen and descriptor is None
            seen.add(entry.language)

            entry.title = build_title(
                entry.language,
                codec_display_name(entry.codec_name, entry.profile),
                channel_display(entry.channels, entry.profile, entry.channel_layout),
                entry.channels,
                default_language=default_language,
                original=original,
                descriptor=descriptor,
            )

    def _existing_entry(
        self, track: AudioTrackDescriptor, decision: Decision
    ) -> TrackPlanEntry:
        return TrackPlanEntry(
            origin=TrackOrigin.EXISTING_COPY,
            source=track,
            target_codec=COPY_CODEC,
            language=track.language if track.has_language else decision.main_language,
            channels=track.channels,
            codec_name=track.codec_name,
            profile=track.profile,
            channel_layout=track.channel_layout,
        )

    def _recode_entry(self, main: AudioTrackDescriptor, decision: Decision) -> TrackPlanEntry:
        return TrackPlanEntry(
            origin=TrackOrigin.SYNTHESIZED_RECODE,
            source=main,
            target_codec=RECODE_CODEC,
            language=decision.main_language,
            channels=min(main.channels, EAC3_MAX_CHANNELS),
            codec_name=RECODE_CODEC,
            bitrate_kbps=self.policy.recode_bitrate_kbps,
        )

    def _downmix_entry(self, main: AudioTrackDescriptor, decision: Decision) -> TrackPlanEntry:
        return TrackPlanEntry(
            origin=TrackOrigin.SYNTHESIZED_DOWNMIX,
            source=None,
            target_codec=DOWNMIX_CODEC,
            language=decision.main_language,
            channels=2,
            codec_name=DOWNMIX_CODEC,
            bitrate_kbps=self.policy.stereo_bitrate_kbps,
        )

    def _mark_derived(self, existing: list[TrackPlanEntry]) -> None:
        """Flag tracks that an earlier pass produced.

        A track counts as derived when its title is exactly the synthesized
        form and its language group also holds a track that is not.
        """
        default_language = self.policy.default_language
        candidates = {
            id(e) for e in existing
            if e.prior_title and e.prior_title == synthesized_title(e, default_language)
        }
        plain_languages = {e.language for e in existing if id(e) not in candidates}

        for entry in existing:
            if id(entry) in candidates and entry.language in plain_languages:
                entry.derived = True

    @staticmethod
    def _split_pinned(
        existing: list[TrackPlanEntry],
    ) -> tuple[list[TrackPlanEntry], list[TrackPlanEntry], list[TrackPlanEntry]]:
        """Split off leading and trailing runs of derived tracks."""
        start = 0
        while start < len(existing) and existing[start].derived:
            start += 1
        end = len(existing)
        while end > start and existing[end - 1].derived:
            end -= 1
        return existing[:start], existing[start:end], existing[end:]
