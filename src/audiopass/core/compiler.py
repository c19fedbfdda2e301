"""Compile a transform plan into an ffmpeg invocation."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from audiopass.config import PolicyConfig
from audiopass.core.planner import COPY_CODEC, DOWNMIX_CODEC
from audiopass.models.plan import TrackOrigin, TransformPlan
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)

DOWNMIX_LABEL = "stereo_out"

# Per-layout stereo fold-down weights, dialogue (FC) kept at full level
PAN_71 = (
    "pan=stereo|"
    "FL=0.70*FL+0.70*FC+0.25*SL+0.20*BL+0.20*LFE|"
    "FR=0.70*FR+0.70*FC+0.25*SR+0.20*BR+0.20*LFE"
)
PAN_61 = (
    "pan=stereo|"
    "FL=0.70*FL+0.70*FC+0.30*SL+0.20*BC+0.20*LFE|"
    "FR=0.70*FR+0.70*FC+0.30*SR+0.20*BC+0.20*LFE"
)
PAN_51 = (
    "pan=stereo|"
    "FL=0.70*FL+0.70*FC+0.30*SL+0.30*BL+0.25*LFE|"
    "FR=0.70*FR+0.70*FC+0.30*SR+0.30*BR+0.25*LFE"
)
PAN_CENTER_BLEND = "pan=stereo|FL=0.70*FL+0.70*FC|FR=0.70*FR+0.70*FC"
STEREO_REFORMAT = "aformat=channel_layouts=stereo"

LOUDNORM_TRUE_PEAK = -1.5
LOUDNORM_RANGE = 11
LIMITER_LEVEL = 0.95


def downmix_filter(channels: int) -> str:
    """Pick the stereo mixing filter for a source channel count.

    Args:
        channels: Channel count of the main track

    Returns:
        ffmpeg filter expression
    """
    if channels == 8:
        return PAN_71
    if channels == 7:
        return PAN_61
    if channels == 6:
        return PAN_51
    if 3 <= channels <= 5:
        return PAN_CENTER_BLEND
    # Stereo/mono input, or layouts too exotic for fixed weights
    return STEREO_REFORMAT


def downmix_chain(channels: int, policy: PolicyConfig) -> str:
    """Full downmix chain: mix, then normalize, then limit."""
    stages = [downmix_filter(channels)]
    if policy.normalize_loudness:
        target = policy.loudness_target_lufs
        target_str = str(int(target)) if float(target).is_integer() else str(target)
        stages.append(
            f"loudnorm=I={target_str}:TP={LOUDNORM_TRUE_PEAK}:LRA={LOUDNORM_RANGE}"
        )
    stages.append(f"alimiter=limit={LIMITER_LEVEL}")
    return ",".join(stages)


@dataclass(frozen=True)
class CodecDirective:
    """Codec settings for one output audio track."""

    position: int
    codec: str
    bitrate_kbps: Optional[int] = None
    channels: Optional[int] = None  # Forced output channel count

    def to_args(self) -> list[str]:
        args = [f"-c:a:{self.position}", self.codec]
        if self.codec == COPY_CODEC:
            return args
        if self.bitrate_kbps:
            args += [f"-b:a:{self.position}", f"{self.bitrate_kbps}k"]
        if self.channels:
            args += [f"-ac:a:{self.position}", str(self.channels)]
        return args


@dataclass(frozen=True)
class MetadataDirective:
    """Title and language for one output audio track."""

    position: int
    title: str
    language: str

    def to_args(self) -> list[str]:
        return [
            f"-metadata:s:a:{self.position}",
            f"title={self.title}",
            f"-metadata:s:a:{self.position}",
            f"language={self.language}",
        ]


@dataclass(frozen=True)
class StreamExpectation:
    """What the re-probed output must show at an audio position."""

    position: int
    codec: str
    channels: int


@dataclass
class TranscodeInvocation:
    """Everything the transcoder needs for one pass."""

    mappings: list[str]
    codecs: list[CodecDirective]
    metadata: list[MetadataDirective]
    dispositions: list[str]
    filter_graph: Optional[str] = None
    expectations: list[StreamExpectation] = field(default_factory=list)
    audio_track_count: int = 0
    synthesized_bitrate_kbps: int = 0

    def build_args(self, ffmpeg_path: str, input_file: Path, output_file: Path) -> list[str]:
        """Render the invocation into an ffmpeg command line.

        Args:
            ffmpeg_path: ffmpeg executable
            input_file: Source media file
            output_file: Destination temp file

        Returns:
            Command list for subprocess
        """
        cmd = [ffmpeg_path, "-y", "-i", str(input_file)]
        if self.filter_graph:
            cmd += ["-filter_complex", self.filter_graph]

        for mapping in self.mappings:
            cmd += ["-map", mapping]

        for codec in self.codecs:
            cmd += codec.to_args()
        cmd += ["-c:v", "copy", "-c:s", "copy", "-c:t", "copy"]

        for meta in self.metadata:
            cmd += meta.to_args()
        for position, disposition in enumerate(self.dispositions):
            cmd += [f"-disposition:a:{position}", disposition]

        cmd.append(str(output_file))
        return cmd


class PlanCompiler:
    """Lower a TransformPlan into a TranscodeInvocation."""

    def __init__(self, policy: PolicyConfig):
        """Initialize plan compiler.

        Args:
            policy: Track policy
        """
        self.policy = policy

    def compile(self, plan: TransformPlan) -> TranscodeInvocation:
        """Compile an ordered plan.

        Args:
            plan: Plan that requires work

        Returns:
            TranscodeInvocation

        Raises:
            ValueError: If the plan is a no-op
        """
        if plan.no_op_required:
            raise ValueError("No-op plans are not compiled")

        main = plan.main_track
        mappings = ["0:v?"]
        codecs: list[CodecDirective] = []
        metadata: list[MetadataDirective] = []
        expectations: list[StreamExpectation] = []
        filter_graph = None
        synthesized_kbps = 0

        for position, entry in enumerate(plan.entries):
            match entry.origin:
                case TrackOrigin.EXISTING_COPY:
                    mappings.append(f"0:a:{entry.source.source_index}")
                    codecs.append(CodecDirective(position, COPY_CODEC))
                case TrackOrigin.SYNTHESIZED_RECODE:
                    mappings.append(f"0:a:{entry.source.source_index}")
                    forced = entry.channels if entry.channels < main.channels else None
                    codecs.append(
                        CodecDirective(position, entry.target_codec, entry.bitrate_kbps, forced)
                    )
                    expectations.append(
                        StreamExpectation(position, entry.target_codec, entry.channels)
                    )
                    synthesized_kbps += entry.bitrate_kbps or 0
                case TrackOrigin.SYNTHESIZED_DOWNMIX:
                    entry.filter_graph = downmix_chain(main.channels, self.policy)
                    filter_graph = (
                        f"[0:a:{main.source_index}]{entry.filter_graph}[{DOWNMIX_LABEL}]"
                    )
                    mappings.append(f"[{DOWNMIX_LABEL}]")
                    codecs.append(
                        CodecDirective(position, DOWNMIX_CODEC, entry.bitrate_kbps, 2)
                    )
                    expectations.append(StreamExpectation(position, DOWNMIX_CODEC, 2))
                    synthesized_kbps += entry.bitrate_kbps or 0

            metadata.append(MetadataDirective(position, entry.title, entry.language))

        mappings += ["0:s?", "0:t?"]
        dispositions = ["default" if e.is_default else "0" for e in plan.entries]

        invocation = TranscodeInvocation(
            mappings=mappings,
            codecs=codecs,
            metadata=metadata,
            dispositions=dispositions,
            filter_graph=filter_graph,
            expectations=expectations,
            audio_track_count=len(plan.entries),
            synthesized_bitrate_kbps=synthesized_kbps,
        )

        logger.debug(
            "Plan compiled",
            mappings=mappings,
            filter_graph=filter_graph,
            expectations=len(expectations),
        )
        return invocation
