"""Exception taxonomy for audiopass.

Planning errors (probe data, classification, policy) and commit errors
(lock, transcode, verification, swap) are raised by the stage that detects
them and converted into a ``ProcessResult`` by the processing pipeline.
Nothing below is raised past ``ProcessingPipeline.process``.
"""

from pathlib import Path
from typing import Optional


class AudioPassError(Exception):
    """Base exception for all audiopass errors."""

    reason = "error"


class PlanningError(AudioPassError):
    """Raised before any file is touched."""

    reason = "planning_error"


class MissingProbeData(PlanningError):
    """Probe data is absent or its stream list is not a list."""

    reason = "missing_probe_data"


class NoAudioStreams(PlanningError):
    """The file carries no audio streams (nothing to do)."""

    reason = "no_audio_streams"


class InvalidChannelCount(PlanningError):
    """An audio stream has a missing or unusable channel count."""

    reason = "invalid_channel_count"

    def __init__(self, message: str, stream_index: Optional[int] = None):
        super().__init__(message)
        self.stream_index = stream_index


class InvalidPolicyValue(PlanningError):
    """A policy field is out of range or malformed."""

    reason = "invalid_policy_value"

    def __init__(self, message: str, errors: Optional[list] = None):
        super().__init__(message)
        self.errors = errors or []


class CommitError(AudioPassError):
    """Raised by the commit protocol."""

    reason = "commit_error"


class LockTimeout(CommitError):
    """Another worker held the lock for longer than the acquisition timeout."""

    reason = "lock_timeout"


class ExternalProcessFailure(CommitError):
    """The transcoder exited non-zero, timed out or could not be started."""

    reason = "external_process_failure"

    def __init__(
        self,
        message: str,
        returncode: Optional[int] = None,
        stderr: str = "",
        timed_out: bool = False,
    ):
        super().__init__(message)
        self.returncode = returncode
        self.stderr = stderr
        self.timed_out = timed_out


class VerificationFailure(CommitError):
    """The transcoded output does not match what the plan asked for."""

    reason = "verification_failure"


class OutputTooSmall(VerificationFailure):
    """The transcoded output is below the minimum plausible size."""

    reason = "output_too_small"

    def __init__(self, message: str, actual_bytes: int = 0, minimum_bytes: int = 0):
        super().__init__(message)
        self.actual_bytes = actual_bytes
        self.minimum_bytes = minimum_bytes


class CommitIOError(CommitError):
    """A filesystem operation around the commit failed before the swap."""

    reason = "commit_io_error"


class SwapFailure(CommitError):
    """Moving the output into place failed; the original was restored."""

    reason = "swap_failure"


class CriticalRestoreFailure(CommitError):
    """Both the swap and the restore failed. Needs an operator.

    The backup is left where it is and must not be deleted automatically.
    """

    reason = "critical_restore_failure"

    def __init__(self, message: str, original: Path, backup: Path):
        super().__init__(message)
        self.original = original
        self.backup = backup
