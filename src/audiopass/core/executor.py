"""Commit protocol: transcode, verify and atomically replace the original.

The original file is never modified in place. Before the swap it is left
untouched; the swap is a rename; if the swap fails the backup is renamed
back. Only when that restore also fails is ``CriticalRestoreFailure``
raised, and the backup is then left where it is for an operator.

States::

    IDLE -> LOCK_ACQUIRING -> TRANSCODING -> VERIFYING -> BACKING_UP
         -> SWAPPING -> COMMITTED

Every failure returns to IDLE through the same cleanup (lock released,
temp output removed).
"""

import errno
import os
import shutil
import subprocess
import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Optional

from audiopass.config import CommitConfig
from audiopass.core.analyzer import AudioAnalyzer
from audiopass.core.compiler import TranscodeInvocation
from audiopass.core.lock import FileLock
from audiopass.errors import (
    CommitError,
    CommitIOError,
    CriticalRestoreFailure,
    ExternalProcessFailure,
    MissingProbeData,
    OutputTooSmall,
    SwapFailure,
    VerificationFailure,
)
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)

TEMP_PREFIX = "audiopass_"
BACKUP_INFIX = ".backup_"


class CommitState(Enum):
    """Commit protocol states."""

    IDLE = "idle"
    LOCK_ACQUIRING = "lock_acquiring"
    TRANSCODING = "transcoding"
    VERIFYING = "verifying"
    BACKING_UP = "backing_up"
    SWAPPING = "swapping"
    COMMITTED = "committed"


@dataclass
class BackupRecord:
    """Original file renamed aside during a commit."""

    original: Path
    backup: Path
    restored: bool = False


@dataclass
class CommitOutcome:
    """Result of a successful commit."""

    file_path: Path
    states: list[CommitState] = field(default_factory=list)
    output_bytes: int = 0
    elapsed_seconds: float = 0.0


class FFmpegTranscoder:
    """Run ffmpeg with a hard timeout."""

    def run(self, cmd: list[str], timeout_seconds: float) -> None:
        """Execute an ffmpeg command line.

        Args:
            cmd: Command list (executable first)
            timeout_seconds: Wall-clock limit; the process is killed on expiry

        Raises:
            ExternalProcessFailure: On non-zero exit, timeout or spawn error
        """
        logger.debug("Executing ffmpeg", args=len(cmd), command=cmd)
        start = time.time()

        try:
            result = subprocess.run(
                cmd,
                capture_output=True,
                text=True,
                timeout=timeout_seconds,
            )
        except subprocess.TimeoutExpired as e:
            logger.error("ffmpeg timeout", timeout=timeout_seconds)
            stderr = e.stderr.decode(errors="replace") if isinstance(e.stderr, bytes) else e.stderr
            raise ExternalProcessFailure(
                f"ffmpeg timed out after {timeout_seconds}s",
                stderr=(stderr or "")[-3000:],
                timed_out=True,
            ) from e
        except OSError as e:
            logger.error("ffmpeg could not be started", executable=cmd[0], error=str(e))
            raise ExternalProcessFailure(f"Could not start {cmd[0]}: {e}") from e

        elapsed = round(time.time() - start, 1)
        if result.returncode != 0:
            stderr_tail = (result.stderr or "")[-3000:]
            logger.error(
                "ffmpeg failed",
                returncode=result.returncode,
                elapsed_seconds=elapsed,
                stderr=stderr_tail[-500:],
            )
            raise ExternalProcessFailure(
                f"ffmpeg exited with code {result.returncode}",
                returncode=result.returncode,
                stderr=stderr_tail,
            )

        logger.info("ffmpeg completed", elapsed_seconds=elapsed)


def cleanup_orphans(directory: Path, prefix: str, max_age_seconds: float) -> list[Path]:
    """Remove temp outputs left behind by crashed runs.

    Args:
        directory: Directory to sweep
        prefix: File name prefix of temp outputs
        max_age_seconds: Only files older than this are removed

    Returns:
        Paths that were removed
    """
    removed: list[Path] = []
    if not directory.is_dir():
        return removed

    now = time.time()
    for candidate in directory.glob(f"{prefix}*"):
        try:
            if now - candidate.stat().st_mtime > max_age_seconds:
                candidate.unlink()
                removed.append(candidate)
        except FileNotFoundError:
            continue
        except OSError as e:
            logger.warning("Failed to remove orphaned file", file=str(candidate), error=str(e))

    if removed:
        logger.info("Removed orphaned temp files", directory=str(directory), count=len(removed))
    return removed


def _discard(path: Path) -> None:
    """Remove a temp file if it exists."""
    try:
        if path.exists():
            path.unlink()
            logger.debug("Cleaned up file", file=str(path))
    except OSError as e:
        logger.warning("Failed to cleanup file", file=str(path), error=str(e))


class CommitProtocol:
    """Lock, transcode, verify and swap one file."""

    def __init__(
        self,
        config: CommitConfig,
        transcoder: Optional[FFmpegTranscoder] = None,
        analyzer: Optional[AudioAnalyzer] = None,
    ):
        """Initialize commit protocol.

        Args:
            config: Commit settings
            transcoder: Transcoder collaborator (defaults to ffmpeg)
            analyzer: Probe collaborator used to verify the output
        """
        self.config = config
        self.transcoder = transcoder or FFmpegTranscoder()
        self.analyzer = analyzer or AudioAnalyzer(
            config.ffprobe_path, timeout_seconds=config.verify_timeout_seconds
        )
        self.states: list[CommitState] = []

    def _enter(self, state: CommitState, file_path: Path) -> None:
        self.states.append(state)
        logger.debug("Commit state", state=state.value, file=str(file_path))

    def work_dir_for(self, file_path: Path) -> Path:
        if self.config.work_dir:
            return Path(self.config.work_dir)
        return file_path.parent

    def lock_for(self, file_path: Path) -> FileLock:
        """Build the advisory lock guarding a file.

        Raises:
            CommitIOError: If the shared lock directory cannot be created
        """
        lock_dir = Path(self.config.lock_dir) if self.config.lock_dir else None
        if lock_dir is not None:
            try:
                lock_dir.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise CommitIOError(f"Could not create lock directory {lock_dir}: {e}") from e

        return FileLock(
            file_path,
            lock_dir=lock_dir,
            stale_seconds=self.config.lock_stale_seconds,
            timeout_seconds=self.config.lock_timeout_seconds,
            poll_seconds=self.config.lock_poll_seconds,
            heartbeat=self.config.lock_heartbeat,
        )

    def commit(
        self,
        file_path: Path,
        invocation: TranscodeInvocation,
        duration: Optional[float] = None,
        lock: Optional[FileLock] = None,
    ) -> CommitOutcome:
        """Apply a compiled plan to a file.

        Args:
            file_path: File to transform
            invocation: Compiled transcoder invocation
            duration: Container duration in seconds, if known
            lock: Lock already held by the caller; acquired and released
                here when omitted

        Returns:
            CommitOutcome

        Raises:
            LockTimeout: If another worker holds the file
            ExternalProcessFailure: If ffmpeg fails or times out
            VerificationFailure: If the output is too small or wrong
            CommitIOError: If the work area or original cannot be accessed
            SwapFailure: If the swap failed and the original was restored
            CriticalRestoreFailure: If the swap and the restore both failed
        """
        start = time.time()
        self.states = [CommitState.IDLE]

        unique_id = uuid.uuid4().hex
        work_dir = self.work_dir_for(file_path)
        temp_file = work_dir / f"{TEMP_PREFIX}{unique_id}{file_path.suffix}"
        owned_lock = None

        try:
            if lock is None:
                self._enter(CommitState.LOCK_ACQUIRING, file_path)
                owned_lock = self.lock_for(file_path)
                owned_lock.acquire()

            work_dir.mkdir(parents=True, exist_ok=True)
            cleanup_orphans(work_dir, TEMP_PREFIX, self.config.orphan_max_age_seconds)

            self._enter(CommitState.TRANSCODING, file_path)
            cmd = invocation.build_args(self.config.ffmpeg_path, file_path, temp_file)
            self.transcoder.run(cmd, self.config.transcode_timeout_seconds)

            self._enter(CommitState.VERIFYING, file_path)
            output_bytes = self.verify(file_path, temp_file, invocation, duration)

            self._enter(CommitState.BACKING_UP, file_path)
            record = self._backup(file_path, unique_id)

            self._enter(CommitState.SWAPPING, file_path)
            self._swap(temp_file, record)

            self._enter(CommitState.COMMITTED, file_path)
        except (CommitError, OSError) as e:
            self._enter(CommitState.IDLE, file_path)
            error = e
            if not isinstance(e, CommitError):
                error = CommitIOError(f"I/O error while committing {file_path}: {e}")
            logger.warning(
                "Commit aborted",
                file=str(file_path),
                reason=error.reason,
                states=[s.value for s in self.states],
            )
            if error is e:
                raise
            raise error from e
        finally:
            if owned_lock is not None:
                owned_lock.release()
            _discard(temp_file)

        elapsed = round(time.time() - start, 1)
        logger.info(
            "File replaced successfully",
            file=str(file_path),
            output_mb=round(output_bytes / 1024 / 1024, 2),
            elapsed_seconds=elapsed,
        )
        return CommitOutcome(
            file_path=file_path,
            states=list(self.states),
            output_bytes=output_bytes,
            elapsed_seconds=elapsed,
        )

    def minimum_output_size(
        self, input_bytes: int, duration: Optional[float], synthesized_kbps: int
    ) -> int:
        """Smallest plausible output size.

        With a known duration and newly encoded tracks, half of what those
        tracks alone should weigh; otherwise a fixed fraction of the input.

        Args:
            input_bytes: Size of the original file
            duration: Container duration in seconds
            synthesized_kbps: Sum of bitrates of the new tracks

        Returns:
            Minimum size in bytes
        """
        if duration and synthesized_kbps > 0:
            expected = duration * synthesized_kbps * 1024 / 8
            estimate = expected * 0.5
        else:
            estimate = input_bytes * self.config.fallback_size_ratio
        return int(max(self.config.min_output_bytes, estimate))

    def verify(
        self,
        file_path: Path,
        temp_file: Path,
        invocation: TranscodeInvocation,
        duration: Optional[float] = None,
    ) -> int:
        """Check the transcoded output before it replaces anything.

        Args:
            file_path: Original file
            temp_file: Transcoded output
            invocation: Invocation that produced the output
            duration: Container duration in seconds

        Returns:
            Output size in bytes

        Raises:
            OutputTooSmall: If the output is below the minimum size
            VerificationFailure: If the output is missing or its audio
                streams do not match the plan
        """
        if not temp_file.exists():
            raise VerificationFailure(f"ffmpeg did not create output file {temp_file}")

        input_bytes = file_path.stat().st_size
        output_bytes = temp_file.stat().st_size
        minimum = self.minimum_output_size(
            input_bytes, duration, invocation.synthesized_bitrate_kbps
        )

        if output_bytes < minimum:
            logger.error(
                "Output suspiciously small",
                file=str(file_path),
                output_mb=round(output_bytes / 1024 / 1024, 2),
                minimum_mb=round(minimum / 1024 / 1024, 2),
                input_mb=round(input_bytes / 1024 / 1024, 2),
            )
            raise OutputTooSmall(
                f"Output too small ({output_bytes} bytes, minimum {minimum})",
                actual_bytes=output_bytes,
                minimum_bytes=minimum,
            )

        try:
            streams = self.analyzer.probe_audio_streams(temp_file)
        except MissingProbeData as e:
            raise VerificationFailure(f"Could not probe output: {e}") from e

        if len(streams) != invocation.audio_track_count:
            raise VerificationFailure(
                f"Output has {len(streams)} audio streams, "
                f"expected {invocation.audio_track_count}"
            )

        for expectation in invocation.expectations:
            stream = streams[expectation.position]
            codec = stream.get("codec_name")
            channels = stream.get("channels")
            if codec != expectation.codec or channels != expectation.channels:
                raise VerificationFailure(
                    f"Output audio {expectation.position} is {codec} {channels}ch, "
                    f"expected {expectation.codec} {expectation.channels}ch"
                )

        logger.info(
            "Output verified",
            file=str(file_path),
            audio_streams=len(streams),
            output_mb=round(output_bytes / 1024 / 1024, 2),
            input_mb=round(input_bytes / 1024 / 1024, 2),
        )
        return output_bytes

    def _backup(self, file_path: Path, unique_id: str) -> BackupRecord:
        backup = file_path.with_name(f"{file_path.name}{BACKUP_INFIX}{unique_id}")
        try:
            os.rename(file_path, backup)
        except OSError as e:
            logger.error("Failed to create backup", file=str(file_path), error=str(e))
            raise SwapFailure(f"Could not create backup of {file_path}: {e}") from e
        logger.debug("Created backup", backup=str(backup))
        return BackupRecord(original=file_path, backup=backup)

    def _move_into_place(self, temp_file: Path, target: Path) -> None:
        try:
            os.replace(temp_file, target)
            logger.debug("Moved output into place", file=str(target))
        except OSError as e:
            if e.errno != errno.EXDEV:
                raise
            logger.info("Cross-filesystem move, copying", file=str(target))
            shutil.copy2(temp_file, target)
            temp_file.unlink()

    def _swap(self, temp_file: Path, record: BackupRecord) -> None:
        try:
            self._move_into_place(temp_file, record.original)
        except OSError as e:
            logger.error("Failed to move output into place", file=str(record.original), error=str(e))
            self._restore(record)
            raise SwapFailure(
                f"Could not replace {record.original}: {e}; original restored"
            ) from e

        try:
            record.backup.unlink()
        except OSError as e:
            logger.warning("Failed to remove backup", backup=str(record.backup), error=str(e))

    def _restore(self, record: BackupRecord) -> None:
        logger.info("Restoring from backup", file=str(record.original))
        try:
            if record.original.exists():
                record.original.unlink()  # Partial copy
            os.rename(record.backup, record.original)
        except OSError as e:
            logger.critical(
                "Restore from backup failed - operator action required",
                file=str(record.original),
                backup=str(record.backup),
                error=str(e),
            )
            raise CriticalRestoreFailure(
                f"Could not restore {record.original} from {record.backup}: {e}",
                original=record.original,
                backup=record.backup,
            ) from e
        record.restored = True
        logger.info("Restored from backup successfully", file=str(record.original))
