"""Processing pipeline orchestrator."""

import time
from fnmatch import fnmatch
from pathlib import Path
from typing import Any, Mapping, Optional

from audiopass.config import Config, PolicyConfig
from audiopass.core.analyzer import AudioAnalyzer, probe_duration
from audiopass.core.classifier import StreamClassifier
from audiopass.core.compiler import PlanCompiler
from audiopass.core.decision import DecisionEngine
from audiopass.core.executor import CommitProtocol
from audiopass.core.planner import TrackPlanner
from audiopass.errors import (
    CommitError,
    CriticalRestoreFailure,
    NoAudioStreams,
    PlanningError,
)
from audiopass.models.file import ProcessResult
from audiopass.models.plan import TransformPlan
from audiopass.utils.decision_log import DecisionLog
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)


class PolicyResolver:
    """Resolve the policy for a file based on path overrides."""

    def __init__(self, config: Config):
        """Initialize policy resolver.

        Args:
            config: Application configuration
        """
        self.policy = config.policy
        self.overrides = config.path_overrides

    def resolve(self, file_path: Path) -> PolicyConfig:
        """Resolve the policy for a file.

        Checks path overrides in order. First matching pattern wins and
        replaces the language priority; everything else comes from the
        global policy.

        Args:
            file_path: Path to the file

        Returns:
            PolicyConfig
        """
        file_path_str = str(file_path)

        for override in self.overrides:
            if fnmatch(file_path_str, override.path):
                logger.info(
                    "Using path-specific language priority",
                    file=file_path_str,
                    pattern=override.path,
                    priority=override.language_priority,
                )
                return PolicyConfig(
                    **{
                        **self.policy.model_dump(),
                        "language_priority": override.language_priority,
                    }
                )

        return self.policy


class ProcessingPipeline:
    """Orchestrates one classify -> decide -> plan -> compile -> commit pass."""

    def __init__(
        self,
        config: Config,
        analyzer: Optional[AudioAnalyzer] = None,
        committer: Optional[CommitProtocol] = None,
    ):
        """Initialize the pipeline with configuration.

        Args:
            config: Application configuration
            analyzer: Probe collaborator (defaults to ffprobe)
            committer: Commit protocol (defaults to ffmpeg + ffprobe)
        """
        self.config = config
        self.analyzer = analyzer or AudioAnalyzer(
            config.commit.ffprobe_path, timeout_seconds=config.commit.verify_timeout_seconds
        )
        self.committer = committer or CommitProtocol(config.commit, analyzer=self.analyzer)
        self.classifier = StreamClassifier()
        self.policy_resolver = PolicyResolver(config)

    def plan(
        self,
        file_path: Path,
        probe_data: Optional[Mapping[str, Any]] = None,
        log: Optional[DecisionLog] = None,
        policy: Optional[PolicyConfig] = None,
    ) -> TransformPlan:
        """Build the plan for a file without touching it.

        Args:
            file_path: Path to the file
            probe_data: ffprobe JSON mapping; probed from the file when omitted
            log: Decision log to append to
            policy: Policy to apply instead of the configured one

        Returns:
            TransformPlan

        Raises:
            PlanningError: If probe data, classification or policy is unusable
        """
        log = log or DecisionLog(file=str(file_path))
        policy = policy or self.policy_resolver.resolve(file_path)

        if probe_data is None:
            probe_data = self.analyzer.probe(file_path)

        tracks = self.classifier.classify(probe_data)
        decision = DecisionEngine(policy).decide(tracks)
        log.extend(decision.describe())

        plan = TrackPlanner(policy).plan(decision)
        log.extend(plan.notes)
        return plan

    def process(
        self,
        file_path: Path,
        probe_data: Optional[Mapping[str, Any]] = None,
        policy: Optional[PolicyConfig] = None,
        dry_run: Optional[bool] = None,
    ) -> ProcessResult:
        """Process a single file through the complete pipeline.

        Pipeline steps:
        1. Validation (file exists, regular file)
        2. Probe (unless probe data is supplied)
        3. Classification, decision and planning
        4. No-op check
        5. Lock; re-probe and re-plan if the file changed meanwhile
        6. Compilation
        7. Commit (transcode, verify, swap) under the same lock

        No exception escapes; every failure is reported on the result.

        Args:
            file_path: Path to the file to process
            probe_data: ffprobe JSON mapping supplied by the caller
            policy: Policy to apply instead of the configured one
            dry_run: Override the configured dry-run setting

        Returns:
            ProcessResult with status, reason and decision log
        """
        start_time = time.time()
        log = DecisionLog(file=str(file_path))
        dry_run = self.config.execution.dry_run if dry_run is None else dry_run
        policy = policy or self.policy_resolver.resolve(file_path)

        logger.info("Processing file", file=str(file_path))

        if not file_path.exists():
            log.record("ERROR: File not found", level="error")
            return ProcessResult(
                status="failed", file_path=file_path, reason="file_not_found",
                error="File not found", decision_log=log.lines,
            )

        if not file_path.is_file():
            log.record("ERROR: Not a regular file", level="error")
            return ProcessResult(
                status="failed", file_path=file_path, reason="not_a_file",
                error="Not a regular file", decision_log=log.lines,
            )

        fingerprint = file_fingerprint(file_path)
        try:
            if probe_data is None:
                probe_data = self.analyzer.probe(file_path)
            plan = self.plan(file_path, probe_data, log, policy)
        except PlanningError as e:
            return self._planning_failure(file_path, e, log)

        if plan.no_op_required:
            return self._already_optimal(file_path, plan, log)

        if dry_run:
            log.record("DRY RUN: file left unchanged")
            return ProcessResult(
                status="dry_run", file_path=file_path, plan=plan,
                reason="dry_run", decision_log=log.lines,
            )

        lock = None
        try:
            lock = self.committer.lock_for(file_path)
            lock.acquire()

            current = file_fingerprint(file_path)
            if current is None:
                log.record("ERROR: File disappeared while waiting for lock", level="error")
                return ProcessResult(
                    status="failed", file_path=file_path, reason="file_not_found",
                    error="File not found", decision_log=log.lines,
                )
            if current != fingerprint:
                # Another worker replaced the file while we waited
                log.record("File changed while waiting for lock - re-planning", level="warning")
                probe_data = self.analyzer.probe(file_path)
                plan = self.plan(file_path, probe_data, log, policy)
                if plan.no_op_required:
                    return self._already_optimal(file_path, plan, log)

            invocation = PlanCompiler(policy).compile(plan)
            if invocation.filter_graph:
                log.record(f"Filter: {invocation.filter_graph}")

            outcome = self.committer.commit(
                file_path, invocation, probe_duration(probe_data), lock=lock
            )
        except PlanningError as e:
            return self._planning_failure(file_path, e, log)
        except CriticalRestoreFailure as e:
            log.record(f"CRITICAL: {e}", level="critical", backup=str(e.backup))
            log.record(f"Backup location: {e.backup}", level="critical")
            return ProcessResult(
                status="critical", file_path=file_path, plan=plan, reason=e.reason,
                error=str(e), decision_log=log.lines, backup_path=e.backup,
            )
        except CommitError as e:
            log.record(f"ERROR: {e}", level="error", reason=e.reason)
            return ProcessResult(
                status="failed", file_path=file_path, plan=plan, reason=e.reason,
                error=str(e), decision_log=log.lines,
            )
        finally:
            if lock is not None:
                lock.release()

        duration_ms = int((time.time() - start_time) * 1000)
        log.record(
            f"SUCCESS: File processed and replaced ({len(plan.entries)} audio tracks)",
            duration_ms=duration_ms,
            states=[s.value for s in outcome.states],
        )
        return ProcessResult(
            status="processed", file_path=file_path, plan=plan,
            decision_log=log.lines, duration_ms=duration_ms,
        )

    def _planning_failure(
        self, file_path: Path, error: PlanningError, log: DecisionLog
    ) -> ProcessResult:
        if isinstance(error, NoAudioStreams):
            log.record("No audio streams found", level="warning")
            return ProcessResult(
                status="skipped", file_path=file_path, reason=error.reason,
                decision_log=log.lines,
            )
        log.record(f"ERROR: {error}", level="error", reason=error.reason)
        return ProcessResult(
            status="failed", file_path=file_path, reason=error.reason,
            error=str(error), decision_log=log.lines,
        )

    def _already_optimal(
        self, file_path: Path, plan: TransformPlan, log: DecisionLog
    ) -> ProcessResult:
        log.record("No processing needed - file already optimal")
        return ProcessResult(
            status="skipped", file_path=file_path, plan=plan,
            reason="already_optimal", decision_log=log.lines,
        )


def file_fingerprint(file_path: Path) -> Optional[tuple[int, int, int]]:
    """Identity of a file's current contents: inode, size and mtime."""
    try:
        stat = file_path.stat()
    except OSError:
        return None
    return (stat.st_ino, stat.st_size, stat.st_mtime_ns)
