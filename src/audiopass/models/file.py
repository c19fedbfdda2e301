"""Processing result models."""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal, Optional

from audiopass.models.plan import TransformPlan


@dataclass
class ProcessResult:
    """Result of processing a single file."""

    status: Literal["processed", "skipped", "failed", "critical", "dry_run"]
    file_path: Optional[Path] = None
    plan: Optional[TransformPlan] = None
    reason: Optional[str] = None  # Reason code for skip/failure
    error: Optional[str] = None  # Error message if failed
    decision_log: list[str] = field(default_factory=list)
    backup_path: Optional[Path] = None  # Left behind on critical failures
    duration_ms: Optional[int] = None

    @property
    def outcome(self) -> Literal["processed", "skipped"]:
        """Outcome as seen by the invoking runtime."""
        return "processed" if self.status == "processed" else "skipped"

    @property
    def changed(self) -> bool:
        return self.status == "processed"

    def __str__(self) -> str:
        """Human-readable representation."""
        name = self.file_path.name if self.file_path else "<unknown>"
        track_count = len(self.plan.entries) if self.plan else 0
        if self.status == "processed":
            return f"✓ {name}: {track_count} audio tracks written"
        elif self.status == "skipped":
            return f"⊘ {name}: Skipped ({self.reason})"
        elif self.status == "dry_run":
            return f"⊙ {name}: Would write {track_count} audio tracks (dry run)"
        elif self.status == "critical":
            return (
                f"‼ {name}: CRITICAL ({self.error}); backup kept at {self.backup_path}"
            )
        else:
            return f"✗ {name}: Failed ({self.error or self.reason})"
