"""Pydantic models for API requests and responses."""

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from audiopass.models.file import ProcessResult


class ProcessRequest(BaseModel):
    """Request to run one pass over a single file."""

    path: str = Field(..., description="Absolute path of the media file")
    probe: Optional[Dict[str, Any]] = Field(
        default=None, description="ffprobe JSON; the file is probed when omitted"
    )
    dry_run: Optional[bool] = Field(
        default=None, description="Override the configured dry-run setting"
    )
    policy: Optional[Dict[str, Any]] = Field(
        default=None, description="Policy fields overriding the configured policy"
    )


class TrackResponse(BaseModel):
    """One planned output audio track."""

    position: int
    origin: str
    codec: str
    language: str
    channels: int
    title: str
    is_default: bool


class ProcessResponse(BaseModel):
    """Result of one pass."""

    outcome: Literal["processed", "skipped"]
    status: Literal["processed", "skipped", "failed", "critical", "dry_run"]
    file_path: str
    reason: Optional[str] = None
    error: Optional[str] = None
    tracks: List[TrackResponse] = Field(default_factory=list)
    decision_log: List[str] = Field(default_factory=list)
    backup_path: Optional[str] = None
    duration_ms: Optional[int] = None

    @classmethod
    def from_result(cls, result: ProcessResult) -> "ProcessResponse":
        """Build the response from a pipeline result.

        Args:
            result: Pipeline result

        Returns:
            ProcessResponse
        """
        tracks = []
        if result.plan is not None:
            tracks = [
                TrackResponse(
                    position=position,
                    origin=entry.origin.value,
                    codec=entry.target_codec,
                    language=entry.language,
                    channels=entry.channels,
                    title=entry.title,
                    is_default=entry.is_default,
                )
                for position, entry in enumerate(result.plan.entries)
            ]

        return cls(
            outcome=result.outcome,
            status=result.status,
            file_path=str(result.file_path),
            reason=result.reason,
            error=result.error,
            tracks=tracks,
            decision_log=result.decision_log,
            backup_path=str(result.backup_path) if result.backup_path else None,
            duration_ms=result.duration_ms,
        )


class HealthResponse(BaseModel):
    """Health check response."""

    status: Literal["healthy", "degraded", "unhealthy"]
    version: str
    uptime_seconds: float
    checks: Dict[str, bool] = Field(default_factory=dict)
