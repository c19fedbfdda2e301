"""API routes for single-file processing and health checks."""

import subprocess
import time
from pathlib import Path

from fastapi import APIRouter, HTTPException, Request

from audiopass import __version__
from audiopass.api.models import HealthResponse, ProcessRequest, ProcessResponse
from audiopass.config import build_policy
from audiopass.errors import InvalidPolicyValue
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)
router = APIRouter()


def tool_available(executable: str) -> bool:
    """Check that an external tool runs.

    Args:
        executable: Executable name or path

    Returns:
        True if ``<executable> -version`` exits cleanly
    """
    try:
        subprocess.run(
            [executable, "-version"],
            capture_output=True,
            timeout=5,
            check=True,
        )
        return True
    except (OSError, subprocess.SubprocessError):
        return False


@router.post("/process", response_model=ProcessResponse)
def process_file(request: Request, payload: ProcessRequest):
    """Run one pass over a single file.

    Runs in the threadpool; the response is sent once the file has been
    committed or left untouched.

    Args:
        request: FastAPI request
        payload: Process request

    Returns:
        ProcessResponse
    """
    app_state = request.app.state.audiopass
    pipeline = app_state.pipeline
    file_path = Path(payload.path)

    policy = None
    if payload.policy is not None:
        base = pipeline.policy_resolver.resolve(file_path).model_dump()
        try:
            policy = build_policy({**base, **payload.policy})
        except InvalidPolicyValue as e:
            logger.warning("Rejected policy override", file=str(file_path), errors=str(e))
            raise HTTPException(status_code=422, detail=str(e))

    result = pipeline.process(
        file_path,
        probe_data=payload.probe,
        policy=policy,
        dry_run=payload.dry_run,
    )

    logger.info(
        "Process request complete",
        file=str(file_path),
        status=result.status,
        reason=result.reason,
    )

    return ProcessResponse.from_result(result)


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    """Health check endpoint.

    Args:
        request: FastAPI request

    Returns:
        Health status
    """
    app_state = request.app.state.audiopass
    commit = app_state.config.commit

    uptime = time.time() - app_state.start_time

    checks = {
        "ffprobe": tool_available(commit.ffprobe_path),
        "ffmpeg": tool_available(commit.ffmpeg_path),
    }

    if all(checks.values()):
        status = "healthy"
    elif any(checks.values()):
        status = "degraded"
    else:
        status = "unhealthy"

    return HealthResponse(
        status=status,
        version=__version__,
        uptime_seconds=uptime,
        checks=checks,
    )
