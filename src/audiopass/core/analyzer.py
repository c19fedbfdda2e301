"""Stream probing using ffprobe."""

import json
import subprocess
from pathlib import Path
from typing import Any, Optional

from audiopass.errors import MissingProbeData
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)


class AudioAnalyzer:
    """Read stream metadata from media files using ffprobe."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout_seconds: float = 60):
        """Initialize analyzer.

        Args:
            ffprobe_path: ffprobe executable
            timeout_seconds: Maximum time for one probe
        """
        self.ffprobe_path = ffprobe_path
        self.timeout_seconds = timeout_seconds

    def _run(self, file_path: Path, extra_args: list[str]) -> dict[str, Any]:
        if not file_path.exists():
            raise FileNotFoundError(f"File not found: {file_path}")

        cmd = [
            self.ffprobe_path,
            "-v",
            "quiet",
            "-print_format",
            "json",
            *extra_args,
            str(file_path),
        ]

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, check=True, timeout=self.timeout_seconds
            )
            data = json.loads(result.stdout)

        except subprocess.TimeoutExpired as e:
            logger.error("ffprobe timeout", file=str(file_path), timeout=self.timeout_seconds)
            raise MissingProbeData(f"ffprobe timed out on {file_path}") from e
        except OSError as e:
            logger.error("ffprobe could not be started", executable=self.ffprobe_path, error=str(e))
            raise MissingProbeData(f"Could not start {self.ffprobe_path}: {e}") from e
        except subprocess.CalledProcessError as e:
            logger.error(
                "ffprobe failed",
                file=str(file_path),
                returncode=e.returncode,
                stderr=(e.stderr or "")[:500],
            )
            raise MissingProbeData(f"ffprobe failed on {file_path} (exit {e.returncode})") from e
        except json.JSONDecodeError as e:
            logger.error("Failed to parse ffprobe output", file=str(file_path), error=str(e))
            raise MissingProbeData(f"Unreadable ffprobe output for {file_path}") from e

        if not isinstance(data, dict):
            raise MissingProbeData(f"Unexpected ffprobe output for {file_path}")
        return data

    def probe(self, file_path: Path) -> dict[str, Any]:
        """Probe all streams and the container format.

        Args:
            file_path: Path to media file

        Returns:
            ffprobe JSON mapping with "streams" and "format"

        Raises:
            FileNotFoundError: If file doesn't exist
            MissingProbeData: If ffprobe fails or its output is unusable
        """
        logger.debug("Probing file", file=str(file_path))
        data = self._run(file_path, ["-show_streams", "-show_format"])

        streams = data.get("streams")
        logger.info(
            "File probed",
            file=str(file_path),
            stream_count=len(streams) if isinstance(streams, list) else None,
            duration=probe_duration(data),
        )
        return data

    def probe_audio_streams(self, file_path: Path) -> list[dict[str, Any]]:
        """Probe audio streams only, in output order.

        Args:
            file_path: Path to media file

        Returns:
            List of ffprobe stream mappings

        Raises:
            MissingProbeData: If ffprobe fails or its output is unusable
        """
        data = self._run(file_path, ["-show_streams", "-select_streams", "a"])
        streams = data.get("streams", [])
        if not isinstance(streams, list):
            raise MissingProbeData(f"Probe streams is not a list for {file_path}")
        return streams


def probe_duration(probe_data: Optional[dict[str, Any]]) -> Optional[float]:
    """Container duration in seconds, None if unknown or unusable."""
    if not probe_data:
        return None
    fmt = probe_data.get("format") or {}
    try:
        duration = float(fmt.get("duration"))
    except (TypeError, ValueError):
        return None
    return duration if duration > 0 else None
