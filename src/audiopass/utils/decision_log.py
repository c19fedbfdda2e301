"""Human-readable log of the decisions made during one pass."""

from typing import Any, Optional

import structlog

from audiopass.utils.logger import get_logger


class DecisionLog:
    """Collect decision lines for the invoking runtime.

    Every line is mirrored to structlog with the same key/value context,
    so the file log and the returned log never diverge.
    """

    def __init__(self, logger: Optional[structlog.stdlib.BoundLogger] = None, **context: Any):
        self._logger = logger.bind(**context) if logger else get_logger(__name__, **context)
        self.lines: list[str] = []

    def record(self, message: str, level: str = "info", **fields: Any) -> None:
        """Record one decision.

        Args:
            message: Human-readable line
            level: structlog level name
            **fields: Structured context for the log event
        """
        self.lines.append(message)
        getattr(self._logger, level)(message, **fields)

    def extend(self, messages: list[str]) -> None:
        for message in messages:
            self.record(message)

    def __iter__(self):
        return iter(self.lines)

    def __len__(self) -> int:
        return len(self.lines)
