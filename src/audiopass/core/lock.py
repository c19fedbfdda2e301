"""Advisory lock markers shared by workers on the same storage.

A lock is a marker file created with ``O_CREAT | O_EXCL``. A marker that has
not been modified for longer than the staleness threshold is presumed
abandoned and may be reclaimed. While a lock is held, a heartbeat thread
re-touches the marker so a slow holder is never mistaken for a dead one.

Each marker carries a per-acquisition nonce. Reclaiming a stale marker and
releasing a held one both happen under an exclusive ``flock`` on the marker
directory, and release only removes a marker whose nonce still matches.
"""

import fcntl
import os
import socket
import threading
import time
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Optional

from tenacity import (
    RetryError,
    Retrying,
    retry_if_exception_type,
    stop_after_delay,
    wait_fixed,
)

from audiopass.errors import LockTimeout
from audiopass.utils.logger import get_logger

logger = get_logger(__name__)

LOCK_SUFFIX = ".audiopass.lock"


class LockBusy(Exception):
    """The marker exists and is fresh."""


@dataclass
class LockToken:
    """Exclusive claim on one target path."""

    path: Path  # Marker file
    target: Path
    owner: str
    nonce: str
    acquired_at: float = field(default_factory=time.time)

    @property
    def age(self) -> float:
        return time.time() - self.acquired_at


def lock_path_for(target: Path, lock_dir: Optional[Path] = None) -> Path:
    """Derive the marker path for a target file.

    Args:
        target: File being transformed
        lock_dir: Shared lock directory (defaults to the target's directory)

    Returns:
        Marker path
    """
    directory = lock_dir if lock_dir is not None else target.parent
    return directory / f".{target.name}{LOCK_SUFFIX}"


def marker_age(path: Path) -> Optional[float]:
    """Seconds since the marker was last touched, None if it is gone."""
    try:
        return time.time() - path.stat().st_mtime
    except FileNotFoundError:
        return None


class FileLock:
    """Marker-file lock with staleness reclaim and a liveness heartbeat."""

    def __init__(
        self,
        target: Path,
        lock_dir: Optional[Path] = None,
        stale_seconds: float = 7200,
        timeout_seconds: float = 30,
        poll_seconds: float = 0.5,
        heartbeat: bool = True,
    ):
        """Initialize file lock.

        Args:
            target: File to protect
            lock_dir: Directory for the marker (defaults to beside the target)
            stale_seconds: Marker age after which it may be reclaimed
            timeout_seconds: Overall acquisition timeout
            poll_seconds: Sleep between attempts while the marker is fresh
            heartbeat: Refresh the marker while the lock is held
        """
        self.target = target
        self.path = lock_path_for(target, lock_dir)
        self.stale_seconds = stale_seconds
        self.timeout_seconds = timeout_seconds
        self.poll_seconds = poll_seconds
        self.heartbeat = heartbeat
        self.owner = f"{os.getpid()}@{socket.gethostname()}"
        self.token: Optional[LockToken] = None
        self._stop = threading.Event()
        self._heartbeat_thread: Optional[threading.Thread] = None

    @contextmanager
    def _guard(self) -> Iterator[None]:
        """Serialize stale checks and marker removal between workers."""
        fd = os.open(self.path.parent, os.O_RDONLY)
        try:
            fcntl.flock(fd, fcntl.LOCK_EX)
            yield
        finally:
            fcntl.flock(fd, fcntl.LOCK_UN)
            os.close(fd)

    def _reclaim_if_stale(self) -> bool:
        """Remove the marker if it is stale.

        Returns:
            True if the marker is gone and creation may be retried
        """
        with self._guard():
            age = marker_age(self.path)
            if age is None:
                # Released between our open and the check
                return True
            if age <= self.stale_seconds:
                return False
            logger.warning(
                "Reclaiming stale lock",
                lock=str(self.path),
                age_seconds=round(age, 1),
                stale_seconds=self.stale_seconds,
            )
            try:
                self.path.unlink()
            except FileNotFoundError:
                pass
            return True

    def _try_create(self) -> LockToken:
        """One acquisition attempt, reclaiming stale markers on the way.

        Raises:
            LockBusy: If a fresh marker is in place
        """
        while True:
            try:
                fd = os.open(self.path, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
            except FileExistsError:
                if self._reclaim_if_stale():
                    continue
                raise LockBusy(str(self.path))

            nonce = uuid.uuid4().hex
            with os.fdopen(fd, "w") as f:
                f.write(f"{self.owner}\n{nonce}\n{time.time()}\n")
            return LockToken(path=self.path, target=self.target, owner=self.owner, nonce=nonce)

    def owns_marker(self) -> bool:
        """Whether the marker on disk is the one this lock created."""
        if self.token is None:
            return False
        try:
            lines = self.path.read_text().splitlines()
        except FileNotFoundError:
            return False
        return len(lines) > 1 and lines[1] == self.token.nonce

    def acquire(self) -> LockToken:
        """Acquire the lock, waiting up to the timeout.

        Returns:
            LockToken

        Raises:
            LockTimeout: If the marker stayed fresh for the whole timeout
        """
        logger.debug("Acquiring lock", lock=str(self.path), target=str(self.target))

        try:
            for attempt in Retrying(
                stop=stop_after_delay(self.timeout_seconds),
                wait=wait_fixed(self.poll_seconds),
                retry=retry_if_exception_type(LockBusy),
            ):
                with attempt:
                    self.token = self._try_create()
        except RetryError as e:
            logger.error(
                "Lock acquisition timed out",
                lock=str(self.path),
                timeout=self.timeout_seconds,
                attempts=e.last_attempt.attempt_number,
            )
            raise LockTimeout(
                f"Could not acquire lock {self.path} within {self.timeout_seconds}s "
                f"- file may be processed by another worker"
            ) from e

        if self.heartbeat:
            self._start_heartbeat()

        logger.info("Lock acquired", lock=str(self.path), owner=self.owner)
        return self.token

    def release(self) -> None:
        """Release the lock if held. Safe to call more than once."""
        self._stop_heartbeat()
        if self.token is None:
            return
        with self._guard():
            if self.owns_marker():
                self.path.unlink()
            elif self.path.exists():
                logger.error(
                    "Lock marker belongs to another worker, leaving it",
                    lock=str(self.path),
                    owner=self.owner,
                )
            else:
                logger.warning("Lock marker already gone", lock=str(self.path))
        logger.debug("Lock released", lock=str(self.path), held_seconds=round(self.token.age, 1))
        self.token = None

    @property
    def heartbeat_interval(self) -> float:
        return max(self.stale_seconds / 4, 0.05)

    def _start_heartbeat(self) -> None:
        self._stop.clear()
        self._heartbeat_thread = threading.Thread(
            target=self._beat, name=f"lock-heartbeat-{self.target.name}", daemon=True
        )
        self._heartbeat_thread.start()

    def _stop_heartbeat(self) -> None:
        self._stop.set()
        if self._heartbeat_thread is not None:
            self._heartbeat_thread.join(timeout=5)
            self._heartbeat_thread = None

    def _beat(self) -> None:
        while not self._stop.wait(self.heartbeat_interval):
            if not self.owns_marker():
                logger.error("Lock marker lost while held", lock=str(self.path))
                return
            try:
                os.utime(self.path)
            except FileNotFoundError:
                logger.error("Lock marker vanished while held", lock=str(self.path))
                return

    def __enter__(self) -> LockToken:
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
