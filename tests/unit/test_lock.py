"""Unit tests for the advisory file lock."""

import os
import threading
import time
from unittest.mock import patch

import pytest

from audiopass.core.lock import FileLock, lock_path_for, marker_age
from audiopass.errors import LockTimeout


@pytest.fixture
def target(tmp_path):
    file_path = tmp_path / "movie.mkv"
    file_path.write_bytes(b"data")
    return file_path


def make_lock(target, **kwargs):
    options = {"timeout_seconds": 0.3, "poll_seconds": 0.05, "heartbeat": False}
    options.update(kwargs)
    return FileLock(target, **options)


class TestLockPath:
    """Test marker path derivation."""

    def test_beside_target(self, target):
        assert lock_path_for(target) == target.parent / ".movie.mkv.audiopass.lock"

    def test_shared_lock_dir(self, target, tmp_path):
        lock_dir = tmp_path / "locks"
        assert lock_path_for(target, lock_dir) == lock_dir / ".movie.mkv.audiopass.lock"


class TestFileLock:
    """Test FileLock class."""

    def test_acquire_and_release(self, target):
        lock = make_lock(target)

        token = lock.acquire()

        assert lock.path.exists()
        assert token.target == target
        assert str(os.getpid()) in token.owner

        lock.release()
        assert not lock.path.exists()
        assert lock.token is None

    def test_release_is_idempotent(self, target):
        lock = make_lock(target)
        lock.acquire()
        lock.release()
        lock.release()

    def test_context_manager(self, target):
        with make_lock(target) as token:
            assert token.path.exists()
        assert not token.path.exists()

    def test_fresh_marker_times_out(self, target):
        holder = make_lock(target)
        holder.acquire()
        original = target.read_bytes()

        contender = make_lock(target, timeout_seconds=0.2)
        start = time.time()
        with pytest.raises(LockTimeout):
            contender.acquire()

        assert time.time() - start >= 0.2
        assert contender.token is None
        assert target.read_bytes() == original
        holder.release()

    def test_stale_marker_is_reclaimed(self, target):
        marker = lock_path_for(target)
        marker.write_text("dead-worker\n")
        old = time.time() - 3 * 60 * 60
        os.utime(marker, (old, old))

        lock = make_lock(target, stale_seconds=7200)
        token = lock.acquire()

        assert token.owner in marker.read_text()
        lock.release()

    def test_waits_for_release(self, target):
        holder = make_lock(target)
        holder.acquire()
        timer = threading.Timer(0.1, holder.release)
        timer.start()

        contender = make_lock(target, timeout_seconds=2)
        token = contender.acquire()

        assert token is not None
        contender.release()
        timer.join()

    def test_mutual_exclusion(self, target):
        inside = []
        overlaps = []
        guard = threading.Lock()

        def worker():
            with make_lock(target, timeout_seconds=5, poll_seconds=0.01):
                with guard:
                    inside.append(1)
                    if len(inside) > 1:
                        overlaps.append(1)
                time.sleep(0.02)
                with guard:
                    inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(5)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert overlaps == []
        assert not lock_path_for(target).exists()

    def test_heartbeat_keeps_marker_fresh(self, target):
        lock = make_lock(target, stale_seconds=0.4, heartbeat=True)
        lock.acquire()
        try:
            time.sleep(0.6)
            age = marker_age(lock.path)
            assert age is not None
            assert age < 0.4

            contender = make_lock(target, stale_seconds=0.4, timeout_seconds=0.2)
            with pytest.raises(LockTimeout):
                contender.acquire()
        finally:
            lock.release()

    def test_concurrent_reclaimers_do_not_both_hold(self, target):
        marker = lock_path_for(target)
        marker.write_text("dead-worker\n")
        old = time.time() - 3 * 60 * 60
        os.utime(marker, (old, old))

        first = make_lock(target, stale_seconds=7200, timeout_seconds=0.5)
        second = make_lock(target, stale_seconds=7200, timeout_seconds=0.5)
        results = {}
        started = threading.Event()

        def contend():
            try:
                results["second"] = second.acquire()
            except LockTimeout:
                results["second"] = None

        contender = threading.Thread(target=contend)

        def slow_marker_age(path):
            # The second worker starts reclaiming while the first sits
            # between its staleness check and the unlink.
            age = marker_age(path)
            if not started.is_set():
                started.set()
                contender.start()
                time.sleep(0.1)
            return age

        with patch("audiopass.core.lock.marker_age", side_effect=slow_marker_age):
            try:
                results["first"] = first.acquire()
            except LockTimeout:
                results["first"] = None
            contender.join()

        holders = [lock for lock in (first, second) if lock.token is not None]
        assert len(holders) == 1
        assert holders[0].owns_marker()
        holders[0].release()
        assert not marker.exists()

    def test_release_leaves_another_workers_marker(self, target):
        lock = make_lock(target)
        lock.acquire()
        lock.path.write_text("other@host\nsomeone-else\n")

        lock.release()

        assert lock.path.read_text() == "other@host\nsomeone-else\n"
        assert lock.token is None

    def test_marker_records_nonce(self, target):
        lock = make_lock(target)
        token = lock.acquire()

        assert lock.path.read_text().splitlines()[:2] == [token.owner, token.nonce]
        assert lock.owns_marker()
        lock.release()
        assert not lock.owns_marker()
