"""Shared pytest fixtures for audiopass tests."""

from pathlib import Path

import pytest

from audiopass.config import CommitConfig, Config, PathOverride, PolicyConfig


def _audio_stream(
    index,
    codec="dts",
    channels=6,
    language="eng",
    title=None,
    default=False,
    profile=None,
    channel_layout=None,
):
    """Build one ffprobe audio stream record."""
    tags = {}
    if language is not None:
        tags["language"] = language
    if title is not None:
        tags["title"] = title

    stream = {
        "index": index,
        "codec_type": "audio",
        "codec_name": codec,
        "channels": channels,
        "tags": tags,
        "disposition": {"default": 1 if default else 0},
    }
    if profile is not None:
        stream["profile"] = profile
    if channel_layout is not None:
        stream["channel_layout"] = channel_layout
    return stream


def _probe_of(*audio_streams, duration="5400.0"):
    """Wrap audio streams in a probe result with a video stream in front."""
    streams = [{"index": 0, "codec_type": "video", "codec_name": "hevc"}]
    streams.extend(audio_streams)
    probe = {"streams": streams}
    if duration is not None:
        probe["format"] = {"duration": duration}
    return probe


@pytest.fixture
def audio_stream():
    """Factory for ffprobe audio stream records."""
    return _audio_stream


@pytest.fixture
def probe_of():
    """Factory for probe results."""
    return _probe_of


@pytest.fixture
def policy():
    """Default policy: recode and downmix on, eng/fre, eac3/dts/aac."""
    return PolicyConfig(
        enable_recode=True,
        enable_downmix=True,
        language_priority=["eng", "fre"],
        codec_priority=["eac3", "dts", "aac"],
    )


@pytest.fixture
def commit_config(tmp_path):
    """Commit settings tuned for fast tests."""
    return CommitConfig(
        lock_dir=str(tmp_path / "locks"),
        lock_timeout_seconds=0.3,
        lock_poll_seconds=0.05,
        min_output_bytes=0,
        fallback_size_ratio=0.5,
    )


@pytest.fixture
def default_config(policy, commit_config):
    """Create a configuration for testing."""
    return Config(
        policy=policy,
        commit=commit_config,
        path_overrides=[
            PathOverride(path="/media/anime/*", language_priority=["jpn", "eng"]),
        ],
    )


@pytest.fixture
def media_file(tmp_path) -> Path:
    """A stand-in media file with some content."""
    file_path = tmp_path / "movie.mkv"
    file_path.write_bytes(b"original" * 1024)
    (tmp_path / "locks").mkdir()
    return file_path
