"""Integration tests for the HTTP daemon."""

from unittest.mock import Mock, patch

import pytest
from fastapi.testclient import TestClient

from audiopass.api.app import create_app
from audiopass.core.executor import CommitOutcome
from audiopass.core.pipeline import ProcessingPipeline


@pytest.fixture
def committer():
    mock = Mock()
    mock.commit.side_effect = lambda file_path, invocation, duration=None, lock=None: CommitOutcome(
        file_path=file_path
    )
    return mock


@pytest.fixture
def test_client(default_config, committer):
    """Create a test client for the FastAPI app."""
    pipeline = ProcessingPipeline(default_config, analyzer=Mock(), committer=committer)
    app = create_app(default_config, pipeline=pipeline)
    return TestClient(app)


class TestProcessEndpoint:
    """Test POST /process."""

    def test_process_file(self, test_client, committer, media_file, audio_stream, probe_of):
        response = test_client.post(
            "/process",
            json={"path": str(media_file), "probe": probe_of(audio_stream(1, "dts", 6, "eng"))},
        )

        assert response.status_code == 200
        data = response.json()
        assert data["outcome"] == "processed"
        assert data["status"] == "processed"
        assert [t["title"] for t in data["tracks"]] == [
            "English - DD+ - 5.1",
            "English Original - DTS - 5.1",
            "English - AAC - Stereo",
        ]
        assert data["tracks"][0]["is_default"] is True
        assert data["tracks"][2]["origin"] == "synthesized_downmix"
        assert data["decision_log"]
        committer.commit.assert_called_once()

    def test_already_optimal(self, test_client, committer, media_file, audio_stream, probe_of):
        probe = probe_of(
            audio_stream(1, "eac3", 2, "eng", title="English Original - DD+ - Stereo", default=True)
        )

        response = test_client.post("/process", json={"path": str(media_file), "probe": probe})

        data = response.json()
        assert data["outcome"] == "skipped"
        assert data["reason"] == "already_optimal"
        committer.commit.assert_not_called()

    def test_dry_run(self, test_client, committer, media_file, audio_stream, probe_of):
        response = test_client.post(
            "/process",
            json={
                "path": str(media_file),
                "probe": probe_of(audio_stream(1, "dts", 6, "eng")),
                "dry_run": True,
            },
        )

        assert response.json()["status"] == "dry_run"
        committer.commit.assert_not_called()

    def test_policy_override(self, test_client, media_file, audio_stream, probe_of):
        response = test_client.post(
            "/process",
            json={
                "path": str(media_file),
                "probe": probe_of(audio_stream(1, "dts", 6, "eng")),
                "policy": {"enable_downmix": False},
                "dry_run": True,
            },
        )

        titles = [t["title"] for t in response.json()["tracks"]]
        assert titles == ["English - DD+ - 5.1", "English Original - DTS - 5.1"]

    def test_invalid_policy_rejected(self, test_client, committer, media_file):
        response = test_client.post(
            "/process",
            json={"path": str(media_file), "policy": {"recode_bitrate_kbps": 5}},
        )

        assert response.status_code == 422
        committer.commit.assert_not_called()

    def test_override_key_named_raw(self, test_client, media_file):
        response = test_client.post(
            "/process",
            json={"path": str(media_file), "policy": {"raw": {}}, "dry_run": True},
        )

        assert response.status_code == 422

    def test_misspelled_policy_key_rejected(self, test_client, committer, media_file):
        response = test_client.post(
            "/process",
            json={"path": str(media_file), "policy": {"enable_recod": False}},
        )

        assert response.status_code == 422
        assert "enable_recod" in response.json()["detail"]
        committer.commit.assert_not_called()

    def test_missing_file(self, test_client, tmp_path):
        response = test_client.post("/process", json={"path": str(tmp_path / "nope.mkv")})

        data = response.json()
        assert data["status"] == "failed"
        assert data["reason"] == "file_not_found"

    def test_missing_path_field(self, test_client):
        response = test_client.post("/process", json={"probe": {}})

        assert response.status_code == 422
        assert response.json()["message"] == "Invalid request payload"


class TestHealthEndpoint:
    """Test GET /health."""

    def test_healthy(self, test_client):
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0)
            response = test_client.get("/health")

        assert response.status_code == 200
        data = response.json()
        assert data["status"] == "healthy"
        assert data["checks"] == {"ffprobe": True, "ffmpeg": True}
        assert data["uptime_seconds"] >= 0

    def test_unhealthy_without_tools(self, test_client):
        with patch("subprocess.run", side_effect=FileNotFoundError("ffprobe")):
            response = test_client.get("/health")

        assert response.json()["status"] == "unhealthy"


class TestDaemonOrchestrator:
    """Test DaemonOrchestrator startup checks."""

    def test_check_tools_reports_missing(self, default_config):
        from audiopass.daemon import DaemonOrchestrator

        daemon = DaemonOrchestrator(default_config)

        with patch("subprocess.run", side_effect=FileNotFoundError("ffmpeg")):
            assert daemon.check_tools() is False
        with patch("subprocess.run") as mock_run:
            mock_run.return_value = Mock(returncode=0)
            assert daemon.check_tools() is True

        assert daemon.server.config.port == default_config.api.port
