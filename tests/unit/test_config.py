"""Unit tests for configuration loading and policy validation."""

import pytest

from audiopass.config import (
    CommitConfig,
    Config,
    PolicyConfig,
    build_policy,
    load_config,
)
from audiopass.errors import InvalidPolicyValue


class TestPolicyConfig:
    """Test PolicyConfig validation."""

    def test_defaults(self):
        policy = PolicyConfig()
        assert policy.enable_recode is True
        assert policy.enable_downmix is True
        assert policy.recode_bitrate_kbps == 640
        assert policy.stereo_bitrate_kbps == 256
        assert policy.loudness_target_lufs == -16
        assert policy.language_priority == ["eng", "fre"]
        assert policy.codec_priority == ["eac3", "dts", "aac"]
        assert policy.default_language == "eng"

    def test_comma_separated_lists(self):
        policy = PolicyConfig(language_priority="en, fra,jpn", codec_priority="EAC3,DTS")
        assert policy.language_priority == ["eng", "fre", "jpn"]
        assert policy.codec_priority == ["eac3", "dts"]

    def test_loudness_target_is_clamped(self):
        assert PolicyConfig(loudness_target_lufs=-40).loudness_target_lufs == -24
        assert PolicyConfig(loudness_target_lufs=-5).loudness_target_lufs == -14
        assert PolicyConfig(loudness_target_lufs=-20).loudness_target_lufs == -20

    def test_policy_is_frozen(self):
        policy = PolicyConfig()
        with pytest.raises(Exception):
            policy.enable_recode = False


class TestBuildPolicy:
    """Test build_policy function."""

    def test_valid_mapping(self):
        policy = build_policy({"enable_downmix": False, "stereo_bitrate_kbps": 192})
        assert policy.enable_downmix is False
        assert policy.stereo_bitrate_kbps == 192

    def test_overrides_take_precedence(self):
        policy = build_policy({"recode_bitrate_kbps": 448}, recode_bitrate_kbps=768)
        assert policy.recode_bitrate_kbps == 768

    @pytest.mark.parametrize(
        "raw",
        [
            {"recode_bitrate_kbps": 32},
            {"recode_bitrate_kbps": 4000},
            {"stereo_bitrate_kbps": 1000},
            {"recode_bitrate_kbps": "fast"},
            {"default_language": "und"},
            {"enable_recod": False},
            {"loudness_target_lufs": float("nan")},
            {"loudness_target_lufs": float("-inf")},
        ],
    )
    def test_invalid_values_raise(self, raw):
        with pytest.raises(InvalidPolicyValue) as exc_info:
            build_policy(raw)
        assert exc_info.value.reason == "invalid_policy_value"
        assert exc_info.value.errors


class TestCommitConfig:
    """Test CommitConfig validation."""

    def test_defaults(self):
        config = CommitConfig()
        assert config.lock_stale_seconds == 7200
        assert config.lock_timeout_seconds == 30
        assert config.lock_poll_seconds == 0.5
        assert config.min_output_bytes == 1024 * 1024
        assert config.orphan_max_age_seconds == 4 * 60 * 60

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            CommitConfig(lock_timeout_seconds=0)

    def test_rejects_ratio_above_one(self):
        with pytest.raises(ValueError):
            CommitConfig(fallback_size_ratio=1.5)


class TestConfigLoading:
    """Test YAML loading."""

    def test_load_defaults(self):
        config = load_config()
        assert isinstance(config, Config)
        assert config.execution.dry_run is False
        assert config.api.port == 9494

    def test_from_yaml_with_env_substitution(self, tmp_path, monkeypatch):
        monkeypatch.setenv("AUDIOPASS_WORK_DIR", "/scratch")
        config_file = tmp_path / "config.yaml"
        config_file.write_text(
            "policy:\n"
            "  enable_downmix: false\n"
            "  language_priority: [jpn, en]\n"
            "commit:\n"
            "  work_dir: ${AUDIOPASS_WORK_DIR}\n"
            "path_overrides:\n"
            "  - path: /media/anime/*\n"
            "    language_priority: [jpn]\n"
        )

        config = load_config(config_file)

        assert config.policy.enable_downmix is False
        assert config.policy.language_priority == ["jpn", "eng"]
        assert config.commit.work_dir == "/scratch"
        assert config.path_overrides[0].path == "/media/anime/*"

    def test_missing_env_var_raises(self, tmp_path, monkeypatch):
        monkeypatch.delenv("AUDIOPASS_MISSING", raising=False)
        config_file = tmp_path / "config.yaml"
        config_file.write_text("commit:\n  work_dir: ${AUDIOPASS_MISSING}\n")

        with pytest.raises(ValueError, match="AUDIOPASS_MISSING"):
            load_config(config_file)

    def test_empty_file_uses_defaults(self, tmp_path):
        config_file = tmp_path / "config.yaml"
        config_file.write_text("")
        assert load_config(config_file).policy == PolicyConfig()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            load_config(tmp_path / "nope.yaml")
