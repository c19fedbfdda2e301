"""Configuration management for audiopass."""

import math
import os
import re
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional

import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from audiopass.errors import InvalidPolicyValue
from audiopass.utils.language import is_undetermined, normalize_language_code

logger = structlog.get_logger(__name__)

LOUDNESS_MIN_LUFS = -24
LOUDNESS_MAX_LUFS = -14


def _split_list(v: Any) -> Any:
    """Accept comma-separated strings as lists ("eng,fre")."""
    if isinstance(v, str):
        return [item.strip() for item in v.split(",") if item.strip()]
    return v


class PolicyConfig(BaseModel):
    """User policy for one planning pass."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    enable_recode: bool = Field(default=True, description="Create DD+ from a DTS main track")
    enable_downmix: bool = Field(default=True, description="Create an AAC stereo downmix")
    recode_bitrate_kbps: int = Field(default=640, description="DD+ bitrate")
    stereo_bitrate_kbps: int = Field(default=256, description="AAC stereo bitrate")
    normalize_loudness: bool = Field(default=True, description="Apply loudnorm to the downmix")
    loudness_target_lufs: float = Field(default=-16, description="Integrated loudness target")
    language_priority: List[str] = Field(
        default=["eng", "fre"], description="Languages in priority order"
    )
    codec_priority: List[str] = Field(
        default=["eac3", "dts", "aac"], description="Codec names in priority order"
    )
    default_language: str = Field(
        default="eng", description="Language assumed for untagged tracks"
    )

    @field_validator("recode_bitrate_kbps")
    @classmethod
    def validate_recode_bitrate(cls, v: int) -> int:
        """Validate DD+ bitrate is within what E-AC-3 encoders accept."""
        if not 96 <= v <= 1536:
            raise ValueError("recode_bitrate_kbps must be between 96 and 1536")
        return v

    @field_validator("stereo_bitrate_kbps")
    @classmethod
    def validate_stereo_bitrate(cls, v: int) -> int:
        """Validate AAC stereo bitrate."""
        if not 64 <= v <= 512:
            raise ValueError("stereo_bitrate_kbps must be between 64 and 512")
        return v

    @field_validator("loudness_target_lufs")
    @classmethod
    def clamp_loudness_target(cls, v: float) -> float:
        """Clamp the loudness target into the supported range."""
        if not math.isfinite(v):
            raise ValueError("loudness_target_lufs must be a finite number")
        clamped = min(max(v, LOUDNESS_MIN_LUFS), LOUDNESS_MAX_LUFS)
        if clamped != v:
            logger.warning(
                "Loudness target out of range, clamped",
                requested=v,
                clamped=clamped,
            )
        return clamped

    @field_validator("language_priority", mode="before")
    @classmethod
    def split_languages(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("language_priority")
    @classmethod
    def normalize_languages(cls, v: List[str]) -> List[str]:
        """Normalize language codes so priority lookups match probed tags."""
        return [normalize_language_code(code) for code in v if code.strip()]

    @field_validator("codec_priority", mode="before")
    @classmethod
    def split_codecs(cls, v: Any) -> Any:
        return _split_list(v)

    @field_validator("codec_priority")
    @classmethod
    def lowercase_codecs(cls, v: List[str]) -> List[str]:
        return [codec.strip().lower() for codec in v if codec.strip()]

    @field_validator("default_language")
    @classmethod
    def validate_default_language(cls, v: str) -> str:
        """Validate the default language is a real language."""
        if is_undetermined(v):
            raise ValueError("default_language must be a real language code")
        return normalize_language_code(v)


class PathOverride(BaseModel):
    """Path-specific language priority override."""

    path: str = Field(..., description="Glob pattern for file paths")
    language_priority: List[str] = Field(..., description="Language priority for this path")


class CommitConfig(BaseModel):
    """Lock, transcode and replacement settings."""

    work_dir: Optional[str] = Field(
        default=None, description="Directory for temp outputs (defaults to the file's directory)"
    )
    lock_dir: Optional[str] = Field(
        default=None, description="Directory for lock markers (defaults to beside the file)"
    )
    lock_stale_seconds: float = Field(default=7200, description="Age after which a lock is stale")
    lock_timeout_seconds: float = Field(default=30, description="Lock acquisition timeout")
    lock_poll_seconds: float = Field(default=0.5, description="Sleep between lock attempts")
    lock_heartbeat: bool = Field(default=True, description="Refresh the lock while holding it")
    transcode_timeout_seconds: float = Field(default=3600, description="ffmpeg timeout")
    verify_timeout_seconds: float = Field(default=60, description="ffprobe verification timeout")
    fallback_size_ratio: float = Field(
        default=0.5, description="Minimum output size as a fraction of input size"
    )
    min_output_bytes: int = Field(default=1024 * 1024, description="Absolute minimum output size")
    orphan_max_age_seconds: float = Field(
        default=4 * 60 * 60, description="Age after which leftover temp outputs are removed"
    )
    ffmpeg_path: str = Field(default="ffmpeg", description="ffmpeg executable")
    ffprobe_path: str = Field(default="ffprobe", description="ffprobe executable")

    @field_validator(
        "lock_stale_seconds",
        "lock_timeout_seconds",
        "lock_poll_seconds",
        "transcode_timeout_seconds",
        "verify_timeout_seconds",
        "orphan_max_age_seconds",
    )
    @classmethod
    def validate_positive(cls, v: float) -> float:
        """Validate durations are positive."""
        if v <= 0:
            raise ValueError("must be greater than zero")
        return v

    @field_validator("fallback_size_ratio")
    @classmethod
    def validate_ratio(cls, v: float) -> float:
        """Validate size ratio is a fraction."""
        if not 0 < v <= 1:
            raise ValueError("fallback_size_ratio must be in (0, 1]")
        return v

    @field_validator("min_output_bytes")
    @classmethod
    def validate_min_bytes(cls, v: int) -> int:
        if v < 0:
            raise ValueError("min_output_bytes must not be negative")
        return v


class APIConfig(BaseModel):
    """API server configuration."""

    host: str = Field(default="0.0.0.0", description="API host")
    port: int = Field(default=9494, description="API port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    format: str = Field(default="json", description="Log format (json or text)")
    level: str = Field(default="info", description="Log level")
    output: Optional[str] = Field(
        default=None, description="Log file path (stdout only when unset)"
    )

    @field_validator("format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        """Validate log format."""
        if v not in ("json", "text"):
            raise ValueError("Log format must be 'json' or 'text'")
        return v

    @field_validator("level")
    @classmethod
    def validate_level(cls, v: str) -> str:
        """Validate log level."""
        if v.lower() not in ("debug", "info", "warning", "error", "critical"):
            raise ValueError("Invalid log level")
        return v.lower()


class ExecutionConfig(BaseModel):
    """Execution configuration."""

    dry_run: bool = Field(default=False, description="Plan only, never touch files")


class Config(BaseModel):
    """Main configuration model."""

    policy: PolicyConfig = Field(default_factory=PolicyConfig, description="Track policy")
    path_overrides: List[PathOverride] = Field(
        default_factory=list, description="Path-specific language overrides"
    )
    commit: CommitConfig = Field(default_factory=CommitConfig, description="Commit settings")
    api: APIConfig = Field(default_factory=APIConfig, description="API configuration")
    logging: LoggingConfig = Field(default_factory=LoggingConfig, description="Logging configuration")
    execution: ExecutionConfig = Field(
        default_factory=ExecutionConfig, description="Execution configuration"
    )

    @classmethod
    def from_yaml(cls, path: str | Path) -> "Config":
        """Load configuration from YAML file.

        Args:
            path: Path to YAML configuration file

        Returns:
            Config instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        path = Path(path)
        if not path.exists():
            raise FileNotFoundError(f"Configuration file not found: {path}")

        with open(path) as f:
            raw_config = yaml.safe_load(f)

        if raw_config is None:
            raw_config = {}

        # Substitute environment variables
        raw_config = cls._substitute_env_vars(raw_config)

        return cls(**raw_config)

    @staticmethod
    def _substitute_env_vars(obj: Any) -> Any:
        """Recursively substitute environment variables in configuration.

        Replaces ${VAR_NAME} with os.environ['VAR_NAME'].

        Args:
            obj: Configuration object (dict, list, str, etc.)

        Returns:
            Object with environment variables substituted
        """
        if isinstance(obj, dict):
            return {key: Config._substitute_env_vars(value) for key, value in obj.items()}
        elif isinstance(obj, list):
            return [Config._substitute_env_vars(item) for item in obj]
        elif isinstance(obj, str):
            pattern = r"\$\{([^}]+)\}"

            def replace_var(match):
                var_name = match.group(1)
                value = os.environ.get(var_name)
                if value is None:
                    raise ValueError(
                        f"Environment variable '{var_name}' not found "
                        f"(referenced in configuration)"
                    )
                return value

            return re.sub(pattern, replace_var, obj)
        else:
            return obj

    @classmethod
    def from_defaults(cls) -> "Config":
        """Create configuration with default values.

        Returns:
            Config instance with defaults
        """
        return cls()


def build_policy(raw: Optional[Mapping[str, Any]] = None, **overrides: Any) -> PolicyConfig:
    """Validate a raw policy mapping.

    Args:
        raw: Policy fields as read from a request or a plugin input form
        **overrides: Fields that take precedence over ``raw``

    Returns:
        PolicyConfig instance

    Raises:
        InvalidPolicyValue: If any field is rejected
    """
    data: Dict[str, Any] = dict(raw or {})
    data.update(overrides)
    try:
        return PolicyConfig(**data)
    except ValidationError as e:
        fields = ", ".join(".".join(str(p) for p in err["loc"]) for err in e.errors())
        raise InvalidPolicyValue(f"Invalid policy value(s): {fields}", errors=e.errors()) from e


def load_config(path: Optional[str | Path] = None) -> Config:
    """Load configuration from file or use defaults.

    Args:
        path: Optional path to configuration file. If None, uses defaults.

    Returns:
        Config instance
    """
    if path is None:
        return Config.from_defaults()

    return Config.from_yaml(path)
