"""Data models for audiopass."""

from audiopass.models.file import ProcessResult
from audiopass.models.plan import TrackOrigin, TrackPlanEntry, TransformPlan
from audiopass.models.track import AudioTrackDescriptor, CodecFamily

__all__ = [
    "AudioTrackDescriptor",
    "CodecFamily",
    "ProcessResult",
    "TrackOrigin",
    "TrackPlanEntry",
    "TransformPlan",
]
