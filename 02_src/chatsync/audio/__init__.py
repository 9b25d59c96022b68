"""Audio recording module."""

from .pipeline import AudioRecordingPipeline, IMicrophone, RecordingState

__all__ = ["AudioRecordingPipeline", "IMicrophone", "RecordingState"]
