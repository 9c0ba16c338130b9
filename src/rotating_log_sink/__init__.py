"""Single-writer log sink with daily and size-based file rotation."""

from rotating_log_sink.actor import SinkActor, SinkRegistry
from rotating_log_sink.config import DirectoryDescriptor, RotationPolicy, SinkConfig
from rotating_log_sink.filter import metadata_matches
from rotating_log_sink.handler import SinkHandler
from rotating_log_sink.models import Level, LogEvent
from rotating_log_sink.sanitize import sanitize
from rotating_log_sink.sink import Sink, SinkStoppedError

__version__ = "0.1.0"

__all__ = [
    "DirectoryDescriptor",
    "Level",
    "LogEvent",
    "RotationPolicy",
    "Sink",
    "SinkActor",
    "SinkConfig",
    "SinkHandler",
    "SinkRegistry",
    "SinkStoppedError",
    "metadata_matches",
    "sanitize",
    "__version__",
]
