"""Host-side event sinks."""

from idlekit.callbacks.logging import LoggingEventSink

__all__ = ["LoggingEventSink"]
