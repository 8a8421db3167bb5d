from loki_target.client import LokiTarget
from loki_target.errors import DeliveryError
from loki_target.handler import LokiHandler
from loki_target.models import (
    SUPPRESS,
    Level,
    LogEntry,
    LogRecord,
    LokiConfig,
    Trace,
)

__all__ = [
    "LokiTarget",
    "LokiHandler",
    "LokiConfig",
    "LogRecord",
    "LogEntry",
    "Trace",
    "Level",
    "SUPPRESS",
    "DeliveryError",
]
