from __future__ import annotations

import logging
from typing import ClassVar

from loki_target.client import LokiTarget
from loki_target.errors import DeliveryError
from loki_target.models import Level, LogRecord, Trace

logger = logging.getLogger(__name__)

_LEVEL_MAP: dict[int, Level] = {
    logging.DEBUG: Level.DEBUG,
    logging.INFO: Level.INFO,
    logging.WARNING: Level.WARNING,
    logging.ERROR: Level.ERROR,
    logging.CRITICAL: Level.CRITICAL,
}


def _level_for(levelno: int) -> Level:
    if levelno in _LEVEL_MAP:
        return _LEVEL_MAP[levelno]
    if levelno < logging.DEBUG:
        return Level.TRACE
    # custom levels fall back to the nearest standard one below them
    for threshold in sorted(_LEVEL_MAP, reverse=True):
        if levelno >= threshold:
            return _LEVEL_MAP[threshold]
    return Level.INFO


class LokiHandler(logging.Handler):
    """Collects stdlib log records and exports them to Loki in batches.

    Records are held in memory until ``capacity`` is reached or ``flush()``
    is called (``logging.shutdown`` does so via ``close()``).
    """

    _IGNORE_PREFIX: ClassVar[str] = "loki_target"

    def __init__(
        self,
        target: LokiTarget,
        *,
        capacity: int = 1000,
        include_trace: bool = False,
    ) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be > 0")
        super().__init__()
        self._target = target
        self._capacity = capacity
        self._include_trace = include_trace
        self._buffer: list[LogRecord] = []
        self._owns_target = False

    @classmethod
    def from_target(cls, target: LokiTarget, **kwargs: object) -> LokiHandler:
        return cls(target, **kwargs)  # type: ignore[arg-type]

    @classmethod
    def standalone(
        cls, *, capacity: int = 1000, include_trace: bool = False,
        **kwargs: object,
    ) -> LokiHandler:
        target = LokiTarget(**kwargs)  # type: ignore[arg-type]
        handler = cls(target, capacity=capacity, include_trace=include_trace)
        handler._owns_target = True
        return handler

    @property
    def pending(self) -> int:
        with self.lock:  # type: ignore[union-attr]
            return len(self._buffer)

    def emit(self, record: logging.LogRecord) -> None:
        if record.name.startswith(self._IGNORE_PREFIX):
            return

        try:
            entry = self._convert(record)
        except Exception:
            self.handleError(record)
            return

        with self.lock:  # type: ignore[union-attr]
            self._buffer.append(entry)
            full = len(self._buffer) >= self._capacity
        if full:
            try:
                self.flush()
            except Exception:
                self.handleError(record)

    def flush(self) -> None:
        with self.lock:  # type: ignore[union-attr]
            records = self._buffer
            self._buffer = []
        if not records:
            return
        try:
            self._target.export(records)
        except DeliveryError:
            logger.exception("dropping %d log records", len(records))
        except Exception:
            logger.exception(
                "failed to export %d log records, dropping them", len(records),
            )

    def close(self) -> None:
        try:
            self.flush()
        finally:
            if self._owns_target:
                self._target.close()
            super().close()

    def _convert(self, record: logging.LogRecord) -> LogRecord:
        traces: tuple[Trace, ...] = ()
        if self._include_trace:
            traces = (Trace(record.pathname, record.lineno),)
        return LogRecord(
            text=self.format(record),
            level=_level_for(record.levelno),
            category=record.name,
            timestamp=record.created,
            traces=traces,
        )
