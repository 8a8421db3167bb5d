from __future__ import annotations

import dataclasses
import math
import traceback
from collections.abc import Mapping
from decimal import Decimal

from loki_target.levels import remap_level
from loki_target.models import SUPPRESS, LogEntry, LogRecord, LokiConfig, Trace

NANOS_PER_SECOND = 1_000_000_000
MAX_DUMP_DEPTH = 10

_TRACE_INDENT = "\n    "
_DUMP_INDENT = "    "


def format_message(
    record: LogRecord,
    config: LokiConfig,
    *,
    prefix: str = "",
    context: str = "",
) -> tuple[LogEntry, dict[str, str]] | None:
    """Turn one record into a Loki entry and the labels of its stream.

    Returns ``None`` when the level map suppresses the record.
    """
    category = record.category or ""
    level = remap_level(record.level, category, config.level_map)
    if level is SUPPRESS:
        return None

    line = f"{prefix}[{level}][{category}] {stringify(record.text)}"
    if record.traces:
        line += _TRACE_INDENT + _TRACE_INDENT.join(
            _trace_line(t) for t in record.traces
        )
    if context and (
        config.context_levels is None or level in config.context_levels
    ):
        line += "\n\n" + context

    labels = dict(config.labels or {})
    if config.level_label:
        labels[config.level_label] = level

    return LogEntry(nano_timestamp(record.timestamp), line), labels


def nano_timestamp(seconds: float) -> int:
    """Seconds since epoch to integer nanoseconds, truncated.

    Works on the shortest decimal form of the float so that
    ``1700000000.123456`` becomes ``1700000000123456000`` exactly.
    """
    if isinstance(seconds, float) and not math.isfinite(seconds):
        return 0
    return int(Decimal(str(seconds)) * NANOS_PER_SECOND)


def stringify(text: object) -> str:
    if isinstance(text, str):
        return text
    if isinstance(text, (bytes, bytearray)):
        return bytes(text).decode("utf-8", errors="replace")
    if isinstance(text, BaseException):
        return "".join(
            traceback.format_exception(type(text), text, text.__traceback__),
        ).rstrip("\n")
    return dump_value(text)


def dump_value(value: object, max_depth: int = MAX_DUMP_DEPTH) -> str:
    """Readable multi-line dump of arbitrary, possibly cyclic, values.

    Containers already being dumped higher up render as ``<recursion>``.
    Nesting beyond ``max_depth`` renders as ``...``.
    """
    try:
        return _dump(value, 0, max_depth, set())
    except Exception:
        return _safe_repr(value)


def _trace_line(trace: Trace | Mapping[str, object]) -> str:
    if isinstance(trace, Mapping):
        return f"in {trace.get('file', '')}:{trace.get('line', '')}"
    return f"in {trace.file}:{trace.line}"


def _dump(value: object, depth: int, max_depth: int, active: set[int]) -> str:
    if isinstance(value, (str, bytes, int, float, type(None))):
        return _safe_repr(value)

    if isinstance(value, Mapping):
        opening, closing = "{", "}"
        kind = "mapping"
    elif isinstance(value, list):
        opening, closing = "[", "]"
        kind = "sequence"
    elif isinstance(value, tuple):
        opening, closing = "(", ")"
        kind = "sequence"
    elif isinstance(value, (set, frozenset)):
        opening, closing = "{", "}"
        kind = "set"
    elif dataclasses.is_dataclass(value) and not isinstance(value, type):
        opening, closing = f"{type(value).__name__}(", ")"
        kind = "dataclass"
    else:
        return _safe_repr(value)

    if id(value) in active:
        return "<recursion>"
    if depth >= max_depth:
        return "..."

    active.add(id(value))
    try:
        lines = _dump_items(value, kind, depth, max_depth, active)
    finally:
        active.discard(id(value))

    if not lines:
        return "set()" if kind == "set" else opening + closing
    pad = _DUMP_INDENT * (depth + 1)
    body = "\n".join(f"{pad}{line}," for line in lines)
    return f"{opening}\n{body}\n{_DUMP_INDENT * depth}{closing}"


def _dump_items(
    value: object, kind: str, depth: int, max_depth: int, active: set[int],
) -> list[str]:
    nested = depth + 1
    if kind == "mapping":
        return [
            f"{_safe_repr(k)}: {_dump(v, nested, max_depth, active)}"
            for k, v in value.items()  # type: ignore[attr-defined]
        ]
    if kind == "dataclass":
        return [
            f"{f.name}={_dump(getattr(value, f.name), nested, max_depth, active)}"
            for f in dataclasses.fields(value)  # type: ignore[arg-type]
        ]
    items = [_dump(v, nested, max_depth, active) for v in value]  # type: ignore[attr-defined]
    if kind == "set":
        items.sort()
    return items


def _safe_repr(value: object) -> str:
    try:
        return repr(value)
    except Exception:
        return f"<{type(value).__name__} object>"
