from __future__ import annotations

import socket
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from enum import Enum


class Level(str, Enum):
    TRACE = "trace"
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class Suppress(Enum):
    """Remap outcome that drops a record from the batch entirely."""

    SUPPRESS = "suppress"

    def __repr__(self) -> str:
        return "SUPPRESS"


SUPPRESS = Suppress.SUPPRESS

LevelMap = Mapping[str, Mapping[str, str | Level | Suppress | None | bool]]


def level_name(level: Level | str) -> str:
    if isinstance(level, Level):
        return level.value
    return str(level)


def default_labels(app: str, environment: str) -> dict[str, str]:
    return {
        "host": socket.gethostname(),
        "environment": environment,
        "service": "python",
        "app": app,
    }


@dataclass(frozen=True)
class LokiConfig:
    push_url: str
    auth_user: str | None = None
    auth_password: str | None = field(default=None, repr=False)
    app: str = "default"
    environment: str = "production"
    labels: dict[str, str] | None = None
    level_label: str = "level"
    level_map: dict[str, dict[str, str | Suppress]] = field(default_factory=dict)
    context_levels: frozenset[str] | None = None
    timeout: float = 10.0
    gzip_enabled: bool = True

    def __post_init__(self) -> None:
        if not self.push_url:
            raise ValueError("push_url must not be empty")
        if self.timeout <= 0:
            raise ValueError("timeout must be > 0")
        if self.level_label is None:
            object.__setattr__(self, "level_label", "")

        labels = self.labels
        if labels is None:
            labels = default_labels(self.app, self.environment)
        object.__setattr__(
            self, "labels", {str(k): str(v) for k, v in labels.items()},
        )
        object.__setattr__(self, "level_map", _normalize_level_map(self.level_map))
        if self.context_levels is not None:
            object.__setattr__(
                self,
                "context_levels",
                frozenset(_iter_level_names(self.context_levels)),
            )

    @property
    def has_auth(self) -> bool:
        return bool(self.auth_user or self.auth_password)


def _iter_level_names(levels: Iterable[Level | str]) -> Iterable[str]:
    if isinstance(levels, str):
        raise ValueError("context_levels must be a collection of levels")
    for level in levels:
        yield level_name(level)


def _normalize_level_map(
    level_map: LevelMap | None,
) -> dict[str, dict[str, str | Suppress]]:
    normalized: dict[str, dict[str, str | Suppress]] = {}
    for category, overrides in (level_map or {}).items():
        if not isinstance(overrides, Mapping):
            raise ValueError(
                f"level_map[{category!r}] must be a mapping of level to level",
            )
        normalized[category] = {
            level_name(source): _normalize_target(target)
            for source, target in overrides.items()
        }
    return normalized


def _normalize_target(target: object) -> str | Suppress:
    if target is None or target is False or target is SUPPRESS:
        return SUPPRESS
    if isinstance(target, Level):
        return target.value
    if isinstance(target, str):
        return target
    raise ValueError(f"invalid level_map target: {target!r}")


@dataclass(frozen=True, slots=True)
class Trace:
    file: str
    line: int


@dataclass(frozen=True, slots=True)
class LogRecord:
    text: object
    level: Level | str
    category: str = ""
    timestamp: float = 0.0
    traces: tuple[Trace, ...] = ()


@dataclass(frozen=True, slots=True)
class LogEntry:
    timestamp_ns: int
    line: str

    @property
    def value(self) -> list[str]:
        return [str(self.timestamp_ns), self.line]


@dataclass(slots=True)
class Stream:
    labels: dict[str, str]
    entries: list[LogEntry] = field(default_factory=list)

    @property
    def values(self) -> list[list[str]]:
        return [e.value for e in self.entries]

    def to_payload(self) -> dict[str, object]:
        return {"stream": dict(self.labels), "values": self.values}


@dataclass(slots=True)
class PushBatch:
    streams: list[Stream] = field(default_factory=list)

    @property
    def entry_count(self) -> int:
        return sum(len(s.entries) for s in self.streams)

    def __len__(self) -> int:
        return self.entry_count

    def __bool__(self) -> bool:
        return self.entry_count > 0

    def to_payload(self) -> dict[str, list[dict[str, object]]]:
        return {"streams": [s.to_payload() for s in self.streams]}
