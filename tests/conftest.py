from __future__ import annotations

import httpx

from loki_target.models import Level, LogRecord, LokiConfig, Trace


def make_config(**overrides: object) -> LokiConfig:
    """Shared config factory with sensible test defaults."""
    defaults: dict[str, object] = {
        "push_url": "http://loki:3100/loki/api/v1/push",
        "app": "testapp",
        "environment": "test",
        "labels": {"app": "testapp", "environment": "test"},
    }
    defaults.update(overrides)
    return LokiConfig(**defaults)  # type: ignore[arg-type]


def make_record(
    text: object = "hello",
    level: Level | str = Level.INFO,
    category: str = "app",
    ts: float = 1_700_000_000.0,
    traces: tuple[Trace, ...] = (),
) -> LogRecord:
    """Shared LogRecord factory."""
    return LogRecord(
        text=text,
        level=level,
        category=category,
        timestamp=ts,
        traces=traces,
    )


class FakeLoki:
    """Records every request and answers with a canned response."""

    def __init__(
        self,
        status_code: int = 204,
        body: str = "",
        error: Exception | None = None,
    ) -> None:
        self.requests: list[httpx.Request] = []
        self.status_code = status_code
        self.body = body
        self.error = error

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status_code, text=self.body)

    def client(self) -> httpx.Client:
        return httpx.Client(transport=httpx.MockTransport(self))

    @property
    def last(self) -> httpx.Request:
        return self.requests[-1]

