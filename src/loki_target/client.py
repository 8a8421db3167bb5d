from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from types import TracebackType
from typing import overload

import httpx

from loki_target.batcher import build_batch
from loki_target.encoder import Compressor, default_compressor, encode_batch
from loki_target.formatter import format_message
from loki_target.models import LogRecord, LokiConfig, PushBatch
from loki_target.transport import LokiTransport

logger = logging.getLogger(__name__)


class LokiTarget:
    @overload
    def __init__(
        self,
        config: LokiConfig,
        *,
        compressor: Compressor | None = None,
        http_client: httpx.Client | None = None,
        prefix: Callable[[LogRecord], str] | None = None,
        context: Callable[[], str] | None = None,
    ) -> None: ...

    @overload
    def __init__(
        self,
        *,
        push_url: str,
        auth_user: str | None = None,
        auth_password: str | None = None,
        app: str = "default",
        environment: str = "production",
        labels: Mapping[str, object] | None = None,
        level_label: str = "level",
        level_map: Mapping[str, Mapping[str, object]] | None = None,
        context_levels: Iterable[str] | None = None,
        timeout: float = 10.0,
        gzip_enabled: bool = True,
        compressor: Compressor | None = None,
        http_client: httpx.Client | None = None,
        prefix: Callable[[LogRecord], str] | None = None,
        context: Callable[[], str] | None = None,
    ) -> None: ...

    def __init__(
        self,
        config: LokiConfig | None = None,
        *,
        compressor: Compressor | None = None,
        http_client: httpx.Client | None = None,
        prefix: Callable[[LogRecord], str] | None = None,
        context: Callable[[], str] | None = None,
        **kwargs: object,
    ) -> None:
        if config is not None:
            if kwargs:
                raise TypeError(
                    "Cannot pass both config and keyword arguments",
                )
            self._config = config
        else:
            if kwargs.get("level_map") is None:
                kwargs["level_map"] = {}
            self._config = LokiConfig(**kwargs)  # type: ignore[arg-type]

        if compressor is None:
            compressor = default_compressor(self._config.gzip_enabled)
        self._compressor = compressor
        self._prefix = prefix
        self._context = context
        self._transport = LokiTransport(self._config, client=http_client)

    @property
    def config(self) -> LokiConfig:
        return self._config

    def format_records(self, records: Iterable[LogRecord]) -> PushBatch:
        """Remap, format and group records into a fresh batch."""
        context = self._context() if self._context is not None else ""
        return build_batch(
            format_message(
                record,
                self._config,
                prefix=self._prefix(record) if self._prefix is not None else "",
                context=context,
            )
            for record in records
        )

    def export(self, records: Iterable[LogRecord]) -> int:
        """Ship records to Loki in one push.

        Returns the number of entries delivered. Raises DeliveryError when
        the push fails; nothing is retried.
        """
        batch = self.format_records(records)
        if not batch:
            logger.debug("nothing to export")
            return 0

        body, headers = encode_batch(batch, self._compressor)
        logger.debug(
            "exporting %d entries in %d streams",
            batch.entry_count, len(batch.streams),
        )
        self._transport.push(body, headers)
        return batch.entry_count

    def close(self) -> None:
        self._transport.close()

    @property
    def stats(self) -> dict[str, int]:
        transport = self._transport.stats
        return {
            "sent": transport["sent_count"],
            "errors": transport["error_count"],
            "dropped": transport["drop_count"],
        }

    def __enter__(self) -> LokiTarget:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        self.close()
