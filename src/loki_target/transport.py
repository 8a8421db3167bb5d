from __future__ import annotations

import base64
import logging
import threading
from collections.abc import Mapping
from typing import TYPE_CHECKING

import httpx

from loki_target.errors import DeliveryError

if TYPE_CHECKING:
    from loki_target.models import LokiConfig

logger = logging.getLogger(__name__)


class LokiTransport:
    """Blocking HTTP push of encoded batches to the Loki push API.

    Counter semantics:
        sent_count: number of successful pushes.
        error_count: server responded with a non-2xx status.
        drop_count: network failure, request never got an answer.
    """

    def __init__(
        self, config: LokiConfig, client: httpx.Client | None = None,
    ) -> None:
        self._config = config
        self._url = config.push_url
        self._owns_client = client is None
        self._client = (
            client if client is not None else httpx.Client(timeout=config.timeout)
        )
        self._headers: dict[str, str] = {"Content-Type": "application/json"}
        if config.has_auth:
            self._headers["Authorization"] = _basic_auth(
                config.auth_user or "", config.auth_password or "",
            )
        self._lock = threading.Lock()
        self._sent_count: int = 0
        self._drop_count: int = 0
        self._error_count: int = 0

    @property
    def stats(self) -> dict[str, int]:
        with self._lock:
            return {
                "sent_count": self._sent_count,
                "error_count": self._error_count,
                "drop_count": self._drop_count,
            }

    @property
    def sent_count(self) -> int:
        with self._lock:
            return self._sent_count

    @property
    def error_count(self) -> int:
        with self._lock:
            return self._error_count

    @property
    def drop_count(self) -> int:
        with self._lock:
            return self._drop_count

    def push(
        self, body: bytes, headers: Mapping[str, str] | None = None,
    ) -> None:
        """POST an encoded payload. Raises DeliveryError on any failure."""
        try:
            resp = self._client.post(
                self._url,
                content=body,
                headers={**self._headers, **(headers or {})},
            )
        except httpx.HTTPError as exc:
            with self._lock:
                self._drop_count += 1
            raise DeliveryError(error=exc) from exc

        if not resp.is_success:
            with self._lock:
                self._error_count += 1
            raise DeliveryError(status_code=resp.status_code, body=resp.text)

        with self._lock:
            self._sent_count += 1
        logger.debug(
            "pushed %d bytes to %s (status %d)",
            len(body), self._url, resp.status_code,
        )

    def close(self) -> None:
        if self._owns_client:
            self._client.close()


def _basic_auth(user: str, password: str) -> str:
    token = base64.b64encode(f"{user}:{password}".encode()).decode("ascii")
    return f"Basic {token}"
