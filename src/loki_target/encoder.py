from __future__ import annotations

import gzip
import importlib.util
import json
import re
from typing import Protocol

from loki_target.models import PushBatch

_SURROGATE = re.compile("[\ud800-\udfff]")
# Escape pairs are consumed whole so an escaped backslash is never
# mistaken for the start of an escaped quote.
_ESCAPE_OR_APOS = re.compile(r"\\.|'")
_HEX_ESCAPES = {'\\"': "\\u0022", "'": "\\u0027"}


class Compressor(Protocol):
    @property
    def content_encoding(self) -> str | None: ...
    def compress(self, data: bytes) -> bytes: ...


class GzipCompressor:
    content_encoding = "gzip"

    def __init__(self, compresslevel: int = 9) -> None:
        self._compresslevel = compresslevel

    def compress(self, data: bytes) -> bytes:
        return gzip.compress(data, compresslevel=self._compresslevel)


class NullCompressor:
    content_encoding = None

    def compress(self, data: bytes) -> bytes:
        return data


def default_compressor(enabled: bool = True) -> Compressor:
    """Gzip when enabled and the interpreter was built with zlib."""
    if enabled and importlib.util.find_spec("zlib") is not None:
        return GzipCompressor()
    return NullCompressor()


def dumps(payload: object) -> str:
    """Serialize to ASCII-only JSON with quotes and apostrophes hex-escaped.

    Lone surrogates (undecodable input smuggled through ``surrogateescape``
    and friends) are replaced with U+FFFD instead of failing.
    """
    text = json.dumps(_scrub(payload))
    return _ESCAPE_OR_APOS.sub(
        lambda m: _HEX_ESCAPES.get(m.group(0), m.group(0)), text,
    )


def encode_batch(
    batch: PushBatch, compressor: Compressor,
) -> tuple[bytes, dict[str, str]]:
    body = dumps(batch.to_payload()).encode("ascii")
    headers: dict[str, str] = {}
    if compressor.content_encoding:
        body = compressor.compress(body)
        headers["Content-Encoding"] = compressor.content_encoding
    return body, headers


def _scrub(value: object) -> object:
    if isinstance(value, str):
        return _SURROGATE.sub("\ufffd", value)
    if isinstance(value, dict):
        return {_scrub(k): _scrub(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_scrub(v) for v in value]
    return value
