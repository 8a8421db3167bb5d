from __future__ import annotations

import gzip
import json

import pytest

from loki_target.client import LokiTarget
from loki_target.encoder import NullCompressor
from loki_target.errors import DeliveryError
from loki_target.models import SUPPRESS, LogRecord

from .conftest import FakeLoki, make_config, make_record


def _payload(fake: FakeLoki) -> dict[str, object]:
    request = fake.last
    body = request.content
    if request.headers.get("Content-Encoding") == "gzip":
        body = gzip.decompress(body)
    return json.loads(body)


class TestConstructor:
    def test_kwargs_creates_config(self) -> None:
        target = LokiTarget(push_url="http://loki:3100/push", app="fromkw")
        assert target.config.app == "fromkw"
        assert target.config.push_url == "http://loki:3100/push"
        target.close()

    def test_rejects_both_config_and_kwargs(self) -> None:
        with pytest.raises(TypeError, match="Cannot pass both"):
            LokiTarget(make_config(), push_url="http://loki:3100")

    def test_kwargs_with_level_map_none(self) -> None:
        target = LokiTarget(push_url="http://loki:3100", level_map=None)
        assert target.config.level_map == {}
        target.close()

    def test_context_manager_closes(self) -> None:
        with LokiTarget(make_config()) as target:
            pass
        assert target._transport._client.is_closed


class TestExport:
    def test_groups_by_labels(self) -> None:
        fake = FakeLoki()
        target = LokiTarget(make_config(), http_client=fake.client())

        sent = target.export([
            make_record("a", level="info", ts=1.0),
            make_record("b", level="error", ts=2.0),
            make_record("c", level="info", category="other", ts=3.0),
        ])

        assert sent == 3
        payload = _payload(fake)
        assert payload == {
            "streams": [
                {
                    "stream": {"app": "testapp", "environment": "test", "level": "info"},
                    "values": [
                        ["1000000000", "[info][app] a"],
                        ["3000000000", "[info][other] c"],
                    ],
                },
                {
                    "stream": {"app": "testapp", "environment": "test", "level": "error"},
                    "values": [["2000000000", "[error][app] b"]],
                },
            ],
        }

    def test_gzip_by_default(self) -> None:
        fake = FakeLoki()
        target = LokiTarget(make_config(), http_client=fake.client())
        target.export([make_record()])

        assert fake.last.headers["Content-Encoding"] == "gzip"
        assert _payload(fake)["streams"]

    def test_gzip_disabled(self) -> None:
        fake = FakeLoki()
        target = LokiTarget(
            make_config(gzip_enabled=False), http_client=fake.client(),
        )
        target.export([make_record()])

        assert "Content-Encoding" not in fake.last.headers
        assert json.loads(fake.last.content)["streams"]

    def test_compressed_and_plain_payloads_identical(self) -> None:
        records = [make_record("it's \"x\""), make_record(b"\xff", level="error")]
        gz, plain = FakeLoki(), FakeLoki()
        LokiTarget(make_config(), http_client=gz.client()).export(records)
        LokiTarget(
            make_config(), http_client=plain.client(),
            compressor=NullCompressor(),
        ).export(records)

        assert gzip.decompress(gz.last.content) == plain.last.content

    def test_suppressed_records_absent(self) -> None:
        fake = FakeLoki()
        config = make_config(level_map={"noisy": {"*": SUPPRESS}})
        target = LokiTarget(config, http_client=fake.client())

        sent = target.export([
            make_record("keep", category="app"),
            make_record("drop", category="noisy", level="error"),
        ])

        assert sent == 1
        streams = _payload(fake)["streams"]
        assert len(streams) == 1
        assert streams[0]["values"][0][1] == "[info][app] keep"

    def test_all_suppressed_skips_push(self) -> None:
        fake = FakeLoki()
        config = make_config(level_map={"noisy": {"*": None}})
        target = LokiTarget(config, http_client=fake.client())

        assert target.export([make_record(category="noisy")]) == 0
        assert fake.requests == []

    def test_empty_export_skips_push(self) -> None:
        fake = FakeLoki()
        target = LokiTarget(make_config(), http_client=fake.client())
        assert target.export([]) == 0
        assert fake.requests == []

    def test_delivery_error_propagates(self) -> None:
        fake = FakeLoki(status_code=500, body="internal error")
        target = LokiTarget(make_config(), http_client=fake.client())

        with pytest.raises(DeliveryError) as info:
            target.export([make_record()])
        assert info.value.status_code == 500
        assert info.value.body == "internal error"
        assert len(fake.requests) == 1
        assert target.stats == {"sent": 0, "errors": 1, "dropped": 0}

    def test_prefix_and_context_hooks(self) -> None:
        fake = FakeLoki()
        calls: list[LogRecord] = []

        def prefix(record: LogRecord) -> str:
            calls.append(record)
            return "[10.0.0.1][-][-]"

        target = LokiTarget(
            make_config(gzip_enabled=False, context_levels=["error"]),
            http_client=fake.client(),
            prefix=prefix,
            context=lambda: "REQUEST_URI=/login",
        )
        target.export([make_record("a"), make_record("b", level="error")])

        lines = [
            v[1]
            for s in _payload(fake)["streams"]  # type: ignore[union-attr]
            for v in s["values"]
        ]
        assert lines == [
            "[10.0.0.1][-][-][info][app] a",
            "[10.0.0.1][-][-][error][app] b\n\nREQUEST_URI=/login",
        ]
        assert len(calls) == 2

    def test_no_state_between_exports(self) -> None:
        fake = FakeLoki()
        target = LokiTarget(make_config(gzip_enabled=False), http_client=fake.client())
        target.export([make_record("first")])
        target.export([make_record("second")])

        values = _payload(fake)["streams"][0]["values"]  # type: ignore[index]
        assert [v[1] for v in values] == ["[info][app] second"]
        assert target.stats["sent"] == 2
