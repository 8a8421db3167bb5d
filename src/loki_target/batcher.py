from __future__ import annotations

import json
from collections.abc import Iterable

from loki_target.models import LogEntry, PushBatch, Stream


def build_batch(
    pairs: Iterable[tuple[LogEntry, dict[str, str]] | None],
) -> PushBatch:
    """Group formatted entries into one stream per distinct label set.

    Streams appear in the order their labels were first seen and keep
    entries in arrival order. ``None`` marks a suppressed record.
    """
    grouped: dict[str, Stream] = {}
    for pair in pairs:
        if pair is None:
            continue
        entry, labels = pair
        key = json.dumps(labels, sort_keys=True)
        if key not in grouped:
            grouped[key] = Stream(labels=dict(labels))
        grouped[key].entries.append(entry)
    return PushBatch(streams=list(grouped.values()))
