from __future__ import annotations

from collections.abc import Mapping

from loki_target.models import Level, Suppress, level_name

WILDCARD = "*"


def remap_level(
    level: Level | str,
    category: str,
    level_map: Mapping[str, Mapping[str, str | Suppress]],
) -> str | Suppress:
    """Resolve the level a record is shipped with.

    An override for the exact level beats the category's ``"*"`` override,
    which in turn beats the record's own level. A ``SUPPRESS`` result means
    the record must not be exported at all.

    Unlike a wildcard-first lookup, an exact-level override is never shadowed
    by the category's ``"*"`` entry.
    """
    name = level_name(level)
    overrides = level_map.get(category)
    if not overrides:
        return name
    if name in overrides:
        return overrides[name]
    if WILDCARD in overrides:
        return overrides[WILDCARD]
    return name
