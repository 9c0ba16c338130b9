"""Event filtering by severity and metadata.

Filter chain (evaluated in order)::

    1. ``min_level`` set AND event level below it        → drop
    2. any ``metadata_filter`` pair unmet by the event   → drop
    3. Otherwise                                          → pass

A filter pair ``(key, expected)`` is met when the event metadata holds
``key`` with a value equal to ``expected`` or, when ``expected`` is a
non-empty list/tuple/set, a value contained in it.  Extra metadata keys
never matter.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Optional, Union

from rotating_log_sink.models import Level, LogEvent

logger = logging.getLogger(__name__)

_MISSING = object()

_MEMBERSHIP_TYPES = (list, tuple, set, frozenset)

Predicate = Union[Mapping[str, Any], Iterable[tuple[str, Any]], None]


def level_passes(level: Level, min_level: Optional[Level]) -> bool:
    """True when *min_level* is unset or *level* is at least as severe."""
    return min_level is None or level >= min_level


def metadata_matches(metadata: Mapping[str, Any], predicate: Predicate) -> bool:
    """Return whether *metadata* satisfies every pair in *predicate*.

    ``None`` and an empty predicate accept everything.  Evaluation stops at
    the first unmet pair.
    """
    if predicate is None:
        return True
    pairs = predicate.items() if isinstance(predicate, Mapping) else predicate

    for key, expected in pairs:
        actual = metadata.get(key, _MISSING)
        if actual is _MISSING:
            return False
        if isinstance(expected, _MEMBERSHIP_TYPES) and expected:
            try:
                if actual not in expected:
                    return False
            except TypeError:  # unhashable value against a set
                return False
        elif actual != expected:
            return False
    return True


class EventFilter:
    """Stateless filter that decides whether a log event reaches the file."""

    def __init__(self, min_level: Optional[Level] = None, metadata_filter: Predicate = None) -> None:
        self._min_level = min_level
        self._metadata_filter = metadata_filter

    def __call__(self, event: LogEvent) -> bool:
        return self.accepts(event)

    def accepts(self, event: LogEvent) -> bool:
        """Evaluate the filter chain, cheapest check first."""
        # 1. Severity
        if not level_passes(event.level, self._min_level):
            return False

        # 2. Metadata predicate
        if not metadata_matches(event.metadata, self._metadata_filter):
            logger.debug("Filtered %s event: metadata filter unmet", event.level.label)
            return False

        return True
