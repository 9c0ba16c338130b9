"""Rotation decisions: when the active file moves to a new generation or day.

Two triggers exist:

* **size**: evaluated on every accepted event, before the write.  When the
  active file has reached ``max_bytes`` the generation advances and old
  generations for the day are pruned.
* **date**: evaluated by a check scheduled for local midnight, whether or
  not any events arrive.  When the local date has moved past the state's
  date the generation resets to 0 for the new day.

Both functions mutate the given :class:`SinkState` and report whether they
rotated.  Neither opens files; the write path reopens lazily.
"""

from __future__ import annotations

import logging
import os
from datetime import date, datetime

from rotating_log_sink.clock import seconds_until_tomorrow
from rotating_log_sink.models import SinkState
from rotating_log_sink.paths import path, prune_generations

logger = logging.getLogger(__name__)


def rotate_by_size(state: SinkState) -> bool:
    """Advance to the next generation if the active file is too large."""
    policy = state.config.rotate
    if policy is None or not policy.rotates_by_size or state.current_path is None:
        return False

    try:
        size = os.stat(state.current_path).st_size
    except OSError:
        return False
    if size < policy.max_bytes:
        return False

    filename = state.config.filename
    next_gen = state.current_generation + 1
    prune_generations(state.directory, filename, state.current_date, next_gen, policy.keep)

    state.current_generation = next_gen
    state.current_path = path(state.directory, filename, state.current_date, next_gen)
    logger.info(
        "Size rotation: %d bytes >= %d, now writing generation %d",
        size,
        policy.max_bytes,
        next_gen,
    )
    return True


def rotate_by_date(state: SinkState, today: date) -> bool:
    """Start generation 0 of *today* if the state still points at an earlier day."""
    if state.current_date is not None and today <= state.current_date:
        return False

    policy = state.config.rotate
    keep = policy.keep if policy is not None else None
    filename = state.config.filename
    if state.current_date is not None:
        prune_generations(
            state.directory, filename, state.current_date, state.current_generation, keep
        )

    state.close_file()
    state.current_date = today
    state.current_generation = 0
    state.current_path = path(state.directory, filename, today, 0)
    logger.info("Date rotation: now writing %s", state.current_path)
    return True


def next_check_delay(current: date, now: datetime) -> float:
    """Seconds until the next date check; 0 means check right away."""
    return max(0.0, seconds_until_tomorrow(current, now))
