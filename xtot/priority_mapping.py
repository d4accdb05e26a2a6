"""
Copyright (c) 2025 Eric C. Mumford (@heymumford)
This file is part of XTOT, licensed under the MIT License.
See LICENSE file for details.
"""

"""
Priority mapping between source systems and Testomat.io.

Jira priorities are mapped by name; TestRail priorities carry a numeric rank
and are rescaled around the project's default priority.
"""

import logging
from collections.abc import Iterable
from typing import Any

from xtot.models import Priority

logger = logging.getLogger("xtot.priority_mapping")

DEFAULT_PRIORITY = "normal"

PRIORITY_LABELS = {
    "Critical": "Blocker",
    "Blocker": "Blocker",
    "Highest": "important",
    "High": "high",
    "Medium": "normal",
    "Low": "low",
    "Lowest": "low",
}

# Destination level names for rescaled ranks
PRIORITY_LEVEL_LABELS = {
    -1: "low",
    0: "normal",
    1: "high",
    2: "important",
    3: "critical",
}

MAX_LEVEL = 3


def map_priority_label(name: str | None) -> str:
    """Map a named source priority to a destination priority."""
    return PRIORITY_LABELS.get(name or "", DEFAULT_PRIORITY)


def _as_priority(priority: Priority | dict[str, Any]) -> Priority:
    return priority if isinstance(priority, Priority) else Priority.model_validate(priority)


def find_default_rank(priorities: list[Priority]) -> int:
    """
    Find the rank of the default priority.

    The priority flagged as default wins, then the one named "Medium";
    without either the default rank is 0.
    """
    for priority in priorities:
        if priority.is_default:
            return priority.rank
    for priority in priorities:
        if priority.name == "Medium":
            return priority.rank
    return 0


def rescale_priorities(priorities: Iterable[Priority | dict[str, Any]]) -> dict[int, int]:
    """
    Rescale ranked priorities to a bounded level scale around the default.

    Ranks below the default map to -1, the default maps to 0 and higher
    ranks map to their distance from the default, capped at 3.

    Args:
        priorities: Priority definitions, as models or raw API dicts

    Returns:
        Mapping of priority id to level
    """
    parsed = [_as_priority(p) for p in priorities]
    default_rank = find_default_rank(parsed)

    levels = {}
    for priority in parsed:
        if priority.rank < default_rank:
            levels[priority.id] = -1
        elif priority.rank == default_rank:
            levels[priority.id] = 0
        else:
            levels[priority.id] = min(priority.rank - default_rank, MAX_LEVEL)

    logger.debug(f"Rescaled {len(levels)} priorities around default rank {default_rank}")
    return levels


def level_to_label(level: int | None) -> str:
    """Name of a rescaled level, ``normal`` when unknown."""
    if level is None:
        return DEFAULT_PRIORITY
    return PRIORITY_LEVEL_LABELS.get(level, DEFAULT_PRIORITY)
