"""Leveling curve — the single source of truth for level computation.

Level is a pure function of points and is recomputed on every commit:

    level = max(1, points // points_per_level)

``points_per_level`` comes from settings (default 100).
"""

from __future__ import annotations

from dancehub.config import get_settings


def _step(points_per_level: int | None) -> int:
    step = points_per_level if points_per_level is not None else get_settings().points_per_level
    if step < 1:
        msg = f"points_per_level must be >= 1, got {step}"
        raise ValueError(msg)
    return step


def level_for_points(points: int, points_per_level: int | None = None) -> int:
    """Return the level reached with ``points`` total points."""
    return max(1, max(points, 0) // _step(points_per_level))


def compute_level(points: int, points_per_level: int | None = None, stored_level: int | None = None) -> dict:
    """Compute level info for progress displays.

    ``stored_level`` is the persisted level, which may sit above the curve
    after a change of ``points_per_level``; every field follows the higher
    of the two.
    """
    step = _step(points_per_level)
    computed = level_for_points(points, step)
    level = max(computed, stored_level or 1)
    next_level_points = (level + 1) * step
    points_to_next = max(next_level_points - points, 0)

    if level == computed:
        percentage = points % step * 100 // step
    else:
        percentage = max(step - points_to_next, 0) * 100 // step

    return {
        "level": level,
        "points": points,
        "next_level": level + 1,
        "next_level_points": next_level_points,
        "points_to_next_level": points_to_next,
        "progress_percentage": percentage,
    }
