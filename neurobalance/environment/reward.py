"""Reward shaping.

The pole angle is reported in degrees with 90 = perfectly vertical, so a
pole leaning right reads above 90 and a pole leaning left below it. The safe
zone is asymmetric (70..139).

Inside the safe zone the reward is dense:
  - 1.0 for surviving the step
  - up to 2.0 for being upright
  - up to 2.0 for being centred
  - minus 2.0 when the cart drifts past |x| > 1.5 (edge riding)

Leaving the safe zone or the track ends the episode with -10.
"""

from __future__ import annotations

import math

from .constants import (
    ANGLE_LIMIT_DEG,
    EDGE_DISTANCE,
    EDGE_PENALTY,
    FAILURE_REWARD,
    SAFE_MAX_DEG,
    SAFE_MIN_DEG,
    UPRIGHT_DEG,
    X_THRESHOLD,
)


def pole_degrees(theta: float) -> float:
    """Convert a pole angle in radians (0 = upright) to degrees (90 = upright)."""
    return UPRIGHT_DEG + theta * 180.0 / math.pi


def is_safe(x: float, degrees: float) -> bool:
    """True while the pole is inside the safe zone and the cart is on the track."""
    angle_ok = SAFE_MIN_DEG <= degrees <= SAFE_MAX_DEG
    position_ok = -X_THRESHOLD < x < X_THRESHOLD
    return angle_ok and position_ok


def shaped_reward(x: float, degrees: float) -> tuple[float, bool]:
    """Compute the shaped reward for a post-step cart position and pole angle.

    Args:
        x: cart position after the step
        degrees: pole angle after the step (see `pole_degrees`)

    Returns:
        (reward, terminated)
    """
    if not is_safe(x, degrees):
        return FAILURE_REWARD, True

    angle_error = abs(degrees - UPRIGHT_DEG) / ANGLE_LIMIT_DEG  # 0 upright .. 1 about to fail
    position_error = abs(x) / X_THRESHOLD  # 0 centre .. 1 edge

    reward = 1.0 + 2.0 * (1.0 - angle_error) + 2.0 * (1.0 - position_error)

    if abs(x) > EDGE_DISTANCE:
        reward -= EDGE_PENALTY

    return float(reward), False
