"""Constants for the cart-pole balancing environment."""

from __future__ import annotations

from typing import Dict

from ..config import ENV_CONFIG, REWARD_CONFIG

# Actions
LEFT: int = 0
RIGHT: int = 1

ACTION_NAMES: Dict[int, str] = {
    LEFT: "left",
    RIGHT: "right",
}

# Physics (mirrors standard CartPole-v1)
GRAVITY: float = ENV_CONFIG["gravity"]
MASS_CART: float = ENV_CONFIG["mass_cart"]
MASS_POLE: float = ENV_CONFIG["mass_pole"]
TOTAL_MASS: float = MASS_CART + MASS_POLE
HALF_POLE_LENGTH: float = ENV_CONFIG["half_pole_length"]
POLEMASS_LENGTH: float = MASS_POLE * HALF_POLE_LENGTH
FORCE_MAG: float = ENV_CONFIG["force_mag"]
TAU: float = ENV_CONFIG["tau"]
X_THRESHOLD: float = ENV_CONFIG["x_threshold"]

# Reward
SAFE_MIN_DEG: float = REWARD_CONFIG["safe_min_deg"]
SAFE_MAX_DEG: float = REWARD_CONFIG["safe_max_deg"]
UPRIGHT_DEG: float = 90.0
ANGLE_LIMIT_DEG: float = SAFE_MAX_DEG - UPRIGHT_DEG  # 49 degrees of allowed deviation
FAILURE_REWARD: float = REWARD_CONFIG["failure_reward"]
EDGE_DISTANCE: float = REWARD_CONFIG["edge_distance"]
EDGE_PENALTY: float = REWARD_CONFIG["edge_penalty"]

STATE_DIM: int = 4
N_ACTIONS: int = 2
