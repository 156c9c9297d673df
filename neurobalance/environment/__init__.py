"""Cart-pole physics and reward shaping."""

from .cartpole_env import CartPoleBalanceEnv
from .constants import LEFT, RIGHT, N_ACTIONS, STATE_DIM
from .reward import is_safe, pole_degrees, shaped_reward

__all__ = [
    "CartPoleBalanceEnv",
    "LEFT",
    "RIGHT",
    "N_ACTIONS",
    "STATE_DIM",
    "is_safe",
    "pole_degrees",
    "shaped_reward",
]
