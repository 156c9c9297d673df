"""Cart-pole balancing Gymnasium environment (core dynamics only)."""

from __future__ import annotations

import math
from typing import Any, Dict

import gymnasium as gym
import numpy as np
from gymnasium import spaces

from .constants import (
    ACTION_NAMES,
    FORCE_MAG,
    GRAVITY,
    HALF_POLE_LENGTH,
    MASS_POLE,
    N_ACTIONS,
    POLEMASS_LENGTH,
    RIGHT,
    STATE_DIM,
    TAU,
    TOTAL_MASS,
    X_THRESHOLD,
)
from .reward import pole_degrees, shaped_reward
from ..config import ENV_CONFIG


class CartPoleBalanceEnv(gym.Env):
    """Inverted pendulum on a cart with a shaped, degree-based reward.

    Observation: [x, x_velocity, theta, theta_velocity] (float64, theta in
    radians from upright). Actions: 0 = push left, 1 = push right.

    Termination comes only from the physics (pole outside the safe zone or
    cart off the track). Episode length limits are the caller's business.
    """

    metadata = {"render_modes": []}

    def __init__(self, reset_noise: float = ENV_CONFIG["reset_noise"]):
        self.reset_noise = float(reset_noise)

        self.state: np.ndarray = np.zeros(STATE_DIM, dtype=np.float64)
        self.external_force: float = 0.0

        self.action_space = spaces.Discrete(N_ACTIONS)
        high = np.array(
            [X_THRESHOLD * 2, np.finfo(np.float64).max, math.pi, np.finfo(np.float64).max],
            dtype=np.float64,
        )
        self.observation_space = spaces.Box(-high, high, dtype=np.float64)

    def reset(
        self, *, seed: int | None = None, options: dict | None = None
    ) -> tuple[np.ndarray, Dict[str, Any]]:
        """Start a new episode.

        By default every state component is drawn uniformly from
        [-reset_noise, reset_noise]. Pass ``options={"state": [...]}`` to
        place the cart in an explicit state instead.
        """
        super().reset(seed=seed)

        if options and options.get("state") is not None:
            state = np.asarray(options["state"], dtype=np.float64)
            if state.shape != (STATE_DIM,):
                raise ValueError(f"state must have shape ({STATE_DIM},), got {state.shape}")
            self.state = state.copy()
        else:
            self.state = self.np_random.uniform(
                low=-self.reset_noise, high=self.reset_noise, size=(STATE_DIM,)
            ).astype(np.float64)

        self.external_force = 0.0
        return self.get_state(), self._get_info()

    def apply_force(self, force: float) -> None:
        """Queue an external push; it is consumed once by the next `step`."""
        self.external_force += float(force)

    def get_state(self) -> np.ndarray:
        return self.state.copy()

    def step(self, action: int) -> tuple[np.ndarray, float, bool, bool, Dict[str, Any]]:
        if not self.action_space.contains(action):
            raise ValueError(f"invalid action {action!r}; expected 0 (left) or 1 (right)")

        # Engine force plus any pending external impulse.
        engine_force = FORCE_MAG if int(action) == RIGHT else -FORCE_MAG
        force = engine_force + self.external_force
        self.external_force = 0.0

        x, x_dot, theta, theta_dot = (float(v) for v in self.state)

        costheta = math.cos(theta)
        sintheta = math.sin(theta)

        temp = (force + POLEMASS_LENGTH * theta_dot * theta_dot * sintheta) / TOTAL_MASS
        theta_acc = (GRAVITY * sintheta - costheta * temp) / (
            HALF_POLE_LENGTH * (4.0 / 3.0 - MASS_POLE * costheta * costheta / TOTAL_MASS)
        )
        x_acc = temp - POLEMASS_LENGTH * theta_acc * costheta / TOTAL_MASS

        # Explicit Euler
        x = x + TAU * x_dot
        x_dot = x_dot + TAU * x_acc
        theta = theta + TAU * theta_dot
        theta_dot = theta_dot + TAU * theta_acc

        self.state = np.array([x, x_dot, theta, theta_dot], dtype=np.float64)

        reward, terminated = shaped_reward(x, pole_degrees(theta))
        info = self._get_info()
        info["action"] = ACTION_NAMES[int(action)]
        info["force"] = force

        return self.get_state(), reward, terminated, False, info

    def _get_info(self) -> Dict[str, Any]:
        return {
            "degrees": pole_degrees(float(self.state[2])),
            "external_force": self.external_force,
        }
