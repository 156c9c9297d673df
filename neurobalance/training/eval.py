"""Evaluation loop.

Evaluation is isolated from training so you can:
  - run it from scripts
  - run it after loading a saved model
  - compare algorithms on the same seeds
"""

from __future__ import annotations

import numpy as np

from ..config import SESSION_CONFIG
from ..environment import CartPoleBalanceEnv
from .base import Trainer


def evaluate(
    trainer: Trainer,
    *,
    n_episodes: int = 10,
    max_steps: int = SESSION_CONFIG["max_steps"],
    seed: int | None = None,
) -> dict:
    """Greedy evaluation on a fresh environment. Never trains.

    Returns a dictionary so callers can log whatever they care about.
    """
    env = CartPoleBalanceEnv()

    rewards: list[float] = []
    steps_list: list[int] = []
    failures = 0

    for ep in range(int(n_episodes)):
        state, _ = env.reset(seed=None if seed is None else seed + ep)
        total = 0.0
        steps = 0
        done = False

        while not done:
            action = trainer.greedy_action(state)
            state, reward, terminated, _, _ = env.step(action)
            total += reward
            steps += 1
            if terminated:
                failures += 1
            done = terminated or steps >= max_steps

        rewards.append(total)
        steps_list.append(steps)

    env.close()

    return {
        "avg_reward": float(np.mean(rewards)) if rewards else 0.0,
        "avg_steps": float(np.mean(steps_list)) if steps_list else 0.0,
        "min_steps": int(min(steps_list)) if steps_list else 0,
        "max_steps": int(max(steps_list)) if steps_list else 0,
        "survival_rate": 1.0 - failures / max(1, int(n_episodes)),
    }
