"""
Utility functions for training runs.
"""

from __future__ import annotations

import os
from typing import Iterable, Tuple

import matplotlib

matplotlib.use("Agg")
import matplotlib.pyplot as plt
import numpy as np


def plot_reward_history(
    history: Iterable[Tuple[int, float]],
    window: int = 10,
    save_path: str | None = None,
    title: str = "Learning Curve",
):
    """
    Plot episode rewards with a moving average.

    Args:
        history: (episode, reward) pairs, oldest first.
        window: Window size for moving average.
        save_path: Optional path to save the plot.
        title: Plot title.
    """
    pairs = list(history)
    episodes = [ep for ep, _ in pairs]
    rewards = [r for _, r in pairs]

    fig, ax = plt.subplots(figsize=(10, 4))
    ax.plot(episodes, rewards, alpha=0.3, color="blue", label="Episode Reward")
    if len(rewards) >= window:
        moving_avg = np.convolve(rewards, np.ones(window) / window, mode="valid")
        ax.plot(
            episodes[window - 1:],
            moving_avg,
            color="red",
            label=f"Moving Avg ({window})",
        )
    ax.set_xlabel("Episode")
    ax.set_ylabel("Reward")
    ax.set_title(title)
    ax.legend()
    ax.grid(True, alpha=0.3)

    plt.tight_layout()

    if save_path:
        os.makedirs(os.path.dirname(save_path) or ".", exist_ok=True)
        plt.savefig(save_path, dpi=150)
        print(f"Plot saved to {save_path}")

    plt.close(fig)
    return save_path


def print_episode_info(
    episode: int,
    reward: float,
    steps: int,
    high_score: float,
    avg_reward: float,
    extra: str = "",
):
    """Print formatted episode information."""
    print(
        f"  Ep {episode:>5d} │ "
        f"R={reward:>8.1f} │ "
        f"Avg10={avg_reward:>8.1f} │ "
        f"High={high_score:>8.1f} │ "
        f"Steps={steps:>3d}"
        + (f" │ {extra}" if extra else "")
    )
