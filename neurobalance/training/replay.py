"""Experience storage.

`Transition` is shared by both trainers: PPO consumes a whole episode of them
as one trajectory, DQN pushes them into the replay buffer.

We keep stored transitions as NumPy arrays / Python primitives so that:
  - replay is device-agnostic (CPU/GPU doesn't matter)
  - torch tensors are created only at the update step
"""

from __future__ import annotations

import random
from collections import deque
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from ..config import DQN_CONFIG


@dataclass(frozen=True, slots=True)
class Transition:
    """A single experience tuple."""

    state: np.ndarray
    action: int
    reward: float
    next_state: np.ndarray
    done: bool


def stack_transitions(batch: Sequence[Transition]):
    """Group a list of transitions into arrays.

    Returns:
        states:      (B, D) float32
        actions:     (B,)   int64
        rewards:     (B,)   float32
        next_states: (B, D) float32
        dones:       (B,)   float32 (1.0 if done else 0.0)
    """
    states = np.stack([t.state for t in batch]).astype(np.float32, copy=False)
    actions = np.array([t.action for t in batch], dtype=np.int64)
    rewards = np.array([t.reward for t in batch], dtype=np.float32)
    next_states = np.stack([t.next_state for t in batch]).astype(np.float32, copy=False)
    dones = np.array([t.done for t in batch], dtype=np.float32)
    return states, actions, rewards, next_states, dones


class ReplayBuffer:
    """Fixed-size FIFO replay buffer with uniform sampling."""

    def __init__(self, capacity: int = DQN_CONFIG["replay_size"], rng: random.Random | None = None):
        if int(capacity) <= 0:
            raise ValueError(f"capacity must be positive, got {capacity}")
        self._buf: deque[Transition] = deque(maxlen=int(capacity))
        self._rng = rng if rng is not None else random.Random()

    @property
    def capacity(self) -> int:
        return int(self._buf.maxlen)

    def add(self, t: Transition) -> None:
        # deque(maxlen) drops the oldest entry once full.
        self._buf.append(t)

    def sample(self, batch_size: int) -> list[Transition] | None:
        """Draw min(len, batch_size) distinct transitions.

        Indices are drawn uniformly and duplicates within one draw are
        rejected. Returns None when the buffer is empty.
        """
        size = len(self._buf)
        if size == 0:
            return None

        n = min(size, int(batch_size))
        chosen: set[int] = set()
        samples: list[Transition] = []
        while len(samples) < n:
            idx = self._rng.randrange(size)
            if idx in chosen:
                continue
            chosen.add(idx)
            samples.append(self._buf[idx])
        return samples

    def __iter__(self):
        return iter(self._buf)

    def __len__(self) -> int:
        return len(self._buf)
