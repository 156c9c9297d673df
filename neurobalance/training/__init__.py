"""Learning algorithms and their plumbing.

  - replay buffer + transitions: training/replay.py
  - networks:                    training/network.py
  - approximator contract:       training/approximator.py
  - PPO:                         training/ppo.py
  - Double DQN:                  training/dqn.py
  - model store:                 training/checkpoint.py
  - evaluation:                  training/eval.py
"""

from .approximator import Approximator
from .base import Trainer
from .checkpoint import DeleteFailed, LoadFailed, ModelStore, PersistenceError, SaveFailed
from .dqn import DQNTrainer
from .ppo import PPOTrainer
from .replay import ReplayBuffer, Transition

TRAINERS = {
    PPOTrainer.algorithm: PPOTrainer,
    DQNTrainer.algorithm: DQNTrainer,
}


def make_trainer(algorithm: str, **kwargs) -> Trainer:
    """Build a fresh trainer by algorithm name ('ppo' or 'dqn')."""
    try:
        cls = TRAINERS[algorithm]
    except KeyError:
        raise ValueError(f"unknown algorithm {algorithm!r}; choose from {sorted(TRAINERS)}") from None
    return cls(**kwargs)


__all__ = [
    "Approximator",
    "Trainer",
    "ModelStore",
    "PersistenceError",
    "SaveFailed",
    "LoadFailed",
    "DeleteFailed",
    "DQNTrainer",
    "PPOTrainer",
    "ReplayBuffer",
    "Transition",
    "TRAINERS",
    "make_trainer",
]
