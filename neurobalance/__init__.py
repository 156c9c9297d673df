"""
NeuroBalance
============
Balance an inverted pendulum on a cart with PPO or Double DQN.

This package provides:
- CartPoleBalanceEnv: cart-pole physics with a shaped, degree-based reward
- PPOTrainer / DQNTrainer: the two learning algorithms
- EpisodeOrchestrator: the simulate -> collect -> train -> reset loop

Usage:
    import asyncio
    from neurobalance import EpisodeOrchestrator, PPOTrainer

    orch = EpisodeOrchestrator(PPOTrainer(), speed=50)
    asyncio.run(orch.run(episodes=100))
    print(orch.session.high_score)
"""

__version__ = "1.0.0"

from .environment import CartPoleBalanceEnv
from .orchestrator import EpisodeOrchestrator
from .session import ControlMode, Learning, Phase, Pilot, TrainingSession
from .training import DQNTrainer, ModelStore, PPOTrainer

__all__ = [
    "CartPoleBalanceEnv",
    "EpisodeOrchestrator",
    "ControlMode",
    "Learning",
    "Phase",
    "Pilot",
    "TrainingSession",
    "DQNTrainer",
    "ModelStore",
    "PPOTrainer",
]
