"""Orchestration state: control mode, phases and per-session bookkeeping.

Everything the simulation loop mutates between ticks lives on one
`TrainingSession` object owned by the orchestrator.
"""

from __future__ import annotations

import dataclasses
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from typing import Deque, List, Tuple

from .config import SESSION_CONFIG
from .training.replay import Transition


class Phase(Enum):
    IDLE = "idle"
    RUNNING = "running"
    AWAITING_TRAINING = "awaiting_training"
    PAUSED = "paused"


class Pilot(Enum):
    """Who picks the actions."""

    AUTONOMOUS = "autonomous"
    HUMAN_OVERRIDE = "human_override"


class Learning(Enum):
    """Whether experience is kept and learned from."""

    LEARNING = "learning"
    INFERENCE = "inference"


@dataclass(frozen=True)
class ControlMode:
    """Pilot x Learning.

    Only AUTONOMOUS + LEARNING collects experience. Human-driven steps never
    reach a trainer, and inference never calls a trainer update.
    """

    pilot: Pilot = Pilot.AUTONOMOUS
    learning: Learning = Learning.LEARNING

    @property
    def collects_experience(self) -> bool:
        return self.pilot is Pilot.AUTONOMOUS and self.learning is Learning.LEARNING

    @property
    def human_override(self) -> bool:
        return self.pilot is Pilot.HUMAN_OVERRIDE

    def with_pilot(self, pilot: Pilot) -> "ControlMode":
        return dataclasses.replace(self, pilot=pilot)

    def with_learning(self, learning: Learning) -> "ControlMode":
        return dataclasses.replace(self, learning=learning)


@dataclass(frozen=True)
class EpisodeSummary:
    episode: int
    reward: float
    steps: int
    high_score: float


@dataclass(frozen=True)
class StepOutcome:
    """What one physics step did.

    ``continue_loop`` is False when the caller must stop stepping for this
    tick (a training pass was requested).
    """

    continue_loop: bool
    done: bool
    reward: float
    episode: EpisodeSummary | None = None


@dataclass
class TrainingSession:
    """Mutable counters, telemetry and the trajectory being collected."""

    mode: ControlMode = field(default_factory=ControlMode)
    history_size: int = SESSION_CONFIG["history_size"]

    episode: int = 0
    step: int = 0
    episode_reward: float = 0.0
    high_score: float = 0.0
    trajectory: List[Transition] = field(default_factory=list)
    reward_history: Deque[Tuple[int, float]] = field(init=False)

    def __post_init__(self):
        self.reward_history = deque(maxlen=int(self.history_size))

    def record_step(self, reward: float) -> None:
        self.step += 1
        self.episode_reward += float(reward)

    def finish_episode(self) -> EpisodeSummary:
        """Close the current episode and roll the counters over."""
        self.episode += 1
        final_reward = self.episode_reward
        self.reward_history.append((self.episode, final_reward))
        self.high_score = max(self.high_score, final_reward)
        summary = EpisodeSummary(
            episode=self.episode,
            reward=final_reward,
            steps=self.step,
            high_score=self.high_score,
        )
        self.step = 0
        self.episode_reward = 0.0
        return summary

    def take_trajectory(self) -> List[Transition]:
        trajectory, self.trajectory = self.trajectory, []
        return trajectory

    def recent_average(self, window: int = SESSION_CONFIG["recent_window"]) -> float:
        if not self.reward_history:
            return 0.0
        recent = list(self.reward_history)[-int(window):]
        return sum(r for _, r in recent) / len(recent)

    def reset_stats(self) -> None:
        self.episode = 0
        self.step = 0
        self.episode_reward = 0.0
        self.high_score = 0.0
        self.trajectory = []
        self.reward_history.clear()
