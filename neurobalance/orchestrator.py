"""Episode orchestration: simulate -> collect -> train -> reset.

The orchestrator is a small state machine (IDLE, RUNNING, AWAITING_TRAINING,
PAUSED) driven by cooperative ticks on an asyncio loop:

  - each tick runs `speed` physics steps (forced to 1 under human override)
  - a step that ends a learning episode hands the trajectory to the trainer
    and returns ``continue_loop=False``; the tick then launches the training
    pass as a task and returns immediately
  - while the pass is in flight the phase is AWAITING_TRAINING and ticks do
    nothing, so no physics step can interleave with training
  - when the pass finishes the phase flips back to RUNNING on its own

Save/load wait for any in-flight pass, force PAUSED and stay there.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, List

from .config import SESSION_CONFIG
from .environment import CartPoleBalanceEnv
from .session import (
    ControlMode,
    EpisodeSummary,
    Learning,
    Phase,
    Pilot,
    StepOutcome,
    TrainingSession,
)
from .training.base import Trainer
from .training.checkpoint import ModelStore
from .training.replay import Transition

logger = logging.getLogger(__name__)


class EpisodeOrchestrator:
    """Drives one environment and one active trainer."""

    def __init__(
        self,
        trainer: Trainer,
        env: CartPoleBalanceEnv | None = None,
        *,
        store: ModelStore | None = None,
        mode: ControlMode | None = None,
        max_steps: int = SESSION_CONFIG["max_steps"],
        speed: int = 1,
        history_size: int = SESSION_CONFIG["history_size"],
        trainer_factory: Callable[[], Trainer] | None = None,
        on_episode: Callable[[EpisodeSummary], None] | None = None,
        on_trained: Callable[[Dict[str, Any]], None] | None = None,
        seed: int | None = None,
    ):
        self.trainer = trainer
        self.env = env if env is not None else CartPoleBalanceEnv()
        self.store = store if store is not None else ModelStore()
        self.max_steps = int(max_steps)
        self.trainer_factory = trainer_factory
        self.on_episode = on_episode
        self.on_trained = on_trained

        self.session = TrainingSession(mode=mode or ControlMode(), history_size=history_size)

        self._phase = Phase.IDLE
        self._speed = 1
        self.set_speed(speed)
        self._override_action: int | None = None
        self._pending_trajectory: List[Transition] | None = None
        self._training_task: asyncio.Task | None = None
        self.last_train_stats: Dict[str, Any] = {}

        self.env.reset(seed=seed)

    # --- State ---------------------------------------------------------------
    @property
    def phase(self) -> Phase:
        return self._phase

    @property
    def mode(self) -> ControlMode:
        return self.session.mode

    @property
    def speed(self) -> int:
        return self._speed

    @property
    def effective_speed(self) -> int:
        # A human can't react to super-real-time ticks.
        return 1 if self.mode.human_override else self._speed

    # --- Controls ------------------------------------------------------------
    def set_speed(self, speed: int) -> None:
        if int(speed) not in SESSION_CONFIG["speeds"]:
            raise ValueError(f"speed must be one of {SESSION_CONFIG['speeds']}, got {speed}")
        self._speed = int(speed)

    def set_mode(self, mode: ControlMode) -> None:
        if self.mode.collects_experience and not mode.collects_experience:
            # A trajectory with gaps in it can't be used for learning.
            self.session.trajectory = []
        self.session.mode = mode
        if mode.human_override:
            self._speed = 1

    def set_pilot(self, pilot: Pilot) -> None:
        self.set_mode(self.mode.with_pilot(pilot))

    def set_learning(self, learning: Learning) -> None:
        self.set_mode(self.mode.with_learning(learning))

    def set_override_action(self, action: int | None) -> None:
        """Human input (None = no key held). Only used under human override."""
        if action is not None and int(action) not in (0, 1):
            raise ValueError(f"override action must be 0 or 1, got {action}")
        self._override_action = None if action is None else int(action)

    def apply_force(self, force: float) -> None:
        self.env.apply_force(force)

    def play(self) -> bool:
        if self._phase in (Phase.IDLE, Phase.PAUSED):
            self._phase = Phase.RUNNING
            return True
        return self._phase is Phase.RUNNING

    def pause(self) -> bool:
        """Pause stepping. Refused while a training pass is in flight."""
        if self._phase is Phase.AWAITING_TRAINING:
            logger.warning("Pause ignored: training pass in progress")
            return False
        if self._phase is Phase.RUNNING:
            self._phase = Phase.PAUSED
        return True

    def toggle_play(self) -> bool:
        if self._phase is Phase.RUNNING:
            return self.pause()
        return self.play()

    # --- Simulation ----------------------------------------------------------
    def _resolve_action(self, state) -> int:
        if self.mode.human_override and self._override_action is not None:
            return self._override_action
        return int(self.trainer.select_action(state))

    def step_once(self) -> StepOutcome:
        """Advance the simulation by one physics step."""
        if self._phase is not Phase.RUNNING:
            raise RuntimeError(f"cannot step while {self._phase.value}")

        session = self.session
        state = self.env.get_state()
        action = self._resolve_action(state)

        next_state, reward, terminated, _, _ = self.env.step(action)
        session.record_step(reward)
        done = bool(terminated) or session.step >= self.max_steps

        if session.mode.collects_experience:
            session.trajectory.append(
                Transition(state=state, action=action, reward=reward, next_state=next_state, done=done)
            )

        if not done:
            return StepOutcome(continue_loop=True, done=False, reward=reward)

        summary = session.finish_episode()
        logger.info(
            "Episode %d finished: reward=%.1f steps=%d high=%.1f",
            summary.episode,
            summary.reward,
            summary.steps,
            summary.high_score,
        )
        self.env.reset()
        if self.on_episode is not None:
            self.on_episode(summary)

        trajectory = session.take_trajectory()
        if session.mode.collects_experience and trajectory:
            self._pending_trajectory = trajectory
            self._phase = Phase.AWAITING_TRAINING
            return StepOutcome(continue_loop=False, done=True, reward=reward, episode=summary)

        return StepOutcome(continue_loop=True, done=True, reward=reward, episode=summary)

    async def tick(self) -> int:
        """Run one scheduler tick. Returns the number of physics steps taken."""
        steps = 0
        if self._phase is Phase.RUNNING:
            for _ in range(self.effective_speed):
                outcome = self.step_once()
                steps += 1
                if not outcome.continue_loop:
                    break

        self._launch_training()
        return steps

    def _launch_training(self) -> None:
        if self._pending_trajectory is None:
            return
        trajectory, self._pending_trajectory = self._pending_trajectory, None
        self._training_task = asyncio.create_task(self._train(trajectory))

    async def _train(self, trajectory: List[Transition]) -> None:
        # Let the scheduler run before the (long) pass starts.
        await asyncio.sleep(0)
        try:
            stats = self.trainer.train(trajectory)
        except Exception:
            self._phase = Phase.PAUSED
            raise
        self.last_train_stats = stats
        if self.on_trained is not None:
            self.on_trained(stats)
        self._phase = Phase.RUNNING

    async def wait_for_training(self) -> None:
        """Block until any in-flight training pass has completed."""
        task = self._training_task
        if task is None:
            return
        try:
            await task
        finally:
            # Several callers may await the same pass.
            if self._training_task is task:
                self._training_task = None

    async def run(
        self,
        *,
        episodes: int | None = None,
        ticks: int | None = None,
        fps: float | None = None,
    ) -> None:
        """Tick until ``episodes`` more episodes (or ``ticks`` ticks) are done.

        ``fps=None`` runs as fast as possible; otherwise ticks are spaced at
        1/fps seconds like a display refresh loop. Ends PAUSED.
        """
        self.play()
        target = self.session.episode + int(episodes) if episodes is not None else None
        interval = 1.0 / fps if fps else 0.0
        n_ticks = 0

        while self._phase in (Phase.RUNNING, Phase.AWAITING_TRAINING):
            await self.tick()
            n_ticks += 1
            await asyncio.sleep(interval)
            if self._training_task is not None and self._training_task.done():
                await self.wait_for_training()
            if self._phase is not Phase.RUNNING:
                continue
            if target is not None and self.session.episode >= target:
                break
            if ticks is not None and n_ticks >= ticks:
                break

        await self.wait_for_training()
        self.pause()

    # --- Reset / persistence -------------------------------------------------
    async def _force_pause(self) -> None:
        # A concurrent run() may finish another episode while we wait.
        while self._pending_trajectory is not None or self._training_task is not None:
            self._launch_training()
            await self.wait_for_training()
        self._phase = Phase.PAUSED

    async def reset(self) -> None:
        """Back to IDLE with a fresh environment, fresh stats and a fresh trainer."""
        await self.wait_for_training()
        self._phase = Phase.IDLE
        self._pending_trajectory = None
        self.session.reset_stats()
        self.env.reset()
        if self.trainer_factory is not None:
            self.trainer = self.trainer_factory()

    async def save_model(self, name: str) -> str:
        await self._force_pause()
        return self.store.save(name, self.trainer, extra={"episode": self.session.episode})

    async def load_model(self, name: str, *, learning: Learning = Learning.LEARNING) -> Dict[str, Any]:
        """Load a saved model, then start fresh stats in the requested mode.

        On failure nothing changes except that the orchestrator is PAUSED.
        """
        await self._force_pause()
        extra = self.store.load(name, self.trainer)

        self.set_learning(learning)
        self.session.reset_stats()
        self._pending_trajectory = None
        self.env.reset()
        return extra

    def list_models(self) -> list[str]:
        return self.store.list_models(self.trainer.algorithm)

    def delete_model(self, name: str) -> None:
        self.store.delete_model(name, self.trainer.algorithm)
