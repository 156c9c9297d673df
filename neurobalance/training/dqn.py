"""Double DQN (off-policy, experience replay, hard-synced target network).

Each call to `DQNTrainer.train` receives one finished episode:

  1) every transition goes into the replay buffer
  2) below `batch_size` stored transitions: nothing else happens
  3) otherwise `train_steps` minibatch updates against the double-Q target
  4) epsilon decays once, and every `target_update_freq` calls the target
     network is overwritten with a full copy of the online network
"""

from __future__ import annotations

import logging
import random
from typing import Any, Dict, Mapping, Sequence

import numpy as np
import torch
import torch.nn as nn

from ..config import DQN_CONFIG
from ..environment.constants import N_ACTIONS, STATE_DIM
from .approximator import Approximator, Params
from .base import load_params_atomically
from .network import QNetwork
from .replay import ReplayBuffer, Transition, stack_transitions

logger = logging.getLogger(__name__)


def double_q_targets(
    rewards: torch.Tensor,
    dones: torch.Tensor,
    next_q_online: torch.Tensor,
    next_q_target: torch.Tensor,
    gamma: float = DQN_CONFIG["discount_factor"],
) -> torch.Tensor:
    """Double DQN target.

      - online net chooses next action
      - target net evaluates that chosen action
      - done rows keep only the reward
    """
    next_a = next_q_online.argmax(dim=1, keepdim=True)
    next_q = next_q_target.gather(1, next_a).squeeze(1)
    return rewards + gamma * (1.0 - dones) * next_q


class DQNTrainer:
    """Off-policy trainer with epsilon-greedy exploration."""

    algorithm = "dqn"

    def __init__(
        self,
        state_dim: int = STATE_DIM,
        n_actions: int = N_ACTIONS,
        *,
        hidden_sizes: Sequence[int] = DQN_CONFIG["hidden_sizes"],
        lr: float = DQN_CONFIG["learning_rate"],
        gamma: float = DQN_CONFIG["discount_factor"],
        epsilon: float = DQN_CONFIG["epsilon"],
        epsilon_min: float = DQN_CONFIG["epsilon_min"],
        epsilon_decay: float = DQN_CONFIG["epsilon_decay"],
        batch_size: int = DQN_CONFIG["batch_size"],
        replay_size: int = DQN_CONFIG["replay_size"],
        train_steps: int = DQN_CONFIG["train_steps"],
        target_update_freq: int = DQN_CONFIG["target_update_freq"],
        device: torch.device | str = "cpu",
        rng: random.Random | None = None,
    ):
        self.state_dim = int(state_dim)
        self.n_actions = int(n_actions)
        self.gamma = float(gamma)
        self.epsilon = float(epsilon)
        self.epsilon_min = float(epsilon_min)
        self.epsilon_decay = float(epsilon_decay)
        self.batch_size = int(batch_size)
        self.train_steps = int(train_steps)
        self.target_update_freq = int(target_update_freq)
        self._rng = rng if rng is not None else random.Random()

        self.q_net = Approximator(QNetwork(state_dim, n_actions, hidden_sizes), lr, device=device)
        # Target is never fitted directly, so it gets no optimizer.
        self.target_net = Approximator(QNetwork(state_dim, n_actions, hidden_sizes), None, device=device)
        self.target_net.module.eval()
        self.sync_target()

        self.replay = ReplayBuffer(replay_size, rng=self._rng)
        self.loss_fn = nn.SmoothL1Loss()

        self.train_calls = 0

    # --- Acting --------------------------------------------------------------
    def select_action(self, state: np.ndarray) -> int:
        # Explore
        if self._rng.random() < self.epsilon:
            return self._rng.randrange(self.n_actions)
        # Exploit
        return self.greedy_action(state)

    def greedy_action(self, state: np.ndarray) -> int:
        return int(self.q_net.predict(state).argmax(dim=1).item())

    # --- Learning ------------------------------------------------------------
    def sync_target(self) -> None:
        """Hard update: copy online weights into the target network."""
        self.target_net.set_params(self.q_net.get_params())

    def decay_epsilon(self) -> None:
        self.epsilon = max(self.epsilon_min, self.epsilon * self.epsilon_decay)

    def train(self, trajectory: Sequence[Transition]) -> Dict[str, Any]:
        for t in trajectory:
            self.replay.add(t)

        if len(self.replay) < self.batch_size:
            return {"trained": False, "steps": len(trajectory), "buffer": len(self.replay)}

        device = self.q_net.device
        losses = []
        for _ in range(self.train_steps):
            batch = self.replay.sample(self.batch_size)
            if batch is None:
                break

            bs, ba, br, bs2, bdone = stack_transitions(batch)
            bs_t = self.q_net.as_tensor(bs)
            ba_t = torch.as_tensor(ba, dtype=torch.long, device=device).unsqueeze(1)
            br_t = torch.as_tensor(br, dtype=torch.float32, device=device)
            bdone_t = torch.as_tensor(bdone, dtype=torch.float32, device=device)

            target_q = double_q_targets(
                br_t,
                bdone_t,
                self.q_net.predict(bs2),
                self.target_net.predict(bs2),
                self.gamma,
            )

            def td_loss(net: nn.Module) -> torch.Tensor:
                # Q(s,a) for the actions actually taken.
                q_vals = net(bs_t).gather(1, ba_t).squeeze(1)
                return self.loss_fn(q_vals, target_q)

            losses.append(self.q_net.fit(td_loss))

        self.decay_epsilon()
        self.train_calls += 1
        synced = self.train_calls % self.target_update_freq == 0
        if synced:
            self.sync_target()
            logger.info("Updated target network (epsilon: %.3f)", self.epsilon)

        stats = {
            "trained": True,
            "steps": len(trajectory),
            "buffer": len(self.replay),
            "loss": losses[-1] if losses else 0.0,
            "epsilon": self.epsilon,
            "target_synced": synced,
        }
        logger.debug("DQN update %d: loss=%.5f buf=%d", self.train_calls, stats["loss"], stats["buffer"])
        return stats

    # --- Persistence ---------------------------------------------------------
    def state_dicts(self) -> Dict[str, Params]:
        return {"q_net": self.q_net.get_params()}

    def load_state_dicts(self, params: Mapping[str, Params]) -> None:
        load_params_atomically({"q_net": self.q_net}, params)
        # Target restarts as an exact copy of the loaded network.
        self.sync_target()
