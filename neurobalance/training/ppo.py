"""PPO (clipped-surrogate actor-critic).

One call to `PPOTrainer.train` consumes one freshly collected episode:

  1) critic values for every state and next state
  2) GAE advantages (backward pass), returns = advantages + values
  3) old action probabilities, frozen once for the whole update
  4) `epochs` full-batch passes: clipped policy loss + MSE value loss
  5) the trajectory is dropped; nothing persists between calls

Freezing the old probabilities once per trajectory (not per epoch) is what
keeps the ratio meaningful across epochs.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Mapping, Sequence

import numpy as np
import torch
import torch.nn.functional as F

from ..config import PPO_CONFIG
from ..environment.constants import N_ACTIONS, STATE_DIM
from .approximator import Approximator, Params
from .base import load_params_atomically
from .network import PolicyNetwork, ValueNetwork
from .replay import Transition, stack_transitions

logger = logging.getLogger(__name__)


def compute_gae(
    rewards: Sequence[float],
    values: Sequence[float],
    next_values: Sequence[float],
    dones: Sequence[bool],
    gamma: float = PPO_CONFIG["discount_factor"],
    lam: float = PPO_CONFIG["gae_lambda"],
) -> np.ndarray:
    """Generalized Advantage Estimation.

    Iterates backward from the last step:
        mask  = 0 if done[t] else 1
        delta = r[t] + gamma * next_v[t] * mask - v[t]
        A[t]  = delta + gamma * lam * mask * A[t+1]     (A[T] = 0)
    """
    n = len(rewards)
    advantages = np.zeros(n, dtype=np.float64)
    last_adv = 0.0
    for t in reversed(range(n)):
        mask = 0.0 if dones[t] else 1.0
        delta = float(rewards[t]) + gamma * float(next_values[t]) * mask - float(values[t])
        last_adv = delta + gamma * lam * mask * last_adv
        advantages[t] = last_adv
    return advantages


def clipped_surrogate(
    ratio: torch.Tensor, advantages: torch.Tensor, clip_ratio: float = PPO_CONFIG["clip_ratio"]
) -> torch.Tensor:
    """Per-step PPO objective min(r*A, clip(r, 1-eps, 1+eps)*A)."""
    clipped = torch.clamp(ratio, 1.0 - clip_ratio, 1.0 + clip_ratio)
    return torch.min(ratio * advantages, clipped * advantages)


def taken_action_probs(probs: torch.Tensor, actions: torch.Tensor) -> torch.Tensor:
    """Pick each row's probability for the action that was actually taken."""
    return probs.gather(1, actions.unsqueeze(1)).squeeze(1)


class PPOTrainer:
    """On-policy trainer with separate actor and critic optimizers."""

    algorithm = "ppo"

    def __init__(
        self,
        state_dim: int = STATE_DIM,
        n_actions: int = N_ACTIONS,
        *,
        hidden_sizes: Sequence[int] = PPO_CONFIG["hidden_sizes"],
        lr: float = PPO_CONFIG["learning_rate"],
        gamma: float = PPO_CONFIG["discount_factor"],
        gae_lambda: float = PPO_CONFIG["gae_lambda"],
        clip_ratio: float = PPO_CONFIG["clip_ratio"],
        epochs: int = PPO_CONFIG["epochs"],
        device: torch.device | str = "cpu",
        rng: torch.Generator | None = None,
    ):
        self.state_dim = int(state_dim)
        self.n_actions = int(n_actions)
        self.gamma = float(gamma)
        self.gae_lambda = float(gae_lambda)
        self.clip_ratio = float(clip_ratio)
        self.epochs = int(epochs)
        # None samples from torch's global RNG.
        self._rng = rng

        self.actor = Approximator(PolicyNetwork(state_dim, n_actions, hidden_sizes), lr, device=device)
        self.critic = Approximator(ValueNetwork(state_dim, hidden_sizes), lr, device=device)

        self.train_calls = 0

    # --- Acting --------------------------------------------------------------
    def action_probs(self, state: np.ndarray) -> np.ndarray:
        return self.actor.predict(state)[0].cpu().numpy()

    def select_action(self, state: np.ndarray) -> int:
        """Sample from the policy distribution."""
        # Generators are CPU-bound, so sample from CPU probabilities.
        probs = self.actor.predict(state)[0].cpu()
        return int(torch.multinomial(probs, num_samples=1, generator=self._rng).item())

    def greedy_action(self, state: np.ndarray) -> int:
        return int(np.argmax(self.action_probs(state)))

    # --- Learning ------------------------------------------------------------
    def train(self, trajectory: Sequence[Transition]) -> Dict[str, Any]:
        """One PPO update over a single episode."""
        if not trajectory:
            return {"trained": False, "steps": 0}

        s, a, r, s2, d = stack_transitions(trajectory)
        states = self.actor.as_tensor(s)
        next_states = self.actor.as_tensor(s2)
        actions = torch.as_tensor(a, dtype=torch.long, device=self.actor.device)

        values = self.critic.predict(states).squeeze(-1).cpu().numpy()
        next_values = self.critic.predict(next_states).squeeze(-1).cpu().numpy()

        advantages = compute_gae(r, values, next_values, d, self.gamma, self.gae_lambda)
        returns = advantages + values

        adv_t = torch.as_tensor(advantages, dtype=torch.float32, device=self.actor.device)
        ret_t = torch.as_tensor(returns, dtype=torch.float32, device=self.critic.device)

        # Frozen for every epoch below.
        old_probs = taken_action_probs(self.actor.predict(states), actions)

        def policy_loss(net: torch.nn.Module) -> torch.Tensor:
            new_probs = taken_action_probs(net(states), actions)
            ratio = new_probs / old_probs
            return -clipped_surrogate(ratio, adv_t, self.clip_ratio).mean()

        def value_loss(net: torch.nn.Module) -> torch.Tensor:
            return F.mse_loss(net(states).squeeze(-1), ret_t)

        policy_losses = []
        value_losses = []
        for _ in range(self.epochs):
            policy_losses.append(self.actor.fit(policy_loss))
            value_losses.append(self.critic.fit(value_loss))

        with torch.no_grad():
            ratio = taken_action_probs(self.actor.predict(states), actions) / old_probs
            clip_fraction = float((torch.abs(ratio - 1.0) > self.clip_ratio).float().mean().item())

        self.train_calls += 1
        stats = {
            "trained": True,
            "steps": len(trajectory),
            "policy_loss": policy_losses[-1],
            "value_loss": value_losses[-1],
            "mean_advantage": float(advantages.mean()),
            "clip_fraction": clip_fraction,
        }
        logger.debug(
            "PPO update %d: T=%d policy_loss=%.5f value_loss=%.5f clip=%.2f",
            self.train_calls,
            stats["steps"],
            stats["policy_loss"],
            stats["value_loss"],
            clip_fraction,
        )
        return stats

    # --- Persistence ---------------------------------------------------------
    def state_dicts(self) -> Dict[str, Params]:
        # Actor and critic are one logical model.
        return {"actor": self.actor.get_params(), "critic": self.critic.get_params()}

    def load_state_dicts(self, params: Mapping[str, Params]) -> None:
        load_params_atomically({"actor": self.actor, "critic": self.critic}, params)
