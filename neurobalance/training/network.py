"""Neural network definitions.

Keep networks in their own module so:
  - trainers stay readable
  - you can swap architectures without touching the algorithm code

All three are plain MLPs over the 4-dim cart-pole state; only the head differs.
"""

from __future__ import annotations

from typing import Sequence

import torch
import torch.nn as nn


def _mlp(input_dim: int, hidden_sizes: Sequence[int], output_dim: int) -> nn.Sequential:
    layers: list[nn.Module] = []
    prev = int(input_dim)
    for width in hidden_sizes:
        layers.append(nn.Linear(prev, int(width)))
        layers.append(nn.ReLU())
        prev = int(width)
    layers.append(nn.Linear(prev, int(output_dim)))
    return nn.Sequential(*layers)


class PolicyNetwork(nn.Module):
    """Actor. Returns action probabilities (softmax over the last dim)."""

    def __init__(self, input_dim: int, n_actions: int, hidden_sizes: Sequence[int] = (74, 74, 74)):
        super().__init__()
        self.net = _mlp(input_dim, hidden_sizes, n_actions)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return torch.softmax(self.net(x), dim=-1)


class ValueNetwork(nn.Module):
    """Critic. Returns one state-value per row, shape (B, 1)."""

    def __init__(self, input_dim: int, hidden_sizes: Sequence[int] = (74, 74, 74)):
        super().__init__()
        self.net = _mlp(input_dim, hidden_sizes, 1)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.net(x)


class QNetwork(nn.Module):
    """Q-network. Calling it on a state batch returns (B, n_actions) Q-values."""

    def __init__(self, input_dim: int, n_actions: int, hidden_sizes: Sequence[int] = (64, 64, 64)):
        super().__init__()
        self.net = _mlp(input_dim, hidden_sizes, n_actions)

    def forward(self, x: torch.Tensor) -> torch.Tensor:
        return self.net(x)
