"""Trainable function approximator.

The trainers never reach into a network's layers. They only need:

    predict(batch)      -> outputs, no gradient
    fit(loss_fn)        -> one optimizer step on loss_fn(module)
    get_params()        -> detached copy of the parameters
    set_params(params)  -> overwrite the parameters in place

`Approximator` provides exactly that around a torch module and its own
optimizer. Each approximator owns its optimizer, so an actor and a critic
never share Adam moment estimates.
"""

from __future__ import annotations

import copy
from typing import Callable, Dict

import numpy as np
import torch
import torch.nn as nn
import torch.optim as optim

Params = Dict[str, torch.Tensor]


class Approximator:
    """A torch module plus (optionally) the optimizer that trains it.

    Pass ``lr=None`` for networks that are never trained directly, such as a
    DQN target network. Calling `fit` on those is a programming error.
    """

    def __init__(
        self,
        module: nn.Module,
        lr: float | None = None,
        *,
        device: torch.device | str = "cpu",
    ):
        self.device = torch.device(device)
        self.module = module.to(self.device)
        self.optimizer: optim.Optimizer | None = (
            optim.Adam(self.module.parameters(), lr=float(lr)) if lr is not None else None
        )

    def as_tensor(self, batch) -> torch.Tensor:
        """Turn a state or batch of states into a float32 (B, D) tensor."""
        if isinstance(batch, torch.Tensor):
            x = batch.to(device=self.device, dtype=torch.float32)
        else:
            x = torch.as_tensor(np.asarray(batch), dtype=torch.float32, device=self.device)
        if x.dim() == 1:
            x = x.unsqueeze(0)
        return x

    @torch.no_grad()
    def predict(self, batch) -> torch.Tensor:
        return self.module(self.as_tensor(batch))

    def __call__(self, batch) -> torch.Tensor:
        """Forward pass with gradient tracking."""
        return self.module(self.as_tensor(batch))

    def fit(self, loss_fn: Callable[[nn.Module], torch.Tensor]) -> float:
        """Run one gradient step minimizing ``loss_fn(module)``.

        Returns:
            the loss value before the step
        """
        if self.optimizer is None:
            raise RuntimeError("fit() called on an approximator that has no optimizer")

        loss = loss_fn(self.module)

        self.optimizer.zero_grad(set_to_none=True)
        loss.backward()
        self.optimizer.step()

        return float(loss.item())

    def get_params(self) -> Params:
        return {k: v.detach().clone() for k, v in self.module.state_dict().items()}

    def set_params(self, params: Params) -> None:
        self.module.load_state_dict(params)

    def staging_copy(self) -> nn.Module:
        """Independent copy of the module, used to validate incoming params."""
        return copy.deepcopy(self.module)
