"""Shared trainer interface.

Both algorithms plug into the orchestrator, the evaluator and the model store
through the same small surface, so the caller never branches on algorithm.
"""

from __future__ import annotations

from typing import Any, Dict, Mapping, Protocol, Sequence

import numpy as np

from .approximator import Approximator, Params
from .replay import Transition


class Trainer(Protocol):
    """Minimal trainer protocol."""

    algorithm: str

    def select_action(self, state: np.ndarray) -> int:
        """Action used while collecting experience (may explore)."""

    def greedy_action(self, state: np.ndarray) -> int:
        """Best action according to the current parameters."""

    def train(self, trajectory: Sequence[Transition]) -> Dict[str, Any]:
        """Learn from one finished episode and return stats for logging."""

    def state_dicts(self) -> Dict[str, Params]:
        """Every parameter set that makes up a saved model."""

    def load_state_dicts(self, params: Mapping[str, Params]) -> None:
        """Replace the live parameters; all-or-nothing."""


def load_params_atomically(
    approximators: Mapping[str, Approximator], params: Mapping[str, Params]
) -> None:
    """Load several parameter sets so that either all of them land or none do.

    Every incoming set is first loaded (strictly) into a throwaway copy of its
    network. Live networks are only touched once all copies accepted their
    parameters.

    Raises:
        KeyError: a required parameter set is missing
        RuntimeError: shapes or keys don't match the network
    """
    missing = [name for name in approximators if name not in params]
    if missing:
        raise KeyError(f"missing parameter sets: {', '.join(missing)}")

    for name, approx in approximators.items():
        approx.staging_copy().load_state_dict(params[name])

    for name, approx in approximators.items():
        approx.set_params(params[name])
