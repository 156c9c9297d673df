"""Named model save/load/list/delete.

Every saved model is one file, ``<root>/<algorithm>/<name>.pt``, holding
all of a trainer's parameter sets:

  - PPO: actor + critic (always saved/loaded/deleted together)
  - DQN: online Q-network (the target is rebuilt from it on load)

plus a little metadata (algorithm, optional extras such as episode count).

Writes go to a temporary file first and are moved into place with
`os.replace`, so a crash never leaves a half-written model under its name.
"""

from __future__ import annotations

import logging
import os
import pickle
import tempfile
from typing import Any

import torch

from ..config import PATHS
from .base import Trainer

logger = logging.getLogger(__name__)

MODEL_SUFFIX = ".pt"


class PersistenceError(Exception):
    """Base class for model storage failures."""


class SaveFailed(PersistenceError):
    pass


class LoadFailed(PersistenceError):
    pass


class DeleteFailed(PersistenceError):
    pass


def _check_name(name: str) -> str:
    name = str(name).strip()
    if not name or name in (".", "..") or "/" in name or "\\" in name or os.sep in name:
        raise ValueError(f"invalid model name {name!r}")
    return name


class ModelStore:
    """Directory-backed store of named models."""

    def __init__(self, root: str = PATHS["models_dir"]):
        self.root = root

    def path_for(self, name: str, algorithm: str) -> str:
        return os.path.join(self.root, algorithm, _check_name(name) + MODEL_SUFFIX)

    def save(self, name: str, trainer: Trainer, extra: dict[str, Any] | None = None) -> str:
        """Save every parameter set of ``trainer`` under ``name``.

        Returns:
            path of the written file
        """
        try:
            path = self.path_for(name, trainer.algorithm)
        except ValueError as e:
            raise SaveFailed(str(e)) from e

        data: dict[str, Any] = {
            "algorithm": trainer.algorithm,
            "params": trainer.state_dicts(),
        }
        if extra:
            data["extra"] = dict(extra)

        directory = os.path.dirname(path)
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(dir=directory, suffix=".tmp")
            with os.fdopen(fd, "wb") as f:
                torch.save(data, f)
            os.replace(tmp_path, path)
            tmp_path = None
        except (OSError, RuntimeError, pickle.PicklingError) as e:
            raise SaveFailed(f"could not save model {name!r}: {e}") from e
        finally:
            if tmp_path is not None and os.path.exists(tmp_path):
                os.remove(tmp_path)

        logger.info("Model %s saved to %s", name, path)
        return path

    def load(self, name: str, trainer: Trainer) -> dict[str, Any]:
        """Replace ``trainer``'s parameters with the saved model ``name``.

        The live parameters stay untouched if anything goes wrong.

        Returns:
            the stored extras (empty dict if none were saved)
        """
        try:
            path = self.path_for(name, trainer.algorithm)
        except ValueError as e:
            raise LoadFailed(str(e)) from e

        if not os.path.exists(path):
            raise LoadFailed(f"no saved {trainer.algorithm} model named {name!r}")

        try:
            data = torch.load(path, map_location="cpu", weights_only=True)
        except (OSError, RuntimeError, ValueError, EOFError, pickle.UnpicklingError) as e:
            raise LoadFailed(f"could not read model {name!r}: {e}") from e

        if not isinstance(data, dict) or data.get("algorithm") != trainer.algorithm:
            raise LoadFailed(f"model {name!r} is not a {trainer.algorithm} model")

        try:
            trainer.load_state_dicts(data["params"])
        except (KeyError, RuntimeError, TypeError) as e:
            raise LoadFailed(f"model {name!r} does not fit this network: {e}") from e

        logger.info("Model %s loaded from %s", name, path)
        return dict(data.get("extra", {}))

    def list_models(self, algorithm: str) -> list[str]:
        directory = os.path.join(self.root, algorithm)
        if not os.path.isdir(directory):
            return []
        return sorted(
            fname[: -len(MODEL_SUFFIX)]
            for fname in os.listdir(directory)
            if fname.endswith(MODEL_SUFFIX)
        )

    def delete_model(self, name: str, algorithm: str) -> None:
        try:
            path = self.path_for(name, algorithm)
        except ValueError as e:
            raise DeleteFailed(str(e)) from e

        try:
            os.remove(path)
        except FileNotFoundError as e:
            raise DeleteFailed(f"no saved {algorithm} model named {name!r}") from e
        except OSError as e:
            raise DeleteFailed(f"could not delete model {name!r}: {e}") from e

        logger.info("Model %s deleted", name)
