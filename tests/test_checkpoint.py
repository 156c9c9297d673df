import os

import pytest
import torch

from neurobalance.training import (
    DeleteFailed,
    DQNTrainer,
    LoadFailed,
    ModelStore,
    PPOTrainer,
    SaveFailed,
)


def params_equal(a, b) -> bool:
    return all(torch.equal(a[k], b[k]) for k in a)


@pytest.fixture
def store(tmp_path):
    return ModelStore(str(tmp_path / "models"))


def test_save_list_load_delete(store):
    saved = DQNTrainer()
    path = store.save("balancer", saved, extra={"episode": 12})
    assert os.path.exists(path)
    assert path.endswith(os.path.join("dqn", "balancer.pt"))
    assert store.list_models("dqn") == ["balancer"]
    assert store.list_models("ppo") == []

    fresh = DQNTrainer()
    extra = store.load("balancer", fresh)
    assert extra == {"episode": 12}
    assert params_equal(fresh.q_net.get_params(), saved.q_net.get_params())

    store.delete_model("balancer", "dqn")
    assert store.list_models("dqn") == []


def test_ppo_actor_and_critic_live_in_one_file(store):
    saved = PPOTrainer()
    store.save("pair", saved)
    assert os.listdir(os.path.join(store.root, "ppo")) == ["pair.pt"]

    fresh = PPOTrainer()
    assert store.load("pair", fresh) == {}
    assert params_equal(fresh.actor.get_params(), saved.actor.get_params())
    assert params_equal(fresh.critic.get_params(), saved.critic.get_params())


def test_list_is_sorted(store):
    trainer = DQNTrainer()
    for name in ["zeta", "alpha", "mid"]:
        store.save(name, trainer)
    assert store.list_models("dqn") == ["alpha", "mid", "zeta"]


def test_load_missing_name_fails(store):
    with pytest.raises(LoadFailed):
        store.load("nope", DQNTrainer())


def test_load_shape_mismatch_keeps_params(store):
    store.save("small", PPOTrainer(hidden_sizes=(16, 16)))
    trainer = PPOTrainer()
    actor_before = trainer.actor.get_params()
    critic_before = trainer.critic.get_params()

    with pytest.raises(LoadFailed):
        store.load("small", trainer)
    assert params_equal(actor_before, trainer.actor.get_params())
    assert params_equal(critic_before, trainer.critic.get_params())


def test_load_corrupt_file_fails(store):
    path = store.path_for("broken", "dqn")
    os.makedirs(os.path.dirname(path), exist_ok=True)
    with open(path, "wb") as f:
        f.write(b"this is not a model")

    trainer = DQNTrainer()
    before = trainer.q_net.get_params()
    with pytest.raises(LoadFailed):
        store.load("broken", trainer)
    assert params_equal(before, trainer.q_net.get_params())


def test_load_other_algorithm_file_fails(store):
    store.save("shared", PPOTrainer())
    # Same name saved under a different algorithm directory.
    os.makedirs(os.path.join(store.root, "dqn"), exist_ok=True)
    os.replace(store.path_for("shared", "ppo"), store.path_for("shared", "dqn"))
    with pytest.raises(LoadFailed):
        store.load("shared", DQNTrainer())


@pytest.mark.parametrize("name", ["", "a/b", "..", "   "])
def test_bad_names_are_rejected(store, name):
    with pytest.raises(SaveFailed):
        store.save(name, DQNTrainer())
    with pytest.raises(LoadFailed):
        store.load(name, DQNTrainer())


def test_delete_missing_model_fails(store):
    with pytest.raises(DeleteFailed):
        store.delete_model("ghost", "ppo")


def test_save_overwrites_existing_model(store):
    first = DQNTrainer()
    second = DQNTrainer()
    store.save("same", first)
    store.save("same", second)

    fresh = DQNTrainer()
    store.load("same", fresh)
    assert params_equal(fresh.q_net.get_params(), second.q_net.get_params())
    assert store.list_models("dqn") == ["same"]
