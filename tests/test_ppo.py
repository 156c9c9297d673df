import random

import numpy as np
import pytest
import torch

from neurobalance.environment import CartPoleBalanceEnv
from neurobalance.training.ppo import PPOTrainer, clipped_surrogate, compute_gae
from neurobalance.training.replay import Transition


def collect_episode(n_steps: int = 20, seed: int = 0) -> list[Transition]:
    env = CartPoleBalanceEnv()
    state, _ = env.reset(seed=seed)
    rng = random.Random(seed)
    trajectory = []
    for _ in range(n_steps):
        action = rng.randrange(2)
        next_state, reward, terminated, _, _ = env.step(action)
        trajectory.append(Transition(state, action, reward, next_state, terminated))
        if terminated:
            break
        state = next_state
    return trajectory


def params_equal(a, b) -> bool:
    return all(torch.equal(a[k], b[k]) for k in a)


def test_gae_telescopes_to_return_minus_baseline():
    rewards = [1.0, 2.0, 3.0, 4.0]
    values = [0.5, 1.0, -0.3, 2.0]
    next_values = values[1:] + [0.0]
    dones = [False] * 4

    adv = compute_gae(rewards, values, next_values, dones, gamma=1.0, lam=1.0)

    for t in range(4):
        assert adv[t] == pytest.approx(sum(rewards[t:]) - values[t])


def test_gae_done_masks_bootstrap_and_carry():
    rewards = [1.0, 1.0]
    values = [0.2, 0.4]
    next_values = [0.4, 100.0]
    dones = [False, True]
    gamma, lam = 0.99, 0.95

    adv = compute_gae(rewards, values, next_values, dones, gamma, lam)

    last = 1.0 - 0.4
    assert adv[1] == pytest.approx(last)
    delta0 = 1.0 + gamma * 0.4 - 0.2
    assert adv[0] == pytest.approx(delta0 + gamma * lam * last)


def test_gae_done_mid_trajectory_cuts_carry():
    adv = compute_gae([0.0, 5.0], [0.0, 0.0], [0.0, 0.0], [True, False], gamma=1.0, lam=1.0)
    assert adv[0] == pytest.approx(0.0)
    assert adv[1] == pytest.approx(5.0)


@pytest.mark.parametrize("advantage", [2.5, -1.5])
def test_clipped_surrogate_never_exceeds_clip_bound(advantage):
    eps = 0.2
    ratio = torch.linspace(0.0, 3.0, steps=61)
    adv = torch.full_like(ratio, advantage)

    surrogate = clipped_surrogate(ratio, adv, eps)

    bound = (1.0 + eps) * advantage if advantage > 0 else (1.0 - eps) * advantage
    assert torch.all(surrogate <= bound + 1e-6)
    # Never better than the unclipped objective either.
    assert torch.all(surrogate <= ratio * adv + 1e-6)


def test_train_first_epoch_sees_unit_ratio():
    torch.manual_seed(0)
    trainer = PPOTrainer(epochs=1, rng=torch.Generator().manual_seed(0))
    stats = trainer.train(collect_episode())

    # With frozen old probabilities the first ratio is exactly 1, so the
    # clipped objective reduces to the mean advantage.
    assert stats["trained"]
    assert stats["policy_loss"] == pytest.approx(-stats["mean_advantage"], rel=1e-4, abs=1e-4)


def test_old_probabilities_stay_frozen_across_epochs():
    torch.manual_seed(0)
    trainer = PPOTrainer(epochs=2, lr=1e-3)
    losses = []
    fit = trainer.actor.fit

    def recording_fit(loss_fn):
        losses.append(fit(loss_fn))
        return losses[-1]

    trainer.actor.fit = recording_fit
    stats = trainer.train(collect_episode())

    assert len(losses) == 2
    assert losses[0] == pytest.approx(-stats["mean_advantage"], rel=1e-4, abs=1e-4)
    # Epoch two is still measured against the pre-update policy, so its ratio
    # is no longer 1 and the first step's improvement shows in the loss.
    assert losses[1] < losses[0] - 1e-6


def test_large_steps_reach_the_clip_range():
    torch.manual_seed(0)
    trainer = PPOTrainer(epochs=10, lr=0.05)
    stats = trainer.train(collect_episode())
    assert stats["clip_fraction"] > 0.0


def test_seeded_sampling_is_reproducible():
    state = np.array([0.01, 0.0, -0.02, 0.03])

    def draw(seed):
        torch.manual_seed(0)
        trainer = PPOTrainer(rng=torch.Generator().manual_seed(seed))
        return [trainer.select_action(state) for _ in range(50)]

    assert draw(5) == draw(5)


def test_sampling_follows_policy_probabilities():
    torch.manual_seed(0)
    trainer = PPOTrainer(rng=torch.Generator().manual_seed(1))
    state = np.zeros(4)
    p_right = float(trainer.action_probs(state)[1])

    n = 4000
    rights = sum(trainer.select_action(state) for _ in range(n))
    assert rights / n == pytest.approx(p_right, abs=0.04)


def test_train_updates_both_networks():
    torch.manual_seed(0)
    trainer = PPOTrainer(epochs=3, rng=torch.Generator().manual_seed(0))
    actor_before = trainer.actor.get_params()
    critic_before = trainer.critic.get_params()

    stats = trainer.train(collect_episode())

    assert stats["steps"] > 0
    assert np.isfinite(stats["policy_loss"]) and np.isfinite(stats["value_loss"])
    assert 0.0 <= stats["clip_fraction"] <= 1.0
    assert not params_equal(actor_before, trainer.actor.get_params())
    assert not params_equal(critic_before, trainer.critic.get_params())
    assert trainer.train_calls == 1


def test_actor_and_critic_have_separate_optimizers():
    trainer = PPOTrainer()
    assert trainer.actor.optimizer is not trainer.critic.optimizer


def test_empty_trajectory_is_noop():
    trainer = PPOTrainer()
    before = trainer.actor.get_params()
    stats = trainer.train([])
    assert stats["trained"] is False
    assert params_equal(before, trainer.actor.get_params())
    assert trainer.train_calls == 0


def test_actions_are_valid():
    trainer = PPOTrainer(rng=torch.Generator().manual_seed(3))
    state = np.zeros(4)
    probs = trainer.action_probs(state)
    assert probs.shape == (2,)
    assert probs.sum() == pytest.approx(1.0, abs=1e-5)
    for _ in range(20):
        assert trainer.select_action(state) in (0, 1)
    assert trainer.greedy_action(state) == int(np.argmax(probs))


def test_load_state_dicts_is_all_or_nothing():
    trainer = PPOTrainer()
    other = PPOTrainer()
    actor_before = trainer.actor.get_params()

    bad = other.state_dicts()
    bad["critic"] = {k: torch.zeros(1) for k in bad["critic"]}

    with pytest.raises(RuntimeError):
        trainer.load_state_dicts(bad)
    assert params_equal(actor_before, trainer.actor.get_params())

    with pytest.raises(KeyError):
        trainer.load_state_dicts({"actor": other.state_dicts()["actor"]})
    assert params_equal(actor_before, trainer.actor.get_params())

    trainer.load_state_dicts(other.state_dicts())
    assert params_equal(trainer.actor.get_params(), other.actor.get_params())
    assert params_equal(trainer.critic.get_params(), other.critic.get_params())
