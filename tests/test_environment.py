import math

import numpy as np
import pytest

from neurobalance.environment import LEFT, RIGHT, CartPoleBalanceEnv, pole_degrees, shaped_reward


def test_reset_stays_within_noise_band():
    env = CartPoleBalanceEnv()
    for seed in range(50):
        state, _ = env.reset(seed=seed)
        assert state.shape == (4,)
        assert np.all(np.abs(state) <= 0.05)
        assert env.external_force == 0.0


def test_reset_clears_pending_force():
    env = CartPoleBalanceEnv()
    env.reset(seed=0)
    env.apply_force(3.0)
    env.reset()
    assert env.external_force == 0.0


def test_same_seed_same_actions_gives_identical_states():
    actions = [RIGHT, RIGHT, LEFT, RIGHT, LEFT, LEFT, RIGHT, LEFT, RIGHT, RIGHT]

    def rollout():
        env = CartPoleBalanceEnv()
        state, _ = env.reset(seed=123)
        states = [state]
        for a in actions:
            state, _, _, _, _ = env.step(a)
            states.append(state)
        return np.stack(states)

    assert np.array_equal(rollout(), rollout())


def test_get_state_is_a_copy():
    env = CartPoleBalanceEnv()
    env.reset(seed=0)
    snapshot = env.get_state()
    snapshot[0] = 99.0
    assert env.get_state()[0] != 99.0


@pytest.mark.parametrize("degrees", [70.0, 139.0, 90.0, 100.5])
def test_safe_zone_edges_are_inclusive(degrees):
    reward, done = shaped_reward(0.0, degrees)
    assert not done
    assert reward != -10.0


@pytest.mark.parametrize("degrees", [69.999, 139.001, 40.0, 180.0])
def test_outside_safe_zone_fails(degrees):
    reward, done = shaped_reward(0.0, degrees)
    assert done
    assert reward == -10.0


@pytest.mark.parametrize("x", [2.4, -2.4, 2.5, -3.0])
def test_off_track_fails(x):
    reward, done = shaped_reward(x, 90.0)
    assert done
    assert reward == -10.0


def test_perfect_state_gives_max_reward():
    reward, done = shaped_reward(0.0, 90.0)
    assert not done
    assert reward == pytest.approx(5.0)


def test_edge_riding_penalty():
    reward, done = shaped_reward(1.6, 90.0)
    assert not done
    # 1 + 2 + 2 * (1 - 1.6 / 2.4) - 2
    assert reward == pytest.approx(1.0 + 2.0 + 2.0 * (1.0 - 1.6 / 2.4) - 2.0)

    no_penalty, _ = shaped_reward(1.5, 90.0)
    assert no_penalty == pytest.approx(1.0 + 2.0 + 2.0 * (1.0 - 1.5 / 2.4))


def test_pole_degrees_upright_is_ninety():
    assert pole_degrees(0.0) == 90.0
    assert pole_degrees(math.pi / 2) == pytest.approx(180.0)
    assert pole_degrees(-0.1) < 90.0


def test_right_push_from_rest_tips_pole_left():
    env = CartPoleBalanceEnv()
    env.reset(options={"state": [0.0, 0.0, 0.0, 0.0]})

    state, reward, terminated, truncated, _ = env.step(RIGHT)
    x, x_dot, theta, theta_dot = state
    assert not terminated and not truncated
    assert reward > 4.5
    assert x_dot > 0.0
    # Euler moves theta with the old angular velocity, so only theta_dot reacts now.
    assert theta == 0.0
    assert theta_dot < 0.0

    state, _, terminated, _, _ = env.step(RIGHT)
    assert state[2] < 0.0
    assert not terminated


def test_crossing_track_limit_ends_episode():
    env = CartPoleBalanceEnv()
    env.reset(options={"state": [2.3, 1.0, 0.0, 0.0]})

    for _ in range(20):
        state, reward, terminated, _, _ = env.step(RIGHT)
        if terminated:
            break
        assert state[0] < 2.4

    assert terminated
    assert state[0] >= 2.4
    assert reward == -10.0


def test_external_force_is_consumed_once():
    env = CartPoleBalanceEnv()
    env.reset(options={"state": [0.0, 0.0, 0.0, 0.0]})

    env.apply_force(5.0)
    env.apply_force(1.0)
    _, _, _, _, info = env.step(LEFT)
    assert info["force"] == pytest.approx(-10.0 + 6.0)
    assert env.external_force == 0.0

    _, _, _, _, info = env.step(LEFT)
    assert info["force"] == pytest.approx(-10.0)


def test_invalid_action_rejected():
    env = CartPoleBalanceEnv()
    env.reset(seed=0)
    with pytest.raises(ValueError):
        env.step(2)


def test_explicit_state_must_have_four_components():
    env = CartPoleBalanceEnv()
    with pytest.raises(ValueError):
        env.reset(options={"state": [0.0, 0.0]})
