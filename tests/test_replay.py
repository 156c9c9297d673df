import random

import numpy as np
import pytest

from neurobalance.training.replay import ReplayBuffer, Transition, stack_transitions


def make_transition(i: int, done: bool = False) -> Transition:
    s = np.full(4, float(i))
    return Transition(state=s, action=i % 2, reward=float(i), next_state=s + 1.0, done=done)


def test_fifo_eviction_keeps_most_recent_in_order():
    capacity, extra = 10, 7
    buf = ReplayBuffer(capacity, rng=random.Random(0))
    for i in range(capacity + extra):
        buf.add(make_transition(i))

    assert len(buf) == capacity == buf.capacity
    assert [t.reward for t in buf] == [float(i) for i in range(extra, capacity + extra)]


def test_length_never_exceeds_capacity():
    buf = ReplayBuffer(5)
    for i in range(50):
        buf.add(make_transition(i))
        assert len(buf) <= 5


def test_sample_empty_returns_none():
    buf = ReplayBuffer(5)
    assert buf.sample(3) is None


def test_sample_is_capped_by_length_and_has_no_duplicates():
    buf = ReplayBuffer(100, rng=random.Random(1))
    for i in range(8):
        buf.add(make_transition(i))

    batch = buf.sample(64)
    assert len(batch) == 8
    assert sorted(t.reward for t in batch) == [float(i) for i in range(8)]

    batch = buf.sample(5)
    assert len(batch) == 5
    assert len({t.reward for t in batch}) == 5


def test_sample_is_reproducible_with_seeded_rng():
    def draw():
        buf = ReplayBuffer(100, rng=random.Random(42))
        for i in range(50):
            buf.add(make_transition(i))
        return [t.reward for t in buf.sample(10)]

    assert draw() == draw()


def test_transitions_are_immutable():
    t = make_transition(1)
    with pytest.raises(AttributeError):
        t.reward = 5.0


def test_stack_transitions_shapes_and_dtypes():
    batch = [make_transition(i, done=(i == 2)) for i in range(3)]
    s, a, r, s2, d = stack_transitions(batch)
    assert s.shape == (3, 4) and s.dtype == np.float32
    assert a.tolist() == [0, 1, 0] and a.dtype == np.int64
    assert r.tolist() == [0.0, 1.0, 2.0]
    assert s2.shape == (3, 4)
    assert d.tolist() == [0.0, 0.0, 1.0]


def test_capacity_must_be_positive():
    with pytest.raises(ValueError):
        ReplayBuffer(0)
