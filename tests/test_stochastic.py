import pytest
import numpy as np
from pv_bdc.stochastic import FixedPerturbation, UniformPerturbation, ZeroPerturbation

def test_uniform_bounds():
    source = UniformPerturbation(seed=1)
    samples = [source.sample(0.01) for _ in range(1000)]

    assert all(isinstance(s, float) for s in samples)
    assert all(-0.01 <= s <= 0.01 for s in samples)
    # Both directions get probed
    assert min(samples) < 0 < max(samples)

def test_uniform_seeded_reproducible():
    a = UniformPerturbation(seed=42)
    b = UniformPerturbation(seed=42)
    seq_a = [a.sample(1.0) for _ in range(10)]
    seq_b = [b.sample(1.0) for _ in range(10)]
    assert seq_a == seq_b

    a.reset()
    assert [a.sample(1.0) for _ in range(10)] == seq_a

def test_uniform_mean_near_zero():
    source = UniformPerturbation(seed=7)
    samples = np.array([source.sample(1.0) for _ in range(20000)])
    assert abs(samples.mean()) < 0.02

def test_zero_perturbation():
    assert ZeroPerturbation().sample(5.0) == 0.0

def test_fixed_perturbation():
    assert FixedPerturbation(0.5).sample(0.01) == pytest.approx(0.005)
    assert FixedPerturbation(-1.0).sample(0.01) == pytest.approx(-0.01)

    with pytest.raises(ValueError):
        FixedPerturbation(1.5)
