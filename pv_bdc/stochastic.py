"""
Stochastic perturbation module.

Sources of the bounded random probe added to the PV operating voltage while the converter
is not tracking (discharging or idle). Injected into the simulation engine so that runs can
be made deterministic.
"""

from typing import Optional, Protocol

import numpy as np


class PerturbationSource(Protocol):
    def sample(self, amplitude: float) -> float:
        """Return a value in [-amplitude, amplitude]."""
        ...


class UniformPerturbation:
    """
    Uniform noise on [-amplitude, amplitude].

    Equation:
        dv = amplitude * (2 * u - 1),  u ~ U(0, 1)
    """

    def __init__(self, seed: Optional[int] = None):
        """
        Args:
            seed: [arg] Seed for the generator. None draws fresh entropy.
        """
        self.seed = seed
        self.rng = np.random.default_rng(seed)

    def sample(self, amplitude: float) -> float:
        return amplitude * (2.0 * float(self.rng.random()) - 1.0)

    def reset(self):
        """Restart the sequence from the original seed."""
        self.rng = np.random.default_rng(self.seed)


class ZeroPerturbation:
    """No probe at all."""

    def sample(self, amplitude: float) -> float:
        return 0.0


class FixedPerturbation:
    """Constant probe as a fraction of the amplitude, for tests."""

    def __init__(self, fraction: float):
        if not -1.0 <= fraction <= 1.0:
            raise ValueError(f"Fraction {fraction} outside [-1, 1]")
        self.fraction = fraction

    def sample(self, amplitude: float) -> float:
        return self.fraction * amplitude
