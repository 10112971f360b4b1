# distributions.py

"""
Distribution Sampler

Thin, validated wrappers around the draws the renderer needs. Every draw is
taken from an explicitly passed np.random.Generator so that a single seeded
master generator fixes the whole image.

Data Contract:
- Inputs: a np.random.Generator for every sample call.
- Outputs: Python floats.
- Invariants:
    - Distribution objects are immutable and validated on construction.
    - Each sample() call consumes the generator in a fixed way, so the same
      seed and the same call order reproduce the same values bit for bit.
"""

import math
from dataclasses import dataclass

import numpy as np


class DistributionError(ValueError):
    """Raised when a distribution is built with unusable shape parameters."""

    def __init__(self, parameter: str, value, reason: str):
        self.parameter = parameter
        self.value = value
        super().__init__(f"Invalid distribution parameter '{parameter}'={value!r}: {reason}")


def _require_finite(name, value):
    if not math.isfinite(value):
        raise DistributionError(name, value, "must be finite")


@dataclass(frozen=True)
class Normal:
    mean: float
    std: float

    def __post_init__(self):
        _require_finite('mean', self.mean)
        _require_finite('std', self.std)
        if self.std < 0:
            raise DistributionError('std', self.std, "must be non-negative")

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.normal(self.mean, self.std))


@dataclass(frozen=True)
class Exponential:
    """Exponential distribution parameterised by its rate (mean = 1 / rate)."""
    rate: float

    def __post_init__(self):
        _require_finite('rate', self.rate)
        if self.rate <= 0:
            raise DistributionError('rate', self.rate, "must be positive")

    @property
    def mean(self) -> float:
        return 1.0 / self.rate

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.exponential(1.0 / self.rate))


@dataclass(frozen=True)
class LogNormal:
    """Log-normal distribution given by the mean and std of the underlying normal."""
    mu: float
    sigma: float

    def __post_init__(self):
        _require_finite('mu', self.mu)
        _require_finite('sigma', self.sigma)
        if self.sigma < 0:
            raise DistributionError('sigma', self.sigma, "must be non-negative")

    @property
    def median(self) -> float:
        return math.exp(self.mu)

    def sample(self, rng: np.random.Generator) -> float:
        return float(rng.lognormal(self.mu, self.sigma))


def log_dist(center: float, mult_spread: float) -> LogNormal:
    """
    Builds a log-normal distribution from a median and a multiplicative spread.

    A draw falls within [center / mult_spread, center * mult_spread] about 68%
    of the time. mult_spread == 1 collapses the distribution onto center.

    - Inputs:
        - center (float): median of the distribution, > 0.
        - mult_spread (float): multiplicative standard deviation, >= 1.
    """
    _require_finite('center', center)
    _require_finite('mult_spread', mult_spread)
    if center <= 0:
        raise DistributionError('center', center, "must be positive")
    if mult_spread < 1:
        raise DistributionError('mult_spread', mult_spread, "must be at least 1")
    return LogNormal(math.log(center), math.log(mult_spread))


def standard_normal(rng: np.random.Generator) -> float:
    return float(rng.standard_normal())


def sample_unit(rng: np.random.Generator) -> float:
    """Uniform draw in [0, 1)."""
    return float(rng.random())


def sample_position(rng: np.random.Generator, size: int):
    """Uniform point in [0, size)^2, x drawn before y."""
    x = rng.random() * size
    y = rng.random() * size
    return float(x), float(y)


def sample_direction(rng: np.random.Generator):
    """Uniform unit vector: angle drawn in [0, 2*pi)."""
    angle = rng.random() * 2.0 * math.pi
    return math.cos(angle), math.sin(angle)
