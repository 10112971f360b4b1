# params.py

"""
Render Parameters

Turns the 'render' section of config.json into an immutable, validated
Params bundle. Every distribution is built here, so bad shape parameters
abort the run before any sampling happens, with the offending key named.
"""

import math
from dataclasses import dataclass

from distributions import DistributionError, Exponential, LogNormal, Normal, log_dist


class ConfigError(ValueError):
    """Raised when the render configuration cannot produce a valid Params."""

    def __init__(self, key: str, reason: str):
        self.key = key
        super().__init__(f"Invalid render config '{key}': {reason}")


@dataclass(frozen=True)
class Params:
    """
    Everything that determines one image.

    Data Contract:
    - Invariants:
        - size > 0; all counts >= 0; streams require at least one faucet.
        - max_decay_factor, velocity_cap and color_cap are positive and finite.
        - Distributions are already validated by their own constructors.
    """
    size: int
    seed: int
    num_forces: int
    force_strength_dist: LogNormal
    force_spread_dist: LogNormal
    num_faucets: int
    faucet_color_center_dist: Normal
    faucet_color_spread_dist: Exponential
    faucet_position_spread_dist: Exponential
    faucet_velocity_spread_dist: Exponential
    num_streams: int
    decay_dist: Exponential
    max_decay_factor: float
    velocity_cap: float
    color_cap: float

    def __post_init__(self):
        if self.size <= 0:
            raise ConfigError('size', f"must be positive, got {self.size}")
        for key in ('num_forces', 'num_faucets', 'num_streams'):
            if getattr(self, key) < 0:
                raise ConfigError(key, f"must be non-negative, got {getattr(self, key)}")
        if self.num_streams > 0 and self.num_faucets == 0:
            raise ConfigError('num_faucets', "streams need at least one faucet")
        for key in ('max_decay_factor', 'velocity_cap', 'color_cap'):
            value = getattr(self, key)
            if not math.isfinite(value) or value <= 0:
                raise ConfigError(key, f"must be positive and finite, got {value}")

    @classmethod
    def from_config(cls, render_config: dict, seed: int) -> "Params":
        """
        Builds Params from the 'render' section of config.json.

        Distribution shapes:
        - log-normal: {"center": c, "mult_spread": m}
        - normal: {"mean": m, "std": s}
        - exponential: {"rate": r}, {"mean": m} or {"rate_per_size": k} (rate = k * size)
        """
        size = int(_get(render_config, 'size'))
        # Size scales the decay rate below, so it is checked first.
        if size <= 0:
            raise ConfigError('size', f"must be positive, got {size}")
        return cls(
            size=size,
            seed=int(seed),
            num_forces=int(_get(render_config, 'num_forces')),
            force_strength_dist=_log_normal(render_config, 'force_strength_dist'),
            force_spread_dist=_log_normal(render_config, 'force_spread_dist'),
            num_faucets=int(_get(render_config, 'num_faucets')),
            faucet_color_center_dist=_normal(render_config, 'faucet_color_center_dist'),
            faucet_color_spread_dist=_exponential(render_config, 'faucet_color_spread_dist', size),
            faucet_position_spread_dist=_exponential(render_config, 'faucet_position_spread_dist', size),
            faucet_velocity_spread_dist=_exponential(render_config, 'faucet_velocity_spread_dist', size),
            num_streams=int(_get(render_config, 'num_streams')),
            decay_dist=_exponential(render_config, 'decay_dist', size),
            max_decay_factor=float(_get(render_config, 'max_decay_factor')),
            velocity_cap=float(_get(render_config, 'velocity_cap')),
            color_cap=float(_get(render_config, 'color_cap')),
        )

    def describe(self) -> dict:
        """Plain dict view used for logging."""
        return {name: getattr(self, name) for name in self.__dataclass_fields__}


def _get(config, key):
    try:
        return config[key]
    except KeyError:
        raise ConfigError(key, "missing") from None


def _log_normal(config, key):
    shape = _get(config, key)
    try:
        return log_dist(float(shape['center']), float(shape['mult_spread']))
    except KeyError as e:
        raise ConfigError(key, f"missing field {e.args[0]!r}") from None
    except DistributionError as e:
        raise ConfigError(key, str(e)) from e


def _normal(config, key):
    shape = _get(config, key)
    try:
        return Normal(float(shape['mean']), float(shape['std']))
    except KeyError as e:
        raise ConfigError(key, f"missing field {e.args[0]!r}") from None
    except DistributionError as e:
        raise ConfigError(key, str(e)) from e


def _exponential(config, key, size):
    shape = _get(config, key)
    try:
        if 'rate' in shape:
            return Exponential(float(shape['rate']))
        if 'rate_per_size' in shape:
            return Exponential(float(shape['rate_per_size']) * size)
        if 'mean' in shape:
            mean = float(shape['mean'])
            if mean <= 0:
                raise DistributionError('mean', mean, "must be positive")
            return Exponential(1.0 / mean)
    except DistributionError as e:
        raise ConfigError(key, str(e)) from e
    raise ConfigError(key, "expected one of 'rate', 'rate_per_size' or 'mean'")
