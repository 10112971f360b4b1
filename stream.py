# stream.py

"""
Faucets and Streams

Faucets are source distributions; streams are the particles drawn from them.
A faucet fixes where streams appear, how their colours scatter and how fast
they start out; each stream then carries one colour and one decay rate for
its whole life while its position and velocity evolve under the force field.
"""

import logging
import math
from dataclasses import dataclass, field
from typing import List, Optional, Tuple

import numpy as np

import constants
from color import ColorOffset
from distributions import Exponential, Normal, sample_position, standard_normal

logger = logging.getLogger(constants.LOGGER_NAME)


@dataclass(frozen=True)
class Position:
    """A point in pixel space, also used for velocities and directions."""
    x: float = 0.0
    y: float = 0.0

    def add(self, other: "Position") -> "Position":
        return Position(self.x + other.x, self.y + other.y)

    def scale(self, ratio: float) -> "Position":
        return Position(self.x * ratio, self.y * ratio)

    def length(self) -> float:
        return math.sqrt(self.x ** 2 + self.y ** 2)

    def to_pixels(self, size: int) -> Tuple[Optional[int], Optional[int]]:
        """
        Maps each coordinate to a pixel index, or None when it falls outside
        the open interval (0, size).
        """
        def to_pixel(f):
            if 0.0 < f < size:
                return int(f)
            return None
        return to_pixel(self.x), to_pixel(self.y)


@dataclass(frozen=True)
class Faucet:
    """
    Parameters of a stream source. Colours scatter normally around
    color_center, positions normally around position, and velocities
    normally around zero; every spread is per channel or per axis.
    """
    color_center: ColorOffset
    color_spreads: ColorOffset
    position: Position
    position_spreads: Position
    velocity_spreads: Position


@dataclass
class Stream:
    """
    A live particle. color and decay_rate are fixed at birth; position and
    velocity are advanced by the integrator.

    Intensity at age a (pixels crossed) is exp(-decay_rate * a), and the
    stream is retired once decay_rate * age reaches the configured factor.
    """
    color: ColorOffset
    position: Position
    velocity: Position = field(default_factory=Position)
    decay_rate: float = 1.0

    def max_age(self, max_decay_factor: float) -> int:
        return int(max_decay_factor / self.decay_rate)


def generate_faucets(
    num_faucets: int,
    size: int,
    color_center_dist: Normal,
    color_spread_dist: Exponential,
    position_spread_dist: Exponential,
    velocity_spread_dist: Exponential,
    rng: np.random.Generator,
) -> List[Faucet]:
    """
    Samples the faucets.

    Draw order per faucet: colour centre (r, g, b), colour spreads (r, g, b),
    position (x, y), position spreads (x, y), velocity spreads (x, y).
    """
    faucets = []
    for _ in range(num_faucets):
        color_center = ColorOffset(
            color_center_dist.sample(rng),
            color_center_dist.sample(rng),
            color_center_dist.sample(rng),
        )
        color_spreads = ColorOffset(
            color_spread_dist.sample(rng),
            color_spread_dist.sample(rng),
            color_spread_dist.sample(rng),
        )
        position = Position(*sample_position(rng, size))
        position_spreads = Position(
            position_spread_dist.sample(rng),
            position_spread_dist.sample(rng),
        )
        velocity_spreads = Position(
            velocity_spread_dist.sample(rng),
            velocity_spread_dist.sample(rng),
        )
        faucets.append(Faucet(color_center, color_spreads, position, position_spreads, velocity_spreads))

    logger.info(f"Generated {len(faucets)} faucets.")
    return faucets


def sample_stream(faucet: Faucet, decay_dist: Exponential, rng: np.random.Generator) -> Stream:
    """Draws one stream from a faucet. Draw order: colour, position, velocity, decay."""
    color = ColorOffset(
        faucet.color_center.r + faucet.color_spreads.r * standard_normal(rng),
        faucet.color_center.g + faucet.color_spreads.g * standard_normal(rng),
        faucet.color_center.b + faucet.color_spreads.b * standard_normal(rng),
    )
    position = Position(
        faucet.position.x + faucet.position_spreads.x * standard_normal(rng),
        faucet.position.y + faucet.position_spreads.y * standard_normal(rng),
    )
    # Faucets add spread to velocity but no drift.
    velocity = Position(
        faucet.velocity_spreads.x * standard_normal(rng),
        faucet.velocity_spreads.y * standard_normal(rng),
    )
    decay_rate = decay_dist.sample(rng)
    return Stream(color=color, position=position, velocity=velocity, decay_rate=decay_rate)


def generate_streams(
    num_streams: int,
    faucets: List[Faucet],
    decay_dist: Exponential,
    rng: np.random.Generator,
) -> List[Stream]:
    """
    Samples the streams, each from a faucet picked uniformly by index.

    - Raises: ValueError if streams are requested but there are no faucets.
    """
    if num_streams > 0 and not faucets:
        raise ValueError("Cannot sample streams without at least one faucet.")

    streams = []
    for _ in range(num_streams):
        faucet = faucets[int(rng.integers(len(faucets)))]
        streams.append(sample_stream(faucet, decay_dist, rng))

    logger.info(f"Sampled {len(streams)} streams from {len(faucets)} faucets.")
    return streams


def pack_streams(streams: List[Stream]):
    """
    Converts streams into Structure-of-Arrays form for the JIT kernels.

    Returns (colors (N, 3), positions (N, 2), velocities (N, 2), decay_rates (N,)).
    """
    n = len(streams)
    colors = np.zeros((n, 3), dtype=np.float64)
    positions = np.zeros((n, 2), dtype=np.float64)
    velocities = np.zeros((n, 2), dtype=np.float64)
    decay_rates = np.zeros(n, dtype=np.float64)
    for i, stream in enumerate(streams):
        colors[i] = (stream.color.r, stream.color.g, stream.color.b)
        positions[i] = (stream.position.x, stream.position.y)
        velocities[i] = (stream.velocity.x, stream.velocity.y)
        decay_rates[i] = stream.decay_rate
    return colors, positions, velocities, decay_rates
