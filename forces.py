# forces.py

"""
Field Generator

The force field is a fixed set of point contributors. Each one pushes with a
Gaussian profile around its centre: strongest at the centre, negligible a few
spreads away. Inward forces pull toward the centre, outward forces push away
from it, and linear forces push in one fixed direction wherever they reach.

The per-force maths lives in a Numba kernel so the integrator and the Python
model (Force.apply) run the exact same code.
"""

import logging
import math
from dataclasses import dataclass
from enum import Enum
from typing import List

import numba
import numpy as np

import constants
from constants import FORCE_INWARD, FORCE_LINEAR
from distributions import LogNormal, sample_direction, sample_position, sample_unit
from stream import Position

logger = logging.getLogger(constants.LOGGER_NAME)


class ForceKind(Enum):
    INWARD = constants.FORCE_INWARD
    OUTWARD = constants.FORCE_OUTWARD
    LINEAR = constants.FORCE_LINEAR


@numba.jit(nopython=True)
def _force_velocity_jit(kind, strength, spread, center_x, center_y, dir_x, dir_y, target_x, target_y):
    """
    Velocity change a single force imparts on a stream at (target_x, target_y).

    Inward/outward forces have no direction at their exact centre; there the
    contribution is zero.
    """
    offset_x = target_x - center_x
    offset_y = target_y - center_y
    distance = math.sqrt(offset_x * offset_x + offset_y * offset_y)
    num_devs = distance / spread
    push = strength / spread * math.exp(-num_devs * num_devs / 2.0)

    if kind == FORCE_LINEAR:
        return dir_x * push, dir_y * push
    if distance == 0.0:
        return 0.0, 0.0
    if kind == FORCE_INWARD:
        return -offset_x / distance * push, -offset_y / distance * push
    # FORCE_OUTWARD
    return offset_x / distance * push, offset_y / distance * push


@dataclass(frozen=True)
class Force:
    """
    One static contributor to the velocity field.

    Data Contract:
    - kind (ForceKind): INWARD, OUTWARD or LINEAR.
    - strength (float): Peak push times spread.
    - spread (float): Standard deviation of the Gaussian falloff, in pixels.
    - position (Position): Centre of the force.
    - direction (Position): Unit push direction; only meaningful for LINEAR.
    """
    kind: ForceKind
    strength: float
    spread: float
    position: Position
    direction: Position = Position(0.0, 0.0)

    def apply(self, target: Position) -> Position:
        """Velocity change this force imparts on a stream at target."""
        dvx, dvy = _force_velocity_jit(
            self.kind.value, self.strength, self.spread,
            self.position.x, self.position.y,
            self.direction.x, self.direction.y,
            target.x, target.y
        )
        return Position(dvx, dvy)


def sample_force_kind(rng: np.random.Generator):
    """
    Draws a kind: inward and outward about a third of the time each,
    linear (with a freshly drawn direction) otherwise.
    """
    main = sample_unit(rng)
    if main < constants.FORCE_KIND_INWARD_THRESHOLD:
        return ForceKind.INWARD, Position(0.0, 0.0)
    if main < constants.FORCE_KIND_OUTWARD_THRESHOLD:
        return ForceKind.OUTWARD, Position(0.0, 0.0)
    return ForceKind.LINEAR, Position(*sample_direction(rng))


def generate_forces(
    num_forces: int,
    size: int,
    strength_dist: LogNormal,
    spread_dist: LogNormal,
    rng: np.random.Generator,
) -> List[Force]:
    """
    Samples the force field.

    Draw order per force: position (x, y), kind (plus direction for linear
    forces), strength, spread.
    """
    forces = []
    for _ in range(num_forces):
        position = Position(*sample_position(rng, size))
        kind, direction = sample_force_kind(rng)
        strength = strength_dist.sample(rng)
        spread = spread_dist.sample(rng)
        forces.append(Force(kind, strength, spread, position, direction))

    counts = {kind.name: sum(1 for f in forces if f.kind is kind) for kind in ForceKind}
    logger.info(f"Generated {len(forces)} forces: {counts}")
    return forces


def pack_forces(forces: List[Force]):
    """
    Converts forces into Structure-of-Arrays form for the JIT kernels.

    Returns (kinds (N,), strengths (N,), spreads (N,), centers (N, 2), directions (N, 2)).
    """
    n = len(forces)
    kinds = np.zeros(n, dtype=np.int64)
    strengths = np.zeros(n, dtype=np.float64)
    spreads = np.ones(n, dtype=np.float64)
    centers = np.zeros((n, 2), dtype=np.float64)
    directions = np.zeros((n, 2), dtype=np.float64)
    for i, force in enumerate(forces):
        kinds[i] = force.kind.value
        strengths[i] = force.strength
        spreads[i] = force.spread
        centers[i] = (force.position.x, force.position.y)
        directions[i] = (force.direction.x, force.direction.y)
    return kinds, strengths, spreads, centers, directions
