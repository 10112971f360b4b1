# stream_system.py

import logging
import math
from typing import List, Sequence

import numba
import numpy as np

import constants
from compositor import compose_image
from forces import Force, _force_velocity_jit, generate_forces, pack_forces
from params import Params
from stream import Faucet, Position, Stream, generate_faucets, generate_streams, pack_streams

logger = logging.getLogger(constants.LOGGER_NAME)

# --- JIT-Compiled Integration Functions ---
# These functions are compiled to machine code by Numba. They are kept outside
# the StreamSystem class and operate only on NumPy arrays and scalars, as
# required by Numba's nopython mode. fastmath is left off: the accumulation
# order below is part of the reproducibility contract.

@numba.jit(nopython=True)
def _deposit_jit(grid, size, x, y, color, intensity):
    """Adds color * intensity to the pixel under (x, y) when it lies inside (0, size)."""
    if 0.0 < x < size and 0.0 < y < size:
        pixel_x = int(x)
        pixel_y = int(y)
        grid[pixel_x, pixel_y, 0] += color[0] * intensity
        grid[pixel_x, pixel_y, 1] += color[1] * intensity
        grid[pixel_x, pixel_y, 2] += color[2] * intensity


@numba.jit(nopython=True)
def _inside_escape_bounds_jit(x, y, size, margin):
    """False once the stream has left [-margin * size, (1 + margin) * size] on either axis."""
    low = -margin * size
    high = (1.0 + margin) * size
    return not (x < low) and not (x > high) and not (y < low) and not (y > high)


@numba.jit(nopython=True)
def _step_jit(grid, size, color, decay_rate, x, y, vx, vy, age, velocity_cap,
              force_kinds, force_strengths, force_spreads, force_centers, force_directions):
    """
    Advances one stream by one step and rasterizes the segment it covers.

    The segment from (x, y) along (vx, vy) is walked in unit increments along
    its dominant axis; each sub-step deposits the decayed colour and ages the
    stream by one. A step too short to cross a pixel deposits once at the
    current position instead, so age always grows by at least one.
    Returns the new (x, y, vx, vy, age).
    """
    norm = max(abs(vx), abs(vy))
    num_pixels = int(norm)

    if num_pixels > 0:
        inv_norm = 1.0 / norm
        base_x = vx * inv_norm
        base_y = vy * inv_norm
        for i in range(1, num_pixels + 1):
            intensity = math.exp(-decay_rate * age)
            _deposit_jit(grid, size, x + base_x * i, y + base_y * i, color, intensity)
            age += 1
    else:
        # Sub-pixel step: deposit in place. Earlier renders only aged these streams and drew nothing.
        intensity = math.exp(-decay_rate * age)
        _deposit_jit(grid, size, x, y, color, intensity)
        age += 1

    # --- Update position ---
    x += vx
    y += vy

    # --- Update velocity: each force is added in generation order ---
    for f in range(force_kinds.shape[0]):
        dvx, dvy = _force_velocity_jit(
            force_kinds[f], force_strengths[f], force_spreads[f],
            force_centers[f, 0], force_centers[f, 1],
            force_directions[f, 0], force_directions[f, 1],
            x, y
        )
        vx += dvx
        vy += dvy

    # --- Cap velocity ---
    speed = math.sqrt(vx * vx + vy * vy)
    if speed > velocity_cap:
        ratio = velocity_cap / speed
        vx *= ratio
        vy *= ratio

    return x, y, vx, vy, age


@numba.jit(nopython=True)
def _draw_stream_jit(grid, size, color, decay_rate, x, y, vx, vy, max_decay_factor, velocity_cap, escape_margin,
                     force_kinds, force_strengths, force_spreads, force_centers, force_directions):
    """
    Runs one stream to termination. Returns (steps, escaped): escaped is True
    when the stream left the escape bounds before it aged out.
    """
    max_age = int(max_decay_factor / decay_rate)
    age = 0
    steps = 0
    while age < max_age:
        if not _inside_escape_bounds_jit(x, y, size, escape_margin):
            return steps, True
        x, y, vx, vy, age = _step_jit(
            grid, size, color, decay_rate, x, y, vx, vy, age, velocity_cap,
            force_kinds, force_strengths, force_spreads, force_centers, force_directions
        )
        steps += 1
    return steps, False


@numba.jit(nopython=True)
def _draw_streams_jit(grid, size, colors, positions, velocities, decay_rates, start, stop,
                      max_decay_factor, velocity_cap, escape_margin,
                      force_kinds, force_strengths, force_spreads, force_centers, force_directions):
    """Draws streams[start:stop] into grid in index order. Returns (total_steps, num_escaped)."""
    total_steps = 0
    num_escaped = 0
    for i in range(start, stop):
        steps, escaped = _draw_stream_jit(
            grid, size, colors[i], decay_rates[i],
            positions[i, 0], positions[i, 1], velocities[i, 0], velocities[i, 1],
            max_decay_factor, velocity_cap, escape_margin,
            force_kinds, force_strengths, force_spreads, force_centers, force_directions
        )
        total_steps += steps
        if escaped:
            num_escaped += 1
    return total_steps, num_escaped


@numba.jit(nopython=True, parallel=True)
def _draw_streams_chunked_jit(grids, size, colors, positions, velocities, decay_rates, chunk_bounds,
                              max_decay_factor, velocity_cap, escape_margin,
                              force_kinds, force_strengths, force_spreads, force_centers, force_directions):
    """
    Draws contiguous chunks of streams in parallel, each into its own private
    grid (grids[c]), so no two threads ever touch the same cell.
    """
    num_chunks = grids.shape[0]
    steps = np.zeros(num_chunks, dtype=np.int64)
    escaped = np.zeros(num_chunks, dtype=np.int64)
    for c in numba.prange(num_chunks):
        chunk_steps, chunk_escaped = _draw_streams_jit(
            grids[c], size, colors, positions, velocities, decay_rates,
            chunk_bounds[c], chunk_bounds[c + 1],
            max_decay_factor, velocity_cap, escape_margin,
            force_kinds, force_strengths, force_spreads, force_centers, force_directions
        )
        steps[c] = chunk_steps
        escaped[c] = chunk_escaped
    return steps.sum(), escaped.sum()


class StreamSystem:
    """
    Holds the static force field, the sampled streams and the accumulation
    grid, and runs the trajectory integration.

    Data Contract:
    - Inputs:
        - params (Params): The validated render parameters.
        - forces (list[Force]): The static force field.
        - streams (list[Stream]): Streams in draw order.
        - faucets (list[Faucet]): The faucets the streams came from (informational).
    - Outputs: None. draw() accumulates into self.grid.
    - Side Effects: self.grid is only ever added to.
    - Invariants:
        - grid has shape (size, size, 3) and is indexed [x][y].
        - Stream and force arrays are read-only once packed.
    """
    def __init__(self, params: Params, forces: Sequence[Force], streams: Sequence[Stream], faucets: Sequence[Faucet] = ()):
        self.params = params
        self.size = params.size
        self.forces = list(forces)
        self.faucets = list(faucets)
        self.streams = list(streams)

        # --- Structure of Arrays for the JIT kernels ---
        (self.force_kinds, self.force_strengths, self.force_spreads,
         self.force_centers, self.force_directions) = pack_forces(self.forces)
        self.colors, self.positions, self.velocities, self.decay_rates = pack_streams(self.streams)

        # --- Accumulation grid, x then y ---
        self.grid = np.zeros((self.size, self.size, 3), dtype=np.float64)

        self.total_steps = 0
        self.num_escaped = 0

        logger.info(f"StreamSystem created: {len(self.forces)} forces, {len(self.streams)} streams, {self.size}x{self.size} grid.")

    @classmethod
    def generate(cls, params: Params, rng: np.random.Generator) -> "StreamSystem":
        """
        Samples forces, faucets and streams from the master generator, in that order.
        """
        forces = generate_forces(
            params.num_forces, params.size,
            params.force_strength_dist, params.force_spread_dist, rng
        )
        faucets = generate_faucets(
            params.num_faucets, params.size,
            params.faucet_color_center_dist, params.faucet_color_spread_dist,
            params.faucet_position_spread_dist, params.faucet_velocity_spread_dist, rng
        )
        streams = generate_streams(params.num_streams, faucets, params.decay_dist, rng)
        return cls(params, forces, streams, faucets)

    def _force_arrays(self):
        return (self.force_kinds, self.force_strengths, self.force_spreads,
                self.force_centers, self.force_directions)

    def draw(self, parallel_chunks: int = 1) -> np.ndarray:
        """
        Integrates every stream and accumulates its trail into self.grid.

        With parallel_chunks > 1 the streams are split into that many
        contiguous chunks drawn concurrently into private grids, which are then
        added into self.grid in chunk order. The result is deterministic for a
        given chunk count but differs in the last bits from a sequential run.
        """
        num_streams = len(self.streams)
        if parallel_chunks <= 1 or num_streams < 2:
            # Batches run in index order, so the grid matches a single pass bit for bit.
            steps = 0
            escaped = 0
            batch = max(1, constants.PROGRESS_LOG_INTERVAL)
            for start in range(0, num_streams, batch):
                stop = min(start + batch, num_streams)
                batch_steps, batch_escaped = _draw_streams_jit(
                    self.grid, self.size, self.colors, self.positions, self.velocities, self.decay_rates,
                    start, stop,
                    self.params.max_decay_factor, self.params.velocity_cap, constants.ESCAPE_MARGIN,
                    *self._force_arrays()
                )
                steps += int(batch_steps)
                escaped += int(batch_escaped)
                logger.debug(
                    f"Streams={stop}/{num_streams}, "
                    f"Steps={steps}, "
                    f"Escaped={escaped}"
                )
        else:
            num_chunks = min(parallel_chunks, num_streams)
            chunk_bounds = np.linspace(0, num_streams, num_chunks + 1).astype(np.int64)
            grids = np.zeros((num_chunks, self.size, self.size, 3), dtype=np.float64)
            logger.info(f"Drawing {num_streams} streams in {num_chunks} parallel chunks.")
            steps, escaped = _draw_streams_chunked_jit(
                grids, self.size, self.colors, self.positions, self.velocities, self.decay_rates,
                chunk_bounds,
                self.params.max_decay_factor, self.params.velocity_cap, constants.ESCAPE_MARGIN,
                *self._force_arrays()
            )
            for c in range(num_chunks):
                self.grid += grids[c]

        self.total_steps += int(steps)
        self.num_escaped += int(escaped)
        logger.info(
            f"Drew {num_streams} streams: "
            f"Steps={int(steps)}, "
            f"Escaped={int(escaped)}, "
            f"AgedOut={num_streams - int(escaped)}"
        )
        return self.grid

    def trace(self, stream: Stream) -> List[Stream]:
        """
        Runs a single stream step by step, depositing into self.grid, and
        returns its state after every step (the initial state first).
        """
        color = stream.color
        color_array = np.array([color.r, color.g, color.b], dtype=np.float64)
        x, y = stream.position.x, stream.position.y
        vx, vy = stream.velocity.x, stream.velocity.y
        max_age = stream.max_age(self.params.max_decay_factor)
        age = 0
        states = [stream]
        while age < max_age and _inside_escape_bounds_jit(x, y, self.size, constants.ESCAPE_MARGIN):
            x, y, vx, vy, age = _step_jit(
                self.grid, self.size, color_array, stream.decay_rate, x, y, vx, vy, age,
                self.params.velocity_cap, *self._force_arrays()
            )
            states.append(Stream(color, Position(x, y), Position(vx, vy), stream.decay_rate))
        return states

    def render(self) -> np.ndarray:
        """Tone-maps the accumulated grid into a (size, size, 3) uint8 image indexed [x][y]."""
        return compose_image(self.grid, self.params.color_cap)


def draw(params: Params, parallel_chunks: int = 1) -> np.ndarray:
    """
    Renders one image: seeds the master generator, samples the field and the
    streams, integrates them and tone-maps the result.

    Data Contract:
    - Inputs:
        - params (Params): Validated render parameters; params.seed seeds everything.
        - parallel_chunks (int): 1 for a sequential, bit-reproducible run.
    - Outputs: np.ndarray (size, size, 3) uint8 indexed [x][y].
    """
    rng = np.random.default_rng(params.seed)
    logger.info(f"Master RNG initialized with seed: {params.seed}")
    system = StreamSystem.generate(params, rng)
    system.draw(parallel_chunks=parallel_chunks)
    return system.render()
