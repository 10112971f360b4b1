import logging
import math

import numpy as np
import pytest

import constants
from color import ColorOffset
from forces import Force, ForceKind
from stream import Position, Stream
from stream_system import StreamSystem, draw


COLOR = ColorOffset(0.3, -0.2, 0.1)


def test_stationary_stream_marks_only_its_pixel(make_params):
    params = make_params(size=10, num_forces=0, max_decay_factor=10.0)
    stream = Stream(COLOR, Position(5.5, 5.5), Position(0.0, 0.0), decay_rate=1.0)
    system = StreamSystem(params, [], [stream])

    grid = system.draw()

    weight = sum(math.exp(-k) for k in range(10))
    assert grid[5, 5] == pytest.approx([COLOR.r * weight, COLOR.g * weight, COLOR.b * weight])
    others = np.ones((10, 10), dtype=bool)
    others[5, 5] = False
    assert np.all(grid[others] == 0.0)
    # One pixel of age per step.
    assert system.total_steps == 10
    assert system.num_escaped == 0

    image = system.render()
    neutral = ColorOffset().to_rgb(params.color_cap)
    assert all(tuple(image[x, y]) == neutral for x in range(10) for y in range(10) if (x, y) != (5, 5))
    assert tuple(image[5, 5]) != neutral


def test_free_stream_draws_a_straight_line(make_params):
    params = make_params(size=20, num_forces=0, max_decay_factor=10.0, velocity_cap=4.0)
    decay = 0.01
    stream = Stream(COLOR, Position(1.5, 1.5), Position(2.0, 1.0), decay_rate=decay)
    system = StreamSystem(params, [], [stream])

    grid = system.draw()

    expected = {}
    for k in range(20):
        for i in (1, 2):
            x = 1.5 + 2.0 * k + i
            y = 1.5 + k + 0.5 * i
            if 0 < x < 20 and 0 < y < 20:
                expected[(int(x), int(y))] = math.exp(-decay * (2 * k + i - 1))

    touched = {tuple(int(v) for v in idx) for idx in np.argwhere(np.any(grid != 0.0, axis=2))}
    assert touched == set(expected)
    for (x, y), intensity in expected.items():
        assert grid[x, y] == pytest.approx([COLOR.r * intensity, COLOR.g * intensity, COLOR.b * intensity])
        # Every touched pixel lies on the line through the start point.
        assert abs((y + 0.5 - 1.5) - (x + 0.5 - 1.5) / 2.0) <= 1.0
    # The stream leaves the escape bounds (x > 40) after 20 steps.
    assert system.total_steps == 20
    assert system.num_escaped == 1


def test_stream_outside_escape_bounds_never_steps(make_params):
    params = make_params(size=10, num_forces=0)
    stream = Stream(COLOR, Position(-15.0, 5.0), Position(1.0, 0.0), decay_rate=0.1)
    system = StreamSystem(params, [], [stream])
    grid = system.draw()
    assert not grid.any()
    assert system.total_steps == 0
    assert system.num_escaped == 1


def _strong_field():
    return [
        Force(ForceKind.INWARD, 1e4, 5.0, Position(50.0, 50.0)),
        Force(ForceKind.OUTWARD, 50.0, 20.0, Position(40.0, 60.0)),
        Force(ForceKind.LINEAR, 30.0, 30.0, Position(55.0, 45.0), Position(0.0, 1.0)),
    ]


def test_velocity_never_exceeds_cap(make_params):
    params = make_params(size=100, velocity_cap=3.0, max_decay_factor=10.0)
    system = StreamSystem(params, _strong_field(), [])
    stream = Stream(COLOR, Position(52.0, 50.5), Position(0.0, 0.0), decay_rate=0.01)

    states = system.trace(stream)

    assert len(states) > 2
    for state in states:
        assert state.velocity.length() <= params.velocity_cap + 1e-9
    assert len(states) - 1 <= stream.max_age(params.max_decay_factor)


def test_every_generated_stream_terminates_within_its_age(make_params):
    params = make_params()
    system = StreamSystem.generate(params, np.random.default_rng(params.seed))
    for stream in system.streams:
        states = system.trace(stream)
        assert len(states) - 1 <= math.ceil(params.max_decay_factor / stream.decay_rate) + 1


def test_trace_and_draw_accumulate_identically(make_params):
    params = make_params()
    drawn = StreamSystem.generate(params, np.random.default_rng(params.seed))
    traced = StreamSystem.generate(params, np.random.default_rng(params.seed))

    drawn.draw()
    for stream in traced.streams:
        traced.trace(stream)

    assert np.array_equal(drawn.grid, traced.grid)


def test_generation_is_reproducible(make_params):
    params = make_params()
    first = StreamSystem.generate(params, np.random.default_rng(params.seed))
    second = StreamSystem.generate(params, np.random.default_rng(params.seed))
    assert first.forces == second.forces
    assert first.faucets == second.faucets
    assert first.streams == second.streams
    assert len(first.forces) == params.num_forces
    assert len(first.faucets) == params.num_faucets
    assert len(first.streams) == params.num_streams


def test_draw_is_deterministic(make_params):
    params = make_params()
    first = draw(params)
    second = draw(params)
    assert first.shape == (params.size, params.size, 3)
    assert first.dtype == np.uint8
    assert np.array_equal(first, second)
    assert not np.array_equal(first, draw(make_params(seed=8)))


def test_parallel_chunks_match_sequential(make_params):
    params = make_params()
    sequential = StreamSystem.generate(params, np.random.default_rng(params.seed))
    chunked = StreamSystem.generate(params, np.random.default_rng(params.seed))

    sequential.draw()
    chunked.draw(parallel_chunks=4)

    assert np.allclose(sequential.grid, chunked.grid, rtol=1e-10, atol=1e-12)
    assert sequential.total_steps == chunked.total_steps
    assert sequential.num_escaped == chunked.num_escaped


def test_overlapping_streams_sum_per_pixel(make_params):
    params = make_params(size=10, num_forces=0)
    streams = [
        Stream(COLOR, Position(5.5, 5.5), Position(0.0, 0.0), decay_rate=1.0),
        Stream(COLOR.scale(-1.0), Position(5.5, 5.5), Position(0.0, 0.0), decay_rate=1.0),
    ]
    system = StreamSystem(params, [], streams)
    grid = system.draw()
    # Opposite colours on the same pixel cancel out.
    assert grid[5, 5] == pytest.approx([0.0, 0.0, 0.0], abs=1e-12)


def test_batched_draw_logs_progress_and_matches_single_batch(make_params, monkeypatch, caplog):
    params = make_params()
    whole = StreamSystem.generate(params, np.random.default_rng(params.seed))
    batched = StreamSystem.generate(params, np.random.default_rng(params.seed))

    monkeypatch.setattr(constants, "PROGRESS_LOG_INTERVAL", params.num_streams + 1)
    whole.draw()

    monkeypatch.setattr(constants, "PROGRESS_LOG_INTERVAL", 64)
    logger = logging.getLogger(constants.LOGGER_NAME)
    monkeypatch.setattr(logger, "propagate", False)
    logger.addHandler(caplog.handler)
    try:
        with caplog.at_level(logging.DEBUG, logger=constants.LOGGER_NAME):
            batched.draw()
    finally:
        logger.removeHandler(caplog.handler)

    assert np.array_equal(whole.grid, batched.grid)
    assert whole.total_steps == batched.total_steps
    progress = [r.getMessage() for r in caplog.records if r.levelno == logging.DEBUG]
    # 200 streams in batches of 64.
    assert len(progress) == 4
    assert progress[0].startswith("Streams=64/200")
    assert progress[-1].startswith(f"Streams=200/200, Steps={batched.total_steps}")
