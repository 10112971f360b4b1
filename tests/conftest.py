"""
Shared fixtures for the renderer tests.

Puts the flat application modules on sys.path and provides a small,
fast-to-render parameter set.
"""

import copy
import logging
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from params import Params  # noqa: E402


SMALL_RENDER_CONFIG = {
    "size": 32,
    "num_forces": 5,
    "force_strength_dist": {"center": 2.0, "mult_spread": 2.0},
    "force_spread_dist": {"center": 8.0, "mult_spread": 2.0},
    "num_faucets": 3,
    "faucet_color_center_dist": {"mean": 0.0, "std": 0.5},
    "faucet_color_spread_dist": {"mean": 0.1},
    "faucet_position_spread_dist": {"mean": 4.0},
    "faucet_velocity_spread_dist": {"mean": 1.0},
    "num_streams": 200,
    "decay_dist": {"rate_per_size": 1.0},
    "max_decay_factor": 10.0,
    "velocity_cap": 4.0,
    "color_cap": 2.0,
}


@pytest.fixture(autouse=True)
def _restore_render_logger():
    """Restores the renderer logger's level and propagation after each test."""
    import constants
    logger = logging.getLogger(constants.LOGGER_NAME)
    level, propagate = logger.level, logger.propagate
    yield
    logger.setLevel(level)
    logger.propagate = propagate


@pytest.fixture
def render_config():
    """A fresh copy of the small render section, safe to mutate."""
    return copy.deepcopy(SMALL_RENDER_CONFIG)


@pytest.fixture
def make_params(render_config):
    """Builds Params from the small config with top-level overrides."""
    def _make(seed=7, **overrides):
        config = dict(render_config)
        config.update(overrides)
        return Params.from_config(config, seed)
    return _make
