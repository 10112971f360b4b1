# compositor.py

import logging

import numpy as np

import constants
from color import tone_map

logger = logging.getLogger(constants.LOGGER_NAME)


def compose_image(grid: np.ndarray, color_cap: float) -> np.ndarray:
    """
    Converts the accumulated colour grid into the final image.

    Data Contract:
    - Inputs:
        - grid (np.ndarray): (size, size, 3) float residuals indexed [x][y].
        - color_cap (float): Residual length cap applied before tone mapping.
    - Outputs: np.ndarray (size, size, 3) uint8, indexed [x][y] like the grid.
    - Invariants: Pixels are independent; the grid is not modified.
    """
    if grid.ndim != 3 or grid.shape[2] != 3:
        raise ValueError(f"Expected a (width, height, 3) grid, got shape {grid.shape}")

    image = tone_map(grid, color_cap)
    touched = int(np.count_nonzero(np.any(grid != 0.0, axis=2)))
    logger.info(f"Composed {grid.shape[0]}x{grid.shape[1]} image ({touched} pixels touched by streams).")
    return image
