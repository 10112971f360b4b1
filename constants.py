# constants.py

"""
Application Constants

This module defines static configuration values for the renderer's framework.
These are not expected to change between render runs; everything that shapes
a particular image lives in config.json.

Data Contract:
- All values are immutable constants.
- Units are specified in comments where applicable.
"""

import numpy as np

# Logger name shared by every module
LOGGER_NAME = "stream_art"

# Output file naming. {count} is the number of entries already in the output directory.
OUTPUT_FILENAME_PATTERN = "img-{count}-{size}.png"

# Log file written inside runs/<run_id>/
LOG_FILENAME = "render.log"

# Force kind codes, shared between the Python model and the JIT kernels.
FORCE_INWARD = 0
FORCE_OUTWARD = 1
FORCE_LINEAR = 2

# Kind thresholds for a uniform draw u: u < INWARD -> inward, u < OUTWARD -> outward, else linear.
FORCE_KIND_INWARD_THRESHOLD = 0.333
FORCE_KIND_OUTWARD_THRESHOLD = 0.666

# Streams are culled once they leave [-ESCAPE_MARGIN * size, (1 + ESCAPE_MARGIN) * size].
ESCAPE_MARGIN = 1.0

# Tone mapping
TONE_TIGHTNESS = 1.0      # Shape of the saturating curve x / (1 + |x|^t)^(1/t).
LAB_L_RANGE = 100.0       # L* spans [0, 100]
LAB_AB_RANGE = 255.0      # a*, b* span [-128, 127]
LAB_AB_OFFSET = 128.0

# CIE constants for the L*a*b* -> XYZ step
LAB_EPSILON = 6.0 / 29.0
LAB_KAPPA_SLOPE = 3.0 * LAB_EPSILON ** 2

# Reference white of the L*a*b* space (D50, 2 degree observer).
D50_WHITE = np.array([0.96422, 1.0, 0.82521])

# Bradford chromatic adaptation, D50 -> D65.
BRADFORD_D50_TO_D65 = np.array([
    [ 0.9555766, -0.0230393,  0.0631636],
    [-0.0282895,  1.0099416,  0.0210077],
    [ 0.0122982, -0.0204830,  1.3299098],
])

# XYZ (D65) -> linear sRGB.
XYZ_TO_LINEAR_SRGB = np.array([
    [ 3.2404542, -1.5371385, -0.4985314],
    [-0.9692660,  1.8760108,  0.0415560],
    [ 0.0556434, -0.2040259,  1.0572252],
])

# sRGB companding
SRGB_LINEAR_CUTOFF = 0.0031308
SRGB_LINEAR_SLOPE = 12.92
SRGB_GAMMA = 2.4
SRGB_A = 0.055

# Profiling
PROFILE_TOP_ENTRIES = 20

# Progress logging interval (streams)
PROGRESS_LOG_INTERVAL = 10000
