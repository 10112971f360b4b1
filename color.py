# color.py

"""
Color Offset Model

A ColorOffset is an unbounded additive colour residual. Streams carry one,
the pixel grid accumulates them, and only at the very end is the residual
squashed into a displayable colour:

    residual --(length cap)--> --(saturating curve)--> L*a*b* --> sRGB (8-bit)

The grid-wide path (tone_map) is vectorised with NumPy; ColorOffset.to_rgb
runs the same function on a single pixel so both agree exactly.
"""

from dataclasses import dataclass

import numpy as np

import constants


@dataclass(frozen=True)
class ColorOffset:
    r: float = 0.0
    g: float = 0.0
    b: float = 0.0

    def scale(self, ratio: float) -> "ColorOffset":
        return ColorOffset(self.r * ratio, self.g * ratio, self.b * ratio)

    def add(self, other: "ColorOffset") -> "ColorOffset":
        return ColorOffset(self.r + other.r, self.g + other.g, self.b + other.b)

    def length(self) -> float:
        return float(np.sqrt(self.r ** 2 + self.g ** 2 + self.b ** 2))

    def as_array(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b], dtype=np.float64)

    @classmethod
    def from_array(cls, values) -> "ColorOffset":
        r, g, b = (float(v) for v in values)
        return cls(r, g, b)

    def to_rgb(self, color_cap: float):
        """Converts the residual to an (R, G, B) tuple of ints in [0, 255]."""
        rgb = tone_map(self.as_array().reshape(1, 3), color_cap)[0]
        return int(rgb[0]), int(rgb[1]), int(rgb[2])


def cap_length(colors: np.ndarray, color_cap: float) -> np.ndarray:
    """
    Rescales every colour vector longer than color_cap down to exactly color_cap.

    Direction is preserved; vectors already within the cap are untouched.
    """
    lengths = np.sqrt(colors[..., 0:1] ** 2 + colors[..., 1:2] ** 2 + colors[..., 2:3] ** 2)
    over = lengths > color_cap
    # Only divide where the cap applies; zero-length vectors never qualify.
    ratios = np.where(over, color_cap / np.where(over, lengths, 1.0), 1.0)
    return colors * ratios


def saturate(values: np.ndarray, tightness: float = constants.TONE_TIGHTNESS) -> np.ndarray:
    """Smooth map from the real line onto (0, 1) with saturate(0) == 0.5."""
    return 0.5 * values / (1.0 + np.abs(values) ** tightness) ** (1.0 / tightness) + 0.5


def residual_to_lab(colors: np.ndarray, color_cap: float) -> np.ndarray:
    """Maps (..., 3) residuals to (..., 3) L*a*b* values."""
    unit = saturate(cap_length(colors, color_cap))
    lab = np.empty_like(unit)
    lab[..., 0] = unit[..., 0] * constants.LAB_L_RANGE
    lab[..., 1] = unit[..., 1] * constants.LAB_AB_RANGE - constants.LAB_AB_OFFSET
    lab[..., 2] = unit[..., 2] * constants.LAB_AB_RANGE - constants.LAB_AB_OFFSET
    return lab


def _lab_f_inverse(t: np.ndarray) -> np.ndarray:
    return np.where(
        t > constants.LAB_EPSILON,
        t ** 3,
        constants.LAB_KAPPA_SLOPE * (t - 4.0 / 29.0),
    )


def lab_to_xyz(lab: np.ndarray) -> np.ndarray:
    """CIE L*a*b* (D50 white) -> CIE XYZ (D50)."""
    fy = (lab[..., 0] + 16.0) / 116.0
    fx = fy + lab[..., 1] / 500.0
    fz = fy - lab[..., 2] / 200.0
    xyz = np.stack([_lab_f_inverse(fx), _lab_f_inverse(fy), _lab_f_inverse(fz)], axis=-1)
    return xyz * constants.D50_WHITE


def _apply_matrix(matrix: np.ndarray, vectors: np.ndarray) -> np.ndarray:
    # Elementwise so results do not depend on the array's shape.
    x, y, z = vectors[..., 0], vectors[..., 1], vectors[..., 2]
    return np.stack([row[0] * x + row[1] * y + row[2] * z for row in matrix], axis=-1)


def xyz_to_srgb(xyz: np.ndarray) -> np.ndarray:
    """CIE XYZ (D50) -> companded sRGB in [0, 1], clipped to the gamut."""
    xyz_d65 = _apply_matrix(constants.BRADFORD_D50_TO_D65, xyz)
    linear = np.clip(_apply_matrix(constants.XYZ_TO_LINEAR_SRGB, xyz_d65), 0.0, 1.0)
    return np.where(
        linear <= constants.SRGB_LINEAR_CUTOFF,
        constants.SRGB_LINEAR_SLOPE * linear,
        (1.0 + constants.SRGB_A) * linear ** (1.0 / constants.SRGB_GAMMA) - constants.SRGB_A,
    )


def lab_to_rgb(lab: np.ndarray) -> np.ndarray:
    """CIE L*a*b* -> 8-bit sRGB, same leading shape."""
    srgb = xyz_to_srgb(lab_to_xyz(lab))
    return np.clip(np.round(srgb * 255.0), 0, 255).astype(np.uint8)


def tone_map(colors: np.ndarray, color_cap: float) -> np.ndarray:
    """
    Converts accumulated residuals to displayable colour.

    Data Contract:
    - Inputs:
        - colors (np.ndarray): (..., 3) float residuals, r/g/b in the last axis.
        - color_cap (float): Maximum residual length before the curve is applied.
    - Outputs: np.ndarray of uint8 with the same shape.
    - Invariants: Each output pixel depends only on the matching input pixel.
    """
    return lab_to_rgb(residual_to_lab(np.asarray(colors, dtype=np.float64), color_cap))
