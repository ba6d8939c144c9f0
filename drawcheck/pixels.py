"""
Pixel Classifiers
=================
Vectorized color predicates shared by the pixel analyzers.

Each classifier takes an ``(h, w, 3)`` uint8 RGB array and returns an
``(h, w)`` boolean mask. Ratio thresholds are evaluated in integer
arithmetic (``R > 1.3*G`` as ``10*R > 13*G``) so results are exact.
"""

from __future__ import annotations

import numpy as np


def _channels(rgb: np.ndarray) -> tuple[np.ndarray, np.ndarray, np.ndarray]:
    widened = rgb.astype(np.int32)
    return widened[..., 0], widened[..., 1], widened[..., 2]


def red_mask(rgb: np.ndarray) -> np.ndarray:
    """Red markup: bright dominant red, medium red, or dark saturated red."""
    r, g, b = _channels(rgb)
    bright = (r > 150) & (10 * r > 13 * g) & (10 * r > 13 * b)
    medium = (r > 100) & (2 * r > 3 * g) & (2 * r > 3 * b) & (r > 50)
    dark = (r > 80) & (r > 2 * g) & (r > 2 * b)
    return bright | medium | dark


def highlight_mask(rgb: np.ndarray) -> np.ndarray:
    """Gray highlight band or one of the yellow/green/blue/magenta marker colors."""
    r, g, b = _channels(rgb)
    total = r + g + b
    spread = np.maximum(np.maximum(np.abs(r - g), np.abs(g - b)), np.abs(r - b))
    gray = (spread < 40) & (total > 360) & (total < 540)

    yellow = (r > 200) & (g > 200) & (b < 150)
    green = (r < 150) & (g > 200) & (b < 150)
    blue = (r < 150) & (g < 150) & (b > 200)
    magenta = (r > 200) & (g < 150) & (b > 200)
    return gray | yellow | green | blue | magenta


def black_mask(rgb: np.ndarray, threshold: int = 80) -> np.ndarray:
    """Pixels whose three channels are all below ``threshold``."""
    return np.all(rgb < threshold, axis=-1)
