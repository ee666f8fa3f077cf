"""
Global image statistics used by the heuristic classifier.

All statistics are computed on per-pixel brightness, the mean of the three
channels on a 0-255 scale.
"""

from dataclasses import asdict, dataclass

import numpy as np

DARK_THRESHOLD = 80
BRIGHT_THRESHOLD = 200
EDGE_THRESHOLD = 30


@dataclass(frozen=True)
class FeatureVector:
    brightness: float
    dark_ratio: float
    bright_ratio: float
    edge_ratio: float
    asymmetry: float

    def to_dict(self):
        return asdict(self)


def brightness_map(pixels):
    """(H, W, 3) array on a 0-255 scale -> (H, W) float64 brightness."""
    pixels = np.asarray(pixels, dtype=np.float64)
    if pixels.ndim == 4:
        pixels = pixels[0]
    if pixels.ndim != 3 or pixels.shape[-1] != 3:
        raise ValueError(f"Expected an (H, W, 3) image, got shape {pixels.shape}")
    return pixels.mean(axis=-1)


def extract_features(pixels):
    """Compute brightness, dark/bright ratios, edge ratio and asymmetry."""
    gray = brightness_map(pixels)
    height, width = gray.shape
    total = gray.size

    brightness = float(gray.mean())
    dark_ratio = float(np.count_nonzero(gray < DARK_THRESHOLD)) / total
    bright_ratio = float(np.count_nonzero(gray > BRIGHT_THRESHOLD)) / total

    # Compare each pixel to its predecessor in scan order, skipping row 0 and column 0
    diffs = np.abs(gray[1:, 1:] - gray[1:, :-1])
    edge_ratio = float(np.count_nonzero(diffs > EDGE_THRESHOLD)) / total

    half = width // 2
    if half == 0:
        asymmetry = 0.0
    else:
        left = gray[:, :half]
        mirrored = gray[:, ::-1][:, :half]
        asymmetry = float(np.abs(left - mirrored).sum()) / (height * half)

    return FeatureVector(
        brightness=brightness,
        dark_ratio=dark_ratio,
        bright_ratio=bright_ratio,
        edge_ratio=edge_ratio,
        asymmetry=asymmetry,
    )
