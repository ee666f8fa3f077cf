"""
Classification strategies.

Both strategies take the preprocessed batch of shape (1, 224, 224, 3) scaled to
[0, 1] and return 4 class probabilities ordered like ``CLASS_NAMES``.
"""

import logging

import numpy as np

from brainscan import CLASS_NAMES
from brainscan.exceptions import InferenceError
from brainscan.features import extract_features

logger = logging.getLogger(__name__)

NUM_CLASSES = len(CLASS_NAMES)

# Rule thresholds
ABNORMAL_DARKNESS = 0.15
HIGH_CONTRAST = 0.08
ASYMMETRY_LIMIT = 40
UNUSUAL_BRIGHTNESS = 0.25
HEALTHY_DARK_LIMIT = 0.12
PITUITARY_DARK_RANGE = (0.12, 0.18)

# Per-class jitter is drawn from [0, JITTER)
JITTER = 0.10

BRANCH_BASES = {
    "healthy": (0.75, 0.05, 0.05, 0.05),
    "glioma": (0.05, 0.75, 0.10, 0.05),
    "meningioma": (0.05, 0.10, 0.75, 0.05),
    "pituitary": (0.05, 0.05, 0.10, 0.75),
    "borderline": (0.45, 0.30, 0.10, 0.10),
}


def normalize(probabilities):
    probs = np.clip(np.asarray(probabilities, dtype=np.float64), 0.0, None)
    total = probs.sum()
    if total <= 0 or not np.isfinite(total):
        return np.full(NUM_CLASSES, 1.0 / NUM_CLASSES)
    return probs / total


def select_branch(features):
    """Pick the rule branch for a FeatureVector. First match wins."""
    dark = features.dark_ratio
    has_abnormal_darkness = dark > ABNORMAL_DARKNESS
    has_high_contrast = features.edge_ratio > HIGH_CONTRAST
    is_asymmetric = features.asymmetry > ASYMMETRY_LIMIT
    is_unusually_bright = features.bright_ratio > UNUSUAL_BRIGHTNESS

    low, high = PITUITARY_DARK_RANGE

    if not has_abnormal_darkness and not is_asymmetric and dark < HEALTHY_DARK_LIMIT:
        return "healthy"
    if has_abnormal_darkness and has_high_contrast and is_asymmetric:
        return "glioma"
    if has_abnormal_darkness and not has_high_contrast:
        return "meningioma"
    if is_unusually_bright or low < dark < high:
        return "pituitary"
    return "borderline"


class SyntheticClassifier:
    """Rule-based class probabilities from global image statistics."""

    def __init__(self, rng=None):
        self.rng = rng if rng is not None else np.random.default_rng()

    def classify_features(self, features):
        branch = select_branch(features)
        base = np.array(BRANCH_BASES[branch], dtype=np.float64)
        jitter = self.rng.uniform(0.0, JITTER, size=NUM_CLASSES)
        return branch, normalize(base + jitter)


class HeuristicClassifier:
    """Fallback strategy used when no trained model is available."""

    name = "heuristic"

    def __init__(self, synthetic=None):
        self.synthetic = synthetic or SyntheticClassifier()

    def classify(self, batch):
        pixels = np.asarray(batch)[0] * 255.0
        features = extract_features(pixels)
        branch, probs = self.synthetic.classify_features(features)
        logger.info("Heuristic branch %s for features %s", branch, features.to_dict())
        return probs


class ModelClassifier:
    """Strategy backed by a loaded Keras model."""

    name = "model"

    def __init__(self, model):
        self.model = model

    def classify(self, batch):
        try:
            preds = np.asarray(self.model.predict(batch, verbose=0))[0]
        except Exception as e:
            raise InferenceError(f"Model inference failed: {e}") from e

        if preds.shape != (NUM_CLASSES,):
            raise InferenceError(f"Expected {NUM_CLASSES} outputs, model returned {preds.shape}")
        return normalize(preds)
