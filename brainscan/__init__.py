"""MRI brain tumor classification with a heuristic fallback."""

__version__ = "0.1.0"

CLASS_NAMES = ["No Tumor", "Glioma", "Meningioma", "Pituitary Tumor"]
