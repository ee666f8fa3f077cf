import io
import logging

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from brainscan import config
from brainscan.exceptions import DecodeError, FileTooLargeError, InvalidFileTypeError

logger = logging.getLogger(__name__)


def validate_upload(content_type, size, max_size=None):
    """Reject non-image media types and oversize files before any decoding."""
    if max_size is None:
        max_size = config.MAX_UPLOAD_SIZE

    if not content_type or not content_type.startswith("image/"):
        raise InvalidFileTypeError(
            "Invalid file type. Please upload an image file (JPEG, PNG, etc.)"
        )
    if size > max_size:
        raise FileTooLargeError(
            f"File too large. Please upload a file smaller than {max_size // (1024 * 1024)}MB"
        )


def decode_image(image_bytes):
    """Decode raw bytes into an RGB numpy array (H, W, 3), uint8."""
    try:
        with Image.open(io.BytesIO(image_bytes)) as pil_image:
            return np.array(pil_image.convert("RGB"))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise DecodeError(f"Could not decode image: {e}") from e


def preprocess(image_bytes, size=None):
    """
    Decode an image and build the model input.

    Returns an array of shape (1, size, size, 3), float32 scaled to [0, 1].
    """
    size = size or config.IMG_SIZE
    img_array = decode_image(image_bytes)

    # ---------- PREPROCESS ----------
    resized = cv2.resize(img_array, (size, size), interpolation=cv2.INTER_NEAREST)
    normalized = resized.astype(np.float32) / 255.0
    del img_array, resized

    logger.debug("Preprocessed image to %s", normalized.shape)
    return np.expand_dims(normalized, axis=0)
