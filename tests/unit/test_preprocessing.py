"""
Unit tests for upload validation and image preprocessing.
"""

import numpy as np
import pytest

from brainscan.exceptions import DecodeError, FileTooLargeError, InvalidFileTypeError
from brainscan.preprocessing import decode_image, preprocess, validate_upload
from tests.fixtures.fakes import make_image_bytes

FIFTY_MIB = 50 * 1024 * 1024


class TestValidateUpload:
    """Tests for the media type and size checks."""

    def test_accepts_exactly_fifty_mib(self):
        validate_upload("image/png", FIFTY_MIB)

    def test_rejects_one_byte_over(self):
        with pytest.raises(FileTooLargeError):
            validate_upload("image/png", FIFTY_MIB + 1)

    @pytest.mark.parametrize("content_type", ["text/plain", "application/pdf", "", None])
    def test_rejects_non_image_media_types(self, content_type):
        with pytest.raises(InvalidFileTypeError):
            validate_upload(content_type, 100)

    def test_accepts_any_image_subtype(self):
        validate_upload("image/x-dicom", 100)

    def test_custom_limit(self):
        with pytest.raises(FileTooLargeError):
            validate_upload("image/jpeg", 11, max_size=10)


class TestPreprocess:
    """Tests for decode, resize and normalization."""

    def test_output_shape_and_range(self, sample_image_bytes):
        batch = preprocess(sample_image_bytes, 224)

        assert batch.shape == (1, 224, 224, 3)
        assert batch.dtype == np.float32
        assert batch.min() >= 0.0
        assert batch.max() <= 1.0

    def test_white_image_normalizes_to_one(self):
        data = make_image_bytes(np.full((50, 80, 3), 255))
        batch = preprocess(data, 224)
        assert np.allclose(batch, 1.0)

    def test_grayscale_input_expanded_to_rgb(self):
        data = make_image_bytes(np.full((64, 64), 51))
        batch = preprocess(data, 32)

        assert batch.shape == (1, 32, 32, 3)
        assert np.allclose(batch, 0.2)

    def test_nearest_neighbor_keeps_original_values(self):
        image = np.zeros((4, 4, 3), dtype=np.uint8)
        image[:, 2:] = 255
        batch = preprocess(make_image_bytes(image), 8)

        assert set(np.unique(batch)) <= {0.0, 1.0}

    def test_garbage_bytes_raise_decode_error(self):
        with pytest.raises(DecodeError):
            preprocess(b"definitely not an image", 224)

    def test_empty_bytes_raise_decode_error(self):
        with pytest.raises(DecodeError):
            decode_image(b"")
