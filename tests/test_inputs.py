"""
Tests for upload input validation.
"""

import base64

import pytest

from dysapp.core import config
from dysapp.core.errors import InvalidArgumentError
from dysapp.core.inputs import (
    decode_base64_image,
    validate_file_name,
    validate_image_size,
    validate_mime_type,
    validate_record_id,
)

IMAGE = bytes(range(256)) * 2


class TestFileName:

    def test_unsafe_characters_replaced(self):
        assert validate_file_name("my design (1).png") == "my_design__1_.png"

    def test_path_traversal_removed(self):
        sanitized = validate_file_name("../../etc/passwd")
        assert "/" not in sanitized
        assert ".." not in sanitized

    def test_truncated(self):
        assert len(validate_file_name("a" * 300 + ".png")) == 255

    @pytest.mark.parametrize("name", ["", None, "..", 42])
    def test_invalid(self, name):
        with pytest.raises(InvalidArgumentError):
            validate_file_name(name)


class TestImage:

    def test_mime_types(self):
        assert validate_mime_type("image/webp") == "image/webp"
        with pytest.raises(InvalidArgumentError):
            validate_mime_type("image/svg+xml")

    def test_size(self, monkeypatch):
        assert validate_image_size(IMAGE) == IMAGE
        with pytest.raises(InvalidArgumentError):
            validate_image_size(b"")

        monkeypatch.setattr(config, "MAX_IMAGE_SIZE_MB", 0)
        with pytest.raises(InvalidArgumentError):
            validate_image_size(IMAGE)

    def test_decode_plain_and_data_url(self):
        encoded = base64.b64encode(IMAGE).decode()

        assert decode_base64_image(encoded) == IMAGE
        assert decode_base64_image("data:image/png;base64," + encoded) == IMAGE

    @pytest.mark.parametrize("data", [
        "",
        "QUJD",  # too short
        "not base64 at all! " * 10,
        "A" * 101,  # bad padding
    ])
    def test_decode_rejects_bad_data(self, data):
        with pytest.raises(InvalidArgumentError):
            decode_base64_image(data)

    def test_decode_rejects_oversized(self, monkeypatch):
        monkeypatch.setattr(config, "MAX_IMAGE_SIZE_MB", 0)
        with pytest.raises(InvalidArgumentError):
            decode_base64_image(base64.b64encode(IMAGE).decode())


class TestRecordId:

    def test_valid(self):
        assert validate_record_id("abc_123-XYZ") == "abc_123-XYZ"

    @pytest.mark.parametrize("record_id", ["", None, "a/b", "has space", "x" * 1025])
    def test_invalid(self, record_id):
        with pytest.raises(InvalidArgumentError):
            validate_record_id(record_id)
