"""
Validation of caller-supplied upload inputs: file names, MIME types, base64
image payloads and record identifiers.
"""

import base64
import binascii
import re

from . import config
from .errors import InvalidArgumentError

_BASE64_PATTERN = re.compile(r"^[A-Za-z0-9+/]*={0,2}$")
_ID_PATTERN = re.compile(r"^[a-zA-Z0-9_-]{1,1024}$")
_UNSAFE_FILENAME_CHARS = re.compile(r"[^a-zA-Z0-9._-]")

MIN_BASE64_LENGTH = 100
MAX_FILE_NAME_LENGTH = 255


def validate_file_name(file_name: str) -> str:
    """Return a filesystem-safe version of file_name or raise InvalidArgumentError."""
    if not file_name or not isinstance(file_name, str):
        raise InvalidArgumentError("Invalid file name")

    sanitized = file_name.replace("..", "").replace("/", "_")
    sanitized = _UNSAFE_FILENAME_CHARS.sub("_", sanitized)[:MAX_FILE_NAME_LENGTH]

    if not sanitized:
        raise InvalidArgumentError("File name cannot be empty after sanitization")
    return sanitized


def validate_mime_type(mime_type: str) -> str:
    if mime_type not in config.ALLOWED_MIME_TYPES:
        raise InvalidArgumentError(
            f"Unsupported image type. Allowed: {', '.join(config.ALLOWED_MIME_TYPES)}"
        )
    return mime_type


def max_image_bytes() -> int:
    return config.MAX_IMAGE_SIZE_MB * 1024 * 1024


def validate_image_size(image_data: bytes) -> bytes:
    if not image_data:
        raise InvalidArgumentError("Image data is required")
    if len(image_data) > max_image_bytes():
        raise InvalidArgumentError(f"Image exceeds {config.MAX_IMAGE_SIZE_MB}MB limit")
    return image_data


def decode_base64_image(data: str) -> bytes:
    """Decode a base64 image (optionally a data: URL) after format and size checks."""
    if not data or not isinstance(data, str):
        raise InvalidArgumentError("Invalid base64 data")

    if data.startswith("data:") and "," in data:
        data = data.split(",", 1)[1]

    if not _BASE64_PATTERN.match(data):
        raise InvalidArgumentError("Invalid base64 format")
    if len(data) < MIN_BASE64_LENGTH:
        raise InvalidArgumentError("Base64 data too short")
    # base64 inflates by 4/3
    if len(data) > max_image_bytes() * 4 / 3 + 4:
        raise InvalidArgumentError(f"Image exceeds {config.MAX_IMAGE_SIZE_MB}MB limit")

    try:
        return validate_image_size(base64.b64decode(data, validate=True))
    except binascii.Error as e:
        raise InvalidArgumentError("Invalid base64 data") from e


def validate_record_id(record_id: str) -> str:
    if not record_id or not isinstance(record_id, str) or not _ID_PATTERN.match(record_id):
        raise InvalidArgumentError("Invalid identifier")
    return record_id
