import re
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional

from PIL import Image, UnidentifiedImageError

from civic_eye.core.config import MAX_IMAGE_BYTES, ALLOWED_IMAGE_EXTENSIONS, ALLOWED_IMAGE_FORMATS
from civic_eye.core.exceptions import ValidationError

logger = logging.getLogger(__name__)

REGION_CODE_REGEX = re.compile(r"^[A-Za-z0-9][A-Za-z0-9 -]{1,14}[A-Za-z0-9]$")


def validate_region_code(region_code: Optional[str]) -> bool:
    if not region_code:
        return False
    return bool(REGION_CODE_REGEX.match(region_code.strip()))


def normalize_region_code(region_code: str) -> str:
    return region_code.strip().upper()


def validate_image(content: Optional[bytes], filename: Optional[str], max_bytes: int = MAX_IMAGE_BYTES) -> str:
    """
    Accept or reject an uploaded photo.

    Returns the MIME type detected from the bytes. Rejects empty or oversized
    uploads, unexpected extensions, and anything Pillow cannot decode as a
    JPEG, PNG or GIF.
    """
    if not content:
        raise ValidationError("Image is required")
    if len(content) > max_bytes:
        raise ValidationError(f"Image exceeds maximum size of {max_bytes // (1024 * 1024)}MB")

    extension = Path(filename or "").suffix.lower()
    if extension not in ALLOWED_IMAGE_EXTENSIONS:
        raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif)")

    try:
        with Image.open(BytesIO(content)) as img:
            image_format = img.format
            img.verify()
    except (UnidentifiedImageError, OSError, SyntaxError) as e:
        logger.info(f"Rejected upload {filename!r}: {e}")
        raise ValidationError("Uploaded file is not a valid image")

    if image_format not in ALLOWED_IMAGE_FORMATS:
        raise ValidationError("Only image files are allowed (jpeg, jpg, png, gif)")

    return Image.MIME[image_format]
