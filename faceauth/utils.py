"""
Image input helpers: transport decoding and pixel decoding.
"""
import base64
import binascii
import logging
from io import BytesIO
from typing import Protocol, Tuple

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from faceauth.config import MAX_IMAGE_SIZE, MAX_PHOTO_BYTES
from faceauth.exceptions import InvalidImage

logger = logging.getLogger(__name__)


def decode_photo(photo: str, max_bytes: int = MAX_PHOTO_BYTES) -> bytes:
    """
    Decode a photo sent as a data URL ("data:image/jpeg;base64,...") or as
    bare base64 into raw image bytes.

    Raises:
        InvalidImage: not valid base64, empty, or larger than max_bytes
    """
    payload = photo.strip()
    if payload.startswith("data:"):
        # Everything up to the first comma is the media type header
        _, _, payload = payload.partition(",")

    # Every 4 base64 characters carry 3 bytes; refuse oversized payloads before decoding
    if len(payload) * 3 // 4 > max_bytes + 2:
        raise InvalidImage(f"Photo exceeds the {max_bytes} byte limit.")

    try:
        image_bytes = base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise InvalidImage("Photo is not valid base64 data.") from e

    if not image_bytes:
        raise InvalidImage("Photo is empty.")
    if len(image_bytes) > max_bytes:
        raise InvalidImage(f"Photo exceeds the {max_bytes} byte limit.")
    return image_bytes


class ImageDecoder(Protocol):
    """Turns encoded image bytes into an OpenCV-style BGR uint8 array."""

    def decode(self, image_bytes: bytes) -> np.ndarray:
        ...


class OpenCVImageDecoder:
    """
    Decode with OpenCV, falling back to Pillow for formats OpenCV was built
    without (e.g. some WebP or GIF files). Large images are shrunk to
    max_size keeping the aspect ratio.
    """

    def __init__(self, max_size: Tuple[int, int] = MAX_IMAGE_SIZE):
        self.max_size = max_size

    def decode(self, image_bytes: bytes) -> np.ndarray:
        arr = np.frombuffer(image_bytes, np.uint8)
        bgr = cv2.imdecode(arr, cv2.IMREAD_COLOR) if arr.size else None

        if bgr is None:
            try:
                image = Image.open(BytesIO(image_bytes)).convert("RGB")
            except (UnidentifiedImageError, OSError) as e:
                logger.warning(f"Image decoding failed: {e}")
                raise InvalidImage() from e
            bgr = cv2.cvtColor(np.array(image), cv2.COLOR_RGB2BGR)

        if bgr.size == 0:
            raise InvalidImage("Decoded image is empty.")

        height, width = bgr.shape[:2]
        max_width, max_height = self.max_size
        if width > max_width or height > max_height:
            scale = min(max_width / width, max_height / height)
            new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
            bgr = cv2.resize(bgr, new_size, interpolation=cv2.INTER_AREA)
            logger.debug(f"Image resized to {new_size}")

        return bgr
