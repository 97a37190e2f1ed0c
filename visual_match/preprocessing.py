"""
Image payload preparation for the vision model.

Uploaded photos are forwarded as-is unless they are larger than the
configured maximum side, in which case they are downscaled and
re-encoded as JPEG to keep request size bounded. Bytes that OpenCV
cannot decode are passed through untouched; format validation is left
to the vision model.
"""

import base64
import binascii
import logging
import os
from typing import Tuple

import cv2
import numpy as np

logger = logging.getLogger(__name__)

# Longest image side sent to the vision model. 0 disables resizing.
MAX_IMAGE_SIDE = int(os.environ.get("VISION_MAX_IMAGE_SIDE", "2048"))
JPEG_QUALITY = int(os.environ.get("VISION_JPEG_QUALITY", "90"))

DEFAULT_MIME_TYPE = "image/jpeg"

_MAGIC_PREFIXES = (
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
)


def sniff_mime_type(image_bytes: bytes) -> str:
    """Guess the image MIME type from magic bytes, defaulting to JPEG."""
    for prefix, mime in _MAGIC_PREFIXES:
        if image_bytes.startswith(prefix):
            return mime
    if image_bytes[:4] == b"RIFF" and image_bytes[8:12] == b"WEBP":
        return "image/webp"
    return DEFAULT_MIME_TYPE


def decode_base64_image(payload: str) -> bytes:
    """
    Decode a base64 image string as posted by the chat front end.

    Accepts either raw base64 or a data URL
    (``data:image/png;base64,....``).

    Raises:
        ValueError: If the payload is empty or not valid base64.
    """
    payload = (payload or "").strip()
    if payload.startswith("data:"):
        _, sep, payload = payload.partition(",")
        if not sep:
            raise ValueError("Malformed data URL: missing ',' separator")
    if not payload:
        raise ValueError("Empty image payload")

    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Image payload is not valid base64: {e}") from e


def downscale_image(image_np: np.ndarray, max_side: int) -> np.ndarray:
    """
    Shrink an image so its longest side is at most max_side.

    Aspect ratio is preserved. Images already within bounds are
    returned unchanged.
    """
    h, w = image_np.shape[:2]
    longest = max(h, w)
    if max_side <= 0 or longest <= max_side:
        return image_np

    scale = max_side / float(longest)
    new_size = (max(1, int(round(w * scale))), max(1, int(round(h * scale))))
    return cv2.resize(image_np, new_size, interpolation=cv2.INTER_AREA)


def prepare_image_payload(image_bytes: bytes,
                          max_side: int = None,
                          jpeg_quality: int = None) -> Tuple[bytes, str]:
    """
    Prepare uploaded image bytes for the vision request.

    Args:
        image_bytes: Raw uploaded image.
        max_side: Longest side allowed before downscaling. Defaults to
            MAX_IMAGE_SIDE; 0 disables resizing.
        jpeg_quality: JPEG quality used when re-encoding.

    Returns:
        Tuple of (payload bytes, MIME type). The original bytes are
        returned whenever no resize is needed or OpenCV cannot handle
        the input.
    """
    max_side = MAX_IMAGE_SIDE if max_side is None else max_side
    jpeg_quality = JPEG_QUALITY if jpeg_quality is None else jpeg_quality
    mime_type = sniff_mime_type(image_bytes)

    if max_side <= 0 or not image_bytes:
        return image_bytes, mime_type

    try:
        buffer = np.frombuffer(image_bytes, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            logger.warning("Could not decode image for resizing, forwarding original bytes")
            return image_bytes, mime_type

        h, w = image.shape[:2]
        if max(h, w) <= max_side:
            return image_bytes, mime_type

        resized = downscale_image(image, max_side)
        ok, encoded = cv2.imencode(".jpg", resized,
                                   [int(cv2.IMWRITE_JPEG_QUALITY), jpeg_quality])
        if not ok:
            logger.warning("JPEG re-encode failed, forwarding original bytes")
            return image_bytes, mime_type

        logger.info(f"Downscaled image {w}x{h} -> {resized.shape[1]}x{resized.shape[0]}")
        return encoded.tobytes(), "image/jpeg"

    except cv2.error as e:
        logger.warning(f"Image resize failed, forwarding original bytes: {e}")
        return image_bytes, mime_type


def to_data_url(image_bytes: bytes, mime_type: str = DEFAULT_MIME_TYPE) -> str:
    """Encode image bytes as a base64 data URL."""
    b64 = base64.b64encode(image_bytes).decode("utf-8")
    return f"data:{mime_type};base64,{b64}"
