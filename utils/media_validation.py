"""Validation helpers for media carried in realtime turns."""

from services.realtime.errors import TurnValidationError

ALLOWED_IMAGE_TYPES = {
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/webp",
    "image/gif",
}


def require_image_data_url(value: str, label: str) -> str:
    """Return `value` when it is a base64 image data URL.

    Browsers capture the webcam and screen frames with `canvas.toDataURL`, so
    both images arrive as `data:image/<type>;base64,<payload>` strings.

    Raises:
        TurnValidationError: The image is missing, not a data URL, or an
            unsupported image type.
    """
    if not value:
        raise TurnValidationError(f"The {label} image is missing.")
    header, sep, payload = value.partition(",")
    if not sep or not header.startswith("data:") or not header.endswith(";base64") or not payload:
        raise TurnValidationError(f"The {label} image must be a base64 data URL.")
    mime_type = header[len("data:"):-len(";base64")].lower()
    if mime_type not in ALLOWED_IMAGE_TYPES:
        raise TurnValidationError(f"Unsupported {label} image type: {mime_type or 'unknown'}")
    return value
