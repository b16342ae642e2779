"""Image payload helpers: data URL parsing for providers and page image encoding."""

import base64
import io
import re
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image

from blueprint_qa.configs.constants import ANALYSIS_IMAGE_MIME_TYPE, ANALYSIS_IMAGE_QUALITY, TARGET_IMAGE_PX
from blueprint_qa.exceptions.domain_exceptions import InvalidImagePayloadError

_DATA_URL_PATTERN = re.compile(r"^data:(image/[a-zA-Z0-9.+-]+);base64,(.+)$", re.DOTALL)


class ImageMimeType(str, Enum):
    PNG = "image/png"
    JPEG = "image/jpeg"
    WEBP = "image/webp"


_PIL_FORMATS = {
    ImageMimeType.PNG: "PNG",
    ImageMimeType.JPEG: "JPEG",
    ImageMimeType.WEBP: "WEBP",
}


@dataclass(frozen=True)
class ImagePayload:
    mime_type: str
    data: str


def parse_image_data_url(image: str, page_number: Optional[int] = None) -> ImagePayload:
    """
    Split a base64 image data URL into its MIME type and payload.

    Raises:
        InvalidImagePayloadError: If the string is not a base64 image data URL
    """
    match = _DATA_URL_PATTERN.match(image)
    if not match:
        raise InvalidImagePayloadError(
            message="Invalid image payload. Expected a base64 data URL.", page_number=page_number
        )
    return ImagePayload(mime_type=match.group(1), data=match.group(2))


def encode_image_data_url(
    image: Image.Image,
    target_px: int = TARGET_IMAGE_PX,
    quality: float = ANALYSIS_IMAGE_QUALITY,
    mime_type: str = ANALYSIS_IMAGE_MIME_TYPE,
) -> str:
    """
    Encode a rendered page as a data URL no larger than target_px on its long edge.

    Client-side counterpart of parse_image_data_url for callers that render PDF pages
    before posting them to /analyze; the service itself only receives encoded pages.

    Args:
        image: Rendered page
        target_px: Maximum long-edge size in pixels
        quality: Encoding quality in (0, 1], used by lossy formats
        mime_type: Output MIME type (image/jpeg, image/png or image/webp)

    Returns:
        Data URL string such as "data:image/jpeg;base64,..."
    """
    if target_px <= 0:
        raise ValueError(f"target_px must be positive, got {target_px}")
    if not 0 < quality <= 1:
        raise ValueError(f"quality must be in (0, 1], got {quality}")
    try:
        output_type = ImageMimeType(mime_type)
    except ValueError:
        supported = ", ".join(m.value for m in ImageMimeType)
        raise ValueError(f"Unsupported image MIME type: {mime_type}. Supported: {supported}") from None

    width, height = image.size
    long_edge = max(width, height)
    if long_edge > target_px:
        scale = target_px / long_edge
        new_size = (max(1, int(width * scale)), max(1, int(height * scale)))
        image = image.resize(new_size, Image.Resampling.LANCZOS)

    # JPEG has no alpha channel
    if output_type == ImageMimeType.JPEG and image.mode != "RGB":
        image = image.convert("RGB")

    buffer = io.BytesIO()
    save_kwargs = {} if output_type == ImageMimeType.PNG else {"quality": round(quality * 100)}
    image.save(buffer, format=_PIL_FORMATS[output_type], **save_kwargs)
    encoded = base64.b64encode(buffer.getvalue()).decode("ascii")
    return f"data:{output_type.value};base64,{encoded}"
