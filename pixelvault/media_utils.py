import io
import logging
from typing import Optional, Tuple
from PIL import Image

logger = logging.getLogger(__name__)


def read_dimensions(image_data: bytes) -> Optional[Tuple[int, int]]:
    """Best-effort (width, height) of an image; None when Pillow cannot parse it.

    Only the header is decoded, the bytes themselves are never modified.
    """
    try:
        with Image.open(io.BytesIO(image_data)) as img:
            return img.width, img.height
    except Exception as e:
        logger.debug(f"Could not read image dimensions: {e}")
        return None
