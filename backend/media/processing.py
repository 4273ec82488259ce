"""Image optimization for uploads (Pillow)"""
import io
import logging
import warnings

from PIL import Image, ImageOps, UnidentifiedImageError

logger = logging.getLogger(__name__)

MAX_DIMENSION = 1200
OPTIMIZED_QUALITY = 85
THUMBNAIL_SIZE = (300, 300)
THUMBNAIL_QUALITY = 80


class ImageProcessingError(Exception):
    """Raised when an uploaded image cannot be decoded"""


def _to_rgb(image):
    if image.mode in ('RGBA', 'LA') or (image.mode == 'P' and 'transparency' in image.info):
        image = image.convert('RGBA')
        background = Image.new('RGB', image.size, (255, 255, 255))
        background.paste(image, mask=image.split()[-1])
        return background
    if image.mode != 'RGB':
        return image.convert('RGB')
    return image


def _encode_jpeg(image, quality):
    buffer = io.BytesIO()
    image.save(buffer, format='JPEG', quality=quality, optimize=True)
    return buffer.getvalue()


def open_image(content):
    try:
        with warnings.catch_warnings():
            # oversized images are refused, not merely warned about
            warnings.simplefilter('error', Image.DecompressionBombWarning)
            image = Image.open(io.BytesIO(content))
            image.load()
    except (UnidentifiedImageError, Image.DecompressionBombError, Image.DecompressionBombWarning,
            OSError, ValueError) as e:
        logger.warning(f"Unreadable image upload: {e}")
        raise ImageProcessingError('File is not a valid image') from e
    return _to_rgb(image)


def process_image(content):
    """
    Return (optimized, thumbnail) JPEG bytes for raw image `content`.

    The optimized image fits inside 1200x1200 and is never enlarged; the
    thumbnail is center-cropped to cover 300x300.
    """
    image = open_image(content)

    optimized = image.copy()
    optimized.thumbnail((MAX_DIMENSION, MAX_DIMENSION), Image.Resampling.LANCZOS)

    thumbnail = ImageOps.fit(image, THUMBNAIL_SIZE, Image.Resampling.LANCZOS)

    return _encode_jpeg(optimized, OPTIMIZED_QUALITY), _encode_jpeg(thumbnail, THUMBNAIL_QUALITY)
