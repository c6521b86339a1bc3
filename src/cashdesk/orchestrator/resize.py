"""Image preprocessing: any photo -> bounded-size JPEG data URL for JSON transport."""

from __future__ import annotations

import base64
import io
from typing import Tuple

from PIL import Image, ImageOps, UnidentifiedImageError

from ..domain.errors import ImageDecodeError, UnsupportedFormatError
from ..logging import get_logger

LOG = get_logger("orchestrator-resize")

DEFAULT_MAX_DIMENSION = 1600
DEFAULT_QUALITY = 82  # 0.82 on the 0..1 scale
DATA_URL_PREFIX = "data:image/"


def target_size(width: int, height: int, max_dimension: int) -> Tuple[int, int]:
    """Scale (width, height) down so the long edge fits max_dimension; never up."""
    if width <= 0 or height <= 0:
        raise ImageDecodeError("Imagem sem dimensoes validas.")
    scale = min(1.0, max_dimension / float(max(width, height)))
    out_w = max(1, _round_half_up(width * scale))
    out_h = max(1, _round_half_up(height * scale))
    return out_w, out_h


def _round_half_up(value: float) -> int:
    # Python's round() is banker's rounding; pixel sizes round .5 up
    return int(value + 0.5)


def _decode(data: bytes) -> Image.Image:
    try:
        image = Image.open(io.BytesIO(data))
    except UnidentifiedImageError as e:
        raise UnsupportedFormatError() from e
    except Image.DecompressionBombError as e:
        LOG.warning(f"Refusing oversized image: {e}")
        raise ImageDecodeError("Imagem com dimensoes excessivas.") from e
    except (OSError, ValueError, SyntaxError) as e:
        # some plugins (WebP) start decoding inside open()
        LOG.warning(f"Image open failed: {e}")
        raise ImageDecodeError() from e
    try:
        image.load()
        image = ImageOps.exif_transpose(image)
    except (Image.DecompressionBombError, OSError, ValueError, SyntaxError) as e:
        LOG.warning(f"Image decode failed: {e}")
        raise ImageDecodeError() from e
    return image


def resize_image(
    data: bytes,
    max_dimension: int = DEFAULT_MAX_DIMENSION,
    *,
    quality: int = DEFAULT_QUALITY,
) -> str:
    """Return a `data:image/jpeg;base64,...` payload no larger than max_dimension.

    Raises UnsupportedFormatError when the bytes are not an image format Pillow
    recognises and ImageDecodeError when a recognised image cannot be decoded.
    """
    if not data:
        raise UnsupportedFormatError("Arquivo de imagem vazio.")
    image = _decode(data)
    width, height = image.size
    out_w, out_h = target_size(width, height, max_dimension)

    if image.mode != "RGB":
        image = image.convert("RGB")
    if (out_w, out_h) != (width, height):
        image = image.resize((out_w, out_h), Image.Resampling.LANCZOS)
    LOG.debug(f"Resized {width}x{height} -> {out_w}x{out_h} (max {max_dimension})")

    buf = io.BytesIO()
    try:
        image.save(buf, format="JPEG", quality=quality)
    except OSError as e:
        raise ImageDecodeError("Falha ao preparar imagem.") from e
    encoded = base64.b64encode(buf.getvalue()).decode("ascii")
    return f"{DATA_URL_PREFIX}jpeg;base64,{encoded}"


def read_image_file(path: str) -> bytes:
    with open(path, "rb") as f:
        return f.read()
