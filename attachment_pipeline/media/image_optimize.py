"""
Image Optimizer — orient, resize, recompress, thumbnail.

Pipeline:
1. Auto-orient from EXIF (before any resize, or the rotation is lost)
2. Fit inside a bounding box (default 1920x1920), never upscale
3. Recompress: PNG → palette PNG, WEBP → WEBP, AVIF → AVIF,
   everything else (JPEG, HEIC, BMP, GIF, ...) → progressive JPEG
4. Thumbnail: center-crop to a fixed square, always JPEG

Dimensions and format of the result are read back from the encoded
bytes, since the encoder may alter both.

Raises DecodeError when the bytes are not a decodable image. Any other
failure propagates; the fallback wrapper decides what to store.
"""

from __future__ import annotations

import io
import logging
from typing import Optional

import pillow_heif
from PIL import Image, ImageOps, UnidentifiedImageError

from .errors import DecodeError
from .types import THUMBNAIL_QUALITY, ImageOptions, OptimizationResult

logger = logging.getLogger(__name__)

# iPhone photos arrive as HEIC; Pillow needs the plugin to decode them
pillow_heif.register_heif_opener()

# Declared subtype → encoder. Anything missing here is written as JPEG.
OUTPUT_FORMATS = {
    "png": "PNG",
    "webp": "WEBP",
    "avif": "AVIF",
}

FORMAT_EXTENSIONS = {
    "jpeg": ".jpg",
    "png": ".png",
    "webp": ".webp",
    "avif": ".avif",
}

FORMAT_MIME_TYPES = {
    "jpeg": "image/jpeg",
    "png": "image/png",
    "webp": "image/webp",
    "avif": "image/avif",
}

PNG_PALETTE_COLORS = 256
WEBP_METHOD = 6  # compression effort (0-6)


def output_format_for(mime_type: str) -> str:
    """Pick the encoder for a declared image MIME type."""
    subtype = mime_type.split(";", 1)[0].strip().lower().rpartition("/")[2]
    return OUTPUT_FORMATS.get(subtype, "JPEG")


def optimize_image(
    data: bytes,
    mime_type: str,
    options: Optional[ImageOptions] = None,
) -> OptimizationResult:
    """
    Optimize an uploaded image.

    Args:
        data: Raw image bytes.
        mime_type: Declared MIME type (e.g. "image/png").
        options: Size/quality knobs; defaults to ImageOptions().

    Returns:
        OptimizationResult with the encoded image and, when requested,
        a JPEG thumbnail.

    Raises:
        DecodeError: the bytes cannot be decoded as an image.
    """
    opts = options or ImageOptions()
    original_size = len(data)

    img = _decode(data, mime_type)
    original_dims = img.size

    # ── Orient ───────────────────────────────────────────────
    img = ImageOps.exif_transpose(img)

    # ── Resize to fit the bounding box ───────────────────────
    fmt = output_format_for(mime_type)
    main = _prepare_mode(img, fmt)

    w, h = main.size
    ratio = min(opts.max_width / w, opts.max_height / h)
    if ratio < 1:
        new_w = max(1, round(w * ratio))
        new_h = max(1, round(h * ratio))
        main = main.resize((new_w, new_h), Image.LANCZOS)
        logger.debug(
            f"Resized: {w}x{h} → {new_w}x{new_h} "
            f"(box={opts.max_width}x{opts.max_height})"
        )

    # ── Encode ───────────────────────────────────────────────
    optimized = _encode(main, fmt, opts.quality)

    with Image.open(io.BytesIO(optimized)) as encoded:
        width, height = encoded.size
        out_format = (encoded.format or fmt).lower()

    # ── Thumbnail ────────────────────────────────────────────
    thumbnail: Optional[bytes] = None
    if opts.generate_thumbnail:
        try:
            thumbnail = make_thumbnail(img, opts.thumbnail_width, opts.thumbnail_height)
        except (OSError, ValueError) as e:
            logger.warning(f"Thumbnail generation failed: {e} — continuing without")

    result = OptimizationResult(
        optimized_bytes=optimized,
        thumbnail_bytes=thumbnail,
        original_size=original_size,
        output_format=out_format,
        width=width,
        height=height,
    )

    logger.info(
        f"Optimized: {original_dims[0]}x{original_dims[1]} ({mime_type}) "
        f"→ {width}x{height} ({out_format}): "
        f"{original_size:,} → {result.optimized_size:,} bytes "
        f"({result.compression_ratio}% saved)"
    )
    return result


def make_thumbnail(img: Image.Image, width: int, height: int) -> bytes:
    """Center-crop ("cover") to exactly width x height, as progressive JPEG."""
    thumb = ImageOps.fit(
        _flatten_to_rgb(img),
        (width, height),
        Image.LANCZOS,
        centering=(0.5, 0.5),
    )
    buf = io.BytesIO()
    thumb.save(
        buf,
        format="JPEG",
        quality=THUMBNAIL_QUALITY,
        progressive=True,
        optimize=True,
    )
    return buf.getvalue()


# ── Internal helpers ─────────────────────────────────────────


def _decode(data: bytes, mime_type: str) -> Image.Image:
    """Open and fully load the image, or raise DecodeError."""
    if not data:
        raise DecodeError("empty upload", mime_type=mime_type)
    try:
        img = Image.open(io.BytesIO(data))
        img.load()
    except (UnidentifiedImageError, OSError, SyntaxError, ValueError,
            Image.DecompressionBombError) as e:
        raise DecodeError(f"cannot decode {mime_type}: {e}", mime_type=mime_type) from e
    return img


def _prepare_mode(img: Image.Image, fmt: str) -> Image.Image:
    """Convert to a color mode the target encoder accepts."""
    if fmt == "JPEG":
        return _flatten_to_rgb(img)

    if img.mode == "P":
        img = img.convert("RGBA")
    elif img.mode not in ("RGB", "RGBA"):
        img = img.convert("RGBA" if "A" in img.mode else "RGB")

    if img.mode == "RGBA" and not _has_meaningful_alpha(img):
        img = img.convert("RGB")
    return img


def _flatten_to_rgb(img: Image.Image) -> Image.Image:
    """JPEG has no alpha — composite onto white."""
    if img.mode in ("RGBA", "LA", "P"):
        if img.mode == "P":
            img = img.convert("RGBA")
        bg = Image.new("RGB", img.size, (255, 255, 255))
        bg.paste(img, mask=img.split()[-1] if "A" in img.mode else None)
        return bg
    if img.mode != "RGB":
        return img.convert("RGB")
    return img


def _encode(img: Image.Image, fmt: str, quality: int) -> bytes:
    buf = io.BytesIO()
    if fmt == "JPEG":
        img.save(buf, format="JPEG", quality=quality, progressive=True, optimize=True)
    elif fmt == "PNG":
        palette = img.quantize(colors=PNG_PALETTE_COLORS)
        palette.save(buf, format="PNG", optimize=True, compress_level=9)
    elif fmt == "WEBP":
        img.save(buf, format="WEBP", quality=quality, method=WEBP_METHOD)
    else:
        img.save(buf, format=fmt, quality=quality)
    return buf.getvalue()


def _has_meaningful_alpha(img: Image.Image) -> bool:
    """Check if an RGBA image actually uses transparency."""
    if img.mode != "RGBA":
        return False
    alpha = img.split()[-1]
    extrema = alpha.getextrema()
    # If min alpha is 255, the entire image is fully opaque
    return extrema[0] < 255
