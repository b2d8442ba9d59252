"""Validation, sizing and 2x2 splitting of uploaded images for print."""

import base64
import binascii
import logging
import math
from io import BytesIO
from pathlib import Path
from typing import List, Optional, Tuple
from urllib.parse import unquote, urlparse

import requests
from PIL import Image, ImageDraw, UnidentifiedImageError

from config import Config
from errors import DecodeError, DimensionError, FetchError, ValidationError
from models.api_schemas import ValidationResult
from models.image_settings import ImageSettings
from models.sheet_models import (
    GRID_POSITIONS,
    ImageDimensions,
    SheetPlan,
    SheetPosition,
)
from models.split_sheet import SplitSheet

log = logging.getLogger(__name__)

WHITE = (255, 255, 255)
SUPPORTED_FORMATS = ("JPEG", "PNG", "WEBP")
GRID_LINE_COLOR = (204, 204, 204, 128)
MARK_COLOR = (0, 0, 0, 255)
MARK_STROKE_PX = 2


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def _ceil_half(value: int) -> int:
    return -(-value // 2)


def validate_image_file(
    content_type: str, size: int, config: Optional[Config] = None
) -> ValidationResult:
    """Check declared media type and byte size of an upload, without decoding it."""
    config = config or Config()

    if content_type not in config.ALLOWED_MIME_TYPES:
        return ValidationResult(
            valid=False,
            reason="unsupported type",
            error="Invalid file type. Please upload a JPG, PNG, or WebP image.",
        )

    if size > config.MAX_FILE_SIZE_BYTES:
        return ValidationResult(
            valid=False,
            reason="too large",
            error=f"File too large. Maximum size is {config.MAX_FILE_SIZE_MB:g}MB.",
        )

    return ValidationResult(valid=True)


def ensure_valid_image_file(
    content_type: str, size: int, config: Optional[Config] = None
) -> None:
    result = validate_image_file(content_type, size, config)
    if not result.valid:
        raise ValidationError(result.reason or "invalid", result.error)


def ensure_processable(dimensions: ImageDimensions) -> None:
    """Reject images too small to be split into a 2x2 grid."""
    if dimensions.width <= 0 or dimensions.height <= 0:
        raise ValidationError("empty image", "Image has no pixels.")
    if dimensions.width == 1 and dimensions.height == 1:
        raise ValidationError("empty image", "Image is a single pixel.")


def _open_image(image_bytes: bytes) -> Image.Image:
    try:
        img = Image.open(BytesIO(image_bytes))
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError) as e:
        raise DecodeError("File is not a readable image") from e

    if img.format not in SUPPORTED_FORMATS:
        raise DecodeError(f"Unsupported image format: {img.format}")
    return img


def get_image_dimensions(image_bytes: bytes) -> ImageDimensions:
    """Read pixel size from the container header only."""
    img = _open_image(image_bytes)
    return ImageDimensions(width=img.width, height=img.height)


def decode_image(image_bytes: bytes) -> Image.Image:
    img = _open_image(image_bytes)
    try:
        img.load()
    except (OSError, SyntaxError) as e:
        raise DecodeError(f"Failed to decode {img.format} image") from e
    return img


def calculate_dimensions(
    original_width: int,
    original_height: int,
    target_width_inches: float,
    print_dpi: int = 300,
) -> SheetPlan:
    """Plan the resize target and quadrant size for a 2x2 print at print_dpi.

    original_width/original_height must describe the image as it will be
    resized, i.e. after rotation.
    """
    if original_width <= 0 or original_height <= 0:
        raise DimensionError(
            f"Image dimensions must be positive, got {original_width}x{original_height}"
        )
    if not math.isfinite(target_width_inches) or target_width_inches <= 0:
        raise DimensionError(
            f"Target width must be a positive number of inches, got {target_width_inches}"
        )

    final_width = _round_half_up(target_width_inches * print_dpi)
    aspect_ratio = original_height / original_width
    final_height = _round_half_up(final_width * aspect_ratio)

    if final_width < 1 or final_height < 1:
        raise DimensionError(
            f"Target of {target_width_inches}in yields an empty {final_width}x{final_height} print"
        )

    plan = SheetPlan(
        final_width_px=final_width,
        final_height_px=final_height,
        quadrant_width_px=_ceil_half(final_width),
        quadrant_height_px=_ceil_half(final_height),
    )
    log.debug(
        f"Planned {original_width}x{original_height} -> {final_width}x{final_height}, "
        f"quadrants {plan.quadrant_width_px}x{plan.quadrant_height_px}"
    )
    return plan


def flatten_to_rgb(img: Image.Image) -> Image.Image:
    """Composite any transparency onto white and return an RGB image."""
    if img.mode == "RGB":
        return img

    has_alpha = img.mode in ("RGBA", "LA", "PA") or (
        img.mode == "P" and "transparency" in img.info
    )
    if has_alpha:
        rgba = img.convert("RGBA")
        background = Image.new("RGBA", rgba.size, WHITE + (255,))
        return Image.alpha_composite(background, rgba).convert("RGB")

    if img.mode.startswith("I;16") or img.mode == "I":
        # 16-bit samples clip to white when converted directly; scale to 8 bits
        img = img.convert("I").point(lambda v: v * (1 / 256)).convert("L")

    return img.convert("RGB")


def rotate_image(img: Image.Image, degrees: float) -> Image.Image:
    """Rotate clockwise by degrees, growing the canvas and filling with white."""
    if degrees == 0:
        return img

    # Pillow turns counter-clockwise for positive angles
    return img.rotate(
        -degrees,
        resample=Image.Resampling.BICUBIC,
        expand=True,
        fillcolor=WHITE,
    )


def extract_sheet(
    resized: Image.Image, plan: SheetPlan, position: SheetPosition
) -> Image.Image:
    box = plan.extract_box(position)
    region = resized.crop(box)

    if not plan.needs_padding(position):
        return region

    sheet = Image.new("RGB", plan.quadrant_size, WHITE)
    if region.width > 0 and region.height > 0:
        sheet.paste(region, (0, 0))
    return sheet


def _cross_mark(draw: ImageDraw.ImageDraw, x: float, y: float, size: float) -> None:
    half = size / 2
    radius = size / 4
    draw.line([(x - half, y), (x + half, y)], fill=MARK_COLOR, width=MARK_STROKE_PX)
    draw.line([(x, y - half), (x, y + half)], fill=MARK_COLOR, width=MARK_STROKE_PX)
    draw.ellipse(
        [(x - radius, y - radius), (x + radius, y + radius)],
        outline=MARK_COLOR,
        width=MARK_STROKE_PX,
    )


def interior_corner(
    sheet_size: Tuple[int, int], position: SheetPosition
) -> Tuple[int, int]:
    """Sheet-local corner that touches the centre of the assembled 2x2 layout."""
    width, height = sheet_size
    x = 0 if position.col > 0 else width
    y = 0 if position.row > 0 else height
    return (x, y)


def add_grid_and_marks(
    sheet: Image.Image,
    position: SheetPosition,
    config: Optional[Config] = None,
) -> Image.Image:
    """Return a copy of the sheet with a 1cm grid and a registration cross."""
    config = config or Config()
    pixels_per_mm = config.PIXELS_PER_MM
    spacing = max(1, _round_half_up(config.GRID_SPACING_CM * 10 * pixels_per_mm))
    width, height = sheet.size

    overlay = Image.new("RGBA", sheet.size, (0, 0, 0, 0))
    draw = ImageDraw.Draw(overlay)

    for x in range(0, width, spacing):
        draw.line([(x, 0), (x, height)], fill=GRID_LINE_COLOR, width=1)
    for y in range(0, height, spacing):
        draw.line([(0, y), (width, y)], fill=GRID_LINE_COLOR, width=1)

    x, y = interior_corner(sheet.size, position)
    _cross_mark(draw, x, y, config.ALIGNMENT_MARK_SIZE_MM * pixels_per_mm)

    return Image.alpha_composite(sheet.convert("RGBA"), overlay).convert("RGB")


def split_image_into_sheets(
    image_bytes: bytes,
    settings: ImageSettings,
    draw_marks: Optional[bool] = None,
    config: Optional[Config] = None,
) -> List[SplitSheet]:
    """Split an image into four equally sized sheets in row-major order.

    Process:
    1. Rotate the full image (canvas grows, exposed area is white)
    2. Plan final size from the rotated bounding box at print resolution
    3. Resize with Lanczos to exactly the planned size
    4. Crop each quadrant and pad the last row/column with white
    """
    config = config or Config()
    if draw_marks is None:
        draw_marks = config.DRAW_ALIGNMENT_MARKS

    img = decode_image(image_bytes)
    ensure_processable(ImageDimensions(img.width, img.height))
    img = flatten_to_rgb(img)

    rotated = rotate_image(img, settings.rotation)
    plan = calculate_dimensions(
        rotated.width,
        rotated.height,
        settings.target_width_inches,
        config.PRINT_DPI,
    )
    resized = rotated.resize(
        (plan.final_width_px, plan.final_height_px), Image.Resampling.LANCZOS
    )

    sheets = []
    for position in GRID_POSITIONS:
        sheet = extract_sheet(resized, plan, position)
        if draw_marks:
            sheet = add_grid_and_marks(sheet, position, config)
        sheets.append(SplitSheet.from_pil_image(position, sheet))

    log.info(
        f"Split {img.width}x{img.height} image (rotation {settings.rotation}) into "
        f"4 sheets of {plan.quadrant_width_px}x{plan.quadrant_height_px}"
    )
    return sheets


def _decode_data_url(url: str) -> bytes:
    header, sep, payload = url.partition(",")
    if not sep or not header.endswith(";base64"):
        raise FetchError("Unsupported data URL, expected base64 payload")
    try:
        return base64.b64decode(payload, validate=True)
    except (binascii.Error, ValueError) as e:
        raise FetchError("Malformed base64 data URL") from e


def fetch_image(url: str, timeout: Optional[float] = None) -> bytes:
    """Retrieve source bytes from an http(s), file or data URL."""
    if url.startswith("data:"):
        return _decode_data_url(url)

    parsed = urlparse(url)
    if parsed.scheme == "file":
        try:
            return Path(unquote(parsed.path)).read_bytes()
        except OSError as e:
            raise FetchError(f"Failed to read image at {url}") from e

    if timeout is None:
        timeout = Config().FETCH_TIMEOUT

    try:
        response = requests.get(url, timeout=timeout)
        response.raise_for_status()
    except requests.RequestException as e:
        log.error(f"Failed to fetch image from {url}: {e}")
        raise FetchError("Failed to fetch image") from e

    return response.content


def split_image_from_url(
    url: str,
    settings: ImageSettings,
    draw_marks: Optional[bool] = None,
    config: Optional[Config] = None,
) -> List[SplitSheet]:
    config = config or Config()
    image_bytes = fetch_image(url, timeout=config.FETCH_TIMEOUT)
    return split_image_into_sheets(image_bytes, settings, draw_marks, config)
