"""Signature compositing: trim, fit, center and clip an image into a cell.

The operator's signature is usually a small scrawl on a large blank canvas.
Drawn as-is it would shrink to a dot inside a 8 x 6 mm calendar cell, and a
naive fit can paint over the table gridlines. The pipeline here crops the
blank border, fits the result inside the cell minus a margin, and clips the
drawing to the cell rectangle.
"""

from __future__ import annotations

import base64
import binascii
import io
import logging
from dataclasses import dataclass
from typing import Protocol

from PIL import Image, ImageChops, UnidentifiedImageError

from .errors import RenderError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Rect:
    """A rectangle in millimetres, origin at the top-left of the page."""

    x: float
    y: float
    width: float
    height: float

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains(self, other: Rect, tolerance: float = 1e-9) -> bool:
        return (
            other.x >= self.x - tolerance
            and other.y >= self.y - tolerance
            and other.right <= self.right + tolerance
            and other.bottom <= self.bottom + tolerance
        )


@dataclass
class SignatureOptions:
    margin: float = 0.8  # mm kept free inside the cell
    center: bool = True
    scale: float = 0.95  # clamped to [0.5, 1.0]
    trim: bool = True
    white_threshold: int = 250
    alpha_threshold: int = 10
    clip: Rect | None = None  # defaults to the destination cell

    def clamped_scale(self) -> float:
        return max(0.5, min(1.0, self.scale))


class Canvas(Protocol):
    """The drawing primitives the compositor needs."""

    def save_state(self) -> None: ...

    def clip_rect(self, rect: Rect) -> None: ...

    def draw_image(self, image: Image.Image, rect: Rect) -> None: ...

    def restore_state(self) -> None: ...


def decode_data_url(url: str | None) -> bytes | None:
    """Return the payload of a ``data:image/...;base64,`` URL, or None."""
    if not url:
        return None
    _, sep, payload = url.partition("base64,")
    if not sep:
        payload = url
    try:
        return base64.b64decode(payload, validate=False)
    except (binascii.Error, ValueError):
        logger.warning("Signature data URL is not valid base64")
        return None


def decode_image(data: bytes) -> Image.Image:
    """Decode PNG/JPEG bytes into an RGBA image.

    Raises:
        RenderError: If the bytes are not a readable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            return img.convert("RGBA")
    except (UnidentifiedImageError, OSError, ValueError) as e:
        raise RenderError(f"Immagine firma non leggibile: {e}") from e


def trim_bounds(
    image: Image.Image,
    white_threshold: int = 250,
    alpha_threshold: int = 10,
) -> tuple[int, int, int, int] | None:
    """Bounding box ``(left, top, right, bottom)`` of the inked pixels.

    A pixel counts as ink when its alpha is above ``alpha_threshold`` and at
    least one colour channel is below ``white_threshold``. ``right`` and
    ``bottom`` are exclusive. Returns None when nothing qualifies or the box
    is a single row or column.
    """
    white_t = max(0, min(255, white_threshold))
    alpha_t = max(0, min(255, alpha_threshold))
    r, g, b, a = image.convert("RGBA").split()
    darkest = ImageChops.darker(ImageChops.darker(r, g), b)
    not_white = darkest.point(lambda v: 255 if v < white_t else 0)
    opaque = a.point(lambda v: 255 if v > alpha_t else 0)
    ink = ImageChops.multiply(not_white, opaque)
    box = ink.getbbox()
    if box is None:
        return None
    left, top, right, bottom = box
    if right - left < 2 or bottom - top < 2:
        return None
    return box


def trim(
    image: Image.Image,
    white_threshold: int = 250,
    alpha_threshold: int = 10,
) -> Image.Image:
    """Crop the blank border; the image is returned unchanged if blank."""
    box = trim_bounds(image, white_threshold, alpha_threshold)
    if box is None:
        return image
    return image.crop(box)


def fit_rect(
    image_size: tuple[int, int], dest: Rect, options: SignatureOptions
) -> Rect:
    """Where to draw an image of ``image_size`` pixels inside ``dest``.

    The destination shrinks by the margin on every side, the image keeps its
    aspect ratio and is scaled down by ``options.scale``.
    """
    margin = max(0.0, options.margin)
    box_x = dest.x + margin
    box_y = dest.y + margin
    box_w = max(0.1, dest.width - margin * 2)
    box_h = max(0.1, dest.height - margin * 2)

    natural_w = image_size[0] or 1
    natural_h = image_size[1] or 1
    ratio_img = natural_w / natural_h
    ratio_box = box_w / box_h
    if ratio_img > ratio_box:
        draw_w = box_w
        draw_h = box_w / ratio_img
    else:
        draw_h = box_h
        draw_w = box_h * ratio_img

    scale = options.clamped_scale()
    draw_w *= scale
    draw_h *= scale

    offset_x = (box_w - draw_w) / 2 if options.center else 0.0
    offset_y = (box_h - draw_h) / 2 if options.center else 0.0
    return Rect(box_x + offset_x, box_y + offset_y, draw_w, draw_h)


def prepare(data: bytes, options: SignatureOptions) -> Image.Image:
    """Decode and (optionally) trim a signature image."""
    image = decode_image(data)
    if options.trim:
        image = trim(image, options.white_threshold, options.alpha_threshold)
    return image


def composite_into(
    data: bytes | Image.Image | None,
    dest: Rect,
    canvas: Canvas,
    options: SignatureOptions | None = None,
) -> bool:
    """Draw a signature into ``dest`` on ``canvas``.

    ``data`` may be raw PNG/JPEG bytes or an already prepared image (the
    renderer prepares the site signature once per document).

    Returns:
        True if the image was drawn. False if there was nothing to draw, the
        image could not be decoded, or a drawing primitive failed; the caller
        is expected to fall back to a text marker.
    """
    if data is None:
        return False
    options = options or SignatureOptions()
    try:
        image = data if isinstance(data, Image.Image) else prepare(data, options)
    except RenderError as e:
        logger.warning("Signature skipped: %s", e)
        return False

    target = fit_rect(image.size, dest, options)
    try:
        canvas.save_state()
        try:
            canvas.clip_rect(options.clip or dest)
            canvas.draw_image(image, target)
        finally:
            canvas.restore_state()
    except Exception:
        logger.warning("Could not draw signature at %s", dest, exc_info=True)
        return False
    return True
