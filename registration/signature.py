"""Signature capture: drawn image or typed name rendered to an image.

The drawing surface itself lives in the view; this module only decides
whether a signature exists for the active mode and produces the encoded
PNG that goes into the submission.
"""
import base64
import io
import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Optional

from PIL import Image, ImageDraw, ImageFont

from registration import config

logger = logging.getLogger(__name__)

PNG_DATA_URL_PREFIX = "data:image/png;base64,"


class SignatureMode(str, Enum):
    DRAW = "draw"
    TYPE = "type"


def _load_font(size: int):
    candidates = [
        os.getenv("SIGNATURE_TTF"),
        "/usr/share/fonts/truetype/dejavu/DejaVuSans-Oblique.ttf",
        "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
        "/System/Library/Fonts/Supplemental/Arial.ttf",
        "C:/Windows/Fonts/arial.ttf",
    ]
    for path in candidates:
        if not path:
            continue
        try:
            return ImageFont.truetype(path, size)
        except OSError:
            continue
    logger.warning("No TrueType font found for typed signatures; using PIL default font")
    return ImageFont.load_default(size=size)


def image_to_data_url(image: Image.Image) -> str:
    buffer = io.BytesIO()
    image.save(buffer, format="PNG")
    return PNG_DATA_URL_PREFIX + base64.b64encode(buffer.getvalue()).decode("ascii")


def render_typed_signature(name: str) -> str:
    """Draw the typed name on a transparent canvas, left-aligned and vertically centered."""
    width, height = config.SIGNATURE_CANVAS_SIZE
    canvas = Image.new("RGBA", (width, height), (255, 255, 255, 0))
    draw = ImageDraw.Draw(canvas)
    font = _load_font(config.SIGNATURE_FONT_SIZE)
    draw.text((config.SIGNATURE_TEXT_X, height / 2), name, font=font, fill=(0, 0, 0, 255), anchor="lm")
    return image_to_data_url(canvas)


@dataclass
class SignatureInput:
    """Current state of the signature widget."""
    mode: SignatureMode = SignatureMode.DRAW
    drawn_image: Optional[str] = None
    typed_name: str = ""

    def clear(self) -> None:
        self.drawn_image = None
        self.typed_name = ""

    def is_provided(self) -> bool:
        if self.mode == SignatureMode.DRAW:
            return bool(self.drawn_image)
        return bool(self.typed_name.strip())

    def missing_message(self) -> str:
        if self.mode == SignatureMode.DRAW:
            return "Please provide a signature by drawing it."
        return "Please provide a signature by typing your name."

    def to_data_url(self) -> str:
        """Encoded image for the active mode; empty string if none."""
        if not self.is_provided():
            return ""
        if self.mode == SignatureMode.DRAW:
            return self.drawn_image
        return render_typed_signature(self.typed_name)
