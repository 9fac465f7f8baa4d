"""Result image rendering and side-by-side composition (Pillow)"""
import base64
import io
import logging
from typing import List, Optional, Sequence

import httpx
from PIL import Image, ImageDraw, UnidentifiedImageError

from app.core.config import settings
from app.core.exceptions import ImageCompositionError, ImageRenderError
from app.services.guess_evaluator import LetterStatus

logger = logging.getLogger(__name__)

SQUARE_SIZE = 40
SQUARE_GAP = 2
SQUARE_RADIUS = 4
AVATAR_SIZE = 180
PADDING = 20
VERTICAL_SPACING = 30

COLORS = {
    LetterStatus.CORRECT: "#00bc7d",
    LetterStatus.PRESENT: "#f0b100",
    LetterStatus.ABSENT: "#6a7282",
}
AVATAR_PLACEHOLDER = "#5865f2"

AVATAR_TIMEOUT = 5.0


def avatar_url(discord_id: str, avatar: Optional[str], discriminator: Optional[str] = None) -> str:
    """CDN URL for a user's avatar, or Discord's default avatar"""
    if avatar:
        return f"{settings.DISCORD_CDN_BASE}/avatars/{discord_id}/{avatar}.png?size=128"
    try:
        index = int(discriminator or "0") % 5
    except ValueError:
        index = 0
    return f"{settings.DISCORD_CDN_BASE}/embed/avatars/{index}.png"


def fetch_avatar(url: str) -> Optional[Image.Image]:
    """Download an avatar; None when it cannot be fetched or decoded"""
    try:
        response = httpx.get(url, timeout=AVATAR_TIMEOUT, follow_redirects=True)
        response.raise_for_status()
        image = Image.open(io.BytesIO(response.content))
        image.load()
        return image.convert("RGBA")
    except (httpx.HTTPError, UnidentifiedImageError, OSError) as e:
        logger.warning(f"Failed to load avatar {url}: {e}")
        return None


def _circular(avatar: Image.Image, size: int) -> Image.Image:
    avatar = avatar.resize((size, size))
    mask = Image.new("L", (size, size), 0)
    ImageDraw.Draw(mask).ellipse((0, 0, size - 1, size - 1), fill=255)
    out = Image.new("RGBA", (size, size), (0, 0, 0, 0))
    out.paste(avatar, (0, 0), mask)
    return out


def render_result_image(rows: Sequence[Sequence[LetterStatus]], avatar: Optional[Image.Image] = None) -> bytes:
    """Transparent PNG: round avatar above a grid of colored squares

    Raises:
        ImageRenderError: if Pillow fails to draw or encode the image
    """
    try:
        row_count = len(rows)
        grid_width = 5 * SQUARE_SIZE + 4 * SQUARE_GAP
        grid_height = max(row_count * SQUARE_SIZE + (row_count - 1) * SQUARE_GAP, 0)
        width = max(grid_width, AVATAR_SIZE) + 2 * PADDING
        height = AVATAR_SIZE + VERTICAL_SPACING + grid_height + 2 * PADDING

        canvas = Image.new("RGBA", (width, height), (0, 0, 0, 0))
        draw = ImageDraw.Draw(canvas)

        avatar_x = (width - AVATAR_SIZE) // 2
        avatar_y = PADDING
        if avatar is not None:
            circle = _circular(avatar, AVATAR_SIZE)
            canvas.paste(circle, (avatar_x, avatar_y), circle)
        else:
            draw.ellipse(
                (avatar_x, avatar_y, avatar_x + AVATAR_SIZE - 1, avatar_y + AVATAR_SIZE - 1),
                fill=AVATAR_PLACEHOLDER
            )

        grid_x = (width - grid_width) // 2
        grid_y = avatar_y + AVATAR_SIZE + VERTICAL_SPACING
        for r, row in enumerate(rows):
            for c, status in enumerate(row):
                x = grid_x + c * (SQUARE_SIZE + SQUARE_GAP)
                y = grid_y + r * (SQUARE_SIZE + SQUARE_GAP)
                draw.rounded_rectangle(
                    (x, y, x + SQUARE_SIZE - 1, y + SQUARE_SIZE - 1),
                    radius=SQUARE_RADIUS,
                    fill=COLORS[status]
                )

        buffer = io.BytesIO()
        canvas.save(buffer, format="PNG")
        return buffer.getvalue()
    except (OSError, ValueError, KeyError) as e:
        raise ImageRenderError(f"Failed to render result image: {e}") from e


def render_player_result(
    rows: Sequence[Sequence[LetterStatus]],
    discord_id: str,
    avatar: Optional[str],
    discriminator: Optional[str] = None,
) -> bytes:
    return render_result_image(rows, fetch_avatar(avatar_url(discord_id, avatar, discriminator)))


def combine_images_side_by_side(blobs: Sequence[bytes]) -> bytes:
    """Lay PNGs out left to right, each fitted to the first one's size

    Raises:
        ImageCompositionError: on empty input or undecodable images
    """
    if not blobs:
        raise ImageCompositionError("No images to combine")
    if len(blobs) == 1:
        return blobs[0]

    try:
        images: List[Image.Image] = []
        for blob in blobs:
            with Image.open(io.BytesIO(blob)) as im:
                images.append(im.convert("RGBA"))

        width, height = images[0].size
        combined = Image.new("RGBA", (width * len(images), height), (0, 0, 0, 0))
        for index, image in enumerate(images):
            fitted = image.copy()
            fitted.thumbnail((width, height))
            left = index * width + (width - fitted.width) // 2
            top = (height - fitted.height) // 2
            combined.paste(fitted, (left, top), fitted)

        buffer = io.BytesIO()
        combined.save(buffer, format="PNG", compress_level=6)
        return buffer.getvalue()
    except (OSError, ValueError) as e:
        raise ImageCompositionError(f"Failed to combine images: {e}") from e


def combine_base64_images(images: Sequence[str]) -> str:
    if len(images) == 1:
        return images[0]
    try:
        blobs = [base64.b64decode(image, validate=True) for image in images]
    except (ValueError, TypeError) as e:
        raise ImageCompositionError(f"Invalid base64 image: {e}") from e
    return base64.b64encode(combine_images_side_by_side(blobs)).decode()


def to_base64(blob: bytes) -> str:
    return base64.b64encode(blob).decode()
