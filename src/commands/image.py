"""Fetch an image by URL and send it back as a photo."""

from __future__ import annotations

import asyncio
import io
import re

import aiohttp
from PIL import Image, ImageOps

from core.registry import CommandContext

USAGE = "⚠️ Usage: `!image <url>` (the link must start with http or https)"
CAPTION = "\U0001F5BC Here is your image"
FAILURE = "❌ Could not load the image. Make sure the link is direct and reachable."
MAX_BYTES = 10 * 1024 * 1024
TIMEOUT = aiohttp.ClientTimeout(total=30)

_URL_RE = re.compile(r"^https?://", re.IGNORECASE)


class ImageTooLargeError(ValueError):
    pass


def clean_url(raw: str) -> str:
    """Strip angle brackets, zero-width spaces and extra whitespace."""

    value = (raw or "").strip()
    value = re.sub(r"^<+|>+$", "", value)
    value = value.replace("\u200b", "")
    return re.sub(r"\s+", " ", value).strip()


def transcode(data: bytes) -> bytes:
    """Re-encode as JPEG for compatibility, falling back to PNG."""

    with Image.open(io.BytesIO(data)) as source:
        image = ImageOps.exif_transpose(source)
        output = io.BytesIO()
        try:
            image.convert("RGB").save(output, format="JPEG", quality=85)
        except (OSError, ValueError):
            output = io.BytesIO()
            image.save(output, format="PNG")
    return output.getvalue()


async def fetch(url: str) -> bytes:
    async with aiohttp.ClientSession(timeout=TIMEOUT) as http:
        async with http.get(url, allow_redirects=True) as resp:
            resp.raise_for_status()
            if resp.content_length and resp.content_length > MAX_BYTES:
                raise ImageTooLargeError(f"{resp.content_length} bytes")
            data = await resp.content.read(MAX_BYTES + 1)
    if len(data) > MAX_BYTES:
        raise ImageTooLargeError(f"more than {MAX_BYTES} bytes")
    return data


class ImageCommand:
    name = "!image"
    aliases = ["image", "!img", "img", "!photo", "photo"]
    description = "Send an image from a link"

    async def run(self, ctx: CommandContext) -> None:
        url = clean_url(" ".join(ctx.arguments))
        if not url or not _URL_RE.match(url):
            await ctx.reply(USAGE)
            return
        try:
            data = await fetch(url)
            image = await asyncio.to_thread(transcode, data)
            await ctx.transport.send_image(ctx.chat_id, image, CAPTION, reply_to=ctx.message)
        except Exception:
            ctx.logger.exception("Image command failed for %s", url)
            await ctx.reply(FAILURE)


command = ImageCommand()
