import base64
import logging
import urllib.parse
import zlib
from typing import Optional

import requests

from storyengine.core.errors import GenerationError
from storyengine.core.settings import settings

logger = logging.getLogger(__name__)

HEADERS = {"User-Agent": "storyengine/0.1"}

class ImageClient:
    """
    Turns an illustration prompt into an image reference: a pollinations
    URL, or a data: URI when inline images are enabled.
    """

    def __init__(self, session: Optional[requests.Session] = None):
        self.session = session or requests.Session()

    def url_for(self, prompt: str) -> str:
        encoded = urllib.parse.quote(prompt.strip(), safe="")
        # stable seed so the same prompt keeps the same picture
        seed = zlib.crc32(prompt.encode("utf-8")) % 1_000_000
        query = urllib.parse.urlencode({
            "width": settings.image_width,
            "height": settings.image_height,
            "nologo": "true",
            "seed": seed,
        })
        return f"{settings.image_base_url.rstrip('/')}/{encoded}?{query}"

    def reference_for(self, prompt: str) -> str:
        if not prompt.strip():
            raise GenerationError("Empty image prompt")
        url = self.url_for(prompt)
        if not settings.inline_images:
            return url

        logger.info("Fetching illustration: %s", url)
        try:
            resp = self.session.get(url, headers=HEADERS, timeout=settings.image_timeout)
        except requests.RequestException as e:
            raise GenerationError(f"Image request failed: {e}") from e
        if resp.status_code != 200 or not resp.content:
            raise GenerationError(f"Image request returned {resp.status_code}")

        content_type = resp.headers.get("Content-Type", "image/jpeg").split(";")[0]
        data = base64.b64encode(resp.content).decode("ascii")
        return f"data:{content_type};base64,{data}"

image_client = ImageClient()
