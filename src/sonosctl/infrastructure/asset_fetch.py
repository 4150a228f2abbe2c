import base64
import logging

import httpx

LOG = logging.getLogger(__name__)

_DEFAULT_MIME = "image/jpeg"


class ImageFetcher:
    def __init__(self, timeout_s: float = 5.0) -> None:
        self.timeout_s = timeout_s

    async def __call__(self, url: str) -> str | None:
        try:
            async with httpx.AsyncClient(timeout=self.timeout_s, follow_redirects=True) as client:
                r = await client.get(url)
            r.raise_for_status()
        except httpx.HTTPError as exc:
            LOG.debug("image fetch failed url=%s err=%s", url, exc)
            return None

        mime = (r.headers.get("content-type") or _DEFAULT_MIME).split(";", 1)[0].strip()
        payload = base64.b64encode(r.content).decode("ascii")
        return f"data:{mime or _DEFAULT_MIME};base64,{payload}"
