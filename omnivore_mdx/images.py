"""Image downloading with image-proxy fallback."""

from __future__ import annotations

import asyncio
import logging
import re
import time
from typing import Optional
from urllib.parse import unquote, urlparse

import requests

from .config import ConvertConfig
from .events import EventEmitter

logger = logging.getLogger("omnivore_mdx.images")


def is_proxy_url(url: str, proxy_host: str) -> bool:
    return urlparse(url).netloc.lower() == proxy_host.lower()


def extract_proxy_source(url: str, proxy_host: str) -> Optional[str]:
    """Recover the original image URL embedded in a proxy URL's path.

    ``https://{proxy_host}/<params>/https%3A%2F%2Fexample.com%2Fa.png`` ->
    ``https://example.com/a.png``.
    """
    pattern = rf"https://{re.escape(proxy_host)}/.*?/(https?.*)"
    match = re.match(pattern, url)
    if not match:
        return None
    return unquote(match.group(1))


class ImageAcquirer:
    """Fetch remote images, unwrapping proxied URLs when the proxy fails.

    ``acquire`` never raises for network problems; a failed download is
    reported as ``None`` together with warning and error log entries.
    """

    def __init__(
        self,
        config: Optional[ConvertConfig] = None,
        session: Optional[requests.Session] = None,
        events: Optional[EventEmitter] = None,
    ) -> None:
        self.config = config or ConvertConfig()
        self.events = events or EventEmitter()
        if session is None:
            session = requests.Session()
            session.headers["User-Agent"] = self.config.user_agent
        self.session = session

    def _get(self, url: str, deadline: float) -> bytes:
        # requests only bounds connect and the gap between reads, so the
        # body is streamed and checked against the attempt deadline.
        with self.session.get(url, timeout=self.config.timeout, stream=True) as resp:
            resp.raise_for_status()
            chunks = []
            for chunk in resp.iter_content(chunk_size=8192):
                if time.monotonic() > deadline:
                    raise requests.Timeout(
                        f"Reading {url} exceeded {self.config.timeout}s"
                    )
                chunks.append(chunk)
        return b"".join(chunks)

    async def _attempt(self, url: str, label: str, severity: str = "warning") -> Optional[bytes]:
        timeout = self.config.timeout
        deadline = time.monotonic() + timeout
        try:
            data = await asyncio.wait_for(
                asyncio.to_thread(self._get, url, deadline), timeout
            )
        except (requests.RequestException, asyncio.TimeoutError) as exc:
            logger.debug("Fetch of %s failed: %s", url, exc)
            self.events.log(severity, f"Failed to download {label}: {url}")
            return None
        self.events.info(f"Successfully downloaded {label}: {url}")
        return data

    async def acquire(self, url: str) -> Optional[bytes]:
        """Return the image bytes for ``url`` or ``None`` once every attempt failed."""
        proxy_host = self.config.proxy_host
        if is_proxy_url(url, proxy_host):
            data = await self._attempt(url, "image from proxy")
            if data is not None:
                return data

            original = extract_proxy_source(url, proxy_host)
            if original:
                data = await self._attempt(original, "image from original URL")
                if data is not None:
                    return data

        return await self._attempt(url, "image", severity="error")
