"""Configuration objects and constants for the converter."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Tuple

VERSION = "0.1.0"
DEFAULT_TIMEOUT = 10.0
DEFAULT_PROXY_HOST = "proxy-prod.omnivore-image-cache.app"
IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "gif", "webp", "svg")


@dataclass
class ConvertConfig:
    """Settings that control image acquisition and output naming."""

    timeout: float = DEFAULT_TIMEOUT
    proxy_host: str = DEFAULT_PROXY_HOST
    attachments_dir: str = "attachments"
    image_extensions: Tuple[str, ...] = field(default=IMAGE_EXTENSIONS)
    default_extension: str = "png"
    user_agent: str = f"omnivore-mdx/{VERSION}"
