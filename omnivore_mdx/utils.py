"""Utility helpers for slug normalization and output naming."""

from __future__ import annotations

import posixpath
import re
from typing import Iterable
from urllib.parse import unquote, urlparse

SLUG_PATTERN = re.compile(r"[^A-Za-z0-9-]")


def clean_slug(value: str, fallback: str = "untitled") -> str:
    """Keep only ASCII letters, digits and hyphens for use in filenames."""
    cleaned = SLUG_PATTERN.sub("", value or "")
    return cleaned or fallback


def slug_from_filename(filename: str) -> str:
    """``content/my-article.html`` -> ``my-article``."""
    base = filename.replace("\\", "/").rsplit("/", 1)[-1]
    if base.endswith(".html"):
        base = base[: -len(".html")]
    return base


def strip_query(url: str) -> str:
    return url.split("?", 1)[0]


def image_extension(url: str, allowed: Iterable[str], default: str = "png") -> str:
    """Return the image extension of the URL's last path segment, or ``default``."""
    path = urlparse(url).path
    segment = unquote(path.rsplit("/", 1)[-1])
    ext = posixpath.splitext(segment)[1].lstrip(".").lower()
    if ext in set(allowed):
        return ext
    return default
