"""HTML to Markdown transformation and Markdown image reference helpers."""

from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Any, List, Mapping, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup
from markdownify import markdownify

logger = logging.getLogger("omnivore_mdx.markdown")

# ![alt](url) or ![alt](url "title"); alt may hold one level of [brackets].
# Only absolute http(s) URLs are captured.
IMAGE_PATTERN = re.compile(
    r'!\[(?P<alt>(?:[^\[\]]|\[[^\]]*\])*)\]\((?P<url>https?://[^\s)]+)(?:\s+"[^"]*")?\)'
)
# markdownify reduces images in these tags to their alt text by default.
_INLINE_IMAGE_TAGS = ["td", "th", "h1", "h2", "h3", "h4", "h5", "h6"]
_BLANK_LINES = re.compile(r"\n{3,}")
_UNRESOLVED_PREFIXES = ("data:", "mailto:", "javascript:", "#")


@dataclass(frozen=True)
class ImageReference:
    """An image embedded in Markdown text."""

    alt: str
    url: str
    span: Tuple[int, int]


def _clean_content(soup: BeautifulSoup) -> BeautifulSoup:
    for tag in soup(["script", "style", "noscript"]):
        tag.decompose()
    return soup


def _resolve_links(soup: BeautifulSoup, source_url: str) -> None:
    """Make ``img[src]`` and ``a[href]`` absolute against ``source_url``."""
    if not source_url:
        return
    for tag_name, attr in (("img", "src"), ("a", "href")):
        for tag in soup.find_all(tag_name):
            value = tag.get(attr)
            if not value or not isinstance(value, str):
                continue
            value = value.strip()
            if value.lower().startswith(_UNRESOLVED_PREFIXES):
                continue
            tag[attr] = urljoin(source_url, value)


def _normalise(markdown: str) -> str:
    text = _BLANK_LINES.sub("\n\n", markdown).strip()
    return text + "\n" if text else ""


def html_to_markdown(html: str, source_url: str) -> str:
    """Convert an article body to Markdown with absolute image and link URLs.

    Malformed markup degrades to the document's plain text rather than raising.
    """
    soup = _clean_content(BeautifulSoup(html or "", "html.parser"))
    _resolve_links(soup, source_url)
    try:
        markdown = markdownify(
            str(soup),
            heading_style="ATX",
            bullets="-",
            keep_inline_images_in=_INLINE_IMAGE_TAGS,
        )
    except Exception as exc:  # noqa: BLE001 - fall back to plain text
        logger.warning("Markdown conversion failed for %s: %s", source_url, exc)
        markdown = "\n".join(soup.stripped_strings)
    return _normalise(markdown)


def find_image_references(markdown: str) -> List[ImageReference]:
    """Return every ``![alt](http...)`` reference in document order."""
    return [
        ImageReference(match.group("alt"), match.group("url"), match.span())
        for match in IMAGE_PATTERN.finditer(markdown)
    ]


def replace_image_links(markdown: str, replacements: Mapping[str, str]) -> str:
    """Swap remote image URLs for local paths inside image syntax only.

    Every reference whose URL is a key of ``replacements`` is rewritten; plain
    links and other text containing the same URL are left alone.
    """
    if not replacements:
        return markdown

    def _swap(match: re.Match) -> str:
        url = match.group("url")
        local = replacements.get(url)
        if local is None:
            return match.group(0)
        start = match.start("url") - match.start(0)
        end = match.end("url") - match.start(0)
        text = match.group(0)
        return text[:start] + local + text[end:]

    return IMAGE_PATTERN.sub(_swap, markdown)


def _format_value(value: Any) -> str:
    try:
        return json.dumps(value, ensure_ascii=False)
    except (TypeError, ValueError):
        return json.dumps(str(value), ensure_ascii=False)


def render_front_matter(metadata: Mapping[str, Any]) -> str:
    """Serialise metadata as a ``---`` delimited block, one field per line."""
    lines = ["---"]
    lines.extend(f"{key}: {_format_value(value)}" for key, value in metadata.items())
    lines.append("---")
    return "\n".join(lines)


def compose_markdown(metadata: Mapping[str, Any], body: str) -> str:
    """Prepend front matter to a Markdown body."""
    return f"{render_front_matter(metadata)}\n\n{body}"
