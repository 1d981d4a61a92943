"""Convert one article: Markdown body, front matter and local image attachments."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from .config import ConvertConfig
from .events import EventEmitter, ProgressCallback
from .images import ImageAcquirer
from .markdown import (
    compose_markdown,
    find_image_references,
    html_to_markdown,
    replace_image_links,
)
from .models import ArticleConversion, ArticleMetadata, DownloadFailure, ProgressStatus
from .utils import clean_slug, image_extension, strip_query

logger = logging.getLogger("omnivore_mdx.converter")


@dataclass
class ImageJob:
    """One image scheduled for download within an article."""

    matched_url: str
    fetch_url: str
    filename: str
    thumbnail: bool = False


class ArticleConverter:
    """Turn an HTML body into Markdown with images pointing at local attachments."""

    def __init__(
        self,
        acquirer: ImageAcquirer,
        config: Optional[ConvertConfig] = None,
        events: Optional[EventEmitter] = None,
    ) -> None:
        self.acquirer = acquirer
        self.config = config or ConvertConfig()
        self.events = events or EventEmitter()

    def _filename(self, base: str, suffix: str, url: str) -> str:
        ext = image_extension(
            url, self.config.image_extensions, self.config.default_extension
        )
        return f"{base}-{suffix}.{ext}"

    def plan_images(
        self, markdown: str, metadata: Optional[ArticleMetadata] = None
    ) -> List[ImageJob]:
        """Name every image to fetch for an article, thumbnail last.

        Distinct URLs are numbered in order of first appearance; repeats of a
        URL share its job.
        """
        slug = clean_slug((metadata or {}).get("slug") or "")
        jobs: List[ImageJob] = []
        seen = set()
        for ref in find_image_references(markdown):
            if ref.url in seen:
                continue
            seen.add(ref.url)
            fetch_url = strip_query(ref.url)
            filename = self._filename(slug, str(len(jobs) + 1), fetch_url)
            jobs.append(ImageJob(ref.url, fetch_url, filename))

        thumbnail = (metadata or {}).get("thumbnail")
        if isinstance(thumbnail, str) and thumbnail.startswith(("http://", "https://")):
            fetch_url = strip_query(thumbnail)
            filename = self._filename(slug, "thumbnail", fetch_url)
            jobs.append(ImageJob(thumbnail, fetch_url, filename, thumbnail=True))
        return jobs

    async def convert(
        self,
        html: str,
        source_url: str,
        metadata: Optional[ArticleMetadata] = None,
        on_progress: Optional[ProgressCallback] = None,
    ) -> ArticleConversion:
        """Convert one article and download its images concurrently.

        Returns once every fetch has settled. A downloaded thumbnail replaces
        ``metadata["thumbnail"]`` with its local path.
        """
        self.events.info(f"Starting conversion for URL: {source_url}")
        body = html_to_markdown(html, source_url)
        jobs = self.plan_images(body, metadata)

        total = len(jobs)
        completed = 0

        async def _run(job: ImageJob) -> Optional[bytes]:
            nonlocal completed
            try:
                return await self.acquirer.acquire(job.fetch_url)
            finally:
                completed += 1
                self.events.image_progress(completed / total, job.fetch_url)

        tasks = []
        for job in jobs:
            label = "Processing thumbnail" if job.thumbnail else "Processing images"
            self.events.progress(ProgressStatus(label, job.fetch_url), on_progress)
            tasks.append(_run(job))
        outcomes = await asyncio.gather(*tasks, return_exceptions=True)

        images: Dict[str, bytes] = {}
        failures: List[DownloadFailure] = []
        replacements: Dict[str, str] = {}
        prefix = f"./{self.config.attachments_dir}"
        for job, outcome in zip(jobs, outcomes):
            if isinstance(outcome, Exception):
                logger.warning("Failed to process image %s: %s", job.fetch_url, outcome)
                failures.append(DownloadFailure(job.fetch_url, job.filename, str(outcome)))
                continue
            if isinstance(outcome, BaseException):
                raise outcome
            if outcome is None:
                failures.append(DownloadFailure(job.fetch_url, job.filename, "Download failed"))
                logger.warning("Keeping original URL for failed download: %s", job.fetch_url)
                continue
            images[job.filename] = outcome
            local_path = f"{prefix}/{job.filename}"
            if job.thumbnail:
                metadata["thumbnail"] = local_path
            else:
                replacements[job.matched_url] = local_path

        markdown = replace_image_links(body, replacements)
        if metadata is not None:
            markdown = compose_markdown(metadata, markdown)
            self.events.info(f"Added YAML front matter for: {metadata.get('slug')}")

        self.events.info(f"Completed conversion for URL: {source_url}")
        return ArticleConversion(markdown=markdown, images=images, failures=failures)
