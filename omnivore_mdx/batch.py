"""High-level orchestration for converting a full export batch."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from .config import ConvertConfig
from .converter import ArticleConverter
from .errors import MetadataError
from .events import EventEmitter, ProgressCallback
from .images import ImageAcquirer
from .models import (
    ArticleMetadata,
    BatchResult,
    ConversionResult,
    DownloadFailure,
    HtmlInputs,
    ProgressStatus,
)
from .utils import slug_from_filename

logger = logging.getLogger("omnivore_mdx.batch")


def index_metadata(
    records: Iterable[Any], events: Optional[EventEmitter] = None
) -> Dict[str, ArticleMetadata]:
    """Map slug -> metadata record, keeping the first record for a repeated slug.

    Malformed records are skipped with a warning. Raises ``MetadataError``
    when ``records`` is not a list of records or none of them is usable.
    """
    events = events or EventEmitter()
    if isinstance(records, (str, bytes, Mapping)) or not isinstance(records, Iterable):
        raise MetadataError("Metadata must be a list of records")
    index: Dict[str, ArticleMetadata] = {}
    for position, record in enumerate(records):
        if not isinstance(record, dict):
            events.warning(f"Skipping metadata record {position}: not an object")
            continue
        slug = record.get("slug")
        if not isinstance(slug, str) or not slug:
            events.warning(f"Skipping metadata record {position}: no slug")
            continue
        if not isinstance(record.get("url"), str):
            events.warning(f"Skipping metadata for {slug}: no url")
            continue
        if slug in index:
            logger.debug("Duplicate metadata for slug %s ignored", slug)
            continue
        index[slug] = record
    if not index:
        raise MetadataError("No usable metadata records")
    return index


class BatchOrchestrator:
    """Convert every HTML body that has metadata, one article at a time."""

    def __init__(
        self,
        converter: ArticleConverter,
        events: Optional[EventEmitter] = None,
    ) -> None:
        self.converter = converter
        self.events = events or converter.events

    async def run(
        self,
        html_inputs: HtmlInputs,
        metadata: Iterable[Any],
        on_progress: Optional[ProgressCallback] = None,
    ) -> BatchResult:
        """Produce Markdown documents and image attachments for the batch.

        Raises ``MetadataError`` before any article is converted when no
        metadata record is usable. Articles without metadata are skipped.
        """
        index = index_metadata(metadata, self.events)
        documents: List[ConversionResult] = []
        all_images: Dict[str, bytes] = {}
        failures: Dict[str, List[DownloadFailure]] = {}

        self.events.info(f"Starting to process {len(html_inputs)} files")
        for filename, html in html_inputs.items():
            slug = slug_from_filename(filename)
            md_filename = f"{slug}.md"
            self.events.info(f"Processing file: {md_filename}")
            self.events.progress(ProgressStatus(md_filename), on_progress)

            article_metadata = index.get(slug)
            if article_metadata is None:
                self.events.warning(f"No metadata found for {filename}")
                continue

            conversion = await self.converter.convert(
                html, article_metadata["url"], article_metadata, on_progress
            )
            if conversion.failures:
                self.events.warning(
                    f"{len(conversion.failures)} image download failures in {md_filename}"
                )
                failures[md_filename] = conversion.failures

            all_images.update(conversion.images)
            documents.append(ConversionResult(md_filename, conversion.markdown))
            self.events.info(f"Successfully processed {md_filename}")

        attachments = self.converter.config.attachments_dir
        results = documents + [
            ConversionResult(f"{attachments}/{name}", data, binary=True)
            for name, data in all_images.items()
        ]
        self.events.info(
            f"Completed processing all files. Total images: {len(all_images)}"
        )
        return BatchResult(results=results, failures=failures)


def convert_batch(
    html_inputs: Mapping[str, str],
    metadata: Iterable[Any],
    config: Optional[ConvertConfig] = None,
    events: Optional[EventEmitter] = None,
) -> BatchResult:
    """Run a batch with the default network-backed image acquirer."""
    config = config or ConvertConfig()
    events = events or EventEmitter()
    acquirer = ImageAcquirer(config, events=events)
    orchestrator = BatchOrchestrator(ArticleConverter(acquirer, config, events), events)
    return asyncio.run(orchestrator.run(html_inputs, metadata))
