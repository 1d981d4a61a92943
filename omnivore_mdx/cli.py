"""Command-line entry point for converting an Omnivore export to Markdown."""

from __future__ import annotations

import argparse
import logging
import sys
import time
from pathlib import Path
from typing import Optional, Sequence

from .archive import read_export, write_archive
from .batch import convert_batch
from .config import DEFAULT_TIMEOUT, ConvertConfig
from .errors import ConversionError
from .models import BatchResult

logger = logging.getLogger("omnivore_mdx.cli")


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description=(
            "Convert an Omnivore export archive into Markdown files with local image attachments."
        ),
    )
    parser.add_argument("export", type=Path, help="Omnivore export zip file")
    parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Destination zip (default: <export>-markdown.zip next to the export)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        default=DEFAULT_TIMEOUT,
        help="Seconds to wait for each image request",
    )
    parser.add_argument(
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )
    return parser.parse_args(argv)


def default_output_path(export: Path) -> Path:
    return export.with_name(f"{export.stem}-markdown.zip")


def log_failure_summary(result: BatchResult) -> None:
    """Log failed images grouped by the Markdown file that references them."""
    for md_filename, failures in result.failures.items():
        logger.warning("%s: %d image(s) kept as remote URLs", md_filename, len(failures))
        for failure in failures:
            logger.warning("  %s (%s): %s", failure.url, failure.filename, failure.error)


def run(args: argparse.Namespace) -> int:
    config = ConvertConfig(timeout=args.timeout)
    output = args.output or default_output_path(args.export)

    overall_start = time.perf_counter()
    try:
        bundle = read_export(args.export)
        result = convert_batch(bundle.html_inputs, bundle.metadata, config)
    except ConversionError as exc:
        logger.error("Conversion failed: %s", exc)
        return 1
    try:
        write_archive(result.results, output)
    except OSError as exc:
        logger.error("Cannot write %s: %s", output, exc)
        return 1
    total_elapsed = time.perf_counter() - overall_start

    logger.info(
        "Finished in %.2fs (%d documents, %d images, %d failed images)",
        total_elapsed,
        len(result.markdown_results),
        len(result.image_results),
        result.failure_count,
    )
    if result.failures:
        log_failure_summary(result)
    return 0


def main(argv: Optional[Sequence[str]] = None) -> None:
    args = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
        force=True,
    )
    sys.exit(run(args))


if __name__ == "__main__":
    main()
