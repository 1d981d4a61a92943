"""Reading Omnivore export archives and writing the converted archive."""

from __future__ import annotations

import json
import logging
import zipfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterable, List, Union

from .errors import ArchiveError
from .models import ConversionResult

logger = logging.getLogger("omnivore_mdx.archive")

PathLike = Union[str, Path]


@dataclass
class ExportBundle:
    """HTML bodies keyed by archive path plus the concatenated metadata records."""

    html_inputs: Dict[str, str] = field(default_factory=dict)
    metadata: List[Any] = field(default_factory=list)


def _is_metadata_entry(name: str) -> bool:
    base = name.rsplit("/", 1)[-1]
    return base.startswith("metadata") and base.endswith(".json")


def read_export(path: PathLike) -> ExportBundle:
    """Collect ``*.html`` bodies and ``metadata*.json`` records from an export zip."""
    bundle = ExportBundle()
    try:
        with zipfile.ZipFile(path) as archive:
            names = [info.filename for info in archive.infolist() if not info.is_dir()]
            metadata_names = sorted(name for name in names if _is_metadata_entry(name))
            if not metadata_names:
                raise ArchiveError(f"No metadata JSON found in {path}")

            for name in metadata_names:
                try:
                    records = json.loads(archive.read(name).decode("utf-8"))
                except (UnicodeDecodeError, json.JSONDecodeError) as exc:
                    raise ArchiveError(f"Invalid metadata file {name}: {exc}") from exc
                if not isinstance(records, list):
                    raise ArchiveError(f"Metadata file {name} does not hold a list")
                bundle.metadata.extend(records)

            for name in names:
                if name.endswith(".html"):
                    bundle.html_inputs[name] = archive.read(name).decode(
                        "utf-8", errors="replace"
                    )
    except zipfile.BadZipFile as exc:
        raise ArchiveError(f"{path} is not a zip archive: {exc}") from exc
    except OSError as exc:
        raise ArchiveError(f"Cannot read {path}: {exc}") from exc

    logger.info(
        "Loaded %d HTML files and %d metadata records from %s",
        len(bundle.html_inputs),
        len(bundle.metadata),
        path,
    )
    return bundle


def write_archive(results: Iterable[ConversionResult], path: PathLike) -> Path:
    """Write results into a zip, text as UTF-8 and images as raw bytes."""
    destination = Path(path)
    destination.parent.mkdir(parents=True, exist_ok=True)
    count = 0
    with zipfile.ZipFile(destination, "w", compression=zipfile.ZIP_DEFLATED) as archive:
        for result in results:
            if result.binary:
                payload = bytes(result.content)
            else:
                payload = str(result.content).encode("utf-8")
            archive.writestr(result.filename, payload)
            count += 1
    logger.info("Saved %d files to %s", count, destination)
    return destination
