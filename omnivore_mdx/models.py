"""Data models used throughout the conversion pipeline."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Union

ArticleMetadata = Dict[str, Any]
HtmlInputs = Mapping[str, str]


@dataclass(frozen=True)
class ConversionResult:
    """One output file: a Markdown document or a downloaded image."""

    filename: str
    content: Union[str, bytes]
    binary: bool = False


@dataclass
class DownloadFailure:
    """An image that could not be fetched for an article."""

    url: str
    filename: str
    error: str


@dataclass(frozen=True)
class ProcessLog:
    """Observability record handed to a log sink."""

    timestamp: float
    severity: str
    message: str


@dataclass(frozen=True)
class ProgressStatus:
    """Live status reported before each article and each image fetch."""

    current_file: str
    current_image: Optional[str] = None


@dataclass
class ArticleConversion:
    """Markdown plus the images and failures collected for one article."""

    markdown: str
    images: Dict[str, bytes] = field(default_factory=dict)
    failures: List[DownloadFailure] = field(default_factory=list)


@dataclass
class BatchResult:
    """Every output file of a run and the image failures grouped by document."""

    results: List[ConversionResult] = field(default_factory=list)
    failures: Dict[str, List[DownloadFailure]] = field(default_factory=dict)

    @property
    def markdown_results(self) -> List[ConversionResult]:
        return [result for result in self.results if not result.binary]

    @property
    def image_results(self) -> List[ConversionResult]:
        return [result for result in self.results if result.binary]

    @property
    def failure_count(self) -> int:
        return sum(len(items) for items in self.failures.values())
