"""Tests for batch orchestration."""

import asyncio
import re

import pytest

from conftest import PROXY_URL, FakeAcquirer, FakeSession
from omnivore_mdx.batch import BatchOrchestrator, index_metadata
from omnivore_mdx.converter import ArticleConverter
from omnivore_mdx.errors import MetadataError
from omnivore_mdx.images import ImageAcquirer
from omnivore_mdx.models import ConversionResult, DownloadFailure


def run_batch(converter, html_inputs, metadata, on_progress=None):
    orchestrator = BatchOrchestrator(converter)
    return asyncio.run(orchestrator.run(html_inputs, metadata, on_progress))


class TestBatchOrchestrator:
    """Tests for BatchOrchestrator.run."""

    def test_happy_path(self, make_converter) -> None:
        html_inputs = {"a.html": "<p><img src='https://x/y.png'></p>"}
        metadata = [{"slug": "a", "url": "https://site/a"}]
        result = run_batch(make_converter(FakeAcquirer(default=bytes([1, 2, 3]))), html_inputs, metadata)

        assert len(result.results) == 2
        document, image = result.results
        assert document.filename == "a.md"
        assert document.binary is False
        assert "./attachments/a-1.png" in document.content
        assert image == ConversionResult("attachments/a-1.png", bytes([1, 2, 3]), binary=True)
        assert result.failures == {}

    def test_proxy_fallback_through_acquirer(self, config, events, logs) -> None:
        session = FakeSession({PROXY_URL: 503, "https://orig.example/img.png": b"orig"})
        converter = ArticleConverter(ImageAcquirer(config, session=session, events=events), config, events)
        html_inputs = {"a.html": f"<img src='{PROXY_URL}'>"}
        result = run_batch(converter, html_inputs, [{"slug": "a", "url": "https://site/a"}])

        assert result.image_results == [ConversionResult("attachments/a-1.png", b"orig", binary=True)]
        assert any(
            entry.severity == "warning" and PROXY_URL in entry.message for entry in logs
        )

    def test_orphan_html_is_skipped(self, make_converter, logs) -> None:
        html_inputs = {
            "content/orphan.html": "<p>no metadata</p>",
            "content/a.html": "<p>kept</p>",
        }
        metadata = [{"slug": "a", "url": "https://site/a"}]
        result = run_batch(make_converter(FakeAcquirer()), html_inputs, metadata)

        assert [r.filename for r in result.results] == ["a.md"]
        warnings = [entry for entry in logs if entry.severity == "warning"]
        assert len(warnings) == 1
        assert "orphan.html" in warnings[0].message

    def test_metadata_without_html_produces_nothing(self, make_converter) -> None:
        metadata = [{"slug": "a", "url": "u"}, {"slug": "missing", "url": "u"}]
        result = run_batch(make_converter(FakeAcquirer()), {"a.html": "<p>x</p>"}, metadata)

        assert [r.filename for r in result.results] == ["a.md"]
        assert "missing.md" not in result.failures

    def test_total_image_failure(self, make_converter) -> None:
        html_inputs = {"a.html": "<img src='https://x/y.png'>"}
        result = run_batch(make_converter(FakeAcquirer()), html_inputs, [{"slug": "a", "url": "u"}])

        assert result.image_results == []
        assert "![](https://x/y.png)" in result.markdown_results[0].content
        assert result.failures == {
            "a.md": [DownloadFailure("https://x/y.png", "a-1.png", "Download failed")]
        }
        assert result.failure_count == 1

    def test_rewritten_links_match_binary_results(self, make_converter) -> None:
        html_inputs = {
            "a.html": "<img src='https://x/1.png'><img src='https://x/2.jpg'>",
            "b.html": "<img src='https://x/3.gif'><img src='https://x/fail.png'>",
        }
        metadata = [{"slug": "a", "url": "u"}, {"slug": "b", "url": "u"}]
        acquirer = FakeAcquirer({"https://x/fail.png": None}, default=b"x")
        result = run_batch(make_converter(acquirer), html_inputs, metadata)

        linked = set()
        for document in result.markdown_results:
            linked.update(re.findall(r"\./attachments/([^)\s]+)", document.content))
        binaries = {r.filename for r in result.image_results}
        assert {f"attachments/{name}" for name in linked} == binaries
        assert binaries == {"attachments/a-1.png", "attachments/a-2.jpg", "attachments/b-1.gif"}
        assert list(result.failures) == ["b.md"]

    def test_result_set_is_order_independent(self, make_converter) -> None:
        html_inputs = {
            "a.html": "<img src='https://x/1.png'>",
            "b.html": "<p>text</p><img src='https://x/2.png'>",
        }
        metadata = [{"slug": "a", "url": "u"}, {"slug": "b", "url": "u"}]
        forward = run_batch(make_converter(FakeAcquirer(default=b"x")), html_inputs, [dict(m) for m in metadata])
        reverse = run_batch(
            make_converter(FakeAcquirer(default=b"x")),
            dict(reversed(list(html_inputs.items()))),
            [dict(m) for m in metadata],
        )

        def as_set(result):
            return {(r.filename, r.content, r.binary) for r in result.results}

        assert as_set(forward) == as_set(reverse)

    def test_articles_run_one_at_a_time(self, make_converter) -> None:
        html_inputs = {
            "a.html": "<img src='https://x/1.png'><img src='https://x/2.png'>",
            "b.html": "<img src='https://x/3.png'><img src='https://x/4.png'><img src='https://x/5.png'>",
        }
        metadata = [{"slug": "a", "url": "u"}, {"slug": "b", "url": "u"}]
        acquirer = FakeAcquirer(default=b"x")
        run_batch(make_converter(acquirer), html_inputs, metadata)

        assert acquirer.max_in_flight == 3

    def test_progress_reports_each_article(self, make_converter) -> None:
        statuses = []
        html_inputs = {"a.html": "<img src='https://x/1.png'>", "orphan.html": "<p/>"}
        run_batch(make_converter(FakeAcquirer(default=b"x")), html_inputs, [{"slug": "a", "url": "u"}], statuses.append)

        assert [(s.current_file, s.current_image) for s in statuses] == [
            ("a.md", None),
            ("Processing images", "https://x/1.png"),
            ("orphan.md", None),
        ]

    def test_malformed_record_does_not_abort_batch(self, make_converter, logs) -> None:
        html_inputs = {"a.html": "<p>A</p>", "b.html": "<p>B</p>"}
        metadata = [{"slug": "a", "url": "u"}, {"slug": "b"}, "junk", {"url": "u"}]
        result = run_batch(make_converter(FakeAcquirer()), html_inputs, metadata)

        assert [r.filename for r in result.results] == ["a.md"]
        warnings = [entry.message for entry in logs if entry.severity == "warning"]
        assert any("b.html" in message for message in warnings)
        assert len(warnings) == 4

    def test_no_usable_metadata_aborts(self, make_converter) -> None:
        with pytest.raises(MetadataError):
            run_batch(make_converter(FakeAcquirer()), {"a.html": "<p/>"}, [{"url": "u"}])

    def test_metadata_not_a_list_aborts(self, make_converter) -> None:
        with pytest.raises(MetadataError):
            run_batch(make_converter(FakeAcquirer()), {"a.html": "<p/>"}, {"slug": "a", "url": "u"})


class TestIndexMetadata:
    """Tests for index_metadata."""

    def test_first_record_wins(self) -> None:
        first = {"slug": "a", "url": "one"}
        index = index_metadata([first, {"slug": "a", "url": "two"}])
        assert index == {"a": first}

    def test_skips_non_mapping(self) -> None:
        index = index_metadata(["a", {"slug": "b", "url": "u"}])
        assert list(index) == ["b"]

    def test_skips_missing_url(self, events, logs) -> None:
        index = index_metadata([{"slug": "a"}, {"slug": "b", "url": "u"}], events)

        assert list(index) == ["b"]
        assert [entry.severity for entry in logs] == ["warning"]
        assert "metadata for a:" in logs[0].message

    def test_rejects_when_nothing_usable(self) -> None:
        with pytest.raises(MetadataError):
            index_metadata([{"slug": "a"}, 3])

    def test_rejects_empty(self) -> None:
        with pytest.raises(MetadataError):
            index_metadata([])
