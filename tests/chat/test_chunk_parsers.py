"""Unit tests for GroundingChunkParser."""

from types import SimpleNamespace
from unittest.mock import Mock

import pytest

from tappi.chat.chunk_parsers import MAP_TITLE_PREFIX, GroundingChunkParser
from tappi.chat.models import CitationSource
from tappi.telemetry.metrics import TelemetryMetrics


class TestGroundingChunkParser:
    """Tests for GroundingChunkParser."""

    def test_parse_string_content(self, make_chunk):
        """Test parsing a plain text chunk."""
        update = GroundingChunkParser.parse(make_chunk("Hello"))

        assert update.text == "Hello"
        assert update.sources == ()

    def test_parse_content_blocks(self, make_chunk):
        """Test that only text blocks of list content contribute."""
        chunk = make_chunk([
            {"type": "text", "text": "Hello "},
            {"type": "thinking", "thinking": "hmm"},
            "world",
        ])

        assert GroundingChunkParser.parse(chunk).text == "Hello world"

    @pytest.mark.parametrize("content", [None, "", []])
    def test_parse_empty_content(self, make_chunk, content):
        """Test that empty content yields an empty delta."""
        assert GroundingChunkParser.parse(make_chunk(content)).text == ""

    def test_web_citation(self, make_chunk):
        """Test that web grounding entries keep their title."""
        chunk = make_chunk(grounding=[{"web": {"uri": "https://a.example", "title": "A"}}])

        update = GroundingChunkParser.parse(chunk)

        assert update.sources == (CitationSource(title="A", uri="https://a.example"),)

    def test_maps_citation_is_prefixed(self, make_chunk):
        """Test that map grounding entries get the map title prefix."""
        chunk = make_chunk(grounding=[{"maps": {"uri": "https://maps.example/1", "title": "Cafe"}}])

        update = GroundingChunkParser.parse(chunk)

        assert update.sources[0].title == f"{MAP_TITLE_PREFIX}Cafe"
        assert update.sources[0].title == "[Map] Cafe"

    def test_entries_without_uri_or_title_are_skipped(self, make_chunk):
        """Test that incomplete grounding entries are ignored."""
        chunk = make_chunk(grounding=[
            {"web": {"uri": "https://a.example"}},
            {"web": {"title": "No link"}},
            {"maps": {}},
            {"retrievedContext": {"uri": "x", "title": "y"}},
            {"web": {"uri": "https://b.example", "title": "B"}},
        ])

        update = GroundingChunkParser.parse(chunk)

        assert update.sources == (CitationSource(title="B", uri="https://b.example"),)

    def test_camel_case_metadata(self):
        """Test that camelCase grounding keys are understood."""
        chunk = Mock(
            content="x",
            response_metadata={
                "groundingMetadata": {
                    "groundingChunks": [{"web": {"uri": "https://c.example", "title": "C"}}]
                }
            },
            usage_metadata=None,
        )

        update = GroundingChunkParser.parse(chunk)

        assert update.sources == (CitationSource(title="C", uri="https://c.example"),)

    def test_attribute_style_metadata(self):
        """Test grounding given as objects instead of dicts."""
        grounding = SimpleNamespace(
            grounding_chunks=[SimpleNamespace(web=SimpleNamespace(uri="https://d.example", title="D"), maps=None)]
        )
        chunk = Mock(content="", response_metadata={"grounding_metadata": grounding}, usage_metadata=None)

        update = GroundingChunkParser.parse(chunk)

        assert update.sources == (CitationSource(title="D", uri="https://d.example"),)

    def test_non_dict_response_metadata_is_ignored(self):
        """Test that a chunk without usable metadata still parses its text."""
        chunk = Mock(content="Hi")

        update = GroundingChunkParser.parse(chunk)

        assert update.text == "Hi"
        assert update.sources == ()

    def test_usage_metadata_updates_metrics(self, make_chunk):
        """Test that token usage is copied into the metrics."""
        metrics = TelemetryMetrics()
        chunk = make_chunk("x", usage={"input_tokens": 10, "output_tokens": 5, "total_tokens": 15})

        GroundingChunkParser.parse(chunk, metrics)

        assert metrics.prompt_tokens == 10
        assert metrics.completion_tokens == 5
        assert metrics.total_tokens == 15

    def test_missing_usage_leaves_metrics_untouched(self, make_chunk):
        """Test that chunks without usage do not reset the counters."""
        metrics = TelemetryMetrics()
        metrics.add_token_usage(1, 2, 3)

        GroundingChunkParser.parse(make_chunk("x"), metrics)

        assert metrics.total_tokens == 3
