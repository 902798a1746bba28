"""Tests for ki-search prompt building and reply interpretation."""

from __future__ import annotations

import json

from src.models import CachedContent, Listing
from src.search import (
    NO_LISTINGS,
    ParsedFilters,
    RawInterpretationFallback,
    build_search_prompt,
    parse_search_reply,
    summarize_listings,
)

REPLY = {
    "interpretation": "Suche nach IT-Unternehmen zum Kauf",
    "filters": ["Branche: IT", "Status: Verkauf"],
    "finsweetFilters": [
        {"field": "branche", "value": "IT", "type": "checkbox"},
        {"field": "umsatz", "value": 1000000, "type": "range"},
    ],
    "suggestions": ["Auch Softwarefirmen anzeigen?"],
    "confidence": 0.92,
}


class TestParseSearchReply:
    def test_json_object_is_parsed(self):
        result = parse_search_reply(json.dumps(REPLY))
        assert isinstance(result, ParsedFilters)
        assert result.confidence == 0.92
        assert result.filter_descriptors[1].value == 1000000

    def test_response_uses_wire_names(self):
        response = parse_search_reply(json.dumps(REPLY)).to_response()
        assert response["finsweetFilters"][0] == {"field": "branche", "value": "IT", "type": "checkbox"}
        assert "kind" not in response
        assert "filter_descriptors" not in response

    def test_fenced_json_is_parsed(self):
        result = parse_search_reply("```json\n" + json.dumps(REPLY) + "\n```")
        assert isinstance(result, ParsedFilters)
        assert result.filters == REPLY["filters"]

    def test_plain_text_falls_back(self):
        result = parse_search_reply("Ich suche nach IT-Firmen.")
        assert isinstance(result, RawInterpretationFallback)
        assert result.to_response() == {
            "interpretation": "Ich suche nach IT-Firmen.",
            "filters": ["Allgemeine Suche"],
            "finsweetFilters": [],
            "suggestions": [],
            "confidence": 0.7,
        }

    def test_json_array_falls_back(self):
        result = parse_search_reply("[1, 2, 3]")
        assert isinstance(result, RawInterpretationFallback)
        assert result.interpretation == "[1, 2, 3]"

    def test_wrong_shape_falls_back(self):
        result = parse_search_reply(json.dumps({"filters": "not a list"}))
        assert isinstance(result, RawInterpretationFallback)

    def test_missing_keys_get_defaults(self):
        result = parse_search_reply(json.dumps({"interpretation": "nur Text"}))
        assert isinstance(result, ParsedFilters)
        assert result.filters == []
        assert result.confidence == 0.0


class TestPrompt:
    def test_summarize_listings_numbers_across_pages(self):
        pages = [
            CachedContent(source_url="a", title="", text="", listings=[
                Listing(name="Alpha", status="VERKAUF", description="Bäckerei"),
            ]),
            CachedContent(source_url="b", title="", text="", listings=[Listing(name="Beta")]),
        ]
        assert summarize_listings(pages) == "1. Alpha - VERKAUF - Bäckerei\n2. Beta -  - "

    def test_summarize_without_listings(self):
        assert summarize_listings([]) == NO_LISTINGS

    def test_prompt_contains_listings_and_query(self):
        pages = [CachedContent(source_url="a", title="", text="", listings=[Listing(name="Alpha")])]
        prompt = build_search_prompt("IT Firma in Hessen", pages)
        assert "1. Alpha" in prompt
        assert '"IT Firma in Hessen"' in prompt
        assert "$listings" not in prompt
        assert "$query" not in prompt
