"""Tests for ubbl.corpus_types."""
from __future__ import annotations

from dataclasses import replace

import pytest

from ubbl.corpus_types import (
    ClauseMetadata,
    Document,
    Part,
    clause_id,
    clause_to_dict,
    document_to_dict,
)


class TestRecords:
    def test_clause_id(self) -> None:
        assert clause_id("12A") == "bylaw-12A"

    def test_part_ordinal_positive(self) -> None:
        with pytest.raises(ValueError):
            Part(ordinal=0, roman_label="", title="x")

    def test_clause_sequence_positive(self, make_clause) -> None:
        with pytest.raises(ValueError, match="sequence"):
            make_clause(sequence=0)

    def test_clause_needs_part(self, make_clause) -> None:
        with pytest.raises(ValueError, match="no owning Part"):
            make_clause(part_ordinal=0)

    def test_clause_id_must_match(self, make_clause) -> None:
        with pytest.raises(ValueError, match="does not match"):
            replace(make_clause("5"), id="bylaw-6")

    def test_numeric_part(self, make_clause) -> None:
        assert make_clause("12A").numeric_part == 12
        assert make_clause("258").numeric_part == 258

    def test_full_text(self, make_clause) -> None:
        assert make_clause(title="Citation", body="Body.").full_text == "Citation Body."


class TestMetadata:
    @pytest.mark.parametrize(
        ("field", "value"),
        [
            ("complexity_level", 0),
            ("complexity_level", 6),
            ("priority", "urgent"),
            ("category", "parking"),
            ("applicable_building_types", ()),
        ],
    )
    def test_rejects(self, make_metadata, field: str, value: object) -> None:
        with pytest.raises(ValueError):
            replace(make_metadata(), **{field: value})


class TestDocument:
    def test_part_by_ordinal(self) -> None:
        doc = Document(parts=(Part(1, "I", "PRELIMINARY"), Part(7, "VII", "FIRE")))
        found = doc.part_by_ordinal(7)
        assert found is not None and found.title == "FIRE"
        assert doc.part_by_ordinal(3) is None

    def test_dict_views(self, make_clause, make_metadata) -> None:
        clause = make_clause(metadata=make_metadata(category="structural"))
        d = clause_to_dict(clause)
        assert d["id"] == "bylaw-1"
        assert d["metadata"]["category"] == "structural"
        assert d["metadata"]["keywords"] == ["citation"]
        assert d["embedding"] is None
        doc = document_to_dict(Document(parts=(Part(1, "I", "X"),), clauses=(clause,)))
        assert doc["parts"] == [{"ordinal": 1, "roman_label": "I", "title": "X"}]
        assert len(doc["clauses"]) == 1

    def test_metadata_type(self, make_metadata) -> None:
        assert isinstance(make_metadata(), ClauseMetadata)
