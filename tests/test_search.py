"""Tests for filesystem retrieval over a library."""

import re

import pytest

from memoff.core import search
from memoff.core.search import LineHit, RelationRecord


class TestNameGlob:
    def test_glob(self, resolver):
        assert search.find_entities_by_name_glob(resolver, "lib", "al*") == ["alice"]

    def test_md_suffix_is_ignored(self, resolver):
        assert search.find_entities_by_name_glob(resolver, "lib", "bob.md") == ["bob"]

    def test_case_sensitive(self, resolver):
        assert search.find_entities_by_name_glob(resolver, "lib", "Al*") == []


class TestFrontMatterSearch:
    def test_matches_front_matter_lines(self, resolver):
        hits = search.find_by_front_matter(resolver, "lib", r"^entity type: person$")
        assert hits == [
            LineHit("alice", 2, "entity type: person"),
            LineHit("bob", 2, "entity type: person"),
        ]

    def test_body_is_not_searched(self, resolver):
        assert search.find_by_front_matter(resolver, "lib", "Lyon") == []

    def test_invalid_regex(self, resolver):
        with pytest.raises(re.error):
            search.find_by_front_matter(resolver, "lib", "(")


class TestContentSearch:
    def test_line_numbers_are_document_lines(self, resolver):
        hits = search.find_in_contents(resolver, "lib", "Background")
        assert [(h.name, h.line_number) for h in hits] == [("alice", 9), ("bob", 6)]

    def test_front_matter_is_not_searched(self, resolver):
        assert search.find_in_contents(resolver, "lib", "entity type") == []

    def test_name_glob_filter(self, resolver):
        hits = search.find_in_contents(resolver, "lib", "Background", name_glob="b*")
        assert [h.name for h in hits] == ["bob"]

    def test_search_anywhere(self, resolver):
        result = search.search_anywhere(resolver, "lib", "bob")
        assert result["names"] == ["bob"]
        assert result["metadata"] == [{"name": "alice", "line_number": 4, "line": "relation as knows: bob"}]
        assert result["contents"] == []


class TestRelations:
    def test_list_relations(self, resolver):
        assert search.list_relations(resolver, "lib") == [
            RelationRecord("alice", "knows", "bob"),
            RelationRecord("alice", "works at", "acme"),
        ]

    def test_filters(self, resolver):
        assert search.find_relations(resolver, "lib", to="bob") == [RelationRecord("alice", "knows", "bob")]
        assert search.find_relations(resolver, "lib", relation_type="works at")[0].to == "acme"
        assert search.find_relations(resolver, "lib", from_="bob") == []

    def test_broken_relations(self, resolver):
        assert search.broken_relations(resolver, "lib") == [RelationRecord("alice", "works at", "acme")]

    def test_to_dict(self):
        assert RelationRecord("a", "knows", "b").to_dict() == {"from": "a", "type": "knows", "to": "b"}
