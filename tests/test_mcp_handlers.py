"""Tests for the library MCP server (v2) handlers and dispatch.

Handlers are called directly for happy paths; failures go through
``dispatch`` the way the MCP server calls them, so they come back as
structured error responses.
"""

import re

import pytest

from memoff.core.errors import DocumentNotFoundError
from memoff.core.observability import DB_FILENAME, ObservabilityLogger
from memoff.mcp import server
from memoff.mcp.server import (
    TOOL_HANDLERS,
    dispatch,
    handle_add_entities,
    handle_add_entity_content,
    handle_add_manual_section,
    handle_append_journey,
    handle_backup_library,
    handle_create_file,
    handle_create_journey,
    handle_create_relations,
    handle_delete_entities,
    handle_delete_entity_content,
    handle_delete_manual_section,
    handle_delete_relations,
    handle_find_entities_by_metadata,
    handle_find_relations,
    handle_garbage_collect_relations,
    handle_get_entities_toc,
    handle_insert_entity_content,
    handle_list_entities,
    handle_list_libraries,
    handle_merge_entities,
    handle_read_entities,
    handle_read_entities_sections,
    handle_read_journey,
    handle_read_manual,
    handle_rename_entity,
    handle_replace_entity_content,
    handle_replace_entity_section,
    handle_search_anywhere,
    handle_search_in_contents,
    handle_update_manual_section,
    list_tool_definitions,
)
from memoff.editor.store import read_lines


def _entity(root, name):
    return read_lines(root / "entities" / f"{name}.md")


# ============================================================================
# Library
# ============================================================================


class TestLibrary:
    def test_list_libraries(self, library_server):
        result = handle_list_libraries()
        assert result == {"success": True, "libraries": [{"name": "lib", "path": str(library_server)}]}

    def test_create_file(self, library_server):
        result = handle_create_file("lib", "notes/todo.md", "a\nb")
        assert result["line_count"] == 2
        assert read_lines(library_server / "notes" / "todo.md") == ["a", "b"]

    def test_create_existing_file(self, library_server):
        result = dispatch("create_file", {"library": "lib", "relative_path": "meta.md"})
        assert result["success"] is False
        assert result["error_code"] == "already_exists"
        assert result["error_kind"] == "file_already_exists"

    def test_create_file_outside_library(self, library_server):
        result = dispatch("create_file", {"library": "lib", "relative_path": "../escape.md"})
        assert result["success"] is False
        assert result["error_code"] == "not_found"

    def test_unknown_library(self, library_server):
        result = dispatch("read_manual", {"library": "nope"})
        assert result["error_code"] == "not_found"
        assert "nope" in result["error"]

    def test_backup_library(self, library_server):
        result = handle_backup_library("lib")
        assert result["success"] is True
        assert result["files"] == 3
        assert result["path"].endswith(".zip")


# ============================================================================
# Entities
# ============================================================================


class TestAddEntities:
    def test_front_matter_and_content(self, library_server):
        result = handle_add_entities(
            "lib",
            [
                {
                    "name": "carol",
                    "type": "person",
                    "aliases": ["Caro", "C"],
                    "Team Lead": "yes",
                    "content": "# Carol\n\n## Notes\nhi",
                }
            ],
        )
        assert result == {"success": True, "created": ["carol"], "failed": []}
        assert _entity(library_server, "carol") == [
            "---",
            "entity type: person",
            "aliases: Caro, C",
            "team lead: yes",
            "---",
            "# Carol",
            "",
            "## Notes",
            "hi",
        ]

    def test_without_front_matter(self, library_server):
        handle_add_entities("lib", {"name": "plain", "content": "just text"})
        assert _entity(library_server, "plain") == ["just text"]

    def test_partial_failure(self, library_server):
        result = handle_add_entities("lib", [{"name": "alice"}, {"name": "../evil"}, {"name": "dave"}])
        assert result["success"] is False
        assert result["created"] == ["dave"]
        kinds = {f["name"]: f["error_kind"] for f in result["failed"]}
        assert kinds == {"alice": "file_already_exists", "../evil": "validation_error"}


class TestEntityDocuments:
    def test_read_entities(self, library_server):
        result = handle_read_entities("lib", "alice, missing")
        assert result["success"] is False
        assert result["entities"][0]["name"] == "alice"
        assert "Alice grew up in Lyon." in result["entities"][0]["content"]
        assert result["failed"][0]["error_kind"] == "file_not_found"

    def test_delete_entities_moves_to_trash(self, library_server):
        result = handle_delete_entities("lib", ["bob"])
        assert result["success"] is True
        assert not (library_server / "entities" / "bob.md").exists()
        assert (library_server / "trash").is_dir()
        assert result["deleted"][0]["trash_path"].startswith(str(library_server / "trash"))

    def test_list_entities(self, library_server):
        assert handle_list_entities("lib")["entities"] == ["alice", "bob"]
        result = handle_list_entities("lib", ["b*", "a*", "bob"])
        assert result["entities"] == ["bob", "alice"]
        assert result["count"] == 2

    def test_toc(self, library_server):
        result = handle_get_entities_toc("lib", ["alice"])
        assert result["tocs"][0]["headings"] == [
            {"level": 1, "line_number": 7, "text": "# Alice"},
            {"level": 2, "line_number": 9, "text": "## Background"},
            {"level": 2, "line_number": 12, "text": "## Projects"},
        ]

    def test_rename_repoints_relations(self, library_server):
        result = handle_rename_entity("lib", "bob", "robert")
        assert result["updated_entities"] == ["alice"]
        assert (library_server / "entities" / "robert.md").exists()
        assert "relation as knows: robert" in _entity(library_server, "alice")

    def test_rename_onto_existing(self, library_server):
        result = dispatch("rename_entity", {"library": "lib", "old_name": "bob", "new_name": "alice"})
        assert result["error_code"] == "already_exists"

    def test_read_sections(self, library_server):
        result = handle_read_entities_sections("lib", "alice", "background")
        entity = result["entities"][0]
        assert entity["matched_sections"] == ["background"]
        assert entity["content"] == "\n".join(
            ["# Alice", "...", "## Background", "Alice grew up in Lyon.", "", "## Projects", "..."]
        )

    def test_read_sections_rejects_empty_queries(self, library_server):
        assert handle_read_entities_sections("lib", "alice", "")["error_code"] == "validation_error"
        result = handle_read_entities_sections("lib", "alice", ["", "  "])
        assert result["error_code"] == "validation_error"
        assert "non-empty" in result["error"]


class TestEntityEdits:
    def test_add_content_at_end(self, library_server):
        result = handle_add_entity_content("lib", "alice", "- ranking")
        assert result["content"].endswith("- search engine\n- ranking")

    def test_empty_content_leaves_document_unchanged(self, library_server):
        before = _entity(library_server, "alice")
        handle_add_entity_content("lib", "alice", "")
        handle_add_entity_content("lib", "alice", "", in_section="Background")
        handle_insert_entity_content("lib", "alice", "Alice grew up in Lyon.", "")
        assert _entity(library_server, "alice") == before

    def test_add_content_in_section(self, library_server):
        handle_add_entity_content("lib", "alice", "Studied physics.", in_section="Background")
        lines = _entity(library_server, "alice")
        assert lines.index("Studied physics.") == lines.index("## Projects") - 1

    def test_insert_content(self, library_server):
        handle_insert_entity_content("lib", "alice", "Alice grew up in Lyon.", "She moved to Paris.")
        lines = _entity(library_server, "alice")
        assert lines[9:11] == ["Alice grew up in Lyon.", "She moved to Paris."]

    def test_replace_content_by_lines(self, library_server):
        result = handle_replace_entity_content(
            "lib", "alice", {"type": "lines", "lines": "- search engine"}, "- ranking engine"
        )
        assert result["content"].endswith("## Projects\n- ranking engine")

    def test_replace_content_by_range_in_section(self, library_server):
        locator = {
            "type": "range",
            "begin_line_number": 10,
            "end_line_number": 10,
            "begin_line": "Alice grew up in Lyon.",
            "end_line": "Alice grew up in Lyon.",
        }
        handle_replace_entity_content("lib", "alice", locator, "Alice grew up in Nice.", in_section="background")
        assert _entity(library_server, "alice")[9] == "Alice grew up in Nice."

    def test_stale_range(self, library_server):
        locator = {
            "type": "range",
            "begin_line_number": 9,
            "end_line_number": 10,
            "begin_line": "Alice grew up in Lyon.",
            "end_line": "",
        }
        result = dispatch(
            "replace_entity_content",
            {"library": "lib", "entity_name": "alice", "locator": locator, "content": "x"},
        )
        assert result["error_code"] == "stale_locator"
        assert result["error_kind"] == "boundary_mismatch"

    def test_unknown_locator(self, library_server):
        result = dispatch(
            "replace_entity_content",
            {"library": "lib", "entity_name": "alice", "locator": {"type": "regex"}, "content": "x"},
        )
        assert result["error_code"] == "validation_error"
        assert result["error_kind"] == "unknown_locator_kind"

    def test_delete_content(self, library_server):
        handle_delete_entity_content("lib", "alice", "- search engine", in_section="Projects")
        assert _entity(library_server, "alice")[-1] == "## Projects"

    def test_ambiguous_delete_lists_candidates(self, library_server):
        result = dispatch(
            "delete_entity_content", {"library": "lib", "entity_name": "alice", "content_to_delete": ""}
        )
        assert result["error_code"] == "ambiguous"
        assert result["details"]["candidates"] == [8, 11]
        assert "hint" in result

    def test_missing_section(self, library_server):
        result = dispatch(
            "add_entity_content",
            {"library": "lib", "entity_name": "alice", "content": "x", "in_section": "Hobbies"},
        )
        assert result["error_code"] == "not_found"
        assert "Hobbies" in result["error"]

    def test_replace_section(self, library_server):
        handle_replace_entity_section("lib", "alice", "Background", "History", "Born in Lyon.")
        assert _entity(library_server, "alice")[6:] == [
            "# Alice",
            "",
            "## History",
            "Born in Lyon.",
            "## Projects",
            "- search engine",
        ]

    def test_merge_entities(self, library_server):
        result = handle_merge_entities("lib", ["bob"], "alice")
        assert result["merged"] == ["bob"]
        assert not (library_server / "entities" / "bob.md").exists()

        lines = _entity(library_server, "alice")
        assert lines[:6] == [
            "---",
            "entity type: person",
            "aliases: Ali",
            "relation as knows: bob",
            "relation as works at: acme",
            "---",
        ]
        body = lines[6:]
        assert body.index("Bob likes trains.") < body.index("## projects")
        assert body.count("## background") == 1
        assert "## bob" in body

    def test_merge_keeps_same_type_relations(self, library_server):
        entities = library_server / "entities"
        (entities / "x.md").write_text("# X", encoding="utf-8")
        (entities / "y.md").write_text("# Y", encoding="utf-8")
        (entities / "p1.md").write_text("---\nrelation as knows: x\n---\n# P1", encoding="utf-8")
        (entities / "p2.md").write_text("---\nrelation as knows: y\n---\n# P2", encoding="utf-8")

        handle_merge_entities("lib", "p2", "p1")
        lines = _entity(library_server, "p1")
        assert lines[:4] == ["---", "relation as knows: x", "relation as knows: y", "---"]

        found = handle_find_relations("lib", from_entity="p1")
        assert {r["to"] for r in found["relations"]} == {"x", "y"}

        result = handle_garbage_collect_relations("lib", dry_run=False)
        assert all(r["from"] != "p1" for r in result["broken_relations"])
        assert lines == _entity(library_server, "p1")

    def test_merge_keeps_source_preamble(self, library_server):
        entities = library_server / "entities"
        (entities / "t.md").write_text("# T", encoding="utf-8")
        (entities / "s.md").write_text("Important intro line\n## Notes\nn", encoding="utf-8")

        handle_merge_entities("lib", ["s"], "t")
        lines = _entity(library_server, "t")
        assert "Important intro line" in lines
        assert lines.index("Important intro line") < lines.index("## notes")
        assert lines[-1] == "n"

    def test_merge_into_itself(self, library_server):
        result = dispatch("merge_entities", {"library": "lib", "source_names": "alice", "target_name": "alice"})
        assert result["error_code"] == "validation_error"


# ============================================================================
# Relations
# ============================================================================


class TestRelations:
    def test_create_relations(self, library_server):
        result = handle_create_relations(
            "lib", "bob", [{"type": "Works-With", "to": "alice"}, {"type": "Works-With", "to": "alice"}]
        )
        assert result["created"] == [{"from": "bob", "type": "Works-With", "to": "alice"}]
        assert _entity(library_server, "bob")[:4] == [
            "---",
            "entity type: person",
            "relation as workswith: alice",
            "---",
        ]

    def test_existing_relation_skipped(self, library_server):
        assert handle_create_relations("lib", "alice", [{"type": "knows", "to": "bob"}])["created"] == []

    def test_delete_relations(self, library_server):
        result = handle_delete_relations("lib", "alice", [{"type": "knows", "to": "bob"}])
        assert result["deleted"] == [{"from": "alice", "type": "knows", "to": "bob"}]
        assert "relation as knows: bob" not in _entity(library_server, "alice")

    def test_garbage_collect_dry_run(self, library_server):
        result = handle_garbage_collect_relations("lib")
        assert result["dry_run"] is True
        assert result["broken_relations"] == [{"from": "alice", "type": "works at", "to": "acme"}]
        assert "relation as works at: acme" in _entity(library_server, "alice")

    def test_garbage_collect(self, library_server):
        result = handle_garbage_collect_relations("lib", dry_run=False)
        assert result["count"] == 1
        lines = _entity(library_server, "alice")
        assert "relation as works at: acme" not in lines
        assert "relation as knows: bob" in lines


# ============================================================================
# Retrieval
# ============================================================================


class TestRetrieval:
    def test_find_by_metadata(self, library_server):
        result = handle_find_entities_by_metadata("lib", "person")
        assert result["entities"] == ["alice", "bob"]
        assert len(result["matches"]) == 2

    def test_find_relations(self, library_server):
        result = handle_find_relations("lib", relation_type="Works At")
        assert result["relations"] == [{"from": "alice", "type": "works at", "to": "acme"}]
        assert handle_find_relations("lib", to_entity="bob")["count"] == 1

    def test_search_in_contents(self, library_server):
        result = handle_search_in_contents("lib", r"Lyon|trains")
        assert [(m["name"], m["line_number"]) for m in result["matches"]] == [("alice", 10), ("bob", 7)]

    def test_invalid_regex(self, library_server):
        result = dispatch("search_in_contents", {"library": "lib", "pattern": "(["})
        assert result["error_code"] == "validation_error"
        assert "Invalid regular expression" in result["error"]

    def test_search_anywhere(self, library_server):
        result = handle_search_anywhere("lib", "ali")
        assert result["names"] == ["alice"]


# ============================================================================
# Manual
# ============================================================================


class TestManual:
    def test_read_manual(self, library_server):
        result = handle_read_manual("lib")
        assert result["content"].startswith("# Manual")
        assert result["line_count"] == 7

    def test_update_section_keeps_heading(self, library_server):
        handle_update_manual_section("lib", "conventions", "Use kebab-case.")
        lines = read_lines(library_server / "meta.md")
        assert lines[2:5] == ["## Conventions", "Use kebab-case.", "## Types"]

    def test_add_section(self, library_server):
        result = handle_add_manual_section("lib", "Workflow", "Read before writing.")
        assert result["content"].endswith("## Workflow\nRead before writing.")

    def test_add_existing_section(self, library_server):
        result = handle_add_manual_section("lib", "types")
        assert result["success"] is False
        assert result["error_code"] == "already_exists"

    def test_delete_section(self, library_server):
        handle_delete_manual_section("lib", "Types")
        assert read_lines(library_server / "meta.md") == ["# Manual", "", "## Conventions", "Use lowercase names.", ""]

    def test_missing_manual_is_not_created(self, library_server):
        (library_server / "meta.md").unlink()
        result = dispatch("add_manual_section", {"library": "lib", "heading": "New"})
        assert result["error_code"] == "not_found"
        assert not (library_server / "meta.md").exists()


# ============================================================================
# Journeys
# ============================================================================


class TestJourneys:
    def test_create_and_read(self, library_server):
        handle_create_journey("lib", "onboarding")
        assert handle_read_journey("lib", "onboarding")["content"] == "# onboarding\n"

    def test_append_undated(self, library_server):
        handle_create_journey("lib", "log", "# Log")
        result = handle_append_journey("lib", "log", "entry", dated=False)
        assert result["content"] == "# Log\nentry"

    def test_append_dated(self, library_server):
        handle_create_journey("lib", "log", "# Log")
        handle_append_journey("lib", "log", "entry")
        lines = read_lines(library_server / "journeys" / "log.md")
        assert re.match(r"^## \d{4}-\d{2}-\d{2} \d{2}:\d{2}$", lines[1])
        assert lines[2] == "entry"

    def test_append_missing_journey(self, library_server):
        with pytest.raises(DocumentNotFoundError):
            handle_append_journey("lib", "nope", "entry")

    def test_invalid_journey_name(self, library_server):
        assert handle_create_journey("lib", "a/b")["error_code"] == "validation_error"


# ============================================================================
# Dispatch
# ============================================================================


class TestDispatch:
    def test_tool_definitions_match_handlers(self):
        tools = list_tool_definitions()
        assert {t.name for t in tools} == set(TOOL_HANDLERS)
        assert all("reason" in t.inputSchema["properties"] for t in tools)

    def test_unknown_tool(self, library_server):
        result = dispatch("drop_everything", {})
        assert result == {"success": False, "error_code": "validation_error", "error": "Unknown tool: drop_everything"}

    def test_reason_is_echoed(self, library_server):
        result = dispatch("read_manual", {"library": "lib", "reason": "Check  the conventions."})
        assert result["success"] is True
        assert result["reason"] == "Check the conventions"

    def test_bad_arguments(self, library_server):
        result = dispatch("read_manual", {"library": "lib", "bogus": 1})
        assert result["error_code"] == "validation_error"

    def test_not_initialized(self, monkeypatch):
        monkeypatch.setattr(server, "_resolver", None)
        monkeypatch.setattr(server, "_audit", None)
        result = dispatch("read_manual", {"library": "lib"})
        assert result["error_code"] == "not_initialized"

    def test_calls_are_audited(self, library_server, tmp_path):
        dispatch("read_manual", {"library": "lib", "reason": "look"})
        dispatch("read_journey", {"library": "lib", "name": "missing"})

        audit = ObservabilityLogger(tmp_path / "logs" / DB_FILENAME)
        summary = audit.get_session_summary(audit.latest_session())
        assert summary["tool_counts"] == {"read_manual": 1, "read_journey": 1}
        assert summary["error_count"] == 1
        assert audit.get_errors()[0].data["error_kind"] == "file_not_found"

    def test_create_server(self, library_server):
        assert server.create_server().name == "memory"
