"""memoff MCP Server - line-addressed editing of Markdown knowledge libraries.

A library is a directory of Markdown documents (see ``memoff.core.library``).
Tools, grouped:

Library (3):
- list_libraries, create_file, backup_library

Entities (13):
- add_entities, delete_entities, read_entities, list_entities,
  get_entities_toc, rename_entity, read_entities_sections,
  add_entity_content, insert_entity_content, replace_entity_content,
  delete_entity_content, replace_entity_section, merge_entities

Relations (3):
- create_relations, delete_relations, garbage_collect_relations

Retrieval (4):
- find_entities_by_metadata, find_relations, search_in_contents, search_anywhere

Manual (4):
- read_manual, update_manual_section, add_manual_section, delete_manual_section

Journeys (3):
- create_journey, read_journey, append_journey

Every tool takes an optional ``reason`` that is echoed back (normalized)
and recorded in the audit log. Edits that need a unique heading or content
block fail with a structured error instead of guessing.
"""

import json
import logging
import re
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import TextContent, Tool

from memoff.core.backup import backup_library as zip_library
from memoff.core.config import ServerConfig, load_config
from memoff.core.errors import DocumentNotFoundError, MemoffError
from memoff.core.library import FileKind, PathResolver
from memoff.core.logs import setup_logging
from memoff.core.observability import DB_FILENAME, ObservabilityLogger
from memoff.core import search
from memoff.editor import editing
from memoff.editor.frontmatter import (
    ALIASES,
    DELIMITER,
    ENTITY_TYPE,
    body_lines,
    front_matter_lines,
    locate_front_matter,
    merge_front_matter,
    parse_relation_line,
    relation_line,
    write_front_matter,
)
from memoff.editor.locators import parse_locator, split_text
from memoff.editor.store import create_file as create_document
from memoff.editor.store import move_to_trash, read_lines, rename_file, write_lines
from memoff.editor.text import normalize, normalize_front_matter_line, normalize_yaml_key, to_heading_line
from memoff.editor.toc import Section, find_heading_fuzzy, find_heading_unique, list_headings, split_into_sections
from memoff.mcp.validation import (
    ErrorCode,
    as_name_list,
    error_from_exception,
    error_response,
    failure_item,
    success_response,
    validate_entity_name,
    with_reason,
)

logger = logging.getLogger(__name__)

# Global instances (initialized when server starts)
_config: Optional[ServerConfig] = None
_resolver: Optional[PathResolver] = None
_audit: Optional[ObservabilityLogger] = None

_NOT_INIT_MSG = "memoff MCP server not initialized. Call init_server() first."


class NotInitializedError(RuntimeError):
    pass


def _resolver_instance() -> PathResolver:
    """Return the path resolver, raising if not initialized."""
    if _resolver is None:
        raise NotInitializedError(_NOT_INIT_MSG)
    return _resolver


def init_server(config: ServerConfig) -> Dict[str, Any]:
    """Initialize the library server for a configuration."""
    global _config, _resolver, _audit

    _config = config
    _resolver = config.resolver()
    _audit = ObservabilityLogger(config.log_dir / DB_FILENAME) if config.log_dir else None

    logger.info("memoff library server initialized with %d libraries", len(_resolver.registry))
    return {"name": config.name, "libraries": _resolver.registry.names()}


def _entity_path(library: str, name: str) -> Path:
    return _resolver_instance().path_for(library, FileKind.ENTITY, name)


def _journey_path(library: str, name: str) -> Path:
    return _resolver_instance().path_for(library, FileKind.JOURNEY, name)


def _manual_path(library: str) -> Path:
    return _resolver_instance().path_for(library, FileKind.META)


def _document(path: Path, lines: List[str]) -> Dict[str, Any]:
    return {"path": str(path), "content": "\n".join(lines), "line_count": len(lines)}


def _heading_line(text: str, level: int = 2) -> str:
    return text if text.startswith("#") else f"{'#' * level} {text.strip()}"


# ============================================================================
# Library Tools
# ============================================================================


def handle_list_libraries() -> Dict[str, Any]:
    registry = _resolver_instance().registry
    return success_response(
        {"libraries": [{"name": name, "path": str(root)} for name, root in registry.items()]}
    )


def handle_create_file(library: str, relative_path: str, content: str = "") -> Dict[str, Any]:
    """Create a new file anywhere inside a library root."""
    path = _resolver_instance().relative_path(library, relative_path)
    lines = split_text(content) if content else []
    create_document(path, lines)
    return success_response({"path": str(path), "line_count": len(lines)})


def handle_backup_library(library: str) -> Dict[str, Any]:
    root = _resolver_instance().registry.root(library)
    return success_response(zip_library(root))


# ============================================================================
# Entity Tools
# ============================================================================


def _entity_front_matter(entity: Dict[str, Any]) -> List[str]:
    lines = []
    if entity.get("type"):
        lines.append(f"{ENTITY_TYPE}: {entity['type']}")
    aliases = entity.get("aliases")
    if aliases:
        aliases = [aliases] if isinstance(aliases, str) else aliases
        lines.append(f"{ALIASES}: {', '.join(str(a) for a in aliases)}")
    for key, value in entity.items():
        if key in ("name", "content", "type", "aliases") or value is None:
            continue
        lines.append(normalize_front_matter_line(f"{key}: {value}"))
    return lines


def handle_add_entities(library: str, entities: Union[Dict[str, Any], List[Dict[str, Any]]]) -> Dict[str, Any]:
    """Create entity documents.

    Each entity is ``{name, content?, type?, aliases?, <custom>: value}``;
    everything but name and content becomes front matter. Existing
    entities are reported as failures and left untouched.
    """
    entities = [entities] if isinstance(entities, dict) else entities
    created, failed = [], []

    for entity in entities:
        name = str(entity.get("name", ""))
        is_valid, err_msg = validate_entity_name(name)
        if not is_valid:
            failed.append({"name": name, "error": err_msg, "error_kind": "validation_error"})
            continue

        front_matter = _entity_front_matter(entity)
        lines = [DELIMITER] + front_matter + [DELIMITER] if front_matter else []
        if entity.get("content"):
            lines += split_text(entity["content"])
        try:
            create_document(_entity_path(library, name), lines)
            created.append(name)
        except MemoffError as e:
            failed.append(failure_item(name, e))

    return {"success": not failed, "created": created, "failed": failed}


def handle_delete_entities(library: str, entity_names: Union[str, List[str]]) -> Dict[str, Any]:
    """Soft-delete entities into the library's trash directory."""
    resolver = _resolver_instance()
    deleted, failed = [], []
    for name in as_name_list(entity_names):
        try:
            trashed = move_to_trash(_entity_path(library, name), resolver.trash_dir(library))
            deleted.append({"name": name, "trash_path": str(trashed)})
        except MemoffError as e:
            failed.append(failure_item(name, e))
    return {"success": not failed, "deleted": deleted, "failed": failed}


def handle_read_entities(library: str, entity_names: Union[str, List[str]]) -> Dict[str, Any]:
    found, failed = [], []
    for name in as_name_list(entity_names):
        try:
            lines = read_lines(_entity_path(library, name))
            found.append({"name": name, "content": "\n".join(lines)})
        except MemoffError as e:
            failed.append(failure_item(name, e))
    return {"success": not failed, "entities": found, "failed": failed}


def handle_list_entities(library: str, globs: Union[str, List[str]] = "*") -> Dict[str, Any]:
    """List entity names matching one or more globs, in first-match order."""
    resolver = _resolver_instance()
    patterns = [globs] if isinstance(globs, str) else list(globs)
    names: List[str] = []
    for pattern in patterns:
        for name in search.find_entities_by_name_glob(resolver, library, pattern):
            if name not in names:
                names.append(name)
    return success_response({"entities": names, "count": len(names)})


def handle_get_entities_toc(library: str, entity_names: Union[str, List[str]]) -> Dict[str, Any]:
    tocs, failed = [], []
    for name in as_name_list(entity_names):
        try:
            headings = list_headings(read_lines(_entity_path(library, name)))
            tocs.append(
                {
                    "name": name,
                    "headings": [
                        {"level": h.level, "line_number": h.line_number, "text": h.text}
                        for h in headings
                    ],
                }
            )
        except MemoffError as e:
            failed.append(failure_item(name, e))
    return {"success": not failed, "tocs": tocs, "failed": failed}


def handle_rename_entity(library: str, old_name: str, new_name: str) -> Dict[str, Any]:
    """Rename an entity and repoint every relation that targeted it."""
    is_valid, err_msg = validate_entity_name(new_name)
    if not is_valid:
        return error_response(ErrorCode.VALIDATION_ERROR, err_msg or "Invalid name")

    rename_file(_entity_path(library, old_name), _entity_path(library, new_name))

    updated = []
    for name in _resolver_instance().entity_names(library):
        path = _entity_path(library, name)
        lines = read_lines(path)
        location = locate_front_matter(lines)
        if location is None:
            continue
        changed = False
        for index in range(location[0], location[1] - 1):
            parsed = parse_relation_line(normalize_front_matter_line(lines[index]))
            if parsed and parsed[1] == old_name:
                lines[index] = relation_line(parsed[0], new_name)
                changed = True
        if changed:
            write_lines(path, lines)
            updated.append(name)

    logger.info("Renamed entity %s -> %s in %s, %d referrers updated", old_name, new_name, library, len(updated))
    return success_response({"old_name": old_name, "new_name": new_name, "updated_entities": updated})


def handle_read_entities_sections(
    library: str, entity_names: Union[str, List[str]], section_queries: Union[str, List[str]]
) -> Dict[str, Any]:
    """Read selected sections of entities.

    A heading is selected when any normalized query is a substring of its
    normalized text. Unselected sections are shown as ``...``.
    """
    queries = [normalize(q) for q in ([section_queries] if isinstance(section_queries, str) else section_queries)]
    queries = [q for q in queries if q]
    if not queries:
        return error_response(
            ErrorCode.VALIDATION_ERROR, "section_queries must contain at least one non-empty heading query"
        )
    results, failed = [], []

    for name in as_name_list(entity_names):
        try:
            lines = read_lines(_entity_path(library, name))
        except MemoffError as e:
            failed.append(failure_item(name, e))
            continue

        matched, output = [], []
        for section in split_into_sections(lines):
            output.append(section.heading.text)
            key = normalize(section.heading.text)
            if any(q in key for q in queries):
                matched.append(key)
                output.extend(section.body)
            else:
                output.append("...")
        results.append({"name": name, "matched_sections": matched, "content": "\n".join(output)})

    return {"success": not failed, "entities": results, "failed": failed}


def handle_add_entity_content(
    library: str, entity_name: str, content: str, in_section: Optional[str] = None
) -> Dict[str, Any]:
    """Append content at the end of a section, or of the document."""
    path = _entity_path(library, entity_name)
    new_lines = split_text(content) if content else []
    if in_section:
        lines = editing.append_in_section(path, in_section, new_lines)
    else:
        lines = editing.append(path, new_lines)
    return success_response(_document(path, lines))


def handle_insert_entity_content(
    library: str, entity_name: str, anchor: str, content: str, in_section: Optional[str] = None
) -> Dict[str, Any]:
    """Insert content right after a unique anchor block."""
    path = _entity_path(library, entity_name)
    new_lines = split_text(content) if content else []
    if in_section:
        lines = editing.insert_after_in_section(path, in_section, split_text(anchor), new_lines)
    else:
        lines = editing.insert_after(path, split_text(anchor), new_lines)
    return success_response(_document(path, lines))


def handle_replace_entity_content(
    library: str,
    entity_name: str,
    locator: Dict[str, Any],
    content: str,
    in_section: Optional[str] = None,
) -> Dict[str, Any]:
    """Replace the lines a locator points at.

    ``locator`` is ``{"type": "lines", "lines": "..."}`` or
    ``{"type": "range", "begin_line_number", "end_line_number", "begin_line", "end_line"}``.
    An empty ``content`` deletes the located lines.
    """
    path = _entity_path(library, entity_name)
    parsed = parse_locator(locator)
    new_lines = split_text(content) if content else []
    if in_section:
        lines = editing.replace_in_section(path, in_section, parsed, new_lines)
    else:
        lines = editing.replace(path, parsed, new_lines)
    return success_response(_document(path, lines))


def handle_delete_entity_content(
    library: str, entity_name: str, content_to_delete: str, in_section: Optional[str] = None
) -> Dict[str, Any]:
    path = _entity_path(library, entity_name)
    if in_section:
        lines = editing.delete_in_section(path, in_section, split_text(content_to_delete))
    else:
        lines = editing.delete(path, split_text(content_to_delete))
    return success_response(_document(path, lines))


def handle_replace_entity_section(
    library: str, entity_name: str, old_heading: str, new_heading: str, new_body: str = ""
) -> Dict[str, Any]:
    """Rewrite a section's heading and whole body."""
    path = _entity_path(library, entity_name)
    body = split_text(new_body) if new_body else []
    lines = editing.replace_section(path, old_heading, _heading_line(new_heading), body)
    return success_response(_document(path, lines))


def _merge_sections(target: List[Section], sources: List[Section]) -> List[Section]:
    merged = [Section(heading=s.heading, body=list(s.body)) for s in target]
    by_key: Dict[str, Section] = {}
    for section in merged:
        by_key.setdefault(normalize(section.heading.text), section)
    for section in sources:
        key = normalize(section.heading.text)
        if key in by_key:
            by_key[key].body.extend(section.body)
        else:
            copy = Section(heading=section.heading, body=list(section.body))
            by_key[key] = copy
            merged.append(copy)
    return merged


def _preamble(body: List[str]) -> List[str]:
    """Body lines before the first heading."""
    headings = list_headings(body)
    return body[: headings[0].line_number - 1] if headings else list(body)


def handle_merge_entities(library: str, source_names: Union[str, List[str]], target_name: str) -> Dict[str, Any]:
    """Merge source entities into a target, then trash the sources.

    Front matter values are unioned per key; relation lines are kept one
    per line. Text above a source's first heading is appended to the
    target's own preamble. Sections with the same
    normalized heading are concatenated; all headings are rewritten as
    ``## <normalized heading>``.
    """
    sources = [n for n in as_name_list(source_names) if n != target_name]
    if not sources:
        return error_response(ErrorCode.VALIDATION_ERROR, "No source entities to merge")

    target_path = _entity_path(library, target_name)
    target_lines = read_lines(target_path)
    source_lines = {name: read_lines(_entity_path(library, name)) for name in sources}

    body = body_lines(target_lines)
    front_matter = front_matter_lines(target_lines) or []
    preamble = _preamble(body)
    source_sections: List[Section] = []
    for name in sources:
        front_matter = merge_front_matter(front_matter, front_matter_lines(source_lines[name]) or [])
        source_body = body_lines(source_lines[name])
        source_preamble = _preamble(source_body)
        if any(line.strip() for line in source_preamble):
            preamble += source_preamble
        source_sections.extend(split_into_sections(source_body))

    final = [DELIMITER] + front_matter + [DELIMITER] if front_matter else []
    final += preamble
    for section in _merge_sections(split_into_sections(body), source_sections):
        final.append(to_heading_line(section.heading.text))
        final.extend(section.body)
    write_lines(target_path, final)

    trash = _resolver_instance().trash_dir(library)
    for name in sources:
        move_to_trash(_entity_path(library, name), trash)

    logger.info("Merged %s into %s in %s", sources, target_name, library)
    return success_response({"merged": sources, **_document(target_path, final)})


# ============================================================================
# Relation Tools
# ============================================================================


def _relation_key(relation_type: str, to: str) -> str:
    return normalize_front_matter_line(relation_line(relation_type, to))


def handle_create_relations(library: str, from_entity: str, relations: List[Dict[str, str]]) -> Dict[str, Any]:
    """Add ``relation as <type>: <to>`` lines to an entity's front matter.

    Existing relations are skipped; targets are not required to exist.
    """
    path = _entity_path(library, from_entity)
    front_matter = front_matter_lines(read_lines(path)) or []
    created = []
    for relation in relations:
        line = _relation_key(relation["type"], relation["to"])
        if line not in front_matter:
            front_matter.append(line)
            created.append({"from": from_entity, "type": relation["type"], "to": relation["to"]})
    write_front_matter(path, front_matter)
    return success_response({"created": created})


def handle_delete_relations(library: str, from_entity: str, relations: List[Dict[str, str]]) -> Dict[str, Any]:
    path = _entity_path(library, from_entity)
    front_matter = front_matter_lines(read_lines(path)) or []
    doomed = {_relation_key(r["type"], r["to"]) for r in relations}
    deleted = []
    kept = []
    for line in front_matter:
        if line in doomed:
            relation_type, to = parse_relation_line(line) or ("", "")
            deleted.append({"from": from_entity, "type": relation_type, "to": to})
        else:
            kept.append(line)
    write_front_matter(path, kept)
    return success_response({"deleted": deleted})


def handle_garbage_collect_relations(library: str, dry_run: bool = True) -> Dict[str, Any]:
    """Find relations whose target entity does not exist; remove them unless dry_run."""
    resolver = _resolver_instance()
    broken = search.broken_relations(resolver, library)

    if not dry_run:
        by_source: Dict[str, List[Dict[str, str]]] = {}
        for relation in broken:
            by_source.setdefault(relation.from_, []).append({"type": relation.relation_type, "to": relation.to})
        for source, relations in by_source.items():
            handle_delete_relations(library, source, relations)

    return success_response(
        {"dry_run": dry_run, "broken_relations": [r.to_dict() for r in broken], "count": len(broken)}
    )


# ============================================================================
# Retrieval Tools
# ============================================================================


def handle_find_entities_by_metadata(library: str, pattern: str) -> Dict[str, Any]:
    hits = search.find_by_front_matter(_resolver_instance(), library, pattern)
    names = list(dict.fromkeys(h.name for h in hits))
    return success_response({"entities": names, "matches": [h.to_dict() for h in hits]})


def handle_find_relations(
    library: str,
    to_entity: Optional[str] = None,
    relation_type: Optional[str] = None,
    from_entity: Optional[str] = None,
) -> Dict[str, Any]:
    relation_type = normalize_yaml_key(relation_type) if relation_type else None
    relations = search.find_relations(
        _resolver_instance(), library, to=to_entity, relation_type=relation_type, from_=from_entity
    )
    return success_response({"relations": [r.to_dict() for r in relations], "count": len(relations)})


def handle_search_in_contents(library: str, pattern: str, name_glob: str = "*") -> Dict[str, Any]:
    hits = search.find_in_contents(_resolver_instance(), library, pattern, name_glob)
    return success_response({"matches": [h.to_dict() for h in hits], "count": len(hits)})


def handle_search_anywhere(library: str, pattern: str) -> Dict[str, Any]:
    return success_response(search.search_anywhere(_resolver_instance(), library, pattern))


# ============================================================================
# Manual Tools (meta.md)
# ============================================================================


def handle_read_manual(library: str) -> Dict[str, Any]:
    path = _manual_path(library)
    return success_response(_document(path, read_lines(path)))


def handle_update_manual_section(library: str, heading: str, content: str) -> Dict[str, Any]:
    """Replace the body of one manual section, keeping its heading line."""
    path = _manual_path(library)
    current = find_heading_unique(read_lines(path), heading, path)
    lines = editing.replace_section(path, heading, current.text, split_text(content) if content else [])
    return success_response(_document(path, lines))


def handle_add_manual_section(library: str, heading: str, content: str = "") -> Dict[str, Any]:
    """Append a new ``##`` section at the end of the manual."""
    path = _manual_path(library)
    if find_heading_fuzzy(read_lines(path), heading):
        return error_response(
            ErrorCode.ALREADY_EXISTS,
            f"Manual section already exists: {heading}",
            hint="Use update_manual_section to change an existing section",
        )
    new_lines = [_heading_line(heading)] + (split_text(content) if content else [])
    lines = editing.append(path, new_lines)
    return success_response(_document(path, lines))


def handle_delete_manual_section(library: str, heading: str) -> Dict[str, Any]:
    path = _manual_path(library)
    lines = editing.delete_section(path, heading)
    return success_response(_document(path, lines))


# ============================================================================
# Journey Tools
# ============================================================================


def handle_create_journey(library: str, name: str, content: str = "") -> Dict[str, Any]:
    is_valid, err_msg = validate_entity_name(name)
    if not is_valid:
        return error_response(ErrorCode.VALIDATION_ERROR, err_msg or "Invalid name")
    path = _journey_path(library, name)
    lines = split_text(content) if content else [f"# {name}", ""]
    create_document(path, lines)
    return success_response(_document(path, lines))


def handle_read_journey(library: str, name: str) -> Dict[str, Any]:
    path = _journey_path(library, name)
    return success_response(_document(path, read_lines(path)))


def handle_append_journey(library: str, name: str, content: str, dated: bool = True) -> Dict[str, Any]:
    """Append an entry to a journey, under a timestamp heading when ``dated``."""
    path = _journey_path(library, name)
    if not path.is_file():
        raise DocumentNotFoundError(f"Journey not found: {name}")
    entry = split_text(content)
    if dated:
        entry = [f"## {datetime.now().strftime('%Y-%m-%d %H:%M')}"] + entry
    lines = editing.append(path, entry)
    return success_response(_document(path, lines))


# ============================================================================
# Dispatch
# ============================================================================

TOOL_HANDLERS: Dict[str, Callable[..., Dict[str, Any]]] = {
    "list_libraries": handle_list_libraries,
    "create_file": handle_create_file,
    "backup_library": handle_backup_library,
    "add_entities": handle_add_entities,
    "delete_entities": handle_delete_entities,
    "read_entities": handle_read_entities,
    "list_entities": handle_list_entities,
    "get_entities_toc": handle_get_entities_toc,
    "rename_entity": handle_rename_entity,
    "read_entities_sections": handle_read_entities_sections,
    "add_entity_content": handle_add_entity_content,
    "insert_entity_content": handle_insert_entity_content,
    "replace_entity_content": handle_replace_entity_content,
    "delete_entity_content": handle_delete_entity_content,
    "replace_entity_section": handle_replace_entity_section,
    "merge_entities": handle_merge_entities,
    "create_relations": handle_create_relations,
    "delete_relations": handle_delete_relations,
    "garbage_collect_relations": handle_garbage_collect_relations,
    "find_entities_by_metadata": handle_find_entities_by_metadata,
    "find_relations": handle_find_relations,
    "search_in_contents": handle_search_in_contents,
    "search_anywhere": handle_search_anywhere,
    "read_manual": handle_read_manual,
    "update_manual_section": handle_update_manual_section,
    "add_manual_section": handle_add_manual_section,
    "delete_manual_section": handle_delete_manual_section,
    "create_journey": handle_create_journey,
    "read_journey": handle_read_journey,
    "append_journey": handle_append_journey,
}


def dispatch(
    name: str,
    arguments: Optional[Dict[str, Any]],
    handlers: Optional[Dict[str, Callable[..., Dict[str, Any]]]] = None,
    audit: Optional[ObservabilityLogger] = None,
) -> Dict[str, Any]:
    """Run one tool call and turn failures into structured error responses.

    Args:
        name: Tool name
        arguments: Tool arguments; ``reason`` is stripped and echoed back
        handlers: Tool table (defaults to the library tools)
        audit: Audit logger (defaults to the one set up by init_server)
    """
    handlers = TOOL_HANDLERS if handlers is None else handlers
    audit = _audit if audit is None else audit
    args = dict(arguments or {})
    reason = args.pop("reason", None)

    handler = handlers.get(name)
    if handler is None:
        return error_response(ErrorCode.VALIDATION_ERROR, f"Unknown tool: {name}")

    if audit:
        audit.log_call(name, args, reason)

    try:
        result = handler(**args)
    except MemoffError as e:
        result = error_from_exception(e)
    except NotInitializedError as e:
        result = error_response(ErrorCode.NOT_INITIALIZED, str(e))
    except re.error as e:
        result = error_response(ErrorCode.VALIDATION_ERROR, f"Invalid regular expression: {e}")
    except (TypeError, ValueError, KeyError) as e:
        result = error_response(ErrorCode.VALIDATION_ERROR, f"Invalid arguments for {name}: {e}")

    if result.get("success") is False and "error" in result:
        logger.warning("%s failed: %s", name, result["error"])
        if audit:
            audit.log_error(name, result.get("error_kind", result["error_code"]), result["error"])
    elif audit:
        audit.log_result(name, "ok")

    return with_reason(result, reason)


# ============================================================================
# MCP Server Setup
# ============================================================================

_LIBRARY = {"type": "string", "description": "Library name (see list_libraries)"}
_NAMES = {
    "type": ["array", "string"],
    "items": {"type": "string"},
    "description": "Entity names (list, or comma separated string)",
}
_SECTION = {"type": "string", "description": "Heading of the section to work in (fuzzy, must match one heading)"}
_RELATIONS = {
    "type": "array",
    "items": {
        "type": "object",
        "properties": {
            "type": {"type": "string", "description": "Relation type, e.g. 'knows'"},
            "to": {"type": "string", "description": "Target entity name"},
        },
        "required": ["type", "to"],
    },
}


def _tool(name: str, description: str, properties: Dict[str, Any], required: List[str]) -> Tool:
    schema_properties = dict(properties)
    schema_properties["reason"] = {"type": "string", "description": "Why this call is made (echoed back, logged)"}
    return Tool(
        name=name,
        description=description,
        inputSchema={"type": "object", "properties": schema_properties, "required": required},
    )


def list_tool_definitions() -> List[Tool]:
    """Tool definitions of the library server."""
    return [
        _tool("list_libraries", "List configured libraries and their root directories.", {}, []),
        _tool(
            "create_file",
            "Create a new file inside a library. Fails if it already exists.",
            {
                "library": _LIBRARY,
                "relative_path": {"type": "string", "description": "Path relative to the library root"},
                "content": {"type": "string", "description": "Initial content"},
            },
            ["library", "relative_path"],
        ),
        _tool(
            "backup_library",
            "Zip the whole library (except backups/) into backups/backup-<timestamp>.zip.",
            {"library": _LIBRARY},
            ["library"],
        ),
        _tool(
            "add_entities",
            "Create entity documents. Fields other than name/content become front matter.",
            {
                "library": _LIBRARY,
                "entities": {
                    "type": "array",
                    "items": {
                        "type": "object",
                        "properties": {
                            "name": {"type": "string"},
                            "content": {"type": "string", "description": "Markdown body"},
                            "type": {"type": "string", "description": "Entity type"},
                            "aliases": {"type": "array", "items": {"type": "string"}},
                        },
                        "required": ["name"],
                    },
                },
            },
            ["library", "entities"],
        ),
        _tool(
            "delete_entities",
            "Move entities to the library trash.",
            {"library": _LIBRARY, "entity_names": _NAMES},
            ["library", "entity_names"],
        ),
        _tool(
            "read_entities",
            "Read the full content of one or more entities.",
            {"library": _LIBRARY, "entity_names": _NAMES},
            ["library", "entity_names"],
        ),
        _tool(
            "list_entities",
            "List entity names matching glob patterns (e.g. 'ali*').",
            {
                "library": _LIBRARY,
                "globs": {"type": ["array", "string"], "items": {"type": "string"}},
            },
            ["library"],
        ),
        _tool(
            "get_entities_toc",
            "Headings (level, line number, text) of one or more entities.",
            {"library": _LIBRARY, "entity_names": _NAMES},
            ["library", "entity_names"],
        ),
        _tool(
            "rename_entity",
            "Rename an entity and update relations pointing at it.",
            {"library": _LIBRARY, "old_name": {"type": "string"}, "new_name": {"type": "string"}},
            ["library", "old_name", "new_name"],
        ),
        _tool(
            "read_entities_sections",
            "Read only the sections whose heading contains one of the queries.",
            {
                "library": _LIBRARY,
                "entity_names": _NAMES,
                "section_queries": {"type": ["array", "string"], "items": {"type": "string"}},
            },
            ["library", "entity_names", "section_queries"],
        ),
        _tool(
            "add_entity_content",
            "Append content at the end of a section (or of the document when no section is given).",
            {
                "library": _LIBRARY,
                "entity_name": {"type": "string"},
                "content": {"type": "string"},
                "in_section": _SECTION,
            },
            ["library", "entity_name", "content"],
        ),
        _tool(
            "insert_entity_content",
            "Insert content right after an anchor block that occurs exactly once.",
            {
                "library": _LIBRARY,
                "entity_name": {"type": "string"},
                "anchor": {"type": "string", "description": "Exact existing lines"},
                "content": {"type": "string"},
                "in_section": _SECTION,
            },
            ["library", "entity_name", "anchor", "content"],
        ),
        _tool(
            "replace_entity_content",
            "Replace lines located by exact content ({type: 'lines', lines}) or by a verified "
            "range ({type: 'range', begin_line_number, end_line_number, begin_line, end_line}).",
            {
                "library": _LIBRARY,
                "entity_name": {"type": "string"},
                "locator": {"type": "object"},
                "content": {"type": "string", "description": "Replacement lines (empty deletes)"},
                "in_section": _SECTION,
            },
            ["library", "entity_name", "locator", "content"],
        ),
        _tool(
            "delete_entity_content",
            "Delete a block of lines that occurs exactly once.",
            {
                "library": _LIBRARY,
                "entity_name": {"type": "string"},
                "content_to_delete": {"type": "string"},
                "in_section": _SECTION,
            },
            ["library", "entity_name", "content_to_delete"],
        ),
        _tool(
            "replace_entity_section",
            "Rewrite a section: its heading and its whole body.",
            {
                "library": _LIBRARY,
                "entity_name": {"type": "string"},
                "old_heading": {"type": "string"},
                "new_heading": {"type": "string"},
                "new_body": {"type": "string"},
            },
            ["library", "entity_name", "old_heading", "new_heading"],
        ),
        _tool(
            "merge_entities",
            "Merge source entities into a target entity and trash the sources.",
            {"library": _LIBRARY, "source_names": _NAMES, "target_name": {"type": "string"}},
            ["library", "source_names", "target_name"],
        ),
        _tool(
            "create_relations",
            "Add relations to an entity's front matter as 'relation as <type>: <to>'.",
            {"library": _LIBRARY, "from_entity": {"type": "string"}, "relations": _RELATIONS},
            ["library", "from_entity", "relations"],
        ),
        _tool(
            "delete_relations",
            "Remove relations from an entity's front matter.",
            {"library": _LIBRARY, "from_entity": {"type": "string"}, "relations": _RELATIONS},
            ["library", "from_entity", "relations"],
        ),
        _tool(
            "garbage_collect_relations",
            "Find relations pointing at missing entities; remove them when dry_run is false.",
            {"library": _LIBRARY, "dry_run": {"type": "boolean", "default": True}},
            ["library"],
        ),
        _tool(
            "find_entities_by_metadata",
            "Find entities whose front matter has a line matching a regex.",
            {"library": _LIBRARY, "pattern": {"type": "string"}},
            ["library", "pattern"],
        ),
        _tool(
            "find_relations",
            "List relations, optionally filtered by target, type or source.",
            {
                "library": _LIBRARY,
                "to_entity": {"type": "string"},
                "relation_type": {"type": "string"},
                "from_entity": {"type": "string"},
            },
            ["library"],
        ),
        _tool(
            "search_in_contents",
            "Regex search over entity bodies (front matter excluded).",
            {
                "library": _LIBRARY,
                "pattern": {"type": "string"},
                "name_glob": {"type": "string", "default": "*"},
            },
            ["library", "pattern"],
        ),
        _tool(
            "search_anywhere",
            "Regex search over entity names, front matter and bodies.",
            {"library": _LIBRARY, "pattern": {"type": "string"}},
            ["library", "pattern"],
        ),
        _tool("read_manual", "Read the library manual (meta.md).", {"library": _LIBRARY}, ["library"]),
        _tool(
            "update_manual_section",
            "Replace the body of a manual section.",
            {"library": _LIBRARY, "heading": {"type": "string"}, "content": {"type": "string"}},
            ["library", "heading", "content"],
        ),
        _tool(
            "add_manual_section",
            "Append a new section to the manual.",
            {"library": _LIBRARY, "heading": {"type": "string"}, "content": {"type": "string"}},
            ["library", "heading"],
        ),
        _tool(
            "delete_manual_section",
            "Delete a manual section, heading included.",
            {"library": _LIBRARY, "heading": {"type": "string"}},
            ["library", "heading"],
        ),
        _tool(
            "create_journey",
            "Create a journey document.",
            {"library": _LIBRARY, "name": {"type": "string"}, "content": {"type": "string"}},
            ["library", "name"],
        ),
        _tool(
            "read_journey",
            "Read a journey document.",
            {"library": _LIBRARY, "name": {"type": "string"}},
            ["library", "name"],
        ),
        _tool(
            "append_journey",
            "Append an entry to a journey, under a timestamp heading by default.",
            {
                "library": _LIBRARY,
                "name": {"type": "string"},
                "content": {"type": "string"},
                "dated": {"type": "boolean", "default": True},
            },
            ["library", "name", "content"],
        ),
    ]


def _text_result(result: Any) -> List[TextContent]:
    return [TextContent(type="text", text=json.dumps(result, indent=2, default=str, ensure_ascii=False))]


def create_server() -> Server:
    """Create and configure the MCP server."""
    name = _config.name if _config else "memory"
    server = Server(name)

    @server.list_tools()
    async def list_tools():
        return list_tool_definitions()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict):
        try:
            return _text_result(dispatch(name, arguments))
        except Exception as e:
            logger.exception("Unexpected error in %s", name)
            return _text_result({"error": str(e), "type": type(e).__name__})

    return server


async def run_server():
    """Run the MCP server over stdio."""
    server = create_server()
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


def serve(config: ServerConfig) -> None:
    """Set up logging and run the server selected by ``config.version``."""
    import asyncio

    log_path = setup_logging(config.log_dir, config.log_level)
    logger.info("Starting %s (version %d), log file: %s", config.name, config.version, log_path or "stderr")

    if config.version == 1:
        from memoff.mcp import graph_server

        graph_server.init_server(config)
        asyncio.run(graph_server.run_server())
    else:
        init_server(config)
        asyncio.run(run_server())


def main():
    """CLI entry point for the MCP server (configured from MEM_* variables)."""
    serve(load_config())


if __name__ == "__main__":
    main()
