"""memoff graph MCP server (version 1) - entities and relations in one YAML file.

Entity Tools (5):
- create_entities, add_observations, delete_entities, delete_observations, open_nodes

Relation Tools (2):
- create_relations, delete_relations

Graph Tools (8):
- read_graph, search_nodes, read_subgraph, list_entity_types,
  list_relation_types, merge_entity_types, merge_relation_types, backup_graph
"""

import logging
from typing import Any, Dict, List, Optional

from mcp.server import Server
from mcp.server.stdio import stdio_server
from mcp.types import Tool

from memoff.core.config import ServerConfig
from memoff.core.graph import Entity, GraphManager, Relation
from memoff.core.observability import DB_FILENAME, ObservabilityLogger
from memoff.mcp.server import NotInitializedError, _text_result, dispatch
from memoff.mcp.validation import success_response

logger = logging.getLogger(__name__)

_config: Optional[ServerConfig] = None
_graph: Optional[GraphManager] = None
_audit: Optional[ObservabilityLogger] = None

_NOT_INIT_MSG = "memoff graph server not initialized. Call init_server() first."


def _graph_instance() -> GraphManager:
    """Return the graph manager, raising if not initialized."""
    if _graph is None:
        raise NotInitializedError(_NOT_INIT_MSG)
    return _graph


def init_server(config: ServerConfig) -> Dict[str, Any]:
    global _config, _graph, _audit

    _config = config
    _graph = GraphManager(config.mem_path)
    _audit = ObservabilityLogger(config.log_dir / DB_FILENAME) if config.log_dir else None
    logger.info("memoff graph server initialized with %s", _graph.file_path)
    return {"name": config.name, "mem_path": str(_graph.file_path)}


def _relations(items: List[Dict[str, Any]]) -> List[Relation]:
    return [Relation.from_dict(item) for item in items]


# ============================================================================
# Tool Handlers
# ============================================================================


def handle_create_entities(entities: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Create entities; existing ones get the new observations appended."""
    result = _graph_instance().create_entities([Entity.from_dict(e) for e in entities])
    return success_response(result)


def handle_create_relations(relations: List[Dict[str, Any]]) -> Dict[str, Any]:
    created = _graph_instance().create_relations(_relations(relations))
    return success_response({"created": [r.to_dict() for r in created]})


def handle_add_observations(observations: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Add observations; every named entity must exist."""
    pairs = [(o["entityName"], list(o.get("contents") or [])) for o in observations]
    return success_response({"results": _graph_instance().add_observations(pairs)})


def handle_delete_entities(entity_names: List[str]) -> Dict[str, Any]:
    _graph_instance().delete_entities(list(entity_names))
    return success_response({"deleted": list(entity_names)})


def handle_delete_observations(deletions: List[Dict[str, Any]]) -> Dict[str, Any]:
    pairs = [(d["entityName"], list(d.get("observations") or [])) for d in deletions]
    _graph_instance().delete_observations(pairs)
    return success_response({"message": "Observations deleted successfully"})


def handle_delete_relations(relations: List[Dict[str, Any]]) -> Dict[str, Any]:
    _graph_instance().delete_relations(_relations(relations))
    return success_response({"message": "Relations deleted successfully"})


def handle_read_graph() -> Dict[str, Any]:
    return success_response(_graph_instance().read_graph().to_dict())


def handle_search_nodes(query: str) -> Dict[str, Any]:
    return success_response(_graph_instance().search_nodes(query).to_dict())


def handle_open_nodes(names: List[str]) -> Dict[str, Any]:
    return success_response(_graph_instance().open_nodes(list(names)).to_dict())


def handle_read_subgraph(names: List[str], max_depth: int = 1) -> Dict[str, Any]:
    return success_response(_graph_instance().read_subgraph(list(names), int(max_depth)).to_dict())


def handle_list_entity_types() -> Dict[str, Any]:
    return success_response({"entity_types": _graph_instance().list_entity_types()})


def handle_list_relation_types() -> Dict[str, Any]:
    return success_response({"relation_types": _graph_instance().list_relation_types()})


def handle_merge_entity_types(entity_types: List[str], target_type: str) -> Dict[str, Any]:
    return success_response(_graph_instance().merge_entity_types(list(entity_types), target_type))


def handle_merge_relation_types(relation_types: List[str], target_type: str) -> Dict[str, Any]:
    return success_response(_graph_instance().merge_relation_types(list(relation_types), target_type))


def handle_backup_graph() -> Dict[str, Any]:
    return success_response({"backup_path": str(_graph_instance().backup())})


GRAPH_TOOL_HANDLERS = {
    "create_entities": handle_create_entities,
    "create_relations": handle_create_relations,
    "add_observations": handle_add_observations,
    "delete_entities": handle_delete_entities,
    "delete_observations": handle_delete_observations,
    "delete_relations": handle_delete_relations,
    "read_graph": handle_read_graph,
    "search_nodes": handle_search_nodes,
    "open_nodes": handle_open_nodes,
    "read_subgraph": handle_read_subgraph,
    "list_entity_types": handle_list_entity_types,
    "list_relation_types": handle_list_relation_types,
    "merge_entity_types": handle_merge_entity_types,
    "merge_relation_types": handle_merge_relation_types,
    "backup_graph": handle_backup_graph,
}


def graph_dispatch(name: str, arguments: Optional[Dict[str, Any]]) -> Dict[str, Any]:
    return dispatch(name, arguments, handlers=GRAPH_TOOL_HANDLERS, audit=_audit)


# ============================================================================
# MCP Server Setup
# ============================================================================

_ENTITY = {
    "type": "object",
    "properties": {
        "name": {"type": "string"},
        "entityType": {"type": "string"},
        "observations": {"type": "array", "items": {"type": "string"}},
    },
    "required": ["name", "entityType", "observations"],
}
_RELATION = {
    "type": "object",
    "properties": {
        "from": {"type": "string", "description": "Source entity name"},
        "to": {"type": "string", "description": "Target entity name"},
        "relationType": {"type": "string", "description": "Relation type in active voice"},
    },
    "required": ["from", "to", "relationType"],
}
_STRINGS = {"type": "array", "items": {"type": "string"}}


def _schema(properties: Dict[str, Any], required: List[str]) -> Dict[str, Any]:
    return {"type": "object", "properties": properties, "required": required}


def list_tool_definitions() -> List[Tool]:
    """Tool definitions of the graph server."""
    return [
        Tool(
            name="create_entities",
            description="Create entities in the knowledge graph; existing entities get new observations.",
            inputSchema=_schema({"entities": {"type": "array", "items": _ENTITY}}, ["entities"]),
        ),
        Tool(
            name="create_relations",
            description="Create relations between entities; duplicates are skipped.",
            inputSchema=_schema({"relations": {"type": "array", "items": _RELATION}}, ["relations"]),
        ),
        Tool(
            name="add_observations",
            description="Add observations to existing entities.",
            inputSchema=_schema(
                {
                    "observations": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {"entityName": {"type": "string"}, "contents": _STRINGS},
                            "required": ["entityName", "contents"],
                        },
                    }
                },
                ["observations"],
            ),
        ),
        Tool(
            name="delete_entities",
            description="Delete entities and every relation touching them.",
            inputSchema=_schema({"entity_names": _STRINGS}, ["entity_names"]),
        ),
        Tool(
            name="delete_observations",
            description="Delete specific observations from entities.",
            inputSchema=_schema(
                {
                    "deletions": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {"entityName": {"type": "string"}, "observations": _STRINGS},
                            "required": ["entityName", "observations"],
                        },
                    }
                },
                ["deletions"],
            ),
        ),
        Tool(
            name="delete_relations",
            description="Delete relations.",
            inputSchema=_schema({"relations": {"type": "array", "items": _RELATION}}, ["relations"]),
        ),
        Tool(name="read_graph", description="Read the entire knowledge graph.", inputSchema=_schema({}, [])),
        Tool(
            name="search_nodes",
            description="Find entities whose name, type or observations contain any query keyword.",
            inputSchema=_schema({"query": {"type": "string"}}, ["query"]),
        ),
        Tool(
            name="open_nodes",
            description="Read entities by name, with the relations among them.",
            inputSchema=_schema({"names": _STRINGS}, ["names"]),
        ),
        Tool(
            name="read_subgraph",
            description="Read entities within max_depth relation hops of the given names.",
            inputSchema=_schema({"names": _STRINGS, "max_depth": {"type": "integer", "default": 1}}, ["names"]),
        ),
        Tool(
            name="list_entity_types",
            description="List entity types with their counts.",
            inputSchema=_schema({}, []),
        ),
        Tool(
            name="list_relation_types",
            description="List relation types with their counts.",
            inputSchema=_schema({}, []),
        ),
        Tool(
            name="merge_entity_types",
            description="Retype all entities of the given types to a target type.",
            inputSchema=_schema(
                {"entity_types": _STRINGS, "target_type": {"type": "string"}}, ["entity_types", "target_type"]
            ),
        ),
        Tool(
            name="merge_relation_types",
            description="Retype all relations of the given types to a target type.",
            inputSchema=_schema(
                {"relation_types": _STRINGS, "target_type": {"type": "string"}},
                ["relation_types", "target_type"],
            ),
        ),
        Tool(
            name="backup_graph",
            description="Copy the graph file to a timestamped backup next to it.",
            inputSchema=_schema({}, []),
        ),
    ]


def create_server() -> Server:
    """Create and configure the graph MCP server."""
    server = Server(_config.name if _config else "memory")

    @server.list_tools()
    async def list_tools():
        return list_tool_definitions()

    @server.call_tool()
    async def call_tool(name: str, arguments: dict):
        try:
            return _text_result(graph_dispatch(name, arguments))
        except Exception as e:
            logger.exception("Unexpected error in %s", name)
            return _text_result({"error": str(e), "type": type(e).__name__})

    return server


async def run_server():
    server = create_server()
    async with stdio_server() as (read_stream, write_stream):
        await server.run(read_stream, write_stream, server.create_initialization_options())


__all__ = ["init_server", "create_server", "run_server", "graph_dispatch", "GRAPH_TOOL_HANDLERS"]
