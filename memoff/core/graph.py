"""
GraphManager - entity/relation graph kept in one YAML file.

The file is a flat YAML list; each item is tagged with ``type``:

    - type: entity
      name: Alice
      entityType: person
      observations:
        - Works on the search team
    - type: relation
      from: Alice
      to: Bob
      relationType: knows

Every call loads the whole file and every mutation writes it back (sorted),
with no locking. A missing file reads as an empty graph.
"""

import logging
import shutil
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

import yaml

from memoff.core.errors import DocumentExistsError, DocumentNotFoundError, NoMatchError

logger = logging.getLogger(__name__)


@dataclass
class Entity:
    name: str
    entityType: str = ""
    observations: List[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entity":
        return cls(
            name=str(data["name"]),
            entityType=str(data.get("entityType") or ""),
            observations=[str(o) for o in data.get("observations") or []],
        )

    def to_dict(self) -> Dict[str, Any]:
        return {"name": self.name, "entityType": self.entityType, "observations": list(self.observations)}


@dataclass(frozen=True)
class Relation:
    from_: str
    to: str
    relationType: str

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Relation":
        return cls(from_=str(data["from"]), to=str(data["to"]), relationType=str(data["relationType"]))

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.from_, "to": self.to, "relationType": self.relationType}


@dataclass
class KnowledgeGraph:
    entities: List[Entity] = field(default_factory=list)
    relations: List[Relation] = field(default_factory=list)

    def entity(self, name: str) -> Optional[Entity]:
        for entity in self.entities:
            if entity.name == name:
                return entity
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "entities": [e.to_dict() for e in self.entities],
            "relations": [r.to_dict() for r in self.relations],
        }


def _connected(graph: KnowledgeGraph, entities: List[Entity]) -> KnowledgeGraph:
    """Keep only relations whose both ends are among ``entities``."""
    names = {e.name for e in entities}
    relations = [r for r in graph.relations if r.from_ in names and r.to in names]
    return KnowledgeGraph(entities=entities, relations=relations)


def _type_counts(types: Iterable[str]) -> List[Dict[str, Any]]:
    counts: Dict[str, int] = {}
    for t in types:
        if t:
            counts[t] = counts.get(t, 0) + 1
    return [{"type": t, "count": c} for t, c in counts.items()]


class GraphManager:
    """CRUD over the YAML graph file.

    Args:
        file_path: Path of the YAML file; created on first write
    """

    def __init__(self, file_path: Path):
        self.file_path = Path(file_path).expanduser().resolve()

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    def load(self) -> KnowledgeGraph:
        """Load the graph; a missing file is an empty graph.

        Raises:
            ValueError: The file is not a YAML list of tagged items
        """
        if not self.file_path.exists():
            logger.info("Graph file %s not found, using empty graph", self.file_path)
            return KnowledgeGraph()

        with open(self.file_path, encoding="utf-8") as f:
            data = yaml.safe_load(f)

        if data is None:
            return KnowledgeGraph()
        if not isinstance(data, list):
            raise ValueError(f"Invalid YAML format in {self.file_path}, should be a list")

        graph = KnowledgeGraph()
        for item in data:
            if not isinstance(item, dict) or "type" not in item:
                raise ValueError(f"Invalid item in {self.file_path}: {item!r}")
            if item["type"] == "entity":
                graph.entities.append(Entity.from_dict(item))
            elif item["type"] == "relation":
                graph.relations.append(Relation.from_dict(item))
        logger.debug(
            "Loaded graph from %s: %d entities, %d relations",
            self.file_path,
            len(graph.entities),
            len(graph.relations),
        )
        return graph

    def save(self, graph: KnowledgeGraph) -> None:
        """Write the graph back, entities by name and relations by (from, type, to)."""
        entities = sorted(graph.entities, key=lambda e: e.name)
        relations = sorted(graph.relations, key=lambda r: (r.from_, r.relationType, r.to))
        items = [{"type": "entity", **e.to_dict()} for e in entities]
        items += [{"type": "relation", **r.to_dict()} for r in relations]

        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        with open(self.file_path, "w", encoding="utf-8") as f:
            yaml.safe_dump(items, f, allow_unicode=True, sort_keys=False)
        logger.debug("Saved graph to %s, items count: %d", self.file_path, len(items))

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_entities(self, entities: List[Entity]) -> Dict[str, List[str]]:
        """Add entities; an existing entity gets the new observations appended.

        Returns:
            {"added": [...names], "edited": [...names]}
        """
        graph = self.load()
        added, edited = [], []
        for new in entities:
            existing = graph.entity(new.name)
            if existing:
                existing.observations.extend(o for o in new.observations if o not in existing.observations)
                edited.append(new.name)
            else:
                graph.entities.append(Entity(new.name, new.entityType, list(new.observations)))
                added.append(new.name)
        self.save(graph)
        return {"added": added, "edited": edited}

    def create_relations(self, relations: List[Relation]) -> List[Relation]:
        """Add relations that do not exist yet; returns the ones added."""
        graph = self.load()
        existing: Set[Relation] = set(graph.relations)
        created = []
        for relation in relations:
            if relation not in existing:
                existing.add(relation)
                created.append(relation)
        graph.relations.extend(created)
        self.save(graph)
        return created

    def add_observations(self, observations: List[Tuple[str, List[str]]]) -> List[Dict[str, Any]]:
        """Append observations to existing entities, skipping duplicates.

        Args:
            observations: (entity name, contents) pairs

        Raises:
            NoMatchError: An entity does not exist; nothing is written
        """
        graph = self.load()
        results = []
        for name, contents in observations:
            entity = graph.entity(name)
            if entity is None:
                raise NoMatchError(f"Entity with name {name} not found")
            added = []
            for content in contents:
                if content not in entity.observations and content not in added:
                    added.append(content)
            entity.observations.extend(added)
            results.append({"entityName": name, "addedObservations": added})
        self.save(graph)
        return results

    def delete_entities(self, names: List[str]) -> None:
        """Delete entities and every relation touching them."""
        graph = self.load()
        doomed = set(names)
        graph.entities = [e for e in graph.entities if e.name not in doomed]
        graph.relations = [r for r in graph.relations if r.from_ not in doomed and r.to not in doomed]
        self.save(graph)

    def delete_observations(self, deletions: List[Tuple[str, List[str]]]) -> None:
        """Remove observations; unknown entities are ignored."""
        graph = self.load()
        for name, observations in deletions:
            entity = graph.entity(name)
            if entity:
                entity.observations = [o for o in entity.observations if o not in observations]
        self.save(graph)

    def delete_relations(self, relations: List[Relation]) -> None:
        graph = self.load()
        doomed = set(relations)
        graph.relations = [r for r in graph.relations if r not in doomed]
        self.save(graph)

    def merge_entity_types(self, merging_types: List[str], target_type: str) -> Dict[str, int]:
        """Retype every entity of ``merging_types`` to ``target_type``.

        Entities of merged types that share a name collapse into one, with
        their observations concatenated.
        """
        graph = self.load()
        merging = [e for e in graph.entities if e.entityType in merging_types]
        merged: Dict[str, Entity] = {}
        for entity in merging:
            if entity.name in merged:
                merged[entity.name].observations.extend(entity.observations)
            else:
                merged[entity.name] = Entity(entity.name, target_type, list(entity.observations))

        graph.entities = [e for e in graph.entities if e.entityType not in merging_types]
        graph.entities.extend(merged.values())
        self.save(graph)
        logger.info("Merged entity types %s -> %s", merging_types, target_type)
        return {"originalEntitiesCount": len(merging), "mergedEntitiesCount": len(merged)}

    def merge_relation_types(self, merging_types: List[str], target_type: str) -> Dict[str, int]:
        """Retype relations; relations that become identical collapse into one."""
        graph = self.load()
        merging = [r for r in graph.relations if r.relationType in merging_types]
        merged: Dict[Relation, None] = {}
        for relation in merging:
            merged[Relation(relation.from_, relation.to, target_type)] = None

        kept = [r for r in graph.relations if r.relationType not in merging_types]
        kept_set = set(kept)
        graph.relations = kept + [r for r in merged if r not in kept_set]
        self.save(graph)
        logger.info("Merged relation types %s -> %s", merging_types, target_type)
        return {"originalRelationCount": len(merging), "mergedRelationCount": len(merged)}

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def read_graph(self) -> KnowledgeGraph:
        return self.load()

    def search_nodes(self, query: str) -> KnowledgeGraph:
        """Entities where any keyword occurs in the name, type or an observation.

        Keywords are the whitespace-separated words of ``query``, compared
        case-insensitively.
        """
        graph = self.load()
        keywords = [k.lower() for k in query.split()]

        def hit(entity: Entity) -> bool:
            haystacks = [entity.name.lower(), entity.entityType.lower()]
            haystacks += [o.lower() for o in entity.observations]
            return any(k in h for k in keywords for h in haystacks)

        return _connected(graph, [e for e in graph.entities if hit(e)])

    def open_nodes(self, names: List[str]) -> KnowledgeGraph:
        graph = self.load()
        return _connected(graph, [e for e in graph.entities if e.name in names])

    def read_subgraph(self, names: List[str], max_depth: int) -> KnowledgeGraph:
        """Breadth-first neighbourhood of ``names`` up to ``max_depth`` hops.

        Relations are followed in both directions. Every relation touching a
        visited entity below ``max_depth`` is included, even when its other
        end does not exist as an entity.
        """
        graph = self.load()
        by_name = {e.name: e for e in graph.entities}
        incident: Dict[str, List[Relation]] = {}
        for relation in graph.relations:
            incident.setdefault(relation.from_, []).append(relation)
            incident.setdefault(relation.to, []).append(relation)

        visited: Dict[str, int] = {}
        entities: Dict[str, Entity] = {}
        relations: Dict[Relation, None] = {}
        queue = deque((name, 0) for name in names)

        while queue:
            name, depth = queue.popleft()
            if depth > max_depth or (name in visited and visited[name] <= depth):
                continue
            visited[name] = depth
            if name in by_name:
                entities[name] = by_name[name]
            if depth >= max_depth:
                continue
            for relation in incident.get(name, []):
                relations[relation] = None
                for neighbour in (relation.from_, relation.to):
                    if neighbour != name and visited.get(neighbour, depth + 2) > depth + 1:
                        queue.append((neighbour, depth + 1))

        return KnowledgeGraph(entities=list(entities.values()), relations=list(relations))

    def list_entity_types(self) -> List[Dict[str, Any]]:
        return _type_counts(e.entityType for e in self.load().entities)

    def list_relation_types(self) -> List[Dict[str, Any]]:
        return _type_counts(r.relationType for r in self.load().relations)

    def backup(self) -> Path:
        """Copy the graph file next to itself with a timestamp suffix.

        ``memory.yaml`` becomes ``memory_backup_2026-01-05T14-30-00.123456.yaml``.

        Raises:
            DocumentNotFoundError: The graph file does not exist
            DocumentExistsError: The backup file already exists
        """
        if not self.file_path.exists():
            raise DocumentNotFoundError(f"Graph file does not exist: {self.file_path}")

        stamp = datetime.now().isoformat().replace(":", "-")
        backup_path = self.file_path.with_name(f"{self.file_path.stem}_backup_{stamp}.yaml")
        if backup_path.exists():
            raise DocumentExistsError(f"Backup file already exists: {backup_path}")

        shutil.copyfile(self.file_path, backup_path)
        logger.info("Backed up %s -> %s", self.file_path, backup_path)
        return backup_path


__all__ = ["Entity", "Relation", "KnowledgeGraph", "GraphManager"]
