"""
Relationship graph derived from the schema's foreign keys.

Nothing here is stored: the adjacency description is computed from the
metadata and the ORM mappers so it can never drift from the foreign keys.
It backs eager-load option construction and a consistency check that every
foreign key is navigable in both directions.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Optional, Type

from sqlalchemy import MetaData, inspect
from sqlalchemy.orm import DeclarativeBase, selectinload
from sqlalchemy.orm.interfaces import MANYTOONE, ONETOMANY


@dataclass(frozen=True)
class ForeignKeyEdge:
    """child.column references parent.id."""

    child_table: str
    child_column: str
    parent_table: str
    ondelete: Optional[str]

    @property
    def cascades(self) -> bool:
        return (self.ondelete or "").upper() == "CASCADE"


@dataclass(frozen=True)
class RelationEdge:
    """One ORM relationship: `attribute` on `source` leads to `target`."""

    source: str
    attribute: str
    target: str
    kind: str  # "one" or "many"
    columns: tuple


# PUBLIC_INTERFACE
def foreign_key_edges(metadata: MetaData) -> List[ForeignKeyEdge]:
    """List every foreign key in the metadata, ordered by child table then column."""
    edges = []
    for table in metadata.sorted_tables:
        for fk in sorted(table.foreign_keys, key=lambda f: f.parent.name):
            edges.append(
                ForeignKeyEdge(
                    child_table=table.name,
                    child_column=fk.parent.name,
                    parent_table=fk.column.table.name,
                    ondelete=fk.ondelete,
                )
            )
    return edges


# PUBLIC_INTERFACE
def relationship_graph(base: Type[DeclarativeBase]) -> Dict[str, Dict[str, RelationEdge]]:
    """Map table name -> {relationship attribute -> RelationEdge} for every mapped class."""
    graph: Dict[str, Dict[str, RelationEdge]] = {}
    for mapper in base.registry.mappers:
        source = mapper.local_table.name
        attrs = graph.setdefault(source, {})
        for rel in mapper.relationships:
            if rel.direction is MANYTOONE:
                kind = "one"
                columns = tuple(sorted(col.name for col in rel.local_columns))
            elif rel.direction is ONETOMANY:
                kind = "many"
                columns = tuple(sorted(col.name for col in rel.remote_side))
            else:
                continue
            attrs[rel.key] = RelationEdge(
                source=source,
                attribute=rel.key,
                target=rel.mapper.local_table.name,
                kind=kind,
                columns=columns,
            )
    return graph


# PUBLIC_INTERFACE
def missing_relationships(base: Type[DeclarativeBase]) -> List[str]:
    """
    Report foreign keys that lack a relationship in either direction.

    Returns:
        list[str]: human readable descriptions; empty when the graph is complete.
    """
    graph = relationship_graph(base)
    problems = []
    for edge in foreign_key_edges(base.metadata):
        key = (edge.child_column,)
        has_one = any(
            rel.kind == "one" and rel.target == edge.parent_table and rel.columns == key
            for rel in graph.get(edge.child_table, {}).values()
        )
        has_many = any(
            rel.kind == "many" and rel.target == edge.child_table and rel.columns == key
            for rel in graph.get(edge.parent_table, {}).values()
        )
        if not has_one:
            problems.append(f"{edge.child_table}.{edge.child_column}: no many-to-one relationship")
        if not has_many:
            problems.append(f"{edge.child_table}.{edge.child_column}: no one-to-many relationship on {edge.parent_table}")
    return problems


# PUBLIC_INTERFACE
def eager_options(model: type, *paths: str) -> list:
    """
    Build selectinload options for dotted relationship paths.

    eager_options(Product, "category", "reviews.review_feedbacks") loads the
    category, the reviews and each review's feedback in three extra queries.

    Raises:
        ValueError: a path segment is not a relationship of the class it is applied to.
    """
    options = []
    for path in paths:
        current = model
        loader = None
        for segment in path.split("."):
            relationships = inspect(current).relationships
            if segment not in relationships:
                raise ValueError(f"{current.__name__} has no relationship {segment!r}")
            rel = relationships[segment]
            attr = getattr(current, segment)
            loader = selectinload(attr) if loader is None else loader.selectinload(attr)
            current = rel.mapper.class_
        options.append(loader)
    return options
