"""Reference resolution and the schema dependency graph.

The resolver walks every component schema of a document, validates each
``$ref`` it finds and records an edge from the containing component to the
referenced one. Inline shapes nested inside a component are attributed to
that component, so the graph has exactly one node per component schema.

Cycles are expected. They are detected with a depth-first three-colouring
and tracked explicitly: both ends of every back-edge are flagged recursive
and the back-edges themselves are exposed so later stages can reference the
target lazily instead of expanding it.
"""

import dataclasses
import logging
from collections.abc import Iterator, Mapping
from typing import Any

from vikagen.document import SCHEMA_REF_PREFIX
from vikagen.exceptions import SchemaReferenceError

logger = logging.getLogger(__name__)

__all__ = [
    'DependencyGraph',
    'ReferenceResolver',
    'ResolutionResult',
    'iter_refs',
    'pointer',
]

_WHITE, _GRAY, _BLACK = 0, 1, 2

# Keywords whose value is a single sub-schema
_SCHEMA_KEYWORDS = ('items', 'additionalProperties', 'not', 'contains')
# Keywords whose value is a list of sub-schemas
_SCHEMA_LIST_KEYWORDS = ('allOf', 'oneOf', 'anyOf', 'prefixItems')


def pointer(*segments: str | int) -> str:
    """Join segments into a qualified id, escaping them like a JSON pointer."""
    return '/'.join(str(s).replace('~', '~0').replace('/', '~1') for s in segments)


def iter_refs(schema: Any, location: str) -> Iterator[tuple[str, str]]:
    """Yield ``(location, $ref)`` pairs for every reference inside ``schema``."""
    if not isinstance(schema, dict):
        return
    ref = schema.get('$ref')
    if isinstance(ref, str):
        yield location, ref
        return
    for name, prop in (schema.get('properties') or {}).items():
        yield from iter_refs(prop, f'{location}/{pointer("properties", name)}')
    for keyword in _SCHEMA_KEYWORDS:
        value = schema.get(keyword)
        if isinstance(value, dict):
            yield from iter_refs(value, f'{location}/{keyword}')
        elif isinstance(value, list):
            for index, item in enumerate(value):
                yield from iter_refs(item, f'{location}/{keyword}/{index}')
    for keyword in _SCHEMA_LIST_KEYWORDS:
        for index, member in enumerate(schema.get(keyword) or []):
            yield from iter_refs(member, f'{location}/{keyword}/{index}')


class DependencyGraph:
    """Directed graph over component schema ids.

    An edge ``A -> B`` exists when a ``$ref`` to ``B`` occurs anywhere inside
    ``A``. The graph is built once by :class:`ReferenceResolver` and is
    read-only afterwards.
    """

    def __init__(
        self,
        edges: Mapping[str, list[str]],
        back_edges: frozenset[tuple[str, str]],
    ):
        self._edges = {node: list(targets) for node, targets in sorted(edges.items())}
        self._back_edges = back_edges
        self._recursive = frozenset(
            node for edge in back_edges for node in edge
        )

    def nodes(self) -> list[str]:
        return list(self._edges)

    def successors(self, node: str) -> list[str]:
        return list(self._edges[node])

    def edges(self) -> Iterator[tuple[str, str]]:
        for node, targets in self._edges.items():
            for target in targets:
                yield node, target

    @property
    def back_edges(self) -> frozenset[tuple[str, str]]:
        return self._back_edges

    @property
    def recursive(self) -> frozenset[str]:
        return self._recursive

    def is_back_edge(self, source: str, target: str) -> bool:
        return (source, target) in self._back_edges

    def is_recursive(self, node: str) -> bool:
        return node in self._recursive

    def has_cycles(self) -> bool:
        return bool(self._back_edges)

    def reachable(self, starts: list[str]) -> set[str]:
        """Return all nodes reachable from ``starts`` (inclusive)."""
        seen: set[str] = set()
        stack = list(starts)
        while stack:
            node = stack.pop()
            if node in seen:
                continue
            seen.add(node)
            stack.extend(self._edges.get(node, []))
        return seen

    def __contains__(self, node: str) -> bool:
        return node in self._edges

    def __len__(self) -> int:
        return len(self._edges)


@dataclasses.dataclass(frozen=True)
class ResolutionResult:
    graph: DependencyGraph
    ref_map: dict[str, str]


class ReferenceResolver:
    """Validates local ``$ref`` pointers and builds the dependency graph.

    Example:
        >>> resolver = ReferenceResolver(document.schemas)
        >>> result = resolver.resolve()
        >>> result.graph.is_recursive('TreeNode')
        True
    """

    def __init__(self, schemas: Mapping[str, dict[str, Any]]):
        self.schemas = schemas
        self._ref_map: dict[str, str] = {}

    def target_of(
        self,
        ref: str,
        location: str | None = None,
        chain: list[str] | None = None,
    ) -> str:
        """Return the node id a ``$ref`` string points at.

        Args:
            ref: The ``$ref`` string.
            location: Qualified id of the schema holding the reference.
            chain: The reference chain that led to ``location``.

        Raises:
            SchemaReferenceError: If the reference is not local or dangling.
        """
        if ref in self._ref_map:
            return self._ref_map[ref]

        if not ref.startswith(SCHEMA_REF_PREFIX):
            if ref.startswith('#/'):
                reason = 'Only #/components/schemas/... references are supported'
            else:
                reason = 'References to other documents are not supported'
            raise SchemaReferenceError(ref, reason, schema_name=location, chain=chain)

        name = ref[len(SCHEMA_REF_PREFIX) :].replace('~1', '/').replace('~0', '~')
        if name not in self.schemas:
            available = ', '.join(sorted(self.schemas)[:10])
            if len(self.schemas) > 10:
                available += f', ... ({len(self.schemas)} total)'
            raise SchemaReferenceError(
                ref,
                f"Schema '{name}' not found. Available schemas: {available or 'none'}",
                schema_name=location,
                chain=chain,
            )

        self._ref_map[ref] = name
        return name

    def resolve(self) -> ResolutionResult:
        """Validate every reference and build the graph.

        Returns:
            The dependency graph and the ``$ref`` → node id map.

        Raises:
            SchemaReferenceError: On the first dangling or non-local reference.
        """
        edges: dict[str, list[str]] = {}
        color = {name: _WHITE for name in self.schemas}
        back_edges: set[tuple[str, str]] = set()

        for start in sorted(self.schemas):
            if color[start] != _WHITE:
                continue
            path = [start]
            color[start] = _GRAY
            edges[start] = self._collect_edges(start, path)
            stack = [(start, iter(edges[start]))]

            while stack:
                node, successors = stack[-1]
                target = next(successors, None)
                if target is None:
                    color[node] = _BLACK
                    stack.pop()
                    path.pop()
                    continue
                if color[target] == _GRAY:
                    back_edges.add((node, target))
                elif color[target] == _WHITE:
                    color[target] = _GRAY
                    path.append(target)
                    edges[target] = self._collect_edges(target, path)
                    stack.append((target, iter(edges[target])))

        graph = DependencyGraph(edges, frozenset(back_edges))
        if graph.has_cycles():
            logger.debug(
                f'Recursive schemas: {", ".join(sorted(graph.recursive))}'
            )
        return ResolutionResult(graph=graph, ref_map=dict(sorted(self._ref_map.items())))

    def _collect_edges(self, node: str, path: list[str]) -> list[str]:
        targets: set[str] = set()
        for location, ref in iter_refs(self.schemas[node], pointer(node)):
            targets.add(self.target_of(ref, location, chain=list(path)))
        return sorted(targets)
