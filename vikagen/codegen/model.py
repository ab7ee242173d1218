"""Schema nodes and type references shared by the resolution stages.

Schema nodes live in a :class:`SchemaArena` keyed by their qualified id and
refer to each other only by id, so self- and mutually-recursive schemas never
need cyclic object graphs.
"""

import dataclasses
from collections.abc import Iterator
from enum import Enum
from typing import Any


class SchemaKind(str, Enum):
    """The closed set of structural schema kinds."""

    OBJECT = 'object'
    ARRAY = 'array'
    ENUM = 'enum'
    UNION = 'union'
    INTERSECTION = 'intersection'
    PRIMITIVE = 'primitive'


class PrimitiveType(str, Enum):
    STRING = 'string'
    NUMBER = 'number'
    INTEGER = 'integer'
    BOOLEAN = 'boolean'
    NULL = 'null'
    ANY = 'any'


@dataclasses.dataclass(frozen=True)
class ConstValue:
    """A single literal value (``const`` or a one-off literal)."""

    value: Any


@dataclasses.dataclass(frozen=True)
class DirectRef:
    """Reference to a node that may be used eagerly."""

    node_id: str
    nullable: bool = False


@dataclasses.dataclass(frozen=True)
class LazyRef:
    """Reference to a node that is only reachable through a cycle.

    Consumers must never inline a lazy reference: it is always emitted by
    name and, for validators, behind a deferred thunk.
    """

    node_id: str
    nullable: bool = False


@dataclasses.dataclass(frozen=True)
class InlineRef:
    """A primitive or literal type that has no node of its own."""

    primitive: PrimitiveType
    format: str | None = None
    literal: ConstValue | None = None
    nullable: bool = False


TypeRef = DirectRef | LazyRef | InlineRef

ANY_REF = InlineRef(PrimitiveType.ANY)


def with_nullable(ref: TypeRef, nullable: bool) -> TypeRef:
    if not nullable or ref.nullable:
        return ref
    return dataclasses.replace(ref, nullable=True)


@dataclasses.dataclass(frozen=True)
class PropertyDef:
    name: str
    type_ref: TypeRef
    required: bool = False
    description: str | None = None

    @property
    def nullable(self) -> bool:
        return self.type_ref.nullable


@dataclasses.dataclass(frozen=True)
class Discriminator:
    """A resolved discriminator: property name plus ordered value → node id map."""

    property_name: str
    mapping: tuple[tuple[str, str], ...] = ()


@dataclasses.dataclass
class SchemaNode:
    """A classified schema definition.

    Attributes:
        id: The stable qualified id ('Pet', 'Pet/properties/status').
        kind: The structural kind.
        root: The id of the graph node this node belongs to. For component
            schemas this is the node's own id.
        hint: The name the node would like to be emitted under.
        anonymous: Whether the node was hoisted from an inline shape.
        properties: Ordered property map for objects.
        items: Item type for arrays.
        members: Ordered composition members for unions and intersections.
        enum_values: Ordered literal values for enums.
        additional_properties: Value type of additional properties, if allowed.
        discriminator: Resolved discriminator for tagged unions.
        primitive: Base primitive for primitive/alias nodes.
        nullable: Whether the schema itself admits null.
        recursive: Whether the node participates in a reference cycle.
    """

    id: str
    kind: SchemaKind
    root: str
    hint: str
    anonymous: bool = False
    description: str | None = None
    deprecated: bool = False
    properties: dict[str, PropertyDef] = dataclasses.field(default_factory=dict)
    items: TypeRef | None = None
    members: list[TypeRef] = dataclasses.field(default_factory=list)
    enum_values: list[Any] = dataclasses.field(default_factory=list)
    additional_properties: TypeRef | None = None
    discriminator: Discriminator | None = None
    primitive: InlineRef | None = None
    nullable: bool = False
    recursive: bool = False

    @property
    def is_inlined(self) -> bool:
        """Anonymous arrays and primitives are expanded at their use sites."""
        return self.anonymous and self.kind in (SchemaKind.ARRAY, SchemaKind.PRIMITIVE)

    def references(self) -> Iterator[TypeRef]:
        """Yield every type reference held directly by this node."""
        for prop in self.properties.values():
            yield prop.type_ref
        if self.items is not None:
            yield self.items
        yield from self.members
        if self.additional_properties is not None:
            yield self.additional_properties


class SchemaArena:
    """Id-indexed storage of every schema node of a document."""

    def __init__(self):
        self._nodes: dict[str, SchemaNode] = {}

    def add(self, node: SchemaNode) -> SchemaNode:
        if node.id in self._nodes:
            raise ValueError(f"Schema node '{node.id}' is already registered")
        self._nodes[node.id] = node
        return node

    def get(self, node_id: str) -> SchemaNode:
        return self._nodes[node_id]

    def ids(self) -> list[str]:
        return sorted(self._nodes)

    def roots(self) -> list[str]:
        return sorted(n.id for n in self._nodes.values() if n.id == n.root)

    def __contains__(self, node_id: str) -> bool:
        return node_id in self._nodes

    def __iter__(self) -> Iterator[SchemaNode]:
        return iter(self._nodes.values())

    def __len__(self) -> int:
        return len(self._nodes)

    def children_of(self, node_id: str) -> Iterator[SchemaNode]:
        """Yield the nodes directly referenced by ``node_id`` (refs and inline)."""
        for ref in self.get(node_id).references():
            if isinstance(ref, (DirectRef, LazyRef)):
                yield self.get(ref.node_id)
