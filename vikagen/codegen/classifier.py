"""Schema classification and arena construction.

Every schema shape is given exactly one :class:`SchemaKind`, first match
wins:

1. ``enum`` → enum
2. ``allOf`` → intersection (members kept in order, never merged)
3. ``oneOf`` / ``anyOf`` → union, tagged when a discriminator is present
4. ``type: array`` → array
5. ``type: object``, ``properties`` or ``additionalProperties`` → object
6. anything else → primitive (or an alias when the schema is a bare ``$ref``)

Nested inline shapes are hoisted into anonymous nodes whose ids extend the
id of their parent (``Pet/properties/status``). Primitives never get a node
of their own; they become :class:`InlineRef` values at the use site.
"""

import logging
from typing import Any

from vikagen.codegen.graph import DependencyGraph, ReferenceResolver, pointer
from vikagen.codegen.model import (
    ANY_REF,
    ConstValue,
    DirectRef,
    Discriminator,
    InlineRef,
    LazyRef,
    PrimitiveType,
    PropertyDef,
    SchemaArena,
    SchemaKind,
    SchemaNode,
    TypeRef,
    with_nullable,
)
from vikagen.document import SCHEMA_REF_PREFIX
from vikagen.exceptions import AmbiguousDiscriminatorError, UnsupportedSchemaError

logger = logging.getLogger(__name__)

__all__ = ['SchemaClassifier', 'classify', 'is_nullable']

_PRIMITIVES = {
    'string': PrimitiveType.STRING,
    'number': PrimitiveType.NUMBER,
    'integer': PrimitiveType.INTEGER,
    'boolean': PrimitiveType.BOOLEAN,
    'null': PrimitiveType.NULL,
    # Swagger 2.0 upload parameters
    'file': PrimitiveType.STRING,
}

_STRUCTURAL_KEYS = {
    '$ref',
    'enum',
    'const',
    'allOf',
    'oneOf',
    'anyOf',
    'type',
    'items',
    'properties',
    'additionalProperties',
    'not',
}


def _types(schema: dict[str, Any]) -> list[str]:
    """Return the declared ``type`` values without ``null``."""
    value = schema.get('type')
    if value is None:
        return []
    if isinstance(value, str):
        value = [value]
    return [t for t in value if t != 'null']


def is_nullable(schema: Any) -> bool:
    """Whether a schema admits ``null`` (3.0 ``nullable`` or 3.1 type list)."""
    if not isinstance(schema, dict):
        return False
    if schema.get('nullable') is True:
        return True
    value = schema.get('type')
    if isinstance(value, list) and 'null' in value:
        return True
    if 'enum' in schema and None in (schema.get('enum') or []):
        return True
    return False


def _is_null_schema(schema: Any) -> bool:
    if not isinstance(schema, dict):
        return False
    if schema.get('type') == 'null':
        return True
    return schema.get('enum') == [None] or ('const' in schema and schema['const'] is None)


def _is_wrapper(schema: dict[str, Any]) -> bool:
    return (
        len(schema['allOf']) == 1
        and 'properties' not in schema
        and 'additionalProperties' not in schema
    )


def classify(schema: Any, schema_name: str = '<schema>') -> SchemaKind:
    """Return the structural kind of a raw schema.

    Args:
        schema: The raw schema (a mapping or a boolean schema).
        schema_name: Qualified id used in error messages.

    Raises:
        UnsupportedSchemaError: If the shape cannot be recognized.
    """
    if schema is True:
        return SchemaKind.PRIMITIVE
    if not isinstance(schema, dict):
        raise UnsupportedSchemaError(
            schema_name, f'expected a schema object, got {type(schema).__name__}'
        )

    if 'enum' in schema:
        if not isinstance(schema['enum'], list) or not schema['enum']:
            raise UnsupportedSchemaError(schema_name, "'enum' must be a non-empty list")
        return SchemaKind.ENUM
    if schema.get('allOf'):
        return SchemaKind.INTERSECTION
    if schema.get('oneOf') or schema.get('anyOf'):
        return SchemaKind.UNION

    types = _types(schema)
    for declared in types:
        if declared not in _PRIMITIVES and declared not in ('array', 'object'):
            raise UnsupportedSchemaError(schema_name, f"unknown type '{declared}'")

    if len(types) > 1:
        # OpenAPI 3.1 multi-type schemas, e.g. type: [string, integer]
        return SchemaKind.UNION
    if types == ['array'] or (not types and 'items' in schema):
        return SchemaKind.ARRAY
    if types == ['object'] or 'properties' in schema or 'additionalProperties' in schema:
        return SchemaKind.OBJECT
    if not types and 'not' in schema and not (_STRUCTURAL_KEYS - {'not'}) & schema.keys():
        raise UnsupportedSchemaError(schema_name, "'not' schemas are not supported")
    return SchemaKind.PRIMITIVE


def _primitive_of_value(value: Any) -> PrimitiveType:
    if value is None:
        return PrimitiveType.NULL
    if isinstance(value, bool):
        return PrimitiveType.BOOLEAN
    if isinstance(value, int):
        return PrimitiveType.INTEGER
    if isinstance(value, float):
        return PrimitiveType.NUMBER
    if isinstance(value, str):
        return PrimitiveType.STRING
    return PrimitiveType.ANY


def _inline(schema: Any, schema_name: str) -> InlineRef:
    """Build the inline reference of a primitive schema."""
    if schema is True or not isinstance(schema, dict):
        return ANY_REF
    nullable = is_nullable(schema)
    if 'const' in schema:
        value = schema['const']
        return InlineRef(
            _primitive_of_value(value),
            literal=ConstValue(value),
            nullable=nullable,
        )
    types = _types(schema)
    if not types:
        if schema.get('type') == 'null' or schema.get('type') == ['null']:
            return InlineRef(PrimitiveType.NULL)
        return InlineRef(PrimitiveType.ANY, nullable=nullable)
    declared = types[0]
    fmt = schema.get('format')
    if declared == 'file':
        fmt = 'binary'
    return InlineRef(_PRIMITIVES[declared], format=fmt, nullable=nullable)


class SchemaClassifier:
    """Classifies every component schema into a :class:`SchemaArena`.

    The classifier also converts operation-local schemas (request bodies,
    responses and parameters) into type references on demand, hoisting their
    inline shapes into the same arena.

    Example:
        >>> classifier = SchemaClassifier(document.schemas, resolver, graph)
        >>> arena = classifier.build()
        >>> arena.get('Pet').kind
        <SchemaKind.OBJECT: 'object'>
    """

    def __init__(
        self,
        schemas: dict[str, Any],
        resolver: ReferenceResolver,
        graph: DependencyGraph,
    ):
        self.schemas = schemas
        self.resolver = resolver
        self.graph = graph
        self.arena = SchemaArena()

    def build(self) -> SchemaArena:
        for name in sorted(self.schemas):
            self._add_node(
                self.schemas[name],
                node_id=name,
                root=name,
                hint=name,
                anonymous=False,
                chain=[name],
            )
        return self.arena

    def operation_ref(self, schema: Any, location: str, hint: str, chain: list[str]) -> TypeRef:
        """Convert an operation-local schema into a type reference.

        References from operation-local shapes are always direct: operations
        are not part of any cycle.
        """
        return self._type_ref(schema, location, root=location, hint=hint, chain=chain)

    def _type_ref(
        self,
        schema: Any,
        location: str,
        root: str,
        hint: str,
        chain: list[str],
    ) -> TypeRef:
        if schema is True or schema is None or schema == {}:
            return ANY_REF
        if schema is False:
            raise UnsupportedSchemaError(location, "'false' schemas admit no value", chain)
        if isinstance(schema, dict) and isinstance(schema.get('$ref'), str):
            target = self.resolver.target_of(schema['$ref'], location, chain)
            nullable = schema.get('nullable') is True
            if self.graph.is_back_edge(root, target):
                return LazyRef(target, nullable)
            return DirectRef(target, nullable)

        kind = classify(schema, location)
        if kind == SchemaKind.PRIMITIVE:
            return _inline(schema, location)

        if kind == SchemaKind.UNION:
            members = self._union_members(schema)
            if len(members) == 1 and 'discriminator' not in schema:
                keyword, index, member = members[0]
                ref = self._type_ref(
                    member, f'{location}/{keyword}/{index}', root, hint, chain
                )
                return with_nullable(ref, True)

        if kind == SchemaKind.INTERSECTION and _is_wrapper(schema):
            # allOf: [{$ref: X}] only decorates X with metadata
            ref = self._type_ref(schema['allOf'][0], f'{location}/allOf/0', root, hint, chain)
            return with_nullable(ref, is_nullable(schema))

        node = self._add_node(
            schema, node_id=location, root=root, hint=hint, anonymous=True, chain=chain
        )
        return DirectRef(node.id, nullable=node.nullable)

    def _union_members(self, schema: dict[str, Any]) -> list[tuple[str, int, Any]]:
        keyword = 'oneOf' if schema.get('oneOf') else 'anyOf'
        return [
            (keyword, index, member)
            for index, member in enumerate(schema.get(keyword) or [])
            if not _is_null_schema(member)
        ]

    def _add_node(
        self,
        schema: Any,
        node_id: str,
        root: str,
        hint: str,
        anonymous: bool,
        chain: list[str],
    ) -> SchemaNode:
        if isinstance(schema, dict) and isinstance(schema.get('$ref'), str):
            # A component that is nothing but a reference is an alias
            node = SchemaNode(
                id=node_id,
                kind=SchemaKind.PRIMITIVE,
                root=root,
                hint=hint,
                anonymous=anonymous,
                description=schema.get('description'),
            )
            node.members = [self._type_ref(schema, node_id, root, hint, chain)]
            return self._register(node)

        kind = classify(schema, node_id)
        schema = schema if isinstance(schema, dict) else {}
        node = SchemaNode(
            id=node_id,
            kind=kind,
            root=root,
            hint=hint,
            anonymous=anonymous,
            description=schema.get('description'),
            deprecated=bool(schema.get('deprecated', False)),
            nullable=is_nullable(schema),
            recursive=not anonymous and self.graph.is_recursive(node_id),
        )

        if kind == SchemaKind.ENUM:
            self._fill_enum(node, schema)
        elif kind == SchemaKind.INTERSECTION:
            self._fill_intersection(node, schema, chain)
        elif kind == SchemaKind.UNION:
            self._fill_union(node, schema, chain)
        elif kind == SchemaKind.ARRAY:
            node.items = self._type_ref(
                schema.get('items', True),
                f'{node_id}/items',
                root,
                f'{hint}_item',
                chain,
            )
        elif kind == SchemaKind.OBJECT:
            self._fill_object(node, schema, chain)
        else:
            primitive = _inline(schema, node_id)
            node.nullable = primitive.nullable
            node.primitive = InlineRef(primitive.primitive, primitive.format, primitive.literal)

        return self._register(node)

    def _register(self, node: SchemaNode) -> SchemaNode:
        if node.id in self.arena:
            return self.arena.get(node.id)
        return self.arena.add(node)

    def _fill_enum(self, node: SchemaNode, schema: dict[str, Any]) -> None:
        values = [value for value in schema['enum'] if value is not None]
        if not values:
            # enum: [null]
            node.kind = SchemaKind.PRIMITIVE
            node.primitive = InlineRef(PrimitiveType.NULL)
            node.nullable = False
            return
        node.enum_values = values
        types = _types(schema)
        if types and types[0] in _PRIMITIVES:
            node.primitive = InlineRef(_PRIMITIVES[types[0]])
        else:
            kinds = {_primitive_of_value(value) for value in values}
            node.primitive = InlineRef(kinds.pop() if len(kinds) == 1 else PrimitiveType.ANY)

    def _fill_object(self, node: SchemaNode, schema: dict[str, Any], chain: list[str]) -> None:
        required = set(schema.get('required') or [])
        for name, prop_schema in (schema.get('properties') or {}).items():
            type_ref = self._type_ref(
                prop_schema,
                f'{node.id}/{pointer("properties", name)}',
                node.root,
                f'{node.hint}_{name}',
                chain,
            )
            if is_nullable(prop_schema):
                type_ref = with_nullable(type_ref, True)
            node.properties[name] = PropertyDef(
                name=name,
                type_ref=type_ref,
                required=name in required,
                description=(prop_schema or {}).get('description')
                if isinstance(prop_schema, dict)
                else None,
            )

        additional = schema.get('additionalProperties')
        if additional is True or additional == {}:
            node.additional_properties = ANY_REF
        elif isinstance(additional, dict):
            node.additional_properties = self._type_ref(
                additional,
                f'{node.id}/additionalProperties',
                node.root,
                f'{node.hint}_value',
                chain,
            )
        elif additional is None and not node.properties:
            # A bare 'type: object' is a free-form map
            node.additional_properties = ANY_REF

    def _fill_intersection(
        self, node: SchemaNode, schema: dict[str, Any], chain: list[str]
    ) -> None:
        members = list(schema['allOf'])
        own = {
            key: schema[key]
            for key in ('properties', 'required', 'additionalProperties')
            if key in schema
        }
        if 'properties' in own or 'additionalProperties' in own:
            # Properties declared next to allOf form one more member
            members.append({'type': 'object', **own})

        for index, member in enumerate(members):
            node.members.append(
                self._type_ref(
                    member,
                    f'{node.id}/allOf/{index}',
                    node.root,
                    f'{node.hint}_part_{index + 1}',
                    chain,
                )
            )

    def _fill_union(self, node: SchemaNode, schema: dict[str, Any], chain: list[str]) -> None:
        if not (schema.get('oneOf') or schema.get('anyOf')):
            # Multi-type schema: type: [string, integer]
            for declared in _types(schema):
                if declared in ('array', 'object'):
                    member = {**schema, 'type': declared}
                    node.members.append(
                        self._type_ref(
                            member,
                            f'{node.id}/type/{declared}',
                            node.root,
                            f'{node.hint}_{declared}',
                            chain,
                        )
                    )
                else:
                    node.members.append(
                        InlineRef(_PRIMITIVES[declared], format=schema.get('format'))
                    )
            return

        members = self._union_members(schema)
        if len(members) < len(schema.get('oneOf') or schema.get('anyOf')):
            node.nullable = True

        raw_members = []
        for keyword, index, member in members:
            node.members.append(
                self._type_ref(
                    member,
                    f'{node.id}/{keyword}/{index}',
                    node.root,
                    f'{node.hint}_option_{index + 1}',
                    chain,
                )
            )
            raw_members.append(member)

        discriminator = schema.get('discriminator')
        if isinstance(discriminator, dict) and discriminator.get('propertyName'):
            node.discriminator = self._resolve_discriminator(
                node, discriminator, raw_members, chain
            )

    def _resolve_discriminator(
        self,
        node: SchemaNode,
        discriminator: dict[str, Any],
        raw_members: list[Any],
        chain: list[str],
    ) -> Discriminator:
        """Map every discriminator value to exactly one union member.

        Raises:
            AmbiguousDiscriminatorError: If a mapping value is not a member,
                a member has no inferable value, or two members claim the
                same value.
        """
        property_name = discriminator['propertyName']
        member_ids = [
            ref.node_id if isinstance(ref, (DirectRef, LazyRef)) else None
            for ref in node.members
        ]

        keys_by_member: dict[int, list[str]] = {}
        for key, target in (discriminator.get('mapping') or {}).items():
            name = target[len(SCHEMA_REF_PREFIX) :] if target.startswith(SCHEMA_REF_PREFIX) else target
            if name not in member_ids:
                raise AmbiguousDiscriminatorError(
                    node.id,
                    str(key),
                    f"mapping target '{target}' is not a member of the union",
                    chain,
                )
            keys_by_member.setdefault(member_ids.index(name), []).append(str(key))

        for index, member_id in enumerate(member_ids):
            if index in keys_by_member:
                continue
            key = self._implicit_key(raw_members[index], property_name)
            if key is None and member_id is not None and member_id in self.schemas:
                key = member_id
            if key is None:
                raise AmbiguousDiscriminatorError(
                    node.id,
                    member_id or f'{node.id}/{index}',
                    f"cannot infer a value of '{property_name}' for this member",
                    chain,
                )
            keys_by_member[index] = [key]

        mapping: list[tuple[str, str]] = []
        seen: set[str] = set()
        for index in range(len(member_ids)):
            for key in keys_by_member[index]:
                if key in seen:
                    raise AmbiguousDiscriminatorError(
                        node.id, key, 'value is claimed by more than one member', chain
                    )
                seen.add(key)
                mapping.append((key, member_ids[index] or ''))

        return Discriminator(property_name=property_name, mapping=tuple(mapping))

    def _implicit_key(self, member: Any, property_name: str) -> str | None:
        """Return the single value a member allows for the discriminator property."""
        if not isinstance(member, dict):
            return None
        if isinstance(member.get('$ref'), str):
            target = self.resolver.target_of(member['$ref'])
            member = self.schemas.get(target)
            if not isinstance(member, dict):
                return None

        candidates = [member, *[m for m in member.get('allOf') or [] if isinstance(m, dict)]]
        for candidate in candidates:
            prop = (candidate.get('properties') or {}).get(property_name)
            if not isinstance(prop, dict):
                continue
            if 'const' in prop:
                return str(prop['const'])
            values = prop.get('enum') or []
            if len(values) == 1:
                return str(values[0])
        return None
