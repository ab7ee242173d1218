"""Language-neutral intermediate representation consumed by the emitters.

Every name in the IR is final: the emitters never rename, deduplicate or
reorder anything, they only render.
"""

import dataclasses
from enum import Enum
from typing import Any

from vikagen.codegen.model import ConstValue, PrimitiveType, SchemaKind

__all__ = [
    'ArrayExpr',
    'Artifact',
    'BodyDescriptor',
    'DiscriminatorDescriptor',
    'FieldDescriptor',
    'ImportDescriptor',
    'ModuleIR',
    'NamedRef',
    'OperationIR',
    'ParameterDescriptor',
    'PrimitiveExpr',
    'ResponseDescriptor',
    'TypeDescriptor',
    'TypeExpr',
    'ValidatorDescriptor',
]


class Artifact(str, Enum):
    """The files generated for every module."""

    TYPES = 'types'
    SCHEMAS = 'schemas'
    API = 'api'


@dataclasses.dataclass(frozen=True)
class NamedRef:
    """Reference to a declaration by name.

    Attributes:
        name: The type name.
        validator: The validator name.
        module: Id of the module declaring it.
        lazy: The reference closes a cycle and must be deferred.
    """

    name: str
    validator: str
    module: str
    lazy: bool = False
    nullable: bool = False


@dataclasses.dataclass(frozen=True)
class PrimitiveExpr:
    primitive: PrimitiveType
    format: str | None = None
    literal: ConstValue | None = None
    nullable: bool = False


@dataclasses.dataclass(frozen=True)
class ArrayExpr:
    items: 'TypeExpr'
    nullable: bool = False


TypeExpr = NamedRef | PrimitiveExpr | ArrayExpr


@dataclasses.dataclass(frozen=True)
class FieldDescriptor:
    name: str
    type: TypeExpr
    required: bool = False
    description: str | None = None


@dataclasses.dataclass(frozen=True)
class DiscriminatorDescriptor:
    """Discriminator property plus the ordered value → member mapping.

    ``dispatchable`` is set when every member is a plain, non-recursive
    object, so validators can dispatch on the property value directly.
    """

    property_name: str
    mapping: tuple[tuple[str, NamedRef], ...]
    dispatchable: bool = False


@dataclasses.dataclass(frozen=True)
class TypeDescriptor:
    """A named declaration.

    ``members`` holds union and intersection members in declaration order,
    or the single target of an alias.
    """

    name: str
    validator: str
    kind: SchemaKind
    node_id: str
    description: str | None = None
    deprecated: bool = False
    fields: tuple[FieldDescriptor, ...] = ()
    additional: TypeExpr | None = None
    items: TypeExpr | None = None
    members: tuple[TypeExpr, ...] = ()
    enum_values: tuple[Any, ...] = ()
    primitive: PrimitiveExpr | None = None
    discriminator: DiscriminatorDescriptor | None = None
    recursive: bool = False

    def references(self) -> list[TypeExpr]:
        refs: list[TypeExpr] = [f.type for f in self.fields]
        for expr in (self.additional, self.items):
            if expr is not None:
                refs.append(expr)
        refs.extend(self.members)
        return refs


@dataclasses.dataclass(frozen=True)
class ValidatorDescriptor:
    """The validator of one declaration.

    Attributes:
        name: The validator name.
        type: The declaration it validates.
        deferred: Build the validator behind a thunk, because the declaration
            is part of a reference cycle.
    """

    name: str
    type: TypeDescriptor
    deferred: bool = False


@dataclasses.dataclass(frozen=True)
class ParameterDescriptor:
    """An operation parameter.

    ``name`` is the wire name used in the path, query string or header;
    ``key`` is set when the params type needs a different property because
    another parameter shares the wire name.
    """

    name: str
    location: str
    type: TypeExpr
    required: bool = False
    description: str | None = None
    explode: bool = False
    key: str | None = None

    @property
    def client_key(self) -> str:
        return self.key or self.name


@dataclasses.dataclass(frozen=True)
class BodyDescriptor:
    type: TypeExpr
    content_type: str
    required: bool = False

    @property
    def is_json(self) -> bool:
        return self.content_type == 'application/json' or self.content_type.endswith('+json')


@dataclasses.dataclass(frozen=True)
class ResponseDescriptor:
    """One entry of a response or error map.

    Attributes:
        status: A three-digit status code or ``'default'``.
        type: The decoded body type, or None for an empty body.
    """

    status: str
    type: TypeExpr | None = None
    description: str | None = None

    @property
    def is_default(self) -> bool:
        return self.status == 'default'


@dataclasses.dataclass(frozen=True)
class OperationIR:
    name: str
    method: str
    path: str
    params_type: str
    result_type: str
    summary: str | None = None
    description: str | None = None
    deprecated: bool = False
    parameters: tuple[ParameterDescriptor, ...] = ()
    body: BodyDescriptor | None = None
    responses: tuple[ResponseDescriptor, ...] = ()
    errors: tuple[ResponseDescriptor, ...] = ()

    def parameters_in(self, location: str) -> list[ParameterDescriptor]:
        return [p for p in self.parameters if p.location == location]

    @property
    def response_map(self) -> dict[str, TypeExpr | None]:
        return {r.status: r.type for r in self.responses}

    @property
    def error_map(self) -> dict[str, TypeExpr | None]:
        return {r.status: r.type for r in self.errors}


@dataclasses.dataclass(frozen=True)
class ImportDescriptor:
    """Names one artifact of a module imports from another module.

    ``source`` is a module id, or ``'runtime'`` for the shared runtime file.
    """

    artifact: Artifact
    source: str
    names: tuple[str, ...]
    kind: Artifact | None = None

    @property
    def type_only(self) -> bool:
        return self.kind == Artifact.TYPES


@dataclasses.dataclass(frozen=True)
class ModuleIR:
    """Everything generated for one module (or for the common set)."""

    id: str
    tag: str | None
    is_common: bool = False
    types: tuple[TypeDescriptor, ...] = ()
    validators: tuple[ValidatorDescriptor, ...] = ()
    operations: tuple[OperationIR, ...] = ()
    imports: tuple[ImportDescriptor, ...] = ()

    def imports_for(self, artifact: Artifact) -> list[ImportDescriptor]:
        return [i for i in self.imports if i.artifact == artifact]
