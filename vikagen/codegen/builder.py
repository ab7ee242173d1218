"""Builds the intermediate representation of every module.

The builder runs the resolution stages (reference resolution,
classification, ownership), then decides where each declaration lives, what
it is called and how every operation's responses map onto status codes. The
enum registry it fills is frozen before the result is handed to emitters.
"""

import dataclasses
import logging
import re
from typing import Any

from vikagen.codegen.classifier import SchemaClassifier
from vikagen.codegen.enums import EnumRegistry
from vikagen.codegen.graph import DependencyGraph, ReferenceResolver, pointer
from vikagen.codegen.ir import (
    ArrayExpr,
    Artifact,
    BodyDescriptor,
    DiscriminatorDescriptor,
    FieldDescriptor,
    ImportDescriptor,
    ModuleIR,
    NamedRef,
    OperationIR,
    ParameterDescriptor,
    PrimitiveExpr,
    ResponseDescriptor,
    TypeDescriptor,
    TypeExpr,
    ValidatorDescriptor,
)
from vikagen.codegen.model import (
    ANY_REF,
    DirectRef,
    InlineRef,
    LazyRef,
    SchemaArena,
    SchemaKind,
    SchemaNode,
    TypeRef,
)
from vikagen.codegen.naming import (
    NameAllocator,
    function_name,
    module_id,
    validator_name,
)
from vikagen.codegen.partition import UNUSED_OWNER, ModulePartitioner, SchemaOwnership
from vikagen.config import GenerationOptions, HeaderStrategy
from vikagen.document import DocumentModel, RawOperation, RawParameter, RawRequestBody, RawResponse
from vikagen.exceptions import UnknownModuleError

logger = logging.getLogger(__name__)

__all__ = [
    'BuildResult',
    'DEFAULT_TAG',
    'IRBuilder',
    'ModuleInfo',
    'RUNTIME_MODULE',
    'RUNTIME_NAMES',
    'split_responses',
]

DEFAULT_TAG = 'default'
RUNTIME_MODULE = 'runtime'

# Names declared by the shared runtime file and the zod import
RUNTIME_NAMES = (
    'FIXED_HEADERS',
    'HttpRequest',
    'HttpResponse',
    'RequestFn',
    'RequestOptions',
    'serializeQuery',
    'z',
)

_STATUS_CODE = re.compile(r'^[1-5][0-9][0-9]$')
_STATUS_RANGE = re.compile(r'^[1-5]XX$')


def split_responses(
    operation: str, responses: list[tuple[str, Any]]
) -> tuple[list[tuple[str, Any]], list[tuple[str, Any]]]:
    """Split declared responses into a success map and an error map.

    - Explicit 2xx codes are successes; ``2XX`` counts as ``200`` unless
      ``200`` is declared explicitly.
    - Explicit non-2xx codes are errors under their own code.
    - ``default`` and the other range keys share one ``default`` bucket. An
      explicit ``default`` wins, otherwise the first range key does.

    Args:
        operation: Operation name, used in log messages.
        responses: ``(status key, value)`` pairs in declaration order.

    Returns:
        The success and error lists, each sorted by status code, with the
        ``default`` bucket last.
    """
    success: dict[str, Any] = {}
    errors: dict[str, Any] = {}
    ranged: list[tuple[str, Any]] = []
    default: Any = None
    has_default = False
    wildcard_success: Any = None
    has_wildcard_success = False

    for key, value in responses:
        status = key.upper()
        if status == 'DEFAULT':
            default, has_default = value, True
        elif _STATUS_CODE.match(status):
            target = success if status.startswith('2') else errors
            target[status] = value
        elif status == '2XX':
            wildcard_success, has_wildcard_success = value, True
        elif _STATUS_RANGE.match(status):
            ranged.append((status, value))
        else:
            logger.debug(f"Ignoring unrecognized status '{key}' of operation {operation}")

    if has_wildcard_success:
        if '200' in success:
            logger.debug(f'Operation {operation} declares both 200 and 2XX; using 200')
        else:
            success['200'] = wildcard_success

    if has_default:
        for status, _ in ranged:
            logger.debug(f'Operation {operation}: {status} folded into the default response')
        errors_default = [('default', default)]
    elif ranged:
        for status, _ in ranged[1:]:
            logger.debug(f'Operation {operation}: {status} is shadowed by {ranged[0][0]}')
        errors_default = [('default', ranged[0][1])]
    else:
        errors_default = []

    if not success:
        logger.warning(f'Operation {operation} declares no success response')

    return (
        sorted(success.items()),
        sorted(errors.items()) + errors_default,
    )


@dataclasses.dataclass(frozen=True)
class ModuleInfo:
    """Summary of one generated module, for module selection front ends."""

    id: str
    tag: str
    operation_count: int
    schema_count: int


@dataclasses.dataclass
class _Operation:
    raw: RawOperation
    key: str
    function: str
    modules: list[str]
    parameters: list[tuple[RawParameter, TypeRef]]
    body: tuple[RawRequestBody, TypeRef] | None
    responses: list[tuple[RawResponse, TypeRef | None]]

    def refs(self) -> list[TypeRef]:
        refs = [ref for _, ref in self.parameters]
        if self.body is not None:
            refs.append(self.body[1])
        refs.extend(ref for _, ref in self.responses if ref is not None)
        return refs

    def node_ids(self) -> set[str]:
        return {ref.node_id for ref in self.refs() if isinstance(ref, (DirectRef, LazyRef))}


@dataclasses.dataclass
class BuildResult:
    """The finished IR of a document.

    Attributes:
        modules: One ModuleIR per generated module, sorted by id.
        common: The ModuleIR of the common set.
        registry: The frozen enum registry.
    """

    modules: list[ModuleIR]
    common: ModuleIR
    registry: EnumRegistry
    ownership: SchemaOwnership
    graph: DependencyGraph
    arena: SchemaArena
    ref_map: dict[str, str]

    def module(self, module_id: str) -> ModuleIR:
        """Return the IR of one module.

        Raises:
            UnknownModuleError: If no module has that id.
        """
        if module_id == self.common.id:
            return self.common
        for module in self.modules:
            if module.id == module_id:
                return module
        raise UnknownModuleError(module_id, [m.id for m in self.modules])

    def module_infos(self) -> list[ModuleInfo]:
        return [
            ModuleInfo(
                id=module.id,
                tag=module.tag or module.id,
                operation_count=len(module.operations),
                schema_count=len(module.types),
            )
            for module in self.modules
        ]


class IRBuilder:
    """Converts a document model into module IR.

    Example:
        >>> result = IRBuilder(document, GenerationOptions()).build()
        >>> [m.id for m in result.modules]
        ['orders', 'users']
    """

    def __init__(self, document: DocumentModel, options: GenerationOptions | None = None):
        self.document = document
        self.options = options or GenerationOptions()
        self.naming = self.options.naming
        self.common_id = self.options.common_module

    def build(self) -> BuildResult:
        """Run every stage and return the IR.

        Raises:
            SchemaReferenceError: On a dangling or non-local ``$ref``.
            UnsupportedSchemaError: On an unrecognizable schema shape.
            AmbiguousDiscriminatorError: On an unresolvable discriminator.
            UnknownModuleError: If the module selection names a missing module.
        """
        resolver = ReferenceResolver(self.document.schemas)
        resolution = resolver.resolve()
        self.graph = resolution.graph

        classifier = SchemaClassifier(self.document.schemas, resolver, self.graph)
        self.arena = classifier.build()

        self.module_ids = self._module_ids()
        self.operations = self._collect_operations(classifier)

        partitioner = ModulePartitioner(self.arena)
        for operation in self.operations:
            for module in operation.modules:
                partitioner.seed(module, operation.node_ids())
        self.ownership = partitioner.partition(self.options.include_unused_schemas)

        self.registry = EnumRegistry()
        self._register_enums()
        self.placement = self._place()
        self.allocator = NameAllocator(self.naming, reserved=RUNTIME_NAMES)
        self.names = self._assign_names()

        modules = []
        module_operations = {
            module: [op for op in self.operations if module in op.modules]
            for module in sorted(set(self.module_ids.values()))
        }
        tags = {module: tag for tag, module in self.module_ids.items()}
        for module, operations in module_operations.items():
            if not operations:
                logger.debug(f"Module '{module}' has no operations")
                continue
            modules.append(self._module_ir(module, tags[module], operations))

        common = self._module_ir(self.common_id, None, [])
        self.registry.freeze()

        return BuildResult(
            modules=modules,
            common=common,
            registry=self.registry,
            ownership=self.ownership,
            graph=self.graph,
            arena=self.arena,
            ref_map=resolution.ref_map,
        )

    def _module_ids(self) -> dict[str, str]:
        """Map every generated tag to its module id."""
        tags = list(self.document.tags)
        if any(not op.tags for op in self.document.operations) and DEFAULT_TAG not in tags:
            tags.append(DEFAULT_TAG)

        ids: dict[str, str] = {}
        taken = {self.common_id}
        for tag in tags:
            base = module_id(tag, self.naming)
            candidate, counter = base, 2
            while candidate in taken:
                candidate = f'{base}{counter}'
                counter += 1
            if candidate != base:
                logger.info(f"Module '{base}' of tag '{tag}' renamed to '{candidate}'")
            taken.add(candidate)
            ids[tag] = candidate

        def matches(name: str, tag: str) -> bool:
            return name == tag or name == ids[tag]

        config = self.options.modules
        for name in [*config.selected, *config.ignore]:
            if not any(matches(name, tag) for tag in ids):
                raise UnknownModuleError(name, ids.values())

        return {
            tag: module
            for tag, module in ids.items()
            if not any(matches(name, tag) for name in config.ignore)
            and (not config.selected or any(matches(name, tag) for name in config.selected))
        }

    def _collect_operations(self, classifier: SchemaClassifier) -> list[_Operation]:
        operations = []
        keys: set[str] = set()
        for raw in self.document.operations:
            modules = sorted(
                {self.module_ids[tag] for tag in raw.tags or [DEFAULT_TAG] if tag in self.module_ids}
            )
            if not modules:
                logger.debug(f'Skipping {raw.method} {raw.path}: its modules are not generated')
                continue

            function = function_name(raw.operation_id, raw.method, raw.path)
            key, counter = function, 2
            while key in keys:
                key = f'{function}{counter}'
                counter += 1
            keys.add(key)

            base = pointer('operations', key)
            chain = [f'{raw.method} {raw.path}']

            parameters = [
                (
                    parameter,
                    classifier.operation_ref(
                        parameter.schema_,
                        f'{base}/{pointer("parameters", parameter.name)}',
                        f'{function}_{parameter.name}_param',
                        chain,
                    ),
                )
                for parameter in raw.parameters
            ]

            body = None
            if raw.request_body is not None:
                ref = ANY_REF
                if raw.request_body.schema_ is not None:
                    ref = classifier.operation_ref(
                        raw.request_body.schema_, f'{base}/requestBody', f'{function}_body', chain
                    )
                body = (raw.request_body, ref)

            responses = []
            for response in raw.responses:
                ref = None
                if response.schema_ is not None:
                    ref = classifier.operation_ref(
                        response.schema_,
                        f'{base}/{pointer("responses", response.status)}',
                        f'{function}_response_{response.status}',
                        chain,
                    )
                elif response.content_type is not None:
                    ref = ANY_REF
                responses.append((response, ref))

            operations.append(
                _Operation(
                    raw=raw,
                    key=key,
                    function=function,
                    modules=modules,
                    parameters=parameters,
                    body=body,
                    responses=responses,
                )
            )
        return operations

    def _register_enums(self) -> None:
        enums = sorted(
            (n for n in self.arena if n.kind == SchemaKind.ENUM and self.ownership.is_owned(n.id)),
            key=lambda n: (n.anonymous, n.id),
        )
        for node in enums:
            entry = self.registry.register(node.id, node.enum_values)
            if entry.canonical != node.id:
                logger.debug(f"Enum '{node.id}' reuses the definition of '{entry.canonical}'")

    def _owners_of(self, node: SchemaNode) -> frozenset[str]:
        if node.kind == SchemaKind.ENUM and node.id in self.registry:
            owners: set[str] = set()
            for alias in self.registry.entry_for(node.id).aliases:
                owners |= self.ownership.owners(alias)
            return frozenset(owners)
        return self.ownership.owners(node.id)

    def _place(self) -> dict[str, str]:
        """Decide which module declares each node."""
        placement = {}
        for node_id in self.arena.ids():
            node = self.arena.get(node_id)
            if node.is_inlined:
                continue
            if node_id in self.registry and not self.registry.is_canonical(node_id):
                continue
            owners = self._owners_of(node)
            if not owners:
                continue
            if len(owners) > 1 or UNUSED_OWNER in owners:
                placement[node_id] = self.common_id
            else:
                placement[node_id] = next(iter(owners))
        return placement

    def _assign_names(self) -> dict[str, str]:
        names = {}
        order = sorted(self.placement, key=lambda i: (self.arena.get(i).anonymous, i))
        for node_id in order:
            names[node_id] = self.allocator.allocate(self.arena.get(node_id).hint, owner=node_id)
        return names

    def _expr(self, ref: TypeRef) -> TypeExpr:
        if isinstance(ref, InlineRef):
            return PrimitiveExpr(ref.primitive, ref.format, ref.literal, ref.nullable)

        node = self.arena.get(ref.node_id)
        nullable = ref.nullable or node.nullable
        if node.is_inlined:
            if node.kind == SchemaKind.ARRAY:
                return ArrayExpr(self._expr(node.items or ANY_REF), nullable)
            primitive = node.primitive or ANY_REF
            return PrimitiveExpr(primitive.primitive, primitive.format, primitive.literal, nullable)

        target = node.id
        if node.kind == SchemaKind.ENUM and target in self.registry:
            target = self.registry.canonical_of(target)
        name = self.names[target]
        return NamedRef(
            name=name,
            validator=validator_name(name, self.naming),
            module=self.placement[target],
            lazy=isinstance(ref, LazyRef),
            nullable=nullable,
        )

    def _descriptor(self, node: SchemaNode) -> TypeDescriptor:
        name = self.names[node.id]
        discriminator = None
        if node.discriminator is not None:
            members = {
                ref.node_id: ref
                for ref in node.members
                if isinstance(ref, (DirectRef, LazyRef))
            }
            mapping = []
            dispatchable = True
            for key, member_id in node.discriminator.mapping:
                ref = members[member_id]
                expr = self._expr(ref)
                if not isinstance(expr, NamedRef):
                    dispatchable = False
                    continue
                mapping.append((key, expr))
                member = self.arena.get(member_id)
                if (
                    member.kind != SchemaKind.OBJECT
                    or not member.properties
                    or member.recursive
                    or expr.lazy
                    or expr.nullable
                ):
                    dispatchable = False
            if not dispatchable:
                logger.warning(
                    f"Members of '{node.id}' are not all plain objects; its validator "
                    f"tries each member instead of dispatching on "
                    f"'{node.discriminator.property_name}'"
                )
            discriminator = DiscriminatorDescriptor(
                property_name=node.discriminator.property_name,
                mapping=tuple(mapping),
                dispatchable=dispatchable,
            )

        primitive = None
        if node.primitive is not None:
            primitive = self._expr(node.primitive)

        return TypeDescriptor(
            name=name,
            validator=validator_name(name, self.naming),
            kind=node.kind,
            node_id=node.id,
            description=node.description,
            deprecated=node.deprecated,
            fields=tuple(
                FieldDescriptor(
                    name=prop.name,
                    type=self._expr(prop.type_ref),
                    required=prop.required,
                    description=prop.description,
                )
                for prop in node.properties.values()
            ),
            additional=self._expr(node.additional_properties)
            if node.additional_properties is not None
            else None,
            items=self._expr(node.items) if node.items is not None else None,
            members=tuple(self._expr(ref) for ref in node.members),
            enum_values=tuple(node.enum_values),
            primitive=primitive,
            discriminator=discriminator,
            recursive=node.recursive,
        )

    def _module_ir(
        self, module: str, tag: str | None, operations: list[_Operation]
    ) -> ModuleIR:
        nodes = [
            self.arena.get(node_id)
            for node_id, placed in self.placement.items()
            if placed == module
        ]
        nodes.sort(key=lambda n: (n.root, n.id != n.root, n.id))
        types = [self._descriptor(node) for node in nodes]

        validators = [
            ValidatorDescriptor(name=d.validator, type=d, deferred=d.recursive)
            for d in _dependency_order(types, module)
        ]

        allocator = self.allocator.fork()
        operation_irs = [self._operation_ir(op, allocator) for op in operations]

        return ModuleIR(
            id=module,
            tag=tag,
            is_common=module == self.common_id,
            types=tuple(types),
            validators=tuple(validators),
            operations=tuple(operation_irs),
            imports=tuple(self._imports(module, types, validators, operation_irs)),
        )

    def _operation_ir(self, operation: _Operation, allocator: NameAllocator) -> OperationIR:
        raw = operation.raw
        name = allocator.allocate_exact(operation.function, owner=f'{raw.method} {raw.path}')
        params_type = allocator.allocate(f'{name}_params', with_validator=False)
        result_type = allocator.allocate(f'{name}_result', with_validator=False)

        keys = _parameter_keys([parameter for parameter, _ in operation.parameters])
        parameters = tuple(
            ParameterDescriptor(
                name=parameter.name,
                location=parameter.location,
                type=self._expr(ref),
                required=parameter.required or parameter.location == 'path',
                description=parameter.description,
                explode=bool(parameter.explode),
                key=key,
            )
            for (parameter, ref), key in zip(operation.parameters, keys)
        )

        body = None
        if operation.body is not None:
            raw_body, ref = operation.body
            body = BodyDescriptor(
                type=self._expr(ref),
                content_type=raw_body.content_type,
                required=raw_body.required,
            )

        responses = [
            (
                response.status,
                ResponseDescriptor(
                    status=response.status,
                    type=self._expr(ref) if ref is not None else None,
                    description=response.description,
                ),
            )
            for response, ref in operation.responses
        ]
        success, errors = split_responses(name, responses)

        return OperationIR(
            name=name,
            method=raw.method,
            path=raw.path,
            params_type=params_type,
            result_type=result_type,
            summary=raw.summary,
            description=raw.description,
            deprecated=raw.deprecated,
            parameters=parameters,
            body=body,
            responses=tuple(
                dataclasses.replace(r, status=status) for status, r in success
            ),
            errors=tuple(dataclasses.replace(r, status=status) for status, r in errors),
        )

    def _imports(
        self,
        module: str,
        types: list[TypeDescriptor],
        validators: list[ValidatorDescriptor],
        operations: list[OperationIR],
    ) -> list[ImportDescriptor]:
        needed: dict[tuple[Artifact, str, Artifact | None], set[str]] = {}

        def add(artifact: Artifact, source: str, kind: Artifact | None, name: str) -> None:
            needed.setdefault((artifact, source, kind), set()).add(name)

        for descriptor in types:
            for ref in _descriptor_refs(descriptor):
                if ref.module != module:
                    add(Artifact.TYPES, ref.module, Artifact.TYPES, ref.name)

        for validator in validators:
            for ref in _descriptor_refs(validator.type):
                if ref.module != module:
                    add(Artifact.SCHEMAS, ref.module, Artifact.SCHEMAS, ref.validator)
            if validator.deferred:
                add(Artifact.SCHEMAS, module, Artifact.TYPES, validator.type.name)

        for operation in operations:
            typed = [p.type for p in operation.parameters]
            if operation.body is not None:
                typed.append(operation.body.type)
            for expr in typed:
                for ref in _named_refs(expr):
                    add(Artifact.API, ref.module, Artifact.TYPES, ref.name)
            for response in (*operation.responses, *operation.errors):
                if response.type is None:
                    continue
                for ref in _named_refs(response.type):
                    add(Artifact.API, ref.module, Artifact.TYPES, ref.name)
                    add(Artifact.API, ref.module, Artifact.SCHEMAS, ref.validator)

        if operations:
            add(Artifact.API, RUNTIME_MODULE, None, 'RequestFn')
            add(Artifact.API, RUNTIME_MODULE, None, 'RequestOptions')
            if any(op.parameters_in('query') for op in operations):
                add(Artifact.API, RUNTIME_MODULE, None, 'serializeQuery')
            if self.options.header_strategy == HeaderStrategy.FIXED:
                add(Artifact.API, RUNTIME_MODULE, None, 'FIXED_HEADERS')

        artifact_order = list(Artifact)

        def sort_key(item):
            artifact, source, kind = item[0]
            return (
                artifact_order.index(artifact),
                source == RUNTIME_MODULE,
                source != module,
                source,
                kind is None or kind == Artifact.SCHEMAS,
            )

        return [
            ImportDescriptor(artifact=artifact, source=source, names=tuple(sorted(names)), kind=kind)
            for (artifact, source, kind), names in sorted(needed.items(), key=sort_key)
        ]


def _parameter_keys(parameters: list[RawParameter]) -> list[str | None]:
    """Params-type keys for parameters whose wire name is shared.

    Only parameters whose name occurs in more than one location get a key,
    the name followed by the capitalized location (``idQuery``).
    """
    counts: dict[str, int] = {}
    for parameter in parameters:
        counts[parameter.name] = counts.get(parameter.name, 0) + 1

    taken = {p.name for p in parameters if counts[p.name] == 1}
    keys: list[str | None] = []
    for parameter in parameters:
        if counts[parameter.name] == 1:
            keys.append(None)
            continue
        key = base = f'{parameter.name}{parameter.location.capitalize()}'
        suffix = 2
        while key in taken:
            key = f'{base}{suffix}'
            suffix += 1
        taken.add(key)
        keys.append(key)
    return keys


def _named_refs(expr: TypeExpr | None):
    if isinstance(expr, NamedRef):
        yield expr
    elif isinstance(expr, ArrayExpr):
        yield from _named_refs(expr.items)


def _descriptor_refs(descriptor: TypeDescriptor):
    for expr in descriptor.references():
        yield from _named_refs(expr)
    if descriptor.primitive is not None:
        yield from _named_refs(descriptor.primitive)


def _dependency_order(types: list[TypeDescriptor], module: str) -> list[TypeDescriptor]:
    """Order declarations so every eager reference is declared before use.

    Lazy references are deferred by the emitted code and do not constrain
    the order.
    """
    by_name = {d.name: d for d in types}
    ordered: list[TypeDescriptor] = []
    visited: set[str] = set()
    visiting: set[str] = set()

    def visit(descriptor: TypeDescriptor):
        if descriptor.name in visited or descriptor.name in visiting:
            return
        visiting.add(descriptor.name)
        for ref in _descriptor_refs(descriptor):
            if ref.lazy or ref.module != module or ref.name not in by_name:
                continue
            visit(by_name[ref.name])
        visiting.discard(descriptor.name)
        visited.add(descriptor.name)
        ordered.append(descriptor)

    for descriptor in types:
        visit(descriptor)
    return ordered
