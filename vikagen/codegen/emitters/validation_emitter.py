import json

from vikagen.codegen.emitters.base import Emitter
from vikagen.codegen.emitters.expressions import (
    js_literal,
    jsdoc,
    property_key,
    render_validator,
)
from vikagen.codegen.ir import Artifact, ModuleIR, TypeDescriptor, ValidatorDescriptor
from vikagen.codegen.model import SchemaKind

__all__ = ['ValidationEmitter']


def _literal(value) -> str:
    if isinstance(value, (dict, list)):
        # zod literals are primitives only
        encoded = json.dumps(value, separators=(',', ':'), ensure_ascii=False)
        return f'z.custom((value) => JSON.stringify(value) === {js_literal(encoded)})'
    return f'z.literal({js_literal(value)})'


class ValidationEmitter(Emitter):
    """Renders the ``schemas.ts`` file of a module.

    There is exactly one zod validator per declaration of the types file.
    Validators are emitted in dependency order; validators of recursive
    declarations are wrapped in ``z.lazy`` and annotated with their type so
    they can refer to themselves and to validators declared later.
    """

    template_name = 'schemas.ts.jinja2'
    artifact = Artifact.SCHEMAS

    def emit(self, module: ModuleIR) -> str:
        imports = [{'names': ['z'], 'path': 'zod', 'type_only': False}]
        imports.extend(self.imports(module))
        return self.render(
            imports=imports,
            declarations=[self.declaration(v) for v in module.validators],
        )

    def declaration(self, validator: ValidatorDescriptor) -> str:
        doc = jsdoc(f'Validates {validator.type.name}.', validator.type.deprecated)
        expression = self.expression(validator.type)
        if validator.deferred:
            return (
                f'{doc}export const {validator.name}: z.ZodType<{validator.type.name}> = '
                f'z.lazy(() =>\n  {_indent(expression)}\n);'
            )
        return f'{doc}export const {validator.name} = {expression};'

    def expression(self, d: TypeDescriptor) -> str:
        if d.kind == SchemaKind.OBJECT:
            return self._object(d)
        if d.kind == SchemaKind.ENUM:
            return self._enum(d)
        if d.kind == SchemaKind.UNION:
            return self._union(d)
        if d.kind == SchemaKind.INTERSECTION:
            members = [render_validator(m) for m in d.members]
            return members[0] + ''.join(f'.and({m})' for m in members[1:])
        if d.kind == SchemaKind.ARRAY:
            return f'z.array({render_validator(d.items)})'
        if d.kind == SchemaKind.PRIMITIVE:
            return render_validator(d.members[0] if d.members else d.primitive)
        raise ValueError(f'Unhandled schema kind: {d.kind}')

    def _object(self, d: TypeDescriptor) -> str:
        if not d.fields:
            value = render_validator(d.additional) if d.additional else 'z.unknown()'
            return f'z.record(z.string(), {value})'
        lines = []
        for field in d.fields:
            rendered = render_validator(field.type)
            if not field.required:
                rendered += '.optional()'
            lines.append(f'  {property_key(field.name)}: {rendered},\n')
        rendered = f'z.object({{\n{"".join(lines)}}})'
        if d.additional is not None:
            rendered += f'.catchall({render_validator(d.additional)})'
        return rendered

    def _enum(self, d: TypeDescriptor) -> str:
        values = list(d.enum_values)
        if all(isinstance(v, str) for v in values):
            return f'z.enum([{", ".join(js_literal(v) for v in values)}])'
        literals = [_literal(v) for v in values]
        if len(literals) == 1:
            return literals[0]
        return f'z.union([{", ".join(literals)}])'

    def _union(self, d: TypeDescriptor) -> str:
        discriminator = d.discriminator
        if discriminator is not None and discriminator.dispatchable:
            prop = property_key(discriminator.property_name)
            variants = [
                f'{ref.validator}.extend({{ {prop}: z.literal({js_literal(key)}) }})'
                for key, ref in discriminator.mapping
            ]
            if len(variants) > 1:
                return (
                    f'z.discriminatedUnion({js_literal(discriminator.property_name)}, '
                    f'[\n{_list(variants)}])'
                )
            return variants[0]

        if discriminator is not None:
            prop = property_key(discriminator.property_name)
            members = [
                f'z.object({{ {prop}: z.literal({js_literal(key)}) }})'
                f'.and({render_validator(ref)})'
                for key, ref in discriminator.mapping
            ]
        else:
            members = [render_validator(m) for m in d.members]

        if len(members) == 1:
            return members[0]
        return f'z.union([\n{_list(members)}])'


def _list(items: list[str]) -> str:
    return ''.join(f'  {item},\n' for item in items)


def _indent(text: str) -> str:
    return text.replace('\n', '\n  ')
