from vikagen.codegen.emitters.base import Emitter
from vikagen.codegen.emitters.expressions import (
    js_literal,
    jsdoc,
    property_key,
    render_type,
)
from vikagen.codegen.ir import Artifact, ModuleIR, PrimitiveExpr, TypeDescriptor
from vikagen.codegen.model import SchemaKind

__all__ = ['TypeEmitter']


class TypeEmitter(Emitter):
    """Renders the ``types.ts`` file of a module.

    Every declaration is referenced by name, including self-references, so
    recursive schemas rely on TypeScript's own support for recursive type
    aliases and interfaces instead of being expanded.
    """

    template_name = 'types.ts.jinja2'
    artifact = Artifact.TYPES

    def emit(self, module: ModuleIR) -> str:
        return self.render(
            imports=self.imports(module),
            declarations=[self.declaration(d) for d in module.types],
        )

    def declaration(self, descriptor: TypeDescriptor) -> str:
        doc = jsdoc(descriptor.description, descriptor.deprecated)
        return doc + self._body(descriptor)

    def _body(self, d: TypeDescriptor) -> str:
        if d.kind == SchemaKind.OBJECT:
            return self._object(d)
        if d.kind == SchemaKind.ENUM:
            values = ' | '.join(js_literal(v) for v in d.enum_values)
            return f'export type {d.name} = {values};'
        if d.kind == SchemaKind.UNION:
            return self._union(d)
        if d.kind == SchemaKind.INTERSECTION:
            members = ' & '.join(render_type(m, wrap=True) for m in d.members)
            return f'export type {d.name} = {members};'
        if d.kind == SchemaKind.ARRAY:
            return f'export type {d.name} = Array<{render_type(d.items)}>;'
        if d.kind == SchemaKind.PRIMITIVE:
            target = d.members[0] if d.members else d.primitive
            return f'export type {d.name} = {render_type(target)};'
        raise ValueError(f'Unhandled schema kind: {d.kind}')

    def _fields(self, d: TypeDescriptor) -> str:
        lines = []
        for field in d.fields:
            fmt = field.type.format if isinstance(field.type, PrimitiveExpr) else None
            lines.append(jsdoc(field.description, fmt=fmt, indent='  '))
            optional = '' if field.required else '?'
            lines.append(
                f'  {property_key(field.name)}{optional}: {render_type(field.type)};\n'
            )
        return ''.join(lines)

    def _object(self, d: TypeDescriptor) -> str:
        if not d.fields:
            value = render_type(d.additional) if d.additional else 'unknown'
            return f'export type {d.name} = Record<string, {value}>;'
        if d.additional is not None:
            return (
                f'export type {d.name} = {{\n{self._fields(d)}}} '
                f'& Record<string, {render_type(d.additional)}>;'
            )
        return f'export interface {d.name} {{\n{self._fields(d)}}}'

    def _union(self, d: TypeDescriptor) -> str:
        if d.discriminator is not None:
            prop = property_key(d.discriminator.property_name)
            variants = [
                f'({{ {prop}: {js_literal(key)} }} & {render_type(ref, wrap=True)})'
                for key, ref in d.discriminator.mapping
            ]
        else:
            variants = [render_type(m) for m in d.members]

        if len(variants) == 1:
            return f'export type {d.name} = {variants[0]};'
        lines = ''.join(f'\n  | {variant}' for variant in variants)
        return f'export type {d.name} ={lines};'
