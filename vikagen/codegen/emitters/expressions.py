"""Rendering of IR type expressions as TypeScript types and zod validators."""

import json
import re
from typing import Any

from vikagen.codegen.ir import ArrayExpr, NamedRef, PrimitiveExpr, TypeExpr
from vikagen.codegen.model import PrimitiveType

__all__ = [
    'js_literal',
    'jsdoc',
    'property_access',
    'property_key',
    'render_type',
    'render_validator',
]

_IDENTIFIER = re.compile(r'^[A-Za-z_$][A-Za-z0-9_$]*$')

_TS_PRIMITIVES = {
    PrimitiveType.STRING: 'string',
    PrimitiveType.NUMBER: 'number',
    PrimitiveType.INTEGER: 'number',
    PrimitiveType.BOOLEAN: 'boolean',
    PrimitiveType.NULL: 'null',
    PrimitiveType.ANY: 'unknown',
}

_ZOD_PRIMITIVES = {
    PrimitiveType.STRING: 'z.string()',
    PrimitiveType.NUMBER: 'z.number()',
    PrimitiveType.INTEGER: 'z.number().int()',
    PrimitiveType.BOOLEAN: 'z.boolean()',
    PrimitiveType.NULL: 'z.null()',
    PrimitiveType.ANY: 'z.unknown()',
}

# String formats zod can check
_ZOD_STRING_FORMATS = {
    'date': '.date()',
    'date-time': '.datetime({ offset: true })',
    'email': '.email()',
    'uri': '.url()',
    'url': '.url()',
    'uuid': '.uuid()',
}


def js_literal(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def property_key(name: str) -> str:
    return name if _IDENTIFIER.match(name) else js_literal(name)


def property_access(target: str, name: str) -> str:
    if _IDENTIFIER.match(name):
        return f'{target}.{name}'
    return f'{target}[{js_literal(name)}]'


def jsdoc(
    description: str | None = None,
    deprecated: bool = False,
    fmt: str | None = None,
    indent: str = '',
) -> str:
    """Render a JSDoc block, or an empty string when there is nothing to say."""
    lines = []
    if description:
        lines.extend(description.strip().replace('*/', '*\\/').splitlines())
    if fmt:
        lines.append(f'@format {fmt}')
    if deprecated:
        lines.append('@deprecated')
    if not lines:
        return ''
    if len(lines) == 1:
        return f'{indent}/** {lines[0]} */\n'
    body = ''.join(f'{indent} *{" " + line if line else ""}\n' for line in lines)
    return f'{indent}/**\n{body}{indent} */\n'


def _nullable_type(rendered: str, nullable: bool) -> str:
    if nullable and rendered not in ('unknown', 'null'):
        return f'{rendered} | null'
    return rendered


def render_type(expr: TypeExpr, wrap: bool = False) -> str:
    """Render a TypeScript type expression.

    Args:
        expr: The expression.
        wrap: Parenthesize unions, for use inside intersections.
    """
    if isinstance(expr, NamedRef):
        rendered = _nullable_type(expr.name, expr.nullable)
    elif isinstance(expr, ArrayExpr):
        rendered = _nullable_type(f'Array<{render_type(expr.items)}>', expr.nullable)
    elif expr.literal is not None:
        rendered = _nullable_type(js_literal(expr.literal.value), expr.nullable)
    else:
        rendered = _nullable_type(_TS_PRIMITIVES[expr.primitive], expr.nullable)

    if wrap and ' | ' in rendered:
        return f'({rendered})'
    return rendered


def _primitive_validator(expr: PrimitiveExpr) -> str:
    if expr.literal is not None:
        if expr.literal.value is None:
            return 'z.null()'
        return f'z.literal({js_literal(expr.literal.value)})'
    rendered = _ZOD_PRIMITIVES[expr.primitive]
    if expr.primitive == PrimitiveType.STRING and expr.format in _ZOD_STRING_FORMATS:
        rendered += _ZOD_STRING_FORMATS[expr.format]
    return rendered


def render_validator(expr: TypeExpr) -> str:
    """Render the zod validator of a type expression."""
    if isinstance(expr, NamedRef):
        rendered = f'z.lazy(() => {expr.validator})' if expr.lazy else expr.validator
    elif isinstance(expr, ArrayExpr):
        rendered = f'z.array({render_validator(expr.items)})'
    else:
        rendered = _primitive_validator(expr)
        if expr.primitive in (PrimitiveType.ANY, PrimitiveType.NULL):
            return rendered
    if expr.nullable:
        rendered += '.nullable()'
    return rendered
