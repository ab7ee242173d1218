import logging
import re

from vikagen.codegen.emitters.base import Emitter
from vikagen.codegen.emitters.expressions import (
    js_literal,
    jsdoc,
    property_access,
    property_key,
    render_type,
    render_validator,
)
from vikagen.codegen.ir import (
    Artifact,
    ModuleIR,
    NamedRef,
    OperationIR,
    PrimitiveExpr,
    ResponseDescriptor,
    TypeExpr,
)
from vikagen.codegen.model import PrimitiveType
from vikagen.config import HeaderStrategy

logger = logging.getLogger(__name__)

__all__ = ['ClientEmitter']

_PLACEHOLDER = re.compile(r'(\{[^}]+\})')


def _escape_template(text: str) -> str:
    return text.replace('\\', '\\\\').replace('`', '\\`').replace('${', '\\${')


class ClientEmitter(Emitter):
    """Renders the ``api.ts`` file of a module.

    Each operation becomes a params type, a result type discriminated by the
    HTTP status, and an async function that only depends on the abstract
    ``RequestFn`` of the runtime file.
    """

    template_name = 'api.ts.jinja2'
    artifact = Artifact.API

    def emit(self, module: ModuleIR) -> str:
        operations = [self.operation(op) for op in module.operations]
        imports = self.imports(module)
        if any(self._uses_zod(op) for op in module.operations):
            imports.insert(0, {'names': ['z'], 'path': 'zod', 'type_only': False})
        return self.render(imports=imports, operations=operations)

    def operation(self, op: OperationIR) -> dict[str, str]:
        return {
            'params': self._params_type(op),
            'result': self._result_type(op),
            'function': self._function(op),
        }

    def body_key(self, op: OperationIR) -> str:
        names = {p.client_key for p in op.parameters}
        return 'requestBody' if 'body' in names else 'body'

    def _params_type(self, op: OperationIR) -> str:
        lines = []
        for parameter in op.parameters:
            fmt = parameter.type.format if isinstance(parameter.type, PrimitiveExpr) else None
            lines.append(jsdoc(parameter.description, fmt=fmt, indent='  '))
            optional = '' if parameter.required else '?'
            key = property_key(parameter.client_key)
            lines.append(f'  {key}{optional}: {render_type(parameter.type)};\n')
        if op.body is not None:
            optional = '' if op.body.required else '?'
            lines.append(f'  {self.body_key(op)}{optional}: {render_type(op.body.type)};\n')

        if not lines:
            return f'export type {op.params_type} = Record<string, never>;'
        return f'export interface {op.params_type} {{\n{"".join(lines)}}}'

    def _default_response(self, op: OperationIR) -> ResponseDescriptor | None:
        for response in op.errors:
            if response.is_default:
                return response
        return None

    def _result_type(self, op: OperationIR) -> str:
        variants = []
        for response in (*op.responses, *op.errors):
            if response.is_default:
                continue
            data = render_type(response.type) if response.type is not None else 'undefined'
            variants.append(f'{{ status: {int(response.status)}; data: {data} }}')

        default = self._default_response(op)
        if default is None:
            data = 'unknown'
        elif default.type is None:
            data = 'undefined'
        else:
            data = render_type(default.type)
        variants.append(f'{{ status: "default"; code: number; data: {data} }}')

        lines = ''.join(f'\n  | {variant}' for variant in variants)
        return f'export type {op.result_type} ={lines};'

    def _validated(self, response: ResponseDescriptor | None) -> TypeExpr | None:
        """The type a response body is parsed with, or None when it is passed through."""
        if response is None or response.type is None:
            return None
        expr = response.type
        if isinstance(expr, PrimitiveExpr) and expr.primitive == PrimitiveType.ANY:
            return None
        return expr

    def _uses_zod(self, op: OperationIR) -> bool:
        for response in (*op.responses, *op.errors):
            expr = self._validated(response)
            if expr is not None and not (isinstance(expr, NamedRef) and not expr.lazy):
                return True
        return False

    def _parse(self, response: ResponseDescriptor | None) -> str:
        if response is not None and response.type is None:
            return 'undefined'
        expr = self._validated(response)
        if expr is None:
            return 'response.body'
        return f'{render_validator(expr)}.parse(response.body)'

    def _url(self, op: OperationIR) -> str:
        path_params = {p.name: p.client_key for p in op.parameters_in('path')}
        parts = []
        for part in _PLACEHOLDER.split(op.path):
            name = part[1:-1] if _PLACEHOLDER.fullmatch(part) else None
            if name is not None and name in path_params:
                access = property_access('params', path_params[name])
                parts.append('${encodeURIComponent(String(' + access + '))}')
            else:
                if name is not None:
                    logger.debug(f'Path placeholder {part} of {op.name} has no parameter')
                parts.append(_escape_template(part))
        url = '`' + ''.join(parts) + '`'

        query = op.parameters_in('query')
        if query:
            entries = ''.join(
                f'      [{js_literal(p.name)}, {property_access("params", p.client_key)}, '
                f'{"true" if p.explode else "false"}],\n'
                for p in query
            )
            url += f' +\n    serializeQuery([\n{entries}    ])'
        return url

    def _headers(self, op: OperationIR) -> str:
        strategy = self.options.header_strategy
        lines = ['  const headers: Record<string, string> = {\n']
        if strategy == HeaderStrategy.FIXED:
            lines.append('    ...FIXED_HEADERS,\n')
        elif strategy == HeaderStrategy.BEARER_TOKEN:
            lines.append(
                '    ...(options.token ? { Authorization: `Bearer ${options.token}` } : {}),\n'
            )
        lines.append('    ...options.headers,\n')
        lines.append('  };\n')

        for parameter in op.parameters_in('header'):
            access = property_access('params', parameter.client_key)
            target = f'headers[{js_literal(parameter.name)}]'
            lines.append(
                f'  if ({access} !== undefined) {{\n'
                f'    {target} = String({access});\n'
                f'  }}\n'
            )
        return ''.join(lines)

    def _function(self, op: OperationIR) -> str:
        description = '\n\n'.join(text for text in (op.summary, op.description) if text)
        doc = jsdoc(description or f'{op.method} {op.path}', op.deprecated)

        has_required = any(p.required for p in op.parameters) or (
            op.body is not None and op.body.required
        )
        params_arg = f'params: {op.params_type}' + ('' if has_required else ' = {}')

        request = [
            f'    method: {js_literal(op.method)},\n',
            f'    url: {self._url(op)},\n',
            '    headers,\n',
        ]
        if op.body is not None:
            request.append(f'    body: {property_access("params", self.body_key(op))},\n')
            request.append(f'    contentType: {js_literal(op.body.content_type)},\n')
        request.append('    signal: options.signal,\n')

        cases = []
        for response in (*op.responses, *op.errors):
            if response.is_default:
                continue
            status = int(response.status)
            cases.append(
                f'    case {status}:\n'
                f'      return {{ status: {status}, data: {self._parse(response)} }};\n'
            )
        cases.append(
            '    default:\n'
            '      return { status: "default", code: response.status, '
            f'data: {self._parse(self._default_response(op))} }};\n'
        )

        return (
            f'{doc}export async function {op.name}(\n'
            f'  request: RequestFn,\n'
            f'  {params_arg},\n'
            f'  options: RequestOptions = {{}},\n'
            f'): Promise<{op.result_type}> {{\n'
            f'{self._headers(op)}'
            f'  const response = await request({{\n'
            f'{"".join(request)}'
            f'  }});\n'
            f'  switch (response.status) {{\n'
            f'{"".join(cases)}'
            f'  }}\n'
            f'}}'
        )
