import functools

import jinja2

from vikagen.codegen.emitters.expressions import js_literal
from vikagen.codegen.ir import Artifact, ImportDescriptor, ModuleIR
from vikagen.config import GenerationOptions

HEADER = '// This file is generated by vikagen. Do not edit it by hand.'

# Runtime declarations that only exist at the type level
RUNTIME_TYPE_NAMES = frozenset({'HttpRequest', 'HttpResponse', 'RequestFn', 'RequestOptions'})


@functools.cache
def template_environment() -> jinja2.Environment:
    """Return the shared Jinja2 environment of the file templates."""
    environment = jinja2.Environment(
        loader=jinja2.PackageLoader('vikagen', 'templates'),
        lstrip_blocks=True,
        trim_blocks=True,
        keep_trailing_newline=True,
        autoescape=False,
        undefined=jinja2.StrictUndefined,
    )
    environment.filters['js'] = js_literal
    environment.globals['header'] = HEADER
    return environment


def import_path(importer: ModuleIR, descriptor: ImportDescriptor) -> str:
    """Return the relative module specifier of an import."""
    if descriptor.kind is None:
        return f'../{descriptor.source}'
    if descriptor.source == importer.id:
        return f'./{descriptor.kind.value}'
    return f'../{descriptor.source}/{descriptor.kind.value}'


class Emitter:
    """Base class of the file emitters.

    Emitters are pure: the same IR and options always render to the same
    text, and rendering never touches shared mutable state, so different
    modules can be emitted from different threads.
    """

    template_name: str = ''
    artifact: Artifact | None = None

    def __init__(self, options: GenerationOptions | None = None):
        self.options = options or GenerationOptions()

    def render(self, **context) -> str:
        template = template_environment().get_template(self.template_name)
        return template.render(**context)

    def imports(self, module: ModuleIR) -> list[dict]:
        imports = []
        for descriptor in module.imports_for(self.artifact):
            names = list(descriptor.names)
            if descriptor.kind is None:
                names = [f'type {n}' if n in RUNTIME_TYPE_NAMES else n for n in names]
            imports.append(
                {
                    'names': names,
                    'path': import_path(module, descriptor),
                    'type_only': descriptor.type_only,
                }
            )
        return imports

    def emit(self, module: ModuleIR) -> str:
        raise NotImplementedError
