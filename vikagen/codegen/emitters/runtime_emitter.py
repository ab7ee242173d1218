from vikagen.codegen.emitters.base import Emitter

__all__ = ['RuntimeEmitter']


class RuntimeEmitter(Emitter):
    """Renders ``runtime.ts``: the request primitive and query serialization.

    The runtime declares no transport. Consumers pass their own
    ``RequestFn`` (fetch, axios, a test double) to every client function.
    """

    template_name = 'runtime.ts.jinja2'

    def emit(self) -> str:
        return self.render(
            header_strategy=self.options.header_strategy.value,
            fixed_headers=sorted(self.options.fixed_headers.items()),
        )
