from vikagen.codegen.emitters.base import Emitter
from vikagen.codegen.ir import Artifact, ModuleIR

__all__ = ['IndexEmitter']


class IndexEmitter(Emitter):
    """Renders the barrel file re-exporting a module's artifacts."""

    template_name = 'index.ts.jinja2'

    def emit(self, module: ModuleIR) -> str:
        artifacts = [Artifact.TYPES.value, Artifact.SCHEMAS.value]
        if not module.is_common:
            artifacts.append(Artifact.API.value)
        return self.render(artifacts=artifacts)
