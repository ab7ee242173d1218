import dataclasses
import logging
from concurrent.futures import ThreadPoolExecutor

from vikagen.codegen.builder import BuildResult, IRBuilder, ModuleInfo
from vikagen.codegen.emitters import (
    ClientEmitter,
    IndexEmitter,
    RuntimeEmitter,
    TypeEmitter,
    ValidationEmitter,
)
from vikagen.codegen.ir import ModuleIR
from vikagen.config import DocumentConfig, GenerationOptions
from vikagen.document import DocumentModel

logger = logging.getLogger(__name__)

__all__ = ['Codegen', 'GeneratedFile', 'GenerationResult', 'Manifest']


@dataclasses.dataclass(frozen=True)
class GeneratedFile:
    """One output file, with its path relative to the output directory."""

    path: str
    content: str


@dataclasses.dataclass(frozen=True)
class Manifest:
    module: str
    files: tuple[GeneratedFile, ...]

    def paths(self) -> list[str]:
        return [f.path for f in self.files]

    def get(self, path: str) -> str:
        for generated in self.files:
            if generated.path == path:
                return generated.content
        raise KeyError(path)


@dataclasses.dataclass(frozen=True)
class GenerationResult:
    """The shared manifest plus one manifest per module, sorted by module id."""

    shared: Manifest
    modules: tuple[Manifest, ...]

    def manifests(self) -> list[Manifest]:
        return [self.shared, *self.modules]

    def files(self) -> list[GeneratedFile]:
        return [f for manifest in self.manifests() for f in manifest.files]

    def get(self, path: str) -> str:
        for generated in self.files():
            if generated.path == path:
                return generated.content
        raise KeyError(path)


class Codegen:
    """Generates a TypeScript client from a document model.

    The pipeline is a pure function of the document and the options: it
    performs no I/O and generating twice yields identical manifests.

    Attributes:
        document: The normalized OpenAPI document.
        options: The generation options.

    Example:
        >>> document = SchemaLoader().load('./openapi.yaml')
        >>> result = Codegen(document).generate()
        >>> result.shared.paths()
        ['common/types.ts', 'common/schemas.ts', 'common/index.ts', 'runtime.ts']
    """

    def __init__(self, document: DocumentModel, options: GenerationOptions | None = None):
        self.document = document
        self.options = options or GenerationOptions()
        self._result: BuildResult | None = None

    @classmethod
    def from_config(cls, config: DocumentConfig, loader=None) -> 'Codegen':
        """Load the document a configuration points at.

        Args:
            config: The document configuration.
            loader: Optional :class:`~vikagen.loader.SchemaLoader`.
        """
        from vikagen.loader import SchemaLoader

        loader = loader or SchemaLoader()
        options = GenerationOptions.model_validate(
            config.model_dump(include=set(GenerationOptions.model_fields))
        )
        return cls(loader.load(config.source), options)

    def build(self) -> BuildResult:
        """Build (once) and return the IR of every module."""
        if self._result is None:
            self._result = IRBuilder(self.document, self.options).build()
        return self._result

    def modules(self) -> list[ModuleInfo]:
        """Return the generated modules with their operation and schema counts."""
        return self.build().module_infos()

    def generate(self) -> GenerationResult:
        """Emit every module.

        Returns:
            The shared manifest and the per-module manifests.
        """
        result = self.build()
        if not result.registry.frozen:
            raise RuntimeError('Emission requires a frozen enum registry')

        if self.options.max_workers and len(result.modules) > 1:
            with ThreadPoolExecutor(max_workers=self.options.max_workers) as executor:
                modules = list(executor.map(self._emit_module, result.modules))
        else:
            modules = [self._emit_module(module) for module in result.modules]

        logger.debug(
            f'Generated {len(modules)} module(s) and {len(result.common.types)} common type(s)'
        )
        return GenerationResult(shared=self._emit_shared(result.common), modules=tuple(modules))

    def _emit_module(self, module: ModuleIR) -> Manifest:
        return Manifest(
            module=module.id,
            files=(
                GeneratedFile(f'{module.id}/types.ts', TypeEmitter(self.options).emit(module)),
                GeneratedFile(
                    f'{module.id}/schemas.ts', ValidationEmitter(self.options).emit(module)
                ),
                GeneratedFile(f'{module.id}/api.ts', ClientEmitter(self.options).emit(module)),
                GeneratedFile(f'{module.id}/index.ts', IndexEmitter(self.options).emit(module)),
            ),
        )

    def _emit_shared(self, common: ModuleIR) -> Manifest:
        return Manifest(
            module=common.id,
            files=(
                GeneratedFile(f'{common.id}/types.ts', TypeEmitter(self.options).emit(common)),
                GeneratedFile(
                    f'{common.id}/schemas.ts', ValidationEmitter(self.options).emit(common)
                ),
                GeneratedFile(f'{common.id}/index.ts', IndexEmitter(self.options).emit(common)),
                GeneratedFile('runtime.ts', RuntimeEmitter(self.options).emit()),
            ),
        )
