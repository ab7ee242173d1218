"""vikagen - Generate typed TypeScript clients from OpenAPI specifications.

vikagen turns an OpenAPI 3.x (or Swagger 2.0) document into TypeScript
types, zod validators and transport-agnostic client functions, grouped into
one module per API tag plus a shared ``common`` module for schemas used by
more than one tag.

Quick Start:
    >>> from vikagen import Codegen, ManifestWriter, SchemaLoader
    >>>
    >>> document = SchemaLoader().load('./openapi.yaml')
    >>> result = Codegen(document).generate()
    >>> ManifestWriter('./src/api').write(result)

CLI Usage:
    $ vikagen generate --config vikagen.yaml
    $ vikagen inspect ./openapi.yaml
"""

from importlib.metadata import PackageNotFoundError, version

from vikagen.codegen import Codegen, GenerationResult, ModuleInfo
from vikagen.config import (
    CodegenConfig,
    DocumentConfig,
    GenerationOptions,
    HeaderStrategy,
    NamingConvention,
    get_config,
)
from vikagen.document import DocumentModel
from vikagen.exceptions import (
    AmbiguousDiscriminatorError,
    CodeGenerationError,
    ConfigurationError,
    NamingCollisionError,
    OutputError,
    SchemaError,
    SchemaLoadError,
    SchemaReferenceError,
    UnknownModuleError,
    UnsupportedSchemaError,
    VikagenError,
)
from vikagen.loader import SchemaLoader
from vikagen.writer import ManifestWriter

__all__ = [
    # Main classes
    'Codegen',
    'DocumentModel',
    'GenerationResult',
    'ManifestWriter',
    'ModuleInfo',
    'SchemaLoader',
    # Configuration
    'CodegenConfig',
    'DocumentConfig',
    'GenerationOptions',
    'HeaderStrategy',
    'NamingConvention',
    'get_config',
    # Exceptions
    'VikagenError',
    'SchemaError',
    'SchemaLoadError',
    'SchemaReferenceError',
    'UnsupportedSchemaError',
    'AmbiguousDiscriminatorError',
    'CodeGenerationError',
    'NamingCollisionError',
    'UnknownModuleError',
    'ConfigurationError',
    'OutputError',
]

try:
    __version__ = version('vikagen')
except PackageNotFoundError:
    __version__ = 'unknown'
