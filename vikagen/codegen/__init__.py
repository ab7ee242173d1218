"""Code generation core of vikagen.

The pipeline runs leaf to root:

    - ReferenceResolver: validates ``$ref`` pointers, builds the dependency
      graph and tracks cycles
    - SchemaClassifier: gives every schema a structural kind
    - ModulePartitioner: assigns schemas to modules and finds the common set
    - IRBuilder: names, deduplicates and lays out every declaration
    - Emitters: render types, zod validators and client functions

Example:
    >>> from vikagen.codegen import Codegen
    >>> result = Codegen(document).generate()
    >>> print(result.get('pets/types.ts'))
"""

from vikagen.codegen.builder import BuildResult, IRBuilder, ModuleInfo, split_responses
from vikagen.codegen.classifier import SchemaClassifier, classify
from vikagen.codegen.codegen import Codegen, GeneratedFile, GenerationResult, Manifest
from vikagen.codegen.enums import EnumRegistry
from vikagen.codegen.graph import DependencyGraph, ReferenceResolver
from vikagen.codegen.naming import NameAllocator
from vikagen.codegen.partition import ModulePartitioner, SchemaOwnership

__all__ = [
    'BuildResult',
    'Codegen',
    'DependencyGraph',
    'EnumRegistry',
    'GeneratedFile',
    'GenerationResult',
    'IRBuilder',
    'Manifest',
    'ModuleInfo',
    'ModulePartitioner',
    'NameAllocator',
    'ReferenceResolver',
    'SchemaClassifier',
    'SchemaOwnership',
    'classify',
    'split_responses',
]
