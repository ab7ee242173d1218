from vikagen.codegen.emitters.client_emitter import ClientEmitter
from vikagen.codegen.emitters.index_emitter import IndexEmitter
from vikagen.codegen.emitters.runtime_emitter import RuntimeEmitter
from vikagen.codegen.emitters.type_emitter import TypeEmitter
from vikagen.codegen.emitters.validation_emitter import ValidationEmitter

__all__ = [
    'ClientEmitter',
    'IndexEmitter',
    'RuntimeEmitter',
    'TypeEmitter',
    'ValidationEmitter',
]
